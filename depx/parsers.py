"""Lockfile parsers for npm (package-lock.json) and Cargo (Cargo.lock)."""

import json
import logging
import sys
from enum import Enum
from pathlib import Path
from typing import List, Dict, Set, Tuple, Optional, Any

if sys.version_info >= (3, 11):
    import tomllib
else:
    import tomli as tomllib

from .errors import LockfileError, LockfileNotFoundError, UnsupportedLockfileError
from .models import Package, LockedPackage

logger = logging.getLogger(__name__)


class LockfileType(Enum):
    """Supported (and recognised) lockfile formats."""

    CARGO = "Cargo.lock"
    NPM = "package-lock.json"
    PNPM = "pnpm-lock.yaml"
    YARN = "yarn.lock"


# Detection order: the first lockfile found wins
LOCKFILE_CANDIDATES: List[LockfileType] = [
    LockfileType.CARGO,
    LockfileType.NPM,
    LockfileType.PNPM,
    LockfileType.YARN,
]


def detect_lockfile(root: Path) -> Tuple[Path, LockfileType]:
    """Find the lockfile in a project directory."""
    for lockfile_type in LOCKFILE_CANDIDATES:
        candidate = root / lockfile_type.value
        if candidate.exists():
            logger.info(f"Detected lockfile: {candidate}")
            return candidate, lockfile_type

    expected = ", ".join(t.value for t in LOCKFILE_CANDIDATES)
    raise LockfileNotFoundError(f"No lockfile found in {root}. Expected one of: {expected}")


def extract_package_name_from_path(path: str) -> str:
    """
    Extract a package name from a package-lock.json "packages" key.

    "node_modules/lodash" -> "lodash"
    "node_modules/@types/node" -> "@types/node"
    "node_modules/foo/node_modules/bar" -> "bar"
    """
    name_part = path.rsplit("node_modules/", 1)[-1]

    # Scoped packages keep both segments
    if name_part.startswith("@"):
        segments = name_part.split("/", 2)
        if len(segments) >= 2:
            return f"{segments[0]}/{segments[1]}"

    return name_part.split("/", 1)[0]


def _nesting_depth(path: str) -> int:
    return path.count("node_modules/")


def _read_json(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except OSError as e:
        raise LockfileError(f"Failed to read {path}: {e}") from e
    except json.JSONDecodeError as e:
        raise LockfileError(f"Failed to parse {path}: {e}") from e


def _read_toml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "rb") as f:
            return tomllib.load(f)
    except OSError as e:
        raise LockfileError(f"Failed to read {path}: {e}") from e
    except tomllib.TOMLDecodeError as e:
        raise LockfileError(f"Failed to parse {path}: {e}") from e


class NpmLockfileParser:
    """Parser for npm's package-lock.json (lockfile versions 1, 2 and 3)."""

    def __init__(self, root: Path, lockfile_path: Path):
        self.root = Path(root)
        self.lockfile_path = Path(lockfile_path)

    def parse(self) -> Dict[str, Package]:
        """Parse the lockfile into a name -> Package mapping (one package per name)."""
        lockfile = _read_json(self.lockfile_path)
        direct_deps, dev_deps = self._read_package_json()

        packages = self._parse_packages_section(lockfile, direct_deps, dev_deps)

        # Fallback to v1 format if the packages map is empty
        if not packages and lockfile.get("dependencies"):
            logger.info("No 'packages' section found, parsing lockfile v1 'dependencies' tree")
            packages = self._parse_v1(lockfile, direct_deps, dev_deps)

        logger.info(f"Parsed {len(packages)} packages from {self.lockfile_path.name}")
        return packages

    def parse_for_duplicates(self) -> List[LockedPackage]:
        """
        Return every installed copy of every package, with resolved dependencies.

        Each declared dependency is resolved the way Node does it (nearest
        enclosing node_modules first) and rendered as "name version".
        """
        lockfile = _read_json(self.lockfile_path)
        entries_by_path: Dict[str, Dict[str, Any]] = lockfile.get("packages") or {}

        if not entries_by_path:
            return self._v1_for_duplicates(lockfile)

        root_name = lockfile.get("name") or "root"
        locked: List[LockedPackage] = []

        for path, info in entries_by_path.items():
            if info.get("link"):
                continue

            if path == "":
                name = root_name
                version = info.get("version") or lockfile.get("version") or "0.0.0"
            else:
                name = self._name_for_entry(path, info)
                version = info.get("version") or ""
            if not name:
                continue

            dependencies = []
            # devDependencies only appear on the root and workspace entries
            declared = {
                **(info.get("dependencies") or {}),
                **(info.get("optionalDependencies") or {}),
                **(info.get("devDependencies") or {}),
            }
            for dep_name in declared:
                resolved_path = self._resolve_dependency(path, dep_name, entries_by_path)
                if resolved_path is None:
                    logger.debug(f"Could not resolve {dep_name} from {path or '<root>'}")
                    continue
                dep_version = entries_by_path[resolved_path].get("version") or ""
                dependencies.append(f"{dep_name} {dep_version}" if dep_version else dep_name)

            locked.append(LockedPackage(name=name, version=version, dependencies=dependencies,
                                        is_path_dep=(path == "")))

        return locked

    def _read_package_json(self) -> Tuple[Set[str], Set[str]]:
        """Read direct and dev dependency names from package.json, if present."""
        package_json_path = self.root / "package.json"
        if not package_json_path.exists():
            logger.warning(f"No package.json next to {self.lockfile_path.name}; no direct dependencies known")
            return set(), set()

        package_json = _read_json(package_json_path)
        dependencies = package_json.get("dependencies") or {}
        dev_dependencies = package_json.get("devDependencies") or {}

        direct = set(dependencies) | set(dev_dependencies)
        return direct, set(dev_dependencies)

    @staticmethod
    def _name_for_entry(path: str, info: Dict[str, Any]) -> str:
        if "node_modules/" in path:
            return extract_package_name_from_path(path)
        # Workspace package ("packages/foo")
        return info.get("name") or ""

    def _parse_packages_section(
        self,
        lockfile: Dict[str, Any],
        direct_deps: Set[str],
        dev_deps: Set[str],
    ) -> Dict[str, Package]:
        """Parse lockfile format v2/v3 (npm 7+)."""
        packages: Dict[str, Package] = {}
        entries = lockfile.get("packages") or {}

        # Hoisted copies first, so the top-level version wins over nested ones
        for path in sorted(entries, key=_nesting_depth):
            info = entries[path]
            if path == "" or info.get("link"):
                continue

            name = self._name_for_entry(path, info)
            if not name or name in packages:
                continue

            dependencies = list(info.get("dependencies") or {})
            dependencies.extend(d for d in (info.get("optionalDependencies") or {}) if d not in dependencies)

            packages[name] = Package(
                name=name,
                version=info.get("version") or "",
                is_direct=name in direct_deps,
                is_dev=bool(info.get("dev")) or name in dev_deps,
                dependencies=dependencies,
                deprecated=info.get("deprecated"),
            )

        return packages

    def _parse_v1(
        self,
        lockfile: Dict[str, Any],
        direct_deps: Set[str],
        dev_deps: Set[str],
    ) -> Dict[str, Package]:
        """Parse lockfile format v1 (npm 6 and earlier)."""
        packages: Dict[str, Package] = {}
        stack = [lockfile.get("dependencies") or {}]

        while stack:
            level = stack.pop(0)
            for name, dep in level.items():
                if name not in packages:
                    packages[name] = Package(
                        name=name,
                        version=dep.get("version") or "",
                        is_direct=name in direct_deps,
                        is_dev=bool(dep.get("dev")) or name in dev_deps,
                        dependencies=list(dep.get("requires") or {}),
                    )
                nested = dep.get("dependencies")
                if nested:
                    stack.append(nested)

        return packages

    def _v1_for_duplicates(self, lockfile: Dict[str, Any]) -> List[LockedPackage]:
        """Flatten a v1 dependency tree, resolving requires against enclosing levels."""
        locked: List[LockedPackage] = []
        # (dependencies at this level, chain of enclosing levels, innermost first)
        stack = [(lockfile.get("dependencies") or {}, [])]

        while stack:
            level, parents = stack.pop(0)
            scopes = [level] + parents
            for name, dep in level.items():
                nested = dep.get("dependencies") or {}
                lookup = [nested] + scopes
                dependencies = []
                for req_name in dep.get("requires") or {}:
                    for scope in lookup:
                        if req_name in scope:
                            dependencies.append(f"{req_name} {scope[req_name].get('version', '')}".strip())
                            break
                locked.append(LockedPackage(name=name, version=dep.get("version") or "",
                                            dependencies=dependencies))
                if nested:
                    stack.append((nested, scopes))

        return locked

    @staticmethod
    def _resolve_dependency(from_path: str, dep_name: str, entries: Dict[str, Any]) -> Optional[str]:
        """Resolve a dependency the way Node does: walk up through enclosing node_modules."""
        base = from_path
        while True:
            candidate = f"{base}/node_modules/{dep_name}" if base else f"node_modules/{dep_name}"
            if candidate in entries:
                return candidate
            if not base:
                return None
            idx = base.rfind("node_modules/")
            base = base[:idx].rstrip("/") if idx > 0 else ""


class CargoLockfileParser:
    """Parser for Cargo.lock files (Rust projects)."""

    def __init__(self, lockfile_path: Path):
        self.lockfile_path = Path(lockfile_path)

    def _load_packages(self) -> List[Dict[str, Any]]:
        lockfile = _read_toml(self.lockfile_path)
        packages = lockfile.get("package") or []
        logger.debug(f"Cargo.lock version {lockfile.get('version', 'unknown')} with {len(packages)} packages")
        return packages

    def parse(self) -> Dict[str, Package]:
        """
        Parse Cargo.lock into a name -> Package mapping.

        Only the first version of each crate is kept; dependency identifiers
        are bare crate names. Crates without a source (workspace and path
        crates) are treated as direct.
        """
        packages: Dict[str, Package] = {}

        for pkg in self._load_packages():
            name = pkg.get("name")
            if not name or name in packages:
                continue

            dependencies = []
            for dep in pkg.get("dependencies") or []:
                parts = dep.split()
                if parts and parts[0] not in dependencies:
                    dependencies.append(parts[0])

            packages[name] = Package(
                name=name,
                version=pkg.get("version") or "",
                is_direct=pkg.get("source") is None,
                dependencies=dependencies,
            )

        logger.info(f"Parsed {len(packages)} crates from {self.lockfile_path.name}")
        return packages

    def parse_for_duplicates(self) -> List[LockedPackage]:
        """Return every [[package]] entry with its raw dependency strings."""
        return [
            LockedPackage(
                name=pkg["name"],
                version=pkg.get("version") or "",
                dependencies=list(pkg.get("dependencies") or []),
                is_path_dep=pkg.get("source") is None,
            )
            for pkg in self._load_packages()
            if pkg.get("name")
        ]


class LockfileParser:
    """Unified lockfile parser that auto-detects the lockfile type."""

    def __init__(self, root):
        self.root = Path(root)
        self.lockfile_path, self.lockfile_type = detect_lockfile(self.root)

    def _parser(self):
        if self.lockfile_type == LockfileType.NPM:
            return NpmLockfileParser(self.root, self.lockfile_path)
        if self.lockfile_type == LockfileType.CARGO:
            return CargoLockfileParser(self.lockfile_path)
        raise UnsupportedLockfileError(f"{self.lockfile_type.value} support coming soon")

    def parse(self) -> Dict[str, Package]:
        """Parse the lockfile and return all packages keyed by name."""
        return self._parser().parse()

    def parse_for_duplicates(self) -> List[LockedPackage]:
        """Parse the lockfile keeping every installed version."""
        return self._parser().parse_for_duplicates()

    @property
    def ecosystem(self) -> str:
        """OSV ecosystem name for the detected lockfile."""
        if self.lockfile_type == LockfileType.CARGO:
            return "crates.io"
        return "npm"
