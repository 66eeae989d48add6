"""Core data models for depx."""

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import List, Optional, Dict, Set, Any


@dataclass
class Package:
    """Represents an installed package as recorded in a lockfile."""

    name: str  # e.g. "lodash", "@types/node", "serde"
    version: str
    is_direct: bool = False  # Declared by the project itself (package.json, path crate)
    is_dev: bool = False
    dependencies: List[str] = field(default_factory=list)  # Dependency identifiers, in lockfile order
    deprecated: Optional[str] = None  # Deprecation message, if any

    @property
    def full_name(self) -> str:
        """Return the package in name@version format."""
        return f"{self.name}@{self.version}"

    def __str__(self) -> str:
        return self.full_name


@dataclass
class LockedPackage:
    """
    One raw lockfile entry, used for duplicate analysis.

    Unlike Package, several LockedPackage entries may share a name.
    Dependency strings are "name version [source]" or just "name".
    """

    name: str
    version: str
    dependencies: List[str] = field(default_factory=list)
    is_path_dep: bool = False  # Cargo path/workspace crate (no source)

    @property
    def key(self) -> str:
        return f"{self.name}@{self.version}"


class ImportKind(Enum):
    """How a module was imported."""

    ES_MODULE = "esm"  # import x from 'pkg'
    COMMON_JS = "cjs"  # require('pkg')
    DYNAMIC = "dynamic"  # import('pkg')
    RE_EXPORT = "reexport"  # export ... from 'pkg'


@dataclass
class Import:
    """An import statement found in source code."""

    file_path: Path
    line: int
    specifier: str  # Raw specifier, e.g. "lodash/fp" or "./utils"
    kind: ImportKind
    resolved_package: Optional[str] = None  # Package name for node_modules imports


class ImportMap:
    """Collection of all imports found in a project."""

    def __init__(self):
        self._imports_by_file: Dict[Path, List[Import]] = {}
        self._package_imports: Dict[str, List[Import]] = {}
        self._files_count = 0

    def add_import(self, imp: Import) -> None:
        """Record an import, indexing it by package when it resolves to one."""
        if imp.resolved_package:
            self._package_imports.setdefault(imp.resolved_package, []).append(imp)
        self._imports_by_file.setdefault(imp.file_path, []).append(imp)

    def mark_file_analyzed(self) -> None:
        self._files_count += 1

    def total_imports(self) -> int:
        return sum(len(imports) for imports in self._imports_by_file.values())

    def files_analyzed(self) -> int:
        return self._files_count

    def packages_used(self) -> Set[str]:
        """Names of every external package imported at least once."""
        return set(self._package_imports)

    def get_package_usages(self, package: str) -> List[Import]:
        return self._package_imports.get(package, [])

    @property
    def imports_by_file(self) -> Dict[Path, List[Import]]:
        return self._imports_by_file


@dataclass
class PackageUsage:
    """A package that is used, directly or through another used package."""

    package: Package
    import_count: int = 0  # 1 if imported directly by source code, 0 if only transitively used
    files: List[Path] = field(default_factory=list)


@dataclass
class UsageAnalysis:
    """Result of cross-referencing installed packages with source imports."""

    used: List[PackageUsage] = field(default_factory=list)
    unused: List[Package] = field(default_factory=list)  # Installed but never needed
    expected_unused: List[Package] = field(default_factory=list)  # Build/lint/test tooling
    dev_only: List[Package] = field(default_factory=list)
    unused_direct: List[Package] = field(default_factory=list)  # Safe to remove
    expected_unused_direct: List[Package] = field(default_factory=list)


@dataclass
class PackageExplanation:
    """Explanation of why a package is in the dependency tree."""

    package: Package
    dependency_chains: List[List[str]] = field(default_factory=list)  # Each chain: direct dep -> ... -> package
    is_dev_path: bool = False


class Severity(Enum):
    """Severity of a known vulnerability."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _SEVERITY_RANK[self]

    def __str__(self) -> str:
        return self.value


_SEVERITY_RANK = {Severity.LOW: 0, Severity.MEDIUM: 1, Severity.HIGH: 2, Severity.CRITICAL: 3}


@dataclass
class Vulnerability:
    """A known vulnerability affecting an installed package version."""

    id: str  # OSV identifier (GHSA-..., RUSTSEC-..., CVE-...)
    title: str
    severity: Severity
    package_name: str
    installed_version: str
    vulnerable_range: str = ""
    patched_version: Optional[str] = None
    url: Optional[str] = None
    affects_used_code: bool = True


@dataclass
class DeprecatedPackage:
    """A package whose lockfile entry carries a deprecation notice."""

    package: Package
    message: str
    is_used: bool = False


class DuplicateSeverity(Enum):
    """How problematic a set of coexisting versions is."""

    LOW = "low"  # Same major version, different minor/patch
    MEDIUM = "medium"  # Different major versions
    HIGH = "high"  # Three or more versions

    @property
    def rank(self) -> int:
        return _DUPLICATE_RANK[self]

    def __str__(self) -> str:
        return self.value


_DUPLICATE_RANK = {DuplicateSeverity.LOW: 0, DuplicateSeverity.MEDIUM: 1, DuplicateSeverity.HIGH: 2}


@dataclass
class DuplicateVersion:
    """A specific version of a duplicated package."""

    version: str
    dependents: List[str] = field(default_factory=list)  # Identifiers of packages depending on this version
    transitive_count: int = 0
    is_path_dep: bool = False  # Local path or workspace member, not from a registry

    def to_dict(self) -> Dict[str, Any]:
        return {
            "version": self.version,
            "dependents": list(self.dependents),
            "transitive_count": self.transitive_count,
        }


@dataclass
class DuplicateGroup:
    """All versions of one package name found in the lockfile."""

    name: str
    versions: List[DuplicateVersion]  # Ascending by version
    severity: DuplicateSeverity

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "versions": [v.to_dict() for v in self.versions],
            "severity": self.severity.value,
        }


@dataclass
class DuplicateStats:
    """Summary statistics for a duplicate analysis."""

    total_duplicates: int = 0
    high_severity: int = 0
    medium_severity: int = 0
    low_severity: int = 0
    extra_compile_units: int = 0  # Redundant version instances beyond one per name

    def to_dict(self) -> Dict[str, int]:
        return {
            "total_duplicates": self.total_duplicates,
            "high_severity": self.high_severity,
            "medium_severity": self.medium_severity,
            "low_severity": self.low_severity,
            "extra_compile_units": self.extra_compile_units,
        }


@dataclass
class DuplicateAnalysis:
    """Result of analyzing duplicate dependencies."""

    duplicates: List[DuplicateGroup] = field(default_factory=list)
    stats: DuplicateStats = field(default_factory=DuplicateStats)

    def to_dict(self) -> Dict[str, Any]:
        """Return the stable JSON-serializable form."""
        return {
            "duplicates": [group.to_dict() for group in self.duplicates],
            "stats": self.stats.to_dict(),
        }
