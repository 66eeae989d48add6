"""Vulnerability and deprecation checks for installed packages."""

import logging
from typing import Dict, Iterable, List, Optional, Any

from packageurl import PackageURL

from .api_client import OsvClient
from .graph import DependencyGraph
from .models import Package, Vulnerability, Severity, DeprecatedPackage
from .version_parser import VersionParser

logger = logging.getLogger(__name__)

# OSV ecosystem name -> purl type
PURL_TYPES = {
    "npm": "npm",
    "crates.io": "cargo",
}

_SEVERITY_NAMES = {
    "LOW": Severity.LOW,
    "MODERATE": Severity.MEDIUM,
    "MEDIUM": Severity.MEDIUM,
    "HIGH": Severity.HIGH,
    "CRITICAL": Severity.CRITICAL,
}


def build_purl(pkg: Package, ecosystem: str) -> str:
    """Build a Package URL (purl) string for an installed package."""
    purl_type = PURL_TYPES.get(ecosystem, ecosystem)
    namespace = None
    name = pkg.name
    if purl_type == "npm" and name.startswith("@") and "/" in name:
        namespace, name = name.split("/", 1)
    return PackageURL(type=purl_type, namespace=namespace, name=name, version=pkg.version).to_string()


def parse_severity(advisory: Dict[str, Any]) -> Severity:
    """Read the advisory's qualitative severity, defaulting to medium."""
    label = (advisory.get("database_specific") or {}).get("severity")
    if isinstance(label, str):
        return _SEVERITY_NAMES.get(label.upper(), Severity.MEDIUM)
    return Severity.MEDIUM


def _affected_entries(advisory: Dict[str, Any], package_name: str) -> List[Dict[str, Any]]:
    entries = advisory.get("affected") or []
    matching = [e for e in entries if (e.get("package") or {}).get("name") == package_name]
    return matching or entries


def vulnerable_range(advisory: Dict[str, Any], package_name: str) -> str:
    """Render the affected version ranges, e.g. ">=1.0.0 <1.2.3 || <0.9.1"."""
    ranges = []
    for affected in _affected_entries(advisory, package_name):
        for rng in affected.get("ranges") or []:
            introduced = None
            for event in rng.get("events") or []:
                if "introduced" in event:
                    introduced = event["introduced"]
                elif "fixed" in event or "last_affected" in event:
                    lower = f">={introduced} " if introduced not in (None, "0") else ""
                    if "fixed" in event:
                        ranges.append(f"{lower}<{event['fixed']}")
                    else:
                        ranges.append(f"{lower}<={event['last_affected']}")
                    introduced = None
            if introduced is not None:
                ranges.append(f">={introduced}" if introduced != "0" else "*")
    return " || ".join(ranges)


def patched_version(advisory: Dict[str, Any], package_name: str, installed: str) -> Optional[str]:
    """Lowest fixed version newer than the installed one, if any."""
    fixed = [
        event["fixed"]
        for affected in _affected_entries(advisory, package_name)
        for rng in affected.get("ranges") or []
        for event in rng.get("events") or []
        if "fixed" in event
    ]
    candidates = [v for v in fixed if VersionParser.compare(v, installed) > 0]
    if not candidates:
        return None
    return VersionParser.sort_versions(candidates)[0]


def advisory_url(advisory: Dict[str, Any]) -> str:
    for reference in advisory.get("references") or []:
        if reference.get("type") == "ADVISORY" and reference.get("url"):
            return reference["url"]
    return f"https://osv.dev/vulnerability/{advisory['id']}"


def check_vulnerabilities(
    packages: Dict[str, Package],
    ecosystem: str,
    used: Optional[Iterable[str]] = None,
    client: Optional[OsvClient] = None,
) -> List[Vulnerability]:
    """
    Check installed packages against the OSV database.

    Args:
        packages: name -> Package mapping from the lockfile
        ecosystem: OSV ecosystem ("npm" or "crates.io")
        used: Names of packages imported by source code; when given, each
            finding records whether it sits in the used part of the graph
        client: Optional OsvClient to reuse

    Returns:
        Vulnerabilities sorted by severity (critical first), then package name

    Raises:
        AuditError: if the vulnerability database cannot be queried
    """
    used_closure = None
    if used is not None:
        used_closure = DependencyGraph(packages).transitive_closure(used)

    candidates = [pkg for pkg in packages.values() if pkg.version]
    if not candidates:
        return []

    owns_client = client is None
    if owns_client:
        client = OsvClient()

    try:
        purls = [build_purl(pkg, ecosystem) for pkg in candidates]
        logger.info(f"Checking {len(purls)} packages for known vulnerabilities")
        id_lists = client.query_batch(purls)

        vulnerabilities: List[Vulnerability] = []
        for pkg, vuln_ids in zip(candidates, id_lists):
            for vuln_id in vuln_ids:
                advisory = client.get_vulnerability(vuln_id) or {"id": vuln_id}
                vulnerabilities.append(Vulnerability(
                    id=vuln_id,
                    title=advisory.get("summary") or advisory.get("details", "").split("\n", 1)[0] or vuln_id,
                    severity=parse_severity(advisory),
                    package_name=pkg.name,
                    installed_version=pkg.version,
                    vulnerable_range=vulnerable_range(advisory, pkg.name),
                    patched_version=patched_version(advisory, pkg.name, pkg.version),
                    url=advisory_url(advisory),
                    affects_used_code=used_closure is None or pkg.name in used_closure,
                ))
    finally:
        if owns_client:
            client.close()

    vulnerabilities.sort(key=lambda v: (-v.severity.rank, v.package_name, v.id))
    logger.info(f"Found {len(vulnerabilities)} vulnerabilities")
    return vulnerabilities


def check_deprecated(
    packages: Dict[str, Package],
    used: Optional[Iterable[str]] = None,
) -> List[DeprecatedPackage]:
    """List packages whose lockfile entry carries a deprecation notice, sorted by name."""
    used_closure = set()
    if used is not None:
        used_closure = DependencyGraph(packages).transitive_closure(used)

    deprecated = [
        DeprecatedPackage(package=pkg, message=pkg.deprecated, is_used=pkg.name in used_closure)
        for pkg in packages.values()
        if pkg.deprecated
    ]
    deprecated.sort(key=lambda d: d.package.name)
    return deprecated
