"""Detects packages installed in multiple versions and rates how problematic they are."""

import logging
from collections import deque
from dataclasses import dataclass, field
from functools import cmp_to_key
from typing import Dict, List, Optional, Set, Iterable

from .models import (
    LockedPackage, DuplicateAnalysis, DuplicateGroup, DuplicateSeverity,
    DuplicateStats, DuplicateVersion,
)
from .version_parser import VersionParser

logger = logging.getLogger(__name__)


@dataclass
class VersionEntry:
    """One installed version of a package, with the identifiers of its dependents."""

    version: str
    dependents: List[str] = field(default_factory=list)
    is_path_dep: bool = False


def dependency_key(dependency: str) -> str:
    """
    Convert a raw lockfile dependency string to a version-qualified key.

    "serde 1.0.150" and "serde 1.0.150 (registry+...)" become "serde@1.0.150";
    a bare "serde" stays "serde".
    """
    parts = dependency.split()
    if not parts:
        return ""
    if len(parts) >= 2:
        return f"{parts[0]}@{parts[1]}"
    return parts[0]


class ReverseDependencyMap:
    """
    Version-qualified reverse dependency map: "name@version" -> dependent identifiers.

    This is independent of DependencyGraph, which collapses versions. A
    dependent identifier is either a bare name (when only one version of that
    package exists) or "name@version"; bare identifiers are resolved through
    the alias table so traversal follows the actual version-qualified node.
    """

    def __init__(self, dependents: Dict[str, List[str]], aliases: Optional[Dict[str, str]] = None):
        self._dependents = dependents
        self._aliases = aliases or {}

    @classmethod
    def from_versions(cls, packages_by_name: Dict[str, List[VersionEntry]]) -> "ReverseDependencyMap":
        """Build from already-grouped versions and their dependents."""
        dependents: Dict[str, List[str]] = {}
        aliases: Dict[str, str] = {}
        for name, versions in packages_by_name.items():
            for entry in versions:
                key = f"{name}@{entry.version}"
                dependents.setdefault(key, []).extend(entry.dependents)
            distinct = {entry.version for entry in versions}
            if len(distinct) == 1:
                aliases[name] = f"{name}@{versions[0].version}"
        return cls(dependents, aliases)

    def resolve(self, identifier: str) -> str:
        return self._aliases.get(identifier, identifier)

    def dependents_of(self, identifier: str) -> List[str]:
        return self._dependents.get(self.resolve(identifier), [])

    def transitive_dependents(self, package_key: str) -> Set[str]:
        """
        Get every identifier that directly or transitively depends on a package version.

        A dependent reachable through several paths is counted once.
        """
        visited: Set[str] = set()
        queue = deque()

        for dependent in self.dependents_of(package_key):
            dependent = self.resolve(dependent)
            if dependent not in visited:
                visited.add(dependent)
                queue.append(dependent)

        while queue:
            current = queue.popleft()
            for dependent in self.dependents_of(current):
                dependent = self.resolve(dependent)
                if dependent not in visited:
                    visited.add(dependent)
                    queue.append(dependent)

        return visited

    def transitive_count(self, package_key: str) -> int:
        return len(self.transitive_dependents(package_key))


def group_locked_packages(entries: Iterable[LockedPackage]) -> Dict[str, List[VersionEntry]]:
    """
    Group raw lockfile entries by name, attaching each version's dependents.

    Entries sharing both name and version (npm nested copies) are merged.
    """
    entries = list(entries)

    name_counts: Dict[str, Set[str]] = {}
    for entry in entries:
        name_counts.setdefault(entry.name, set()).add(entry.version)

    # Identify each dependant by bare name unless that name is ambiguous
    def identifier(entry: LockedPackage) -> str:
        return entry.name if len(name_counts[entry.name]) == 1 else entry.key

    unique_keys = {name: f"{name}@{next(iter(versions))}"
                   for name, versions in name_counts.items() if len(versions) == 1}

    dependents: Dict[str, List[str]] = {}
    for entry in entries:
        dependant_id = identifier(entry)
        for dependency in entry.dependencies:
            key = dependency_key(dependency)
            if not key:
                continue
            # Bare references resolve to the only installed version, if there is one
            key = unique_keys.get(key, key)
            bucket = dependents.setdefault(key, [])
            if dependant_id not in bucket:
                bucket.append(dependant_id)

    by_name: Dict[str, List[VersionEntry]] = {}
    for entry in entries:
        by_name.setdefault(entry.name, []).append(VersionEntry(
            version=entry.version,
            dependents=list(dependents.get(entry.key, [])),
            is_path_dep=entry.is_path_dep,
        ))

    return {name: merge_versions(versions) for name, versions in by_name.items()}


def merge_versions(versions: Iterable[VersionEntry]) -> List[VersionEntry]:
    """Collapse entries that repeat a version, keeping first-seen order and every dependent."""
    merged: Dict[str, VersionEntry] = {}
    for entry in versions:
        existing = merged.get(entry.version)
        if existing is None:
            merged[entry.version] = VersionEntry(entry.version, list(entry.dependents), entry.is_path_dep)
            continue
        existing.is_path_dep = existing.is_path_dep or entry.is_path_dep
        for dependent in entry.dependents:
            if dependent not in existing.dependents:
                existing.dependents.append(dependent)
    return list(merged.values())


def analyze_lockfile_duplicates(entries: Iterable[LockedPackage]) -> DuplicateAnalysis:
    """Analyze raw lockfile entries for packages present in several versions."""
    return analyze_duplicates(group_locked_packages(entries))


def analyze_duplicates(packages_by_name: Dict[str, List[VersionEntry]]) -> DuplicateAnalysis:
    """
    Find every package with two or more versions and classify each group.

    Args:
        packages_by_name: name -> installed versions with their dependents

    Returns:
        DuplicateAnalysis with groups sorted by severity (high first), then name
    """
    packages_by_name = {name: merge_versions(versions) for name, versions in packages_by_name.items()}
    reverse_map = ReverseDependencyMap.from_versions(packages_by_name)
    duplicates: List[DuplicateGroup] = []

    for name, versions in packages_by_name.items():
        if len(versions) <= 1:
            continue

        version_infos = [
            DuplicateVersion(
                version=entry.version,
                dependents=list(entry.dependents),
                transitive_count=reverse_map.transitive_count(f"{name}@{entry.version}"),
                is_path_dep=entry.is_path_dep,
            )
            for entry in versions
        ]
        version_infos.sort(key=cmp_to_key(lambda a, b: VersionParser.compare(a.version, b.version)))

        severity = calculate_severity(version_infos)
        logger.debug(f"Duplicate {name}: {[v.version for v in version_infos]} ({severity})")
        duplicates.append(DuplicateGroup(name=name, versions=version_infos, severity=severity))

    duplicates.sort(key=lambda group: (-group.severity.rank, group.name))

    stats = DuplicateStats(
        total_duplicates=len(duplicates),
        high_severity=sum(1 for d in duplicates if d.severity == DuplicateSeverity.HIGH),
        medium_severity=sum(1 for d in duplicates if d.severity == DuplicateSeverity.MEDIUM),
        low_severity=sum(1 for d in duplicates if d.severity == DuplicateSeverity.LOW),
        extra_compile_units=sum(len(d.versions) - 1 for d in duplicates),
    )

    logger.info(f"Found {stats.total_duplicates} duplicated packages "
                f"({stats.extra_compile_units} extra compile units)")
    return DuplicateAnalysis(duplicates=duplicates, stats=stats)


def calculate_severity(versions: List[DuplicateVersion]) -> DuplicateSeverity:
    """
    Rate a duplicate group.

    Three or more versions is always high. Otherwise, differing major versions
    are medium; identical majors, or no parsable version at all, are low.
    """
    if len(versions) >= 3:
        return DuplicateSeverity.HIGH

    majors = [major for major in (VersionParser.get_major(v.version) for v in versions)
              if major is not None]

    if not majors:
        return DuplicateSeverity.LOW

    if all(major == majors[0] for major in majors):
        return DuplicateSeverity.LOW
    return DuplicateSeverity.MEDIUM


def suggest_resolution(group: DuplicateGroup) -> Optional[str]:
    """Suggest moving every dependent of an older version to the newest one."""
    if not group.versions:
        return None

    newest = group.versions[-1]
    outdated_dependents = [
        dependent
        for version in group.versions
        if version.version != newest.version
        for dependent in version.dependents
    ]

    if not outdated_dependents:
        return None

    return f"Update {', '.join(outdated_dependents)} to use {group.name} {newest.version}"
