"""Version parsing utilities for semantic-version ordering and classification."""

import re
from dataclasses import dataclass
from functools import cmp_to_key
from typing import Optional, Tuple, List, Iterable


@dataclass
class VersionInfo:
    """
    Parsed semantic version.

    Attributes:
        original_string: The original version string as-is
        major: Major component
        minor: Minor component
        patch: Patch component
        prerelease: Dot-separated pre-release identifiers (empty for releases)
        build: Build metadata (ignored for precedence except as a final tie-break)
    """
    original_string: str
    major: int
    minor: int
    patch: int
    prerelease: Tuple[str, ...] = ()
    build: str = ""

    @property
    def is_prerelease(self) -> bool:
        return bool(self.prerelease)

    def sort_key(self) -> tuple:
        """Key implementing semver precedence (releases sort after their pre-releases)."""
        if self.prerelease:
            identifiers = tuple(
                (0, int(ident), "") if ident.isdigit() else (1, 0, ident)
                for ident in self.prerelease
            )
            pre = (0, identifiers)
        else:
            pre = (1, ())
        return (self.major, self.minor, self.patch, pre, self.build)


class VersionParser:
    """Parser for strict semantic versions (MAJOR.MINOR.PATCH[-PRE][+BUILD])."""

    # https://semver.org/#is-there-a-suggested-regular-expression-regex-to-check-a-semver-string
    SEMVER_PATTERN = re.compile(
        r'^(0|[1-9]\d*)\.(0|[1-9]\d*)\.(0|[1-9]\d*)'                       # Core version
        r'(?:-((?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*)'                   # Pre-release
        r'(?:\.(?:0|[1-9]\d*|\d*[a-zA-Z-][0-9a-zA-Z-]*))*))?'
        r'(?:\+([0-9a-zA-Z-]+(?:\.[0-9a-zA-Z-]+)*))?$'                     # Build metadata
    )

    @classmethod
    def parse(cls, version: str) -> Optional[VersionInfo]:
        """
        Parse a version string.

        Args:
            version: The version string to parse

        Returns:
            VersionInfo, or None if the string is not a valid semantic version
        """
        if not version:
            return None

        match = cls.SEMVER_PATTERN.match(version.strip())
        if not match:
            return None

        major, minor, patch, prerelease, build = match.groups()
        return VersionInfo(
            original_string=version,
            major=int(major),
            minor=int(minor),
            patch=int(patch),
            prerelease=tuple(prerelease.split('.')) if prerelease else (),
            build=build or "",
        )

    @classmethod
    def get_major(cls, version: str) -> Optional[int]:
        """
        Get the major component of a version.

        Returns:
            The major version, or None if the string does not parse
        """
        info = cls.parse(version)
        return info.major if info else None

    @classmethod
    def compare(cls, v1: str, v2: str) -> int:
        """
        Compare two version strings.

        Uses semantic-version precedence when both parse, and plain string
        comparison otherwise.

        Returns:
            >0 if v1 > v2, <0 if v1 < v2, 0 if equal
        """
        info1 = cls.parse(v1)
        info2 = cls.parse(v2)

        if info1 is not None and info2 is not None:
            key1, key2 = info1.sort_key(), info2.sort_key()
        else:
            key1, key2 = v1, v2

        if key1 == key2:
            return 0
        return 1 if key1 > key2 else -1

    @classmethod
    def sort_versions(cls, versions: Iterable[str]) -> List[str]:
        """Return versions sorted ascending."""
        return sorted(versions, key=cmp_to_key(cls.compare))
