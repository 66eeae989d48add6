"""Tests for duplicate-version detection."""

import json

from depx.duplicates import (
    VersionEntry, ReverseDependencyMap, analyze_duplicates, analyze_lockfile_duplicates,
    calculate_severity, dependency_key, group_locked_packages, suggest_resolution,
)
from depx.models import LockedPackage, DuplicateSeverity, DuplicateVersion


def versions(*numbers):
    return [DuplicateVersion(version=v) for v in numbers]


class TestDependencyKey:
    """Tests for lockfile dependency string normalization."""

    def test_name_and_version(self):
        assert dependency_key("serde 1.0.150") == "serde@1.0.150"

    def test_with_source(self):
        assert dependency_key("serde 1.0.150 (registry+https://github.com/rust-lang/crates.io-index)") \
            == "serde@1.0.150"

    def test_bare_name(self):
        assert dependency_key("serde") == "serde"

    def test_empty(self):
        assert dependency_key("   ") == ""


class TestCalculateSeverity:
    """Tests for severity tiers."""

    def test_three_versions_is_high(self):
        assert calculate_severity(versions("1.0.0", "1.1.0", "1.2.0")) == DuplicateSeverity.HIGH

    def test_different_majors_is_medium(self):
        assert calculate_severity(versions("1.0.0", "2.0.0")) == DuplicateSeverity.MEDIUM

    def test_same_major_is_low(self):
        assert calculate_severity(versions("1.0.0", "1.2.0")) == DuplicateSeverity.LOW

    def test_unparsable_versions_are_low(self):
        assert calculate_severity(versions("abc", "def")) == DuplicateSeverity.LOW

    def test_unparsable_versions_are_ignored_for_majors(self):
        assert calculate_severity(versions("1.0.0", "git-abc")) == DuplicateSeverity.LOW


class TestTransitiveCounts:
    """Tests for the version-qualified reverse dependency BFS."""

    def setup_method(self):
        entries = [
            LockedPackage("root", "0.1.0", ["A 1.0.0", "D 1.0.0"], is_path_dep=True),
            LockedPackage("A", "1.0.0", ["B 1.0.0"]),
            LockedPackage("D", "1.0.0", ["B 1.0.0"]),
            LockedPackage("B", "1.0.0", ["C 1.0.0"]),
            LockedPackage("C", "1.0.0"),
        ]
        self.reverse_map = ReverseDependencyMap.from_versions(group_locked_packages(entries))

    def test_counts(self):
        assert self.reverse_map.transitive_count("C@1.0.0") == 4
        assert self.reverse_map.transitive_count("B@1.0.0") == 3
        assert self.reverse_map.transitive_count("A@1.0.0") == 1
        assert self.reverse_map.transitive_count("root@0.1.0") == 0

    def test_shared_dependent_counted_once(self):
        assert self.reverse_map.transitive_dependents("B@1.0.0") == {"A@1.0.0", "D@1.0.0", "root@0.1.0"}

    def test_cycles_terminate(self):
        entries = [
            LockedPackage("x", "1.0.0", ["y 1.0.0"]),
            LockedPackage("y", "1.0.0", ["x 1.0.0"]),
        ]
        reverse_map = ReverseDependencyMap.from_versions(group_locked_packages(entries))

        assert reverse_map.transitive_dependents("x@1.0.0") == {"y@1.0.0", "x@1.0.0"}


class TestGroupLockedPackages:
    """Tests for grouping raw lockfile entries."""

    def test_bare_dependency_resolves_to_unique_version(self):
        grouped = group_locked_packages([
            LockedPackage("app", "0.1.0", ["serde"], is_path_dep=True),
            LockedPackage("serde", "1.0.150"),
        ])

        assert grouped["serde"][0].dependents == ["app"]
        assert grouped["app"][0].is_path_dep is True

    def test_ambiguous_dependants_are_version_qualified(self):
        grouped = group_locked_packages([
            LockedPackage("app", "0.1.0", ["syn 1.0.109", "syn 2.0.48"]),
            LockedPackage("syn", "1.0.109", ["quote 1.0.35"]),
            LockedPackage("syn", "2.0.48", ["quote 1.0.35"]),
            LockedPackage("quote", "1.0.35"),
        ])

        assert grouped["quote"][0].dependents == ["syn@1.0.109", "syn@2.0.48"]
        assert grouped["syn"][0].dependents == ["app"]

    def test_identical_copies_are_merged(self):
        grouped = group_locked_packages([
            LockedPackage("app", "1.0.0", ["ms 2.1.3"]),
            LockedPackage("debug", "4.3.4", ["ms 2.1.3"]),
            LockedPackage("ms", "2.1.3"),
            LockedPackage("ms", "2.1.3"),
        ])

        assert len(grouped["ms"]) == 1
        assert grouped["ms"][0].dependents == ["app", "debug"]


class TestAnalyzeDuplicates:
    """Tests for the full duplicate analysis."""

    def setup_method(self):
        self.entries = [
            LockedPackage("app", "0.1.0", ["foo 1.0.0", "bar 1.0.0", "baz 1.2.0"], is_path_dep=True),
            LockedPackage("bar", "1.0.0", ["foo 2.0.0", "baz 1.3.0"]),
            LockedPackage("foo", "1.0.0"),
            LockedPackage("foo", "2.0.0"),
            LockedPackage("baz", "1.2.0"),
            LockedPackage("baz", "1.3.0"),
        ]

    def test_groups(self):
        analysis = analyze_lockfile_duplicates(self.entries)

        assert [g.name for g in analysis.duplicates] == ["foo", "baz"]
        foo = analysis.duplicates[0]
        assert foo.severity == DuplicateSeverity.MEDIUM
        assert [v.version for v in foo.versions] == ["1.0.0", "2.0.0"]
        assert foo.versions[0].dependents == ["app"]
        assert foo.versions[0].transitive_count == 1
        assert foo.versions[1].dependents == ["bar"]
        assert foo.versions[1].transitive_count == 2

    def test_stats(self):
        stats = analyze_lockfile_duplicates(self.entries).stats

        assert stats.total_duplicates == 2
        assert stats.high_severity == 0
        assert stats.medium_severity == 1
        assert stats.low_severity == 1
        assert stats.extra_compile_units == 2

    def test_versions_sorted_ascending(self):
        analysis = analyze_duplicates({
            "lib": [VersionEntry("1.10.0"), VersionEntry("1.9.0"), VersionEntry("1.2.0")],
        })

        group = analysis.duplicates[0]
        assert [v.version for v in group.versions] == ["1.2.0", "1.9.0", "1.10.0"]
        assert group.severity == DuplicateSeverity.HIGH
        assert analysis.stats.extra_compile_units == 2

    def test_single_version_is_not_a_duplicate(self):
        analysis = analyze_duplicates({"lib": [VersionEntry("1.0.0"), VersionEntry("1.0.0")]})
        assert analysis.duplicates == []
        assert analysis.stats.total_duplicates == 0

    def test_repeated_versions_are_merged(self):
        analysis = analyze_duplicates({"lib": [
            VersionEntry("1.0.0", ["a"]),
            VersionEntry("1.0.0", ["b", "a"]),
            VersionEntry("2.0.0", ["c"]),
        ]})

        group = analysis.duplicates[0]
        assert [v.version for v in group.versions] == ["1.0.0", "2.0.0"]
        assert group.versions[0].dependents == ["a", "b"]
        assert group.severity == DuplicateSeverity.MEDIUM
        assert analysis.stats.extra_compile_units == 1

    def test_repeated_versions_without_dependents(self):
        analysis = analyze_duplicates({
            "lib": [VersionEntry("1.0.0"), VersionEntry("1.0.0"), VersionEntry("2.0.0")],
        })

        assert len(analysis.duplicates[0].versions) == 2
        assert analysis.duplicates[0].severity == DuplicateSeverity.MEDIUM
        assert analysis.stats.extra_compile_units == 1

    def test_path_versions_are_flagged(self):
        analysis = analyze_duplicates({"util": [
            VersionEntry("0.1.0", is_path_dep=True),
            VersionEntry("0.1.0", ["app"]),
            VersionEntry("1.0.0", ["app"]),
        ]})

        versions = analysis.duplicates[0].versions
        assert [(v.version, v.is_path_dep) for v in versions] == [("0.1.0", True), ("1.0.0", False)]
        assert versions[0].dependents == ["app"]
        assert "is_path_dep" not in versions[0].to_dict()

    def test_ordering_by_severity_then_name(self):
        analysis = analyze_duplicates({
            "zeta": [VersionEntry("1.0.0"), VersionEntry("2.0.0")],
            "alpha": [VersionEntry("1.0.0"), VersionEntry("1.1.0")],
            "beta": [VersionEntry("1.0.0"), VersionEntry("2.0.0")],
            "gamma": [VersionEntry("1.0.0"), VersionEntry("1.1.0"), VersionEntry("1.2.0")],
        })

        assert [g.name for g in analysis.duplicates] == ["gamma", "beta", "zeta", "alpha"]

    def test_json_schema(self):
        data = json.loads(json.dumps(analyze_lockfile_duplicates(self.entries).to_dict()))

        assert set(data) == {"duplicates", "stats"}
        assert data["duplicates"][0] == {
            "name": "foo",
            "versions": [
                {"version": "1.0.0", "dependents": ["app"], "transitive_count": 1},
                {"version": "2.0.0", "dependents": ["bar"], "transitive_count": 2},
            ],
            "severity": "medium",
        }
        assert data["stats"] == {
            "total_duplicates": 2,
            "high_severity": 0,
            "medium_severity": 1,
            "low_severity": 1,
            "extra_compile_units": 2,
        }


class TestSuggestResolution:
    """Tests for resolution suggestions."""

    def test_suggests_newest_version(self):
        group = analyze_lockfile_duplicates([
            LockedPackage("app", "0.1.0", ["foo 1.0.0", "bar 1.0.0"]),
            LockedPackage("bar", "1.0.0", ["foo 2.0.0"]),
            LockedPackage("foo", "1.0.0"),
            LockedPackage("foo", "2.0.0"),
        ]).duplicates[0]

        assert suggest_resolution(group) == "Update app to use foo 2.0.0"

    def test_no_suggestion_without_outdated_dependents(self):
        group = analyze_duplicates({
            "foo": [VersionEntry("1.0.0"), VersionEntry("2.0.0", dependents=["bar"])],
        }).duplicates[0]

        assert suggest_resolution(group) is None
