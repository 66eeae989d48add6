"""Plain-text and JSON report formatters."""

import json
import logging
from typing import List

from .duplicates import suggest_resolution
from .models import (
    UsageAnalysis, PackageExplanation, Vulnerability, Severity, DeprecatedPackage,
    DuplicateAnalysis, DuplicateGroup, DuplicateSeverity,
)

logger = logging.getLogger(__name__)

MAX_UNUSED_TRANSITIVE = 20

_DUPLICATE_MARKERS = {
    DuplicateSeverity.HIGH: "!",
    DuplicateSeverity.MEDIUM: "~",
    DuplicateSeverity.LOW: "-",
}


def _plural(count: int, singular: str, plural: str) -> str:
    return singular if count == 1 else plural


class ReportFormatter:
    """Formatter for the terminal reports of every command."""

    @staticmethod
    def _join(lines: List[str]) -> str:
        return '\n'.join(lines) + '\n'

    @staticmethod
    def format_analysis(analysis: UsageAnalysis, verbose: bool = False, uninstall_hint: str = "npm uninstall") -> str:
        """Format the full usage report."""
        lines = ["", "Dependency Analysis Report", "", "Summary",
                 f"  {len(analysis.used)} packages used"]

        if analysis.unused_direct:
            lines.append(f"  {len(analysis.unused_direct)} packages unused (removable)")
        if analysis.expected_unused_direct:
            lines.append(f"  {len(analysis.expected_unused_direct)} dev/build tools (expected, not imported)")
        lines.append("")

        if analysis.unused_direct:
            lines.append("Unused Dependencies (safe to remove):")
            for pkg in analysis.unused_direct:
                dev_marker = " (dev)" if pkg.is_dev else ""
                lines.append(f"  - {pkg.full_name}{dev_marker}")
            lines.extend(["", f"  Tip: {uninstall_hint} <package>", ""])

        if analysis.expected_unused_direct:
            lines.append("Dev/Build Tools (not imported, expected):")
            for pkg in analysis.expected_unused_direct:
                lines.append(f"  ~ {pkg.full_name}")
            lines.append("")

        if verbose and analysis.used:
            lines.append("Used Packages:")
            for usage in analysis.used:
                direct_marker = " (direct)" if usage.package.is_direct else ""
                lines.append(f"  + {usage.package.full_name}{direct_marker}")
                for file_path in usage.files:
                    lines.append(f"      {file_path}")
            lines.append("")

        if verbose:
            unused_transitive = [pkg for pkg in analysis.unused if not pkg.is_direct]
            if unused_transitive:
                lines.append("Unused Transitive Dependencies:")
                for pkg in unused_transitive[:MAX_UNUSED_TRANSITIVE]:
                    lines.append(f"  ? {pkg.full_name}")
                if len(unused_transitive) > MAX_UNUSED_TRANSITIVE:
                    lines.append(f"  ... and {len(unused_transitive) - MAX_UNUSED_TRANSITIVE} more")
                lines.append("")

        return ReportFormatter._join(lines)

    @staticmethod
    def format_unused(analysis: UsageAnalysis, uninstall_hint: str = "npm uninstall") -> str:
        """Format only the potentially unused dependencies."""
        if not analysis.unused_direct and not analysis.unused:
            return ReportFormatter._join(["", "All dependencies appear to be in use!"])

        lines = ["", "Potentially Unused Dependencies", ""]
        if analysis.unused_direct:
            lines.append("Direct dependencies:")
            for pkg in analysis.unused_direct:
                dev_marker = " (dev)" if pkg.is_dev else ""
                lines.append(f"  - {pkg.name}{dev_marker}")
            lines.extend(["", f"Tip: Run `{uninstall_hint} <package>` to remove unused packages"])
        else:
            lines.append(f"No unused direct dependencies; {len(analysis.unused)} unused transitive packages")
        return ReportFormatter._join(lines)

    @staticmethod
    def format_why(explanation: PackageExplanation) -> str:
        """Format the dependency chains explaining why a package is installed."""
        pkg = explanation.package
        lines = ["", f"Package: {pkg.full_name}", ""]

        if pkg.is_direct:
            kind = "dev dependency" if pkg.is_dev else "direct dependency"
            lines.append(f"  -> This is a {kind} of the project")
        else:
            lines.append("Dependency chains:")
            for i, chain in enumerate(explanation.dependency_chains):
                prefix = "->" if i == 0 else "  "
                lines.append(f"  {prefix} {' -> '.join(chain)}")
            if not explanation.dependency_chains:
                lines.append("  ? Could not determine dependency chain (might be orphaned)")

        if explanation.is_dev_path:
            lines.extend(["", "  Note: This package is only required for development"])

        return ReportFormatter._join(lines)

    @staticmethod
    def format_vulnerabilities(vulnerabilities: List[Vulnerability], verbose: bool = False) -> str:
        """Format vulnerabilities grouped by severity, critical first."""
        if not vulnerabilities:
            return ReportFormatter._join(["", "No known vulnerabilities found!"])

        count = len(vulnerabilities)
        lines = ["", f"{count} {_plural(count, 'vulnerability', 'vulnerabilities')} found", ""]

        for severity in (Severity.CRITICAL, Severity.HIGH, Severity.MEDIUM, Severity.LOW):
            group = [v for v in vulnerabilities if v.severity == severity]
            if not group:
                continue
            lines.append(severity.name)
            for vuln in group:
                used_marker = " [USED]" if vuln.affects_used_code else " [unused]"
                lines.append(f"  {vuln.id} {vuln.package_name}@{vuln.installed_version} - {vuln.title}{used_marker}")
                if vuln.patched_version:
                    lines.append(f"       Fix: {vuln.installed_version} -> {vuln.patched_version}")
                if verbose:
                    if vuln.vulnerable_range:
                        lines.append(f"       Affected: {vuln.vulnerable_range}")
                    if vuln.url:
                        lines.append(f"       {vuln.url}")
            lines.append("")

        return ReportFormatter._join(lines)

    @staticmethod
    def format_deprecated(deprecated: List[DeprecatedPackage]) -> str:
        """Format deprecated packages with their deprecation messages."""
        if not deprecated:
            return ReportFormatter._join(["", "No deprecated packages found!"])

        count = len(deprecated)
        lines = ["", f"{count} {_plural(count, 'deprecated package', 'deprecated packages')} found", ""]
        for dep in deprecated:
            used_marker = " [USED]" if dep.is_used else " [unused]"
            lines.append(f"  - {dep.package.full_name}{used_marker}")
            lines.append(f"    {dep.message}")
        lines.append("")
        return ReportFormatter._join(lines)

    @staticmethod
    def format_duplicates(analysis: DuplicateAnalysis, verbose: bool = False) -> str:
        """Format the duplicate analysis; low severity groups are listed only when verbose."""
        if not analysis.duplicates:
            return ReportFormatter._join(["", "No duplicate dependencies found!"])

        stats = analysis.stats
        lines = ["", "Duplicate Dependencies Analysis", "", "Summary",
                 f"  {stats.total_duplicates} packages with multiple versions"]
        if stats.high_severity:
            lines.append(f"  {stats.high_severity} high severity (3+ versions)")
        if stats.medium_severity:
            lines.append(f"  {stats.medium_severity} medium severity (different major versions)")
        if stats.low_severity:
            lines.append(f"  {stats.low_severity} low severity (same major version)")
        lines.extend([f"  {stats.extra_compile_units} extra compile units", ""])

        for severity, title in ((DuplicateSeverity.HIGH, "HIGH SEVERITY"),
                                (DuplicateSeverity.MEDIUM, "MEDIUM SEVERITY")):
            groups = [g for g in analysis.duplicates if g.severity == severity]
            if groups:
                lines.append(title)
                for group in groups:
                    lines.extend(ReportFormatter._format_duplicate_group(group, verbose))
                lines.append("")

        low = [g for g in analysis.duplicates if g.severity == DuplicateSeverity.LOW]
        if low and verbose:
            lines.append("LOW SEVERITY")
            for group in low:
                lines.extend(ReportFormatter._format_duplicate_group(group, verbose))
            lines.append("")
        elif low:
            lines.extend([f"  + {len(low)} low severity duplicates (use --verbose to show)", ""])

        return ReportFormatter._join(lines)

    @staticmethod
    def _format_duplicate_group(group: DuplicateGroup, verbose: bool) -> List[str]:
        lines = [f"  {_DUPLICATE_MARKERS[group.severity]} {group.name} ({len(group.versions)} versions)"]

        for version in group.versions:
            if not version.dependents:
                dependents = "(root)"
            elif len(version.dependents) <= 3 or verbose:
                dependents = f"← {', '.join(version.dependents)}"
            else:
                dependents = f"← {', '.join(version.dependents[:2])} +{len(version.dependents) - 2} more"

            transitive = f"({version.transitive_count} transitive) " if version.transitive_count else ""
            local = "[path] " if version.is_path_dep else ""
            lines.append(f"      v{version.version} {local}{transitive}{dependents}")

        if verbose:
            suggestion = suggest_resolution(group)
            if suggestion:
                lines.append(f"      → {suggestion}")

        return lines

    @staticmethod
    def format_duplicates_json(analysis: DuplicateAnalysis) -> str:
        """Format the duplicate analysis with its stable JSON schema."""
        return json.dumps(analysis.to_dict(), indent=2) + '\n'
