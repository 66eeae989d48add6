"""Classifies installed packages as used, unused, expected unused or dev only."""

import logging
from typing import Iterable, Optional, List

from .classification import ExpectedUnusedRules, DEFAULT_RULES
from .graph import DependencyGraph
from .models import ImportMap, PackageUsage, UsageAnalysis

logger = logging.getLogger(__name__)


def analyze_usage(
    graph: DependencyGraph,
    used_packages: Iterable[str],
    include_dev: bool = True,
    imports: Optional[ImportMap] = None,
    rules: ExpectedUnusedRules = DEFAULT_RULES,
) -> UsageAnalysis:
    """
    Cross-reference installed packages against the packages imported by source code.

    A package is "used" when it is imported or required (transitively) by an
    imported package. The used check takes precedence over the expected-unused
    ruleset, which takes precedence over the dev-only bucket.

    Args:
        graph: Dependency graph of installed packages
        used_packages: Names of packages imported by source code
        include_dev: Whether dev dependencies are classified at all
        imports: Optional import map, used to list importing files
        rules: Expected-unused ruleset

    Returns:
        UsageAnalysis with every bucket sorted by name
    """
    used_roots = set(used_packages)
    transitively_used = graph.transitive_closure(used_roots)
    logger.info(f"{len(used_roots)} imported packages expand to {len(transitively_used)} used packages")

    analysis = UsageAnalysis()
    skipped_dev = 0

    for name, pkg in graph.packages.items():
        if not include_dev and pkg.is_dev:
            skipped_dev += 1
            continue

        if name in used_roots or name in transitively_used:
            # Presence flag, not a true count
            import_count = 1 if name in used_roots else 0
            files: List = []
            if imports is not None:
                files = sorted({imp.file_path for imp in imports.get_package_usages(name)})
            analysis.used.append(PackageUsage(package=pkg, import_count=import_count, files=files))
        elif rules.matches(name):
            analysis.expected_unused.append(pkg)
            if pkg.is_direct:
                analysis.expected_unused_direct.append(pkg)
        elif pkg.is_dev and not pkg.is_direct:
            analysis.dev_only.append(pkg)
        else:
            analysis.unused.append(pkg)
            if pkg.is_direct:
                analysis.unused_direct.append(pkg)

    if skipped_dev:
        logger.debug(f"Skipped {skipped_dev} dev dependencies")

    analysis.used.sort(key=lambda usage: usage.package.name)
    for bucket in (analysis.unused, analysis.expected_unused, analysis.dev_only,
                   analysis.unused_direct, analysis.expected_unused_direct):
        bucket.sort(key=lambda pkg: pkg.name)

    logger.info(f"Usage: {len(analysis.used)} used, {len(analysis.unused)} unused "
                f"({len(analysis.unused_direct)} direct), {len(analysis.expected_unused)} expected unused, "
                f"{len(analysis.dev_only)} dev only")
    return analysis
