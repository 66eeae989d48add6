"""Stats command for showing lockfile statistics."""

import logging

from ..graph import DependencyGraph
from ..parsers import LockfileParser

logger = logging.getLogger(__name__)


def show_stats(project_path: str) -> None:
    """Show statistics about a project's lockfile.

    Args:
        project_path: Project directory containing the lockfile
    """
    parser = LockfileParser(project_path)
    graph = DependencyGraph(parser.parse())

    total_packages = graph.package_count()
    direct_packages = graph.direct_count()
    dev_packages = graph.dev_count()

    # Transitive packages = total - direct
    transitive_packages = total_packages - direct_packages

    print("Lockfile Statistics:")
    print(f"  Lockfile: {parser.lockfile_path.name} ({parser.lockfile_type.name.lower()})")
    print(f"  Total Packages: {total_packages}")
    print(f"  Direct Packages: {direct_packages}")
    print(f"  Dev Packages: {dev_packages}")
    print(f"  Transitive Packages: {transitive_packages}")
