"""Explains why a package is installed by finding chains from direct dependencies."""

import logging
from collections import deque
from typing import List, Optional, Set, Tuple

from .graph import DependencyGraph
from .models import PackageExplanation

logger = logging.getLogger(__name__)

MAX_CHAINS = 5


def explain_package(graph: DependencyGraph, package_name: str) -> Optional[PackageExplanation]:
    """
    Explain why a package is in the dependency tree.

    Returns:
        PackageExplanation, or None if the package is not installed
    """
    pkg = graph.get_package(package_name)
    if pkg is None:
        logger.debug(f"Package {package_name} not found in dependency graph")
        return None

    chains = find_dependency_chains(graph, package_name)

    is_dev_path = False
    for chain in chains:
        root = graph.get_package(chain[0])
        if root is not None and root.is_dev:
            is_dev_path = True
            break

    return PackageExplanation(package=pkg, dependency_chains=chains, is_dev_path=is_dev_path)


def find_dependency_chains(graph: DependencyGraph, target: str, limit: int = MAX_CHAINS) -> List[List[str]]:
    """
    Find the shortest chains from direct dependencies down to the target.

    Walks incoming edges breadth-first from the target, carrying the partial
    path on each queue entry. A chain is complete as soon as it reaches a
    direct dependency. Chains are returned root-first, shortest first.
    """
    target_pkg = graph.get_package(target)
    if target_pkg is None:
        return []

    # A direct dependency explains itself
    if target_pkg.is_direct:
        return [[target]]

    chains: List[List[str]] = []
    seen_paths: Set[Tuple[str, ...]] = set()
    queue = deque([(target, [target])])

    while queue:
        current, path = queue.popleft()

        for dependant in graph.dependents_of(current):
            # Skip cycles
            if dependant in path:
                continue

            new_path = [dependant] + path
            dependant_pkg = graph.get_package(dependant)

            if dependant_pkg is not None and dependant_pkg.is_direct:
                key = tuple(new_path)
                if key not in seen_paths:
                    seen_paths.add(key)
                    chains.append(new_path)
            else:
                queue.append((dependant, new_path))

        # Paths leave the queue in non-decreasing length, so chains are found
        # in non-decreasing length too: any later chain would be truncated.
        if len(chains) >= limit:
            break

    chains.sort(key=len)
    logger.debug(f"Found {len(chains)} dependency chains for {target}")
    return chains[:limit]
