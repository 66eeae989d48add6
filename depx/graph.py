"""Name-keyed dependency graph used for usage analysis and "why" queries."""

import logging
from collections import deque
from typing import Dict, List, Set, Iterable, Optional

from .models import Package

logger = logging.getLogger(__name__)


class DependencyGraph:
    """
    Directed graph with one node per unique package name.

    An edge A -> B means "A depends on B". Versions are deliberately collapsed:
    the graph answers questions about names (is it used, why is it here), not
    about which copy of a package was installed.

    The graph may contain cycles, so every traversal carries a visited set.
    """

    def __init__(self, packages: Dict[str, Package]):
        """
        Build the graph from a name -> Package mapping.

        Dependency identifiers that do not name a known package are dropped
        (optional peers, platform-specific packages outside the lockfile).
        """
        self._packages: Dict[str, Package] = dict(packages)
        self._outgoing: Dict[str, List[str]] = {name: [] for name in self._packages}
        self._incoming: Dict[str, List[str]] = {name: [] for name in self._packages}

        dropped = 0
        for name, pkg in self._packages.items():
            for dep_name in pkg.dependencies:
                if dep_name not in self._outgoing:
                    dropped += 1
                    continue
                self._outgoing[name].append(dep_name)
                self._incoming[dep_name].append(name)

        edge_count = sum(len(deps) for deps in self._outgoing.values())
        logger.debug(f"Built dependency graph: {len(self._packages)} nodes, {edge_count} edges "
                     f"({dropped} unresolved dependency references dropped)")

    def transitive_closure(self, roots: Iterable[str]) -> Set[str]:
        """
        Get every package reachable from the given roots, roots included.

        Roots that are not in the graph are ignored.
        """
        visited: Set[str] = set()
        queue = deque()

        for name in roots:
            if name in self._outgoing and name not in visited:
                visited.add(name)
                queue.append(name)

        while queue:
            current = queue.popleft()
            for dep_name in self._outgoing[current]:
                if dep_name not in visited:
                    visited.add(dep_name)
                    queue.append(dep_name)

        return visited

    def dependencies_of(self, name: str) -> List[str]:
        """Direct dependencies of a package (outgoing edges)."""
        return list(self._outgoing.get(name, []))

    def dependents_of(self, name: str) -> List[str]:
        """Packages that declare a dependency on this one (incoming edges)."""
        return list(self._incoming.get(name, []))

    def get_package(self, name: str) -> Optional[Package]:
        return self._packages.get(name)

    def __contains__(self, name: str) -> bool:
        return name in self._packages

    @property
    def packages(self) -> Dict[str, Package]:
        return self._packages

    def package_count(self) -> int:
        return len(self._packages)

    def direct_count(self) -> int:
        return sum(1 for pkg in self._packages.values() if pkg.is_direct)

    def dev_count(self) -> int:
        return sum(1 for pkg in self._packages.values() if pkg.is_dev)
