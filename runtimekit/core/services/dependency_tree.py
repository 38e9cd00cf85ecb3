"""
Dependency tree builder — breadth-first expansion with cycle detection.

Each queued node carries its path from the root; a dependency already on
that path is a cycle and aborts the build with ``CyclicDependencyError``.
A package reachable through two parents (a diamond) is not a cycle and
appears once under each parent.
"""

from __future__ import annotations

import logging
from collections import deque
from typing import Callable

from runtimekit.core.errors import CyclicDependencyError, RegistryUnavailableError
from runtimekit.core.models.package import DependencyNode, Ecosystem, RegistryInfo
from runtimekit.core.services.versioning import clean_version

logger = logging.getLogger(__name__)

Resolver = Callable[[Ecosystem, str], RegistryInfo]


class DependencyTreeBuilder:
    """Builds ``DependencyNode`` trees from registry metadata.

    Args:
        resolve:   ``(ecosystem, name) -> RegistryInfo`` with
                   ``dependencies`` populated.  The orchestrator passes a
                   cached lookup.
        max_depth: Default depth limit; nodes at this depth are leaves.
    """

    def __init__(self, resolve: Resolver, max_depth: int = 10):
        self._resolve = resolve
        self.max_depth = max_depth

    def build(
        self,
        root_name: str,
        ecosystem: Ecosystem,
        max_depth: int | None = None,
    ) -> DependencyNode:
        """Build the tree rooted at ``root_name``.

        Raises:
            CyclicDependencyError: a package depends on one of its ancestors.
            RegistryUnavailableError: the root itself cannot be resolved.
        """
        limit = self.max_depth if max_depth is None else max_depth
        memo: dict[str, RegistryInfo | None] = {}

        root_info = self._resolve(ecosystem, root_name)
        memo[root_name] = root_info
        root = DependencyNode(name=root_name, version=root_info.latest_version)

        queue: deque[tuple[DependencyNode, RegistryInfo, tuple[str, ...], int]] = deque()
        queue.append((root, root_info, (root_name,), 0))

        while queue:
            node, info, path, depth = queue.popleft()
            if depth >= limit:
                continue
            for dep_name, constraint in info.dependencies.items():
                if dep_name in path:
                    cycle = [*path[path.index(dep_name):], dep_name]
                    raise CyclicDependencyError(cycle)

                dep_info = self._lookup(memo, ecosystem, dep_name)
                if dep_info is None:
                    version = clean_version(constraint) or constraint
                    node.dependencies.append(DependencyNode(name=dep_name, version=version))
                    continue

                child = DependencyNode(name=dep_name, version=dep_info.latest_version)
                node.dependencies.append(child)
                queue.append((child, dep_info, (*path, dep_name), depth + 1))

        return root

    def _lookup(
        self,
        memo: dict[str, RegistryInfo | None],
        ecosystem: Ecosystem,
        name: str,
    ) -> RegistryInfo | None:
        if name not in memo:
            try:
                memo[name] = self._resolve(ecosystem, name)
            except RegistryUnavailableError as e:
                logger.warning("Cannot resolve %s dependency %s: %s", ecosystem.value, name, e)
                memo[name] = None
        return memo[name]
