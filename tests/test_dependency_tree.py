"""
Tests for the dependency tree builder.
"""

import pytest

from runtimekit.core.errors import (
    CyclicDependencyError,
    PackageNotFoundError,
    RegistryUnavailableError,
)
from runtimekit.core.models.package import Ecosystem, RegistryInfo
from runtimekit.core.services.dependency_tree import DependencyTreeBuilder


def graph_resolver(graph: dict[str, list[str]], versions: dict[str, str] | None = None):
    """Resolver over an in-memory adjacency list; records every lookup."""
    versions = versions or {}
    calls: list[str] = []

    def resolve(ecosystem: Ecosystem, name: str) -> RegistryInfo:
        calls.append(name)
        if name not in graph:
            raise PackageNotFoundError(ecosystem.value, name)
        return RegistryInfo(
            name=name,
            latest_version=versions.get(name, "1.0.0"),
            dependencies={dep: "^1.0.0" for dep in graph[name]},
        )

    resolve.calls = calls
    return resolve


def names(node) -> list[str]:
    return [child.name for child in node.dependencies]


class TestCycles:
    def test_three_node_cycle(self):
        builder = DependencyTreeBuilder(graph_resolver({"A": ["B"], "B": ["C"], "C": ["A"]}))
        with pytest.raises(CyclicDependencyError) as exc:
            builder.build("A", Ecosystem.NODEJS)
        assert exc.value.cycle == ["A", "B", "C", "A"]

    def test_self_dependency(self):
        builder = DependencyTreeBuilder(graph_resolver({"A": ["A"]}))
        with pytest.raises(CyclicDependencyError) as exc:
            builder.build("A", Ecosystem.NODEJS)
        assert exc.value.cycle == ["A", "A"]

    def test_cycle_below_root(self):
        graph = {"app": ["B"], "B": ["C"], "C": ["B"]}
        builder = DependencyTreeBuilder(graph_resolver(graph))
        with pytest.raises(CyclicDependencyError) as exc:
            builder.build("app", Ecosystem.NODEJS)
        assert exc.value.cycle == ["B", "C", "B"]


class TestShape:
    def test_diamond_is_not_a_cycle(self):
        graph = {"A": ["B", "C"], "B": ["D"], "C": ["D"], "D": []}
        resolve = graph_resolver(graph)
        tree = DependencyTreeBuilder(resolve).build("A", Ecosystem.NODEJS)

        assert tree.count("D") == 2
        b, c = tree.dependencies
        assert names(b) == ["D"]
        assert names(c) == ["D"]
        assert b.dependencies[0] is not c.dependencies[0]
        # D resolved once per build
        assert resolve.calls.count("D") == 1

    def test_sibling_order_follows_declaration(self):
        graph = {"root": ["zeta", "alpha", "mid"], "zeta": [], "alpha": [], "mid": []}
        tree = DependencyTreeBuilder(graph_resolver(graph)).build("root", Ecosystem.PYTHON)
        assert names(tree) == ["zeta", "alpha", "mid"]

    def test_versions_come_from_registry(self):
        graph = {"A": ["B"], "B": []}
        resolve = graph_resolver(graph, versions={"A": "3.1.0", "B": "0.4.2"})
        tree = DependencyTreeBuilder(resolve).build("A", Ecosystem.GO)
        assert (tree.name, tree.version) == ("A", "3.1.0")
        assert tree.dependencies[0].version == "0.4.2"


class TestDepth:
    def test_max_depth_stops_expansion(self):
        graph = {"A": ["B"], "B": ["C"], "C": ["D"], "D": []}
        tree = DependencyTreeBuilder(graph_resolver(graph)).build("A", Ecosystem.NODEJS, max_depth=2)

        depths = {node.name: depth for depth, node in tree.walk()}
        assert depths == {"A": 0, "B": 1, "C": 2}

    def test_depth_limit_hides_deep_cycles(self):
        graph = {"A": ["B"], "B": ["A"]}
        tree = DependencyTreeBuilder(graph_resolver(graph)).build("A", Ecosystem.NODEJS, max_depth=1)
        assert names(tree) == ["B"]
        assert tree.dependencies[0].dependencies == []

    def test_default_depth(self):
        chain = {f"p{i}": [f"p{i + 1}"] for i in range(15)}
        chain["p15"] = []
        builder = DependencyTreeBuilder(graph_resolver(chain), max_depth=10)
        tree = builder.build("p0", Ecosystem.NODEJS)
        assert max(depth for depth, _ in tree.walk()) == 10


class TestFailures:
    def test_unresolvable_child_becomes_leaf(self):
        graph = {"A": ["B", "ghost"], "B": []}
        tree = DependencyTreeBuilder(graph_resolver(graph)).build("A", Ecosystem.NODEJS)

        ghost = tree.dependencies[1]
        assert ghost.name == "ghost"
        assert ghost.version == "1.0.0"
        assert ghost.dependencies == []

    def test_unresolvable_root_propagates(self):
        builder = DependencyTreeBuilder(graph_resolver({}))
        with pytest.raises(RegistryUnavailableError):
            builder.build("missing", Ecosystem.NODEJS)
