from __future__ import annotations

from erp.core.modules.graph import build_graph
from erp.core.modules.models import DiagnosticKind, DiagnosticSeverity

from tests.helpers.addon_builders import manifests


def test_edges_only_between_known_modules():
    g, diags = build_graph(manifests({"a": [], "b": ["a", "ghost"], "c": ["b", "a"]}))
    assert g.nodes == ("a", "b", "c")
    assert g.edge_set() == {("b", "a"), ("c", "b"), ("c", "a")}
    assert g.unknown == (("b", "ghost"),)
    assert len(diags) == 1
    assert diags[0].kind == DiagnosticKind.UNKNOWN_DEPENDENCY
    assert diags[0].severity == DiagnosticSeverity.warning
    assert diags[0].message == "b depends on undeclared module ghost"
    assert diags[0].related == ["ghost"]


def test_declared_order_kept_and_no_duplicate_edges():
    g, _ = build_graph(manifests({"a": [], "b": [], "c": ["b", "a", "b"]}))
    assert g.dependencies_of("c") == ("b", "a")
    assert g.dependents_of("a") == ("c",)
    assert g.dependencies_of("missing") == ()


def test_graph_is_deterministic_regardless_of_input_order():
    one = manifests({"x": ["y"], "y": [], "z": ["x", "y"]})
    two = {k: one[k] for k in reversed(list(one))}
    g1, _ = build_graph(one)
    g2, _ = build_graph(two)
    assert g1.nodes == g2.nodes
    assert g1.edges == g2.edges


def test_self_dependency_is_an_edge():
    g, diags = build_graph(manifests({"solo": ["solo"]}))
    assert g.edge_set() == {("solo", "solo")}
    assert diags == []
