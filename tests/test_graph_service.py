from __future__ import annotations

import pytest

from archkit.exceptions import ValidationError
from archkit.model import ArtifactType
from archkit.services.graph import (
    GraphService,
    escape_dot_text,
    escape_mermaid_text,
    find_cycles,
    sanitize_node_id,
)
from archkit.storage.file_store import FileStore
from tests.artifact_helpers import save_artifact


def _chain(store: FileStore) -> None:
    save_artifact(store, "RFC-0001", title="Base")
    save_artifact(store, "RFC-0002", title="Child", refs=["RFC-0001"])
    save_artifact(store, "ADR-0001", title="Decision", refs=["RFC-0002"], status="accepted")
    save_artifact(store, "DECOMP-0001", title="Unrelated")


def test_build_graph_keeps_edges_between_present_nodes(store: FileStore, graph: GraphService) -> None:
    _chain(store)
    save_artifact(store, "RFC-0003", refs=["RFC-0404"])
    built = graph.build_graph()
    assert {node.id for node in built.nodes} == {
        "RFC-0001",
        "RFC-0002",
        "RFC-0003",
        "ADR-0001",
        "DECOMP-0001",
    }
    assert {(edge.source_id, edge.target_id) for edge in built.edges} == {
        ("RFC-0002", "RFC-0001"),
        ("ADR-0001", "RFC-0002"),
    }


def test_type_filter_drops_cross_type_edges(store: FileStore, graph: GraphService) -> None:
    _chain(store)
    built = graph.build_graph(include_types=[ArtifactType.RFC])
    assert {node.id for node in built.nodes} == {"RFC-0001", "RFC-0002"}
    assert [(edge.source_id, edge.target_id) for edge in built.edges] == [("RFC-0002", "RFC-0001")]


def test_root_limits_graph_to_connected_component(store: FileStore, graph: GraphService) -> None:
    _chain(store)
    assert set(graph.get_connected_artifacts("RFC-0001")) == {"RFC-0002", "ADR-0001"}
    built = graph.build_graph(root_id="RFC-0001")
    assert "DECOMP-0001" not in {node.id for node in built.nodes}


def test_mermaid_output(store: FileStore, graph: GraphService) -> None:
    _chain(store)
    text = graph.generate_graph("mermaid")
    assert text.startswith("graph TB")
    assert 'RFC_0001["RFC-0001: Base"]' in text
    assert "RFC_0002 -->|depends-on| RFC_0001" in text
    assert "class RFC_0001 rfc" in text
    assert "class RFC_0001 draft" in text


def test_dot_output(store: FileStore, graph: GraphService) -> None:
    _chain(store)
    text = graph.generate_graph("dot")
    assert text.startswith("digraph G {")
    assert text.rstrip().endswith("}")
    assert 'ADR_0001 [label="ADR-0001\\nDecision", color=green, style=solid];' in text
    assert 'RFC_0002 -> RFC_0001 [label="depends-on"];' in text


def test_unknown_format_is_rejected(graph: GraphService) -> None:
    with pytest.raises(ValidationError):
        graph.generate_graph("svg")  # type: ignore[arg-type]


def test_label_escaping() -> None:
    assert sanitize_node_id("DECOMP-0001") == "DECOMP_0001"
    assert escape_mermaid_text('Say "hi" [now]\nplease') == "Say 'hi' (now) please"
    assert escape_dot_text('a "b"\nc\\d') == 'a \\"b\\"\\nc\\\\d'


def test_find_cycles_reports_closed_walks_once() -> None:
    adjacency = {"A": ["B"], "B": ["C"], "C": ["A"], "D": ["D"]}
    cycles = find_cycles(["A", "B", "C", "D"], adjacency)
    assert [cycle.cycle for cycle in cycles] == [("A", "B", "C", "A"), ("D", "D")]
    assert [cycle.severity for cycle in cycles] == ["critical", "warning"]
    assert cycles[0].members == ("A", "B", "C")


@pytest.mark.parametrize(
    ("adjacency", "severity"),
    [
        ({"A": ["A"]}, "warning"),
        ({"A": ["B"], "B": ["A"]}, "warning"),
        ({"A": ["B"], "B": ["C"], "C": ["A"]}, "critical"),
        ({"A": ["B"], "B": ["C"], "C": ["D"], "D": ["A"]}, "critical"),
    ],
)
def test_cycle_severity_counts_closed_walk(
    adjacency: dict[str, list[str]], severity: str
) -> None:
    (cycle,) = find_cycles(["A"], adjacency)
    assert cycle.severity == severity


def test_detect_circular_dependencies_over_store(store: FileStore, graph: GraphService) -> None:
    save_artifact(store, "RFC-0001", refs=["RFC-0002"])
    save_artifact(store, "RFC-0002", refs=["RFC-0001"])
    save_artifact(store, "RFC-0003", refs=["RFC-0001"])
    cycles = graph.detect_circular_dependencies()
    assert len(cycles) == 1
    assert set(cycles[0].members) == {"RFC-0001", "RFC-0002"}
