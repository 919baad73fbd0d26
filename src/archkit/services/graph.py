from __future__ import annotations

import re
from collections import deque
from dataclasses import dataclass, field
from typing import Iterable, Literal

from archkit.exceptions import ValidationError
from archkit.model import ArtifactType
from archkit.services.link import LinkService
from archkit.storage.file_store import FileStore

GraphFormat = Literal["mermaid", "dot"]
Severity = Literal["warning", "critical"]

_NODE_ID_UNSAFE_RE = re.compile(r"[^A-Za-z0-9_]")

_MERMAID_CLASS_DEFS = (
    "classDef rfc fill:#3498db,stroke:#2980b9,color:#fff",
    "classDef adr fill:#27ae60,stroke:#229954,color:#fff",
    "classDef decomposition fill:#e67e22,stroke:#d35400,color:#fff",
    "classDef draft stroke-dasharray: 5 5",
    "classDef proposed stroke-dasharray: 5 5",
    "classDef deprecated fill:#95a5a6,stroke:#7f8c8d",
    "classDef superseded fill:#95a5a6,stroke:#7f8c8d",
    "classDef rejected fill:#95a5a6,stroke:#7f8c8d",
)
_MERMAID_STATUS_CLASSES = frozenset({"draft", "proposed", "deprecated", "superseded", "rejected"})

_DOT_TYPE_COLORS: dict[ArtifactType, str] = {
    ArtifactType.RFC: "blue",
    ArtifactType.ADR: "green",
    ArtifactType.DECOMPOSITION: "orange",
}
_DOT_STATUS_STYLES: dict[str, str] = {
    "draft": "style=dashed",
    "proposed": "style=dashed",
    "review": "style=dashed",
    "approved": "style=solid",
    "accepted": "style=solid",
    "implemented": "style=solid",
    "rejected": "style=filled, fillcolor=gray",
    "deprecated": "style=filled, fillcolor=gray",
    "superseded": "style=filled, fillcolor=gray",
}

# Closed cycles (first member repeated) longer than this are critical.
CRITICAL_CYCLE_LENGTH = 3


@dataclass(frozen=True)
class GraphNode:
    id: str
    title: str
    type: ArtifactType
    status: str


@dataclass(frozen=True)
class GraphEdge:
    source_id: str
    target_id: str
    type: str


@dataclass(frozen=True)
class ArtifactGraph:
    nodes: tuple[GraphNode, ...]
    edges: tuple[GraphEdge, ...]


@dataclass(frozen=True)
class CircularDependency:
    # Closed walk: the first member is repeated at the end.
    cycle: tuple[str, ...]
    severity: Severity

    @property
    def members(self) -> tuple[str, ...]:
        return self.cycle[:-1]


def sanitize_node_id(artifact_id: str) -> str:
    return _NODE_ID_UNSAFE_RE.sub("_", artifact_id)


def escape_mermaid_text(text: str) -> str:
    return (
        text.replace('"', "'")
        .replace("[", "(")
        .replace("]", ")")
        .replace("\r", " ")
        .replace("\n", " ")
    )


def escape_dot_text(text: str) -> str:
    return text.replace("\\", "\\\\").replace('"', '\\"').replace("\r", "").replace("\n", "\\n")


@dataclass
class GraphService:
    store: FileStore
    links: LinkService = field(default=None)  # type: ignore[assignment]

    def __post_init__(self) -> None:
        if self.links is None:
            self.links = LinkService(self.store)

    def build_graph(
        self,
        *,
        root_id: str | None = None,
        include_types: Iterable[ArtifactType] | None = None,
    ) -> ArtifactGraph:
        artifacts = self.store.list()
        wanted = set(include_types or ())
        if wanted:
            artifacts = [artifact for artifact in artifacts if artifact.type in wanted]
        if root_id is not None:
            scope = {root_id, *self.get_connected_artifacts(root_id)}
            artifacts = [artifact for artifact in artifacts if artifact.id in scope]
        present = {artifact.id for artifact in artifacts}
        nodes = tuple(
            GraphNode(id=artifact.id, title=artifact.title, type=artifact.type, status=artifact.status)
            for artifact in artifacts
        )
        edges: list[GraphEdge] = []
        seen: set[tuple[str, str]] = set()
        for artifact in artifacts:
            for ref in artifact.references:
                key = (artifact.id, ref.target_id)
                if ref.target_id not in present or key in seen:
                    continue
                seen.add(key)
                edges.append(
                    GraphEdge(
                        source_id=artifact.id,
                        target_id=ref.target_id,
                        type=ref.reference_type.value,
                    )
                )
        return ArtifactGraph(nodes=nodes, edges=tuple(edges))

    def generate_graph(
        self,
        output_format: GraphFormat = "mermaid",
        *,
        root_id: str | None = None,
        include_types: Iterable[ArtifactType] | None = None,
    ) -> str:
        graph = self.build_graph(root_id=root_id, include_types=include_types)
        if output_format == "mermaid":
            return render_mermaid(graph)
        if output_format == "dot":
            return render_dot(graph)
        raise ValidationError(f"Unknown graph format: {output_format}", field="format")

    def get_connected_artifacts(self, root_id: str) -> list[str]:
        """Every artifact reachable from ``root_id`` ignoring edge direction."""
        visited: set[str] = set()
        order: list[str] = []
        queue: deque[str] = deque([root_id])
        while queue:
            current = queue.popleft()
            if current in visited:
                continue
            visited.add(current)
            order.append(current)
            info = self.links.get_links(current)
            for link in info.outgoing:
                if link.target_id not in visited:
                    queue.append(link.target_id)
            for link in info.incoming:
                if link.source_id not in visited:
                    queue.append(link.source_id)
        return [artifact_id for artifact_id in order if artifact_id != root_id]

    def detect_circular_dependencies(self) -> list[CircularDependency]:
        artifacts = self.store.list()
        adjacency = {
            artifact.id: [link.target_id for link in self.links.get_links(artifact.id).outgoing]
            for artifact in artifacts
        }
        return find_cycles([artifact.id for artifact in artifacts], adjacency)


def find_cycles(roots: list[str], adjacency: dict[str, list[str]]) -> list[CircularDependency]:
    """Depth-first search with a recursion stack over directed ``adjacency``.

    A cycle is recorded whenever the search meets a node already on the stack.
    Cycles over the same set of nodes are reported once, whatever their
    rotation or edge order.
    """
    cycles: list[CircularDependency] = []
    seen_keys: set[tuple[str, ...]] = set()
    visited: set[str] = set()
    on_stack: set[str] = set()
    path: list[str] = []

    # Iterative DFS; each frame holds the node and an iterator over its neighbors.
    for root in roots:
        if root in visited:
            continue
        stack = [(root, iter(adjacency.get(root, ())))]
        visited.add(root)
        on_stack.add(root)
        path.append(root)
        while stack:
            node, neighbors = stack[-1]
            advanced = False
            for neighbor in neighbors:
                if neighbor not in visited:
                    visited.add(neighbor)
                    on_stack.add(neighbor)
                    path.append(neighbor)
                    stack.append((neighbor, iter(adjacency.get(neighbor, ()))))
                    advanced = True
                    break
                if neighbor in on_stack:
                    start = path.index(neighbor)
                    closed = (*path[start:], neighbor)
                    key = tuple(sorted(set(closed)))
                    if key not in seen_keys:
                        seen_keys.add(key)
                        cycles.append(
                            CircularDependency(
                                cycle=closed,
                                severity="critical"
                                if len(closed) > CRITICAL_CYCLE_LENGTH
                                else "warning",
                            )
                        )
            if not advanced:
                stack.pop()
                path.pop()
                on_stack.discard(node)
    return cycles


def render_mermaid(graph: ArtifactGraph) -> str:
    lines = ["graph TB", "", "%% Style definitions", *_MERMAID_CLASS_DEFS, "", "%% Nodes"]
    for node in graph.nodes:
        lines.append(f'{sanitize_node_id(node.id)}["{node.id}: {escape_mermaid_text(node.title)}"]')
    lines.append("")
    if graph.edges:
        lines.append("%% Edges")
        for edge in graph.edges:
            lines.append(
                f"{sanitize_node_id(edge.source_id)} -->|{escape_mermaid_text(edge.type)}| "
                f"{sanitize_node_id(edge.target_id)}"
            )
        lines.append("")
    lines.append("%% Apply styles")
    for node in graph.nodes:
        node_id = sanitize_node_id(node.id)
        lines.append(f"class {node_id} {node.type.value}")
        if node.status in _MERMAID_STATUS_CLASSES:
            lines.append(f"class {node_id} {node.status}")
    return "\n".join(lines)


def render_dot(graph: ArtifactGraph) -> str:
    lines = ["digraph G {", "  rankdir=TB;", "  node [shape=box];", ""]
    for node in graph.nodes:
        style = _DOT_STATUS_STYLES.get(node.status, "style=solid")
        lines.append(
            f'  {sanitize_node_id(node.id)} [label="{escape_dot_text(node.id)}\\n'
            f'{escape_dot_text(node.title)}", color={_DOT_TYPE_COLORS[node.type]}, {style}];'
        )
    lines.append("")
    for edge in graph.edges:
        lines.append(
            f"  {sanitize_node_id(edge.source_id)} -> {sanitize_node_id(edge.target_id)} "
            f'[label="{escape_dot_text(edge.type)}"];'
        )
    lines.append("}")
    return "\n".join(lines)
