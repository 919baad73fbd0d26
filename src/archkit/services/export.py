"""Whole-corpus exports: a JSON document and a Markdown index."""

from __future__ import annotations

import json

from archkit.model import Artifact, ArtifactType
from archkit.serialization import NARRATIVE_SECTIONS, format_timestamp, frontmatter_payload
from archkit.services.graph import GraphService
from archkit.storage.file_store import ArtifactFilters, FileStore

EXPORT_VERSION = 1

_TYPE_HEADINGS: dict[ArtifactType, str] = {
    ArtifactType.RFC: "RFCs",
    ArtifactType.ADR: "ADRs",
    ArtifactType.DECOMPOSITION: "Decomposition Plans",
}


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.capitalize() for part in rest)


def artifact_payload(artifact: Artifact) -> dict[str, object]:
    payload = frontmatter_payload(artifact)
    payload.setdefault("references", [])
    for _, attribute in NARRATIVE_SECTIONS[artifact.type]:
        payload[_camel(attribute)] = getattr(artifact, attribute)
    return payload


def export_json(
    store: FileStore,
    filters: ArtifactFilters | None = None,
    *,
    graph: GraphService | None = None,
) -> str:
    artifacts = sorted(store.list(filters), key=lambda item: item.id)
    include = {artifact.type for artifact in artifacts}
    edges = (graph or GraphService(store)).build_graph(include_types=include or None).edges
    ids = {artifact.id for artifact in artifacts}
    document = {
        "version": EXPORT_VERSION,
        "artifacts": [artifact_payload(artifact) for artifact in artifacts],
        "edges": [
            {"source": edge.source_id, "target": edge.target_id, "type": edge.type}
            for edge in edges
            if edge.source_id in ids and edge.target_id in ids
        ],
    }
    return json.dumps(document, indent=2, sort_keys=True) + "\n"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def export_markdown(store: FileStore, filters: ArtifactFilters | None = None) -> str:
    artifacts = store.list(filters)
    lines = ["# Architecture Artifacts", ""]
    if not artifacts:
        lines.append("_No artifacts found._")
        return "\n".join(lines) + "\n"
    for artifact_type in ArtifactType:
        group = sorted((item for item in artifacts if item.type == artifact_type), key=lambda item: item.id)
        if not group:
            continue
        lines += [
            f"## {_TYPE_HEADINGS[artifact_type]}",
            "",
            "| ID | Title | Status | Owner | Updated | Tags |",
            "| --- | --- | --- | --- | --- | --- |",
        ]
        for artifact in group:
            lines.append(
                "| {id} | {title} | {status} | {owner} | {updated} | {tags} |".format(
                    id=artifact.id,
                    title=_escape_cell(artifact.title),
                    status=artifact.status,
                    owner=_escape_cell(artifact.owner or "-"),
                    updated=format_timestamp(artifact.updated_at)[:10],
                    tags=_escape_cell(", ".join(artifact.tags) or "-"),
                )
            )
        lines.append("")
    return "\n".join(lines)
