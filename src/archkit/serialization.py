"""Markdown + YAML frontmatter codec for artifacts.

Metadata and structured lists live in the frontmatter. Narrative text lives in
``## `` sections of the body. Structured lists are also rendered in the body
for readers, but they are always parsed back from the frontmatter.
"""

from __future__ import annotations

import re
from dataclasses import fields as dataclass_fields
from datetime import datetime, timezone
from typing import Callable, Mapping

import yaml

from archkit.exceptions import SerializationError
from archkit.model import (
    ADR,
    ARTIFACT_CLASSES,
    RFC,
    Alternative,
    Artifact,
    ArtifactType,
    DecompositionPlan,
    MigrationTask,
    Option,
    Phase,
    PhaseStatus,
    Reference,
    ReferenceType,
    Signoff,
    TaskStatus,
    TeamModuleMapping,
)

_DELIMITER = "---"
_SECTION_RE = re.compile(r"^## (?P<title>.+?)\s*$")

# Narrative body sections per type: (heading, attribute).
NARRATIVE_SECTIONS: dict[ArtifactType, tuple[tuple[str, str], ...]] = {
    ArtifactType.RFC: (
        ("Problem Statement", "problem_statement"),
        ("Recommended Approach", "recommended_approach"),
        ("Migration Path", "migration_path"),
        ("Rollback Plan", "rollback_plan"),
        ("Security Notes", "security_notes"),
        ("Cost Model", "cost_model"),
        ("Timeline", "timeline"),
    ),
    ArtifactType.ADR: (
        ("Context", "context"),
        ("Decision", "decision"),
    ),
    ArtifactType.DECOMPOSITION: (("Rationale", "rationale"),),
}


def format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.isoformat()


def parse_timestamp(value: object, *, field: str) -> datetime:
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError as exc:
            raise SerializationError(f"Invalid timestamp for '{field}': {value!r}") from exc
    else:
        raise SerializationError(f"Missing or invalid timestamp for '{field}'")
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _optional_timestamp(value: object, *, field: str) -> datetime | None:
    if value is None or value == "":
        return None
    return parse_timestamp(value, field=field)


# -- encode ---------------------------------------------------------------


def _reference_payload(reference: Reference) -> dict[str, str]:
    return {
        "targetId": reference.target_id,
        "targetType": reference.target_type.value,
        "referenceType": reference.reference_type.value,
    }


def _type_payload(artifact: Artifact) -> dict[str, object]:
    if isinstance(artifact, RFC):
        return {
            "successCriteria": list(artifact.success_criteria),
            "options": [
                {
                    "name": option.name,
                    "description": option.description,
                    "pros": list(option.pros),
                    "cons": list(option.cons),
                }
                for option in artifact.options
            ],
            "signoffs": [
                {
                    "name": signoff.name,
                    "role": signoff.role,
                    "date": format_timestamp(signoff.date) if signoff.date else None,
                    "approved": signoff.approved,
                }
                for signoff in artifact.signoffs
            ],
        }
    if isinstance(artifact, ADR):
        payload: dict[str, object] = {
            "consequences": list(artifact.consequences),
            "alternatives": [
                {
                    "name": alternative.name,
                    "description": alternative.description,
                    "rejectionReason": alternative.rejection_reason,
                }
                for alternative in artifact.alternatives_considered
            ],
        }
        if artifact.superseded_by:
            payload["supersededBy"] = artifact.superseded_by
        return payload
    if isinstance(artifact, DecompositionPlan):
        return {
            "successMetrics": list(artifact.success_metrics),
            "phases": [
                {
                    "id": phase.id,
                    "name": phase.name,
                    "description": phase.description,
                    "dependencies": list(phase.dependencies),
                    "estimatedDuration": phase.estimated_duration,
                    "status": phase.status.value,
                    "completedAt": format_timestamp(phase.completed_at)
                    if phase.completed_at
                    else None,
                }
                for phase in artifact.phases
            ],
            "teamModuleMapping": [
                {
                    "teamId": mapping.team_id,
                    "teamName": mapping.team_name,
                    "modules": list(mapping.modules),
                }
                for mapping in artifact.team_module_mapping
            ],
            "migrationTasks": [
                {
                    "id": task.id,
                    "phaseId": task.phase_id,
                    "description": task.description,
                    "assignee": task.assignee,
                    "status": task.status.value,
                }
                for task in artifact.migration_tasks
            ],
        }
    raise SerializationError(f"Unknown artifact class: {type(artifact).__name__}")


def frontmatter_payload(artifact: Artifact) -> dict[str, object]:
    payload: dict[str, object] = {
        "id": artifact.id,
        "type": artifact.type.value,
        "title": artifact.title,
        "status": artifact.status,
        "createdAt": format_timestamp(artifact.created_at),
        "updatedAt": format_timestamp(artifact.updated_at),
        "owner": artifact.owner,
        "tags": list(artifact.tags),
    }
    if artifact.references:
        payload["references"] = [_reference_payload(ref) for ref in artifact.references]
    payload.update(_type_payload(artifact))
    return payload


def _bullets(items: list[str]) -> str:
    return "\n".join(f"- {item}" for item in items)


def _readable_sections(artifact: Artifact) -> list[tuple[str, str]]:
    sections: list[tuple[str, str]] = []
    if isinstance(artifact, RFC):
        if artifact.success_criteria:
            sections.append(("Success Criteria", _bullets(artifact.success_criteria)))
        if artifact.options:
            blocks = []
            for option in artifact.options:
                lines = [f"### {option.name}", "", f"**Description:** {option.description}"]
                if option.pros:
                    lines.extend(["", "**Pros:**", _bullets(option.pros)])
                if option.cons:
                    lines.extend(["", "**Cons:**", _bullets(option.cons)])
                blocks.append("\n".join(lines))
            sections.append(("Options", "\n\n".join(blocks)))
        if artifact.signoffs:
            rows = ["| Name | Role | Date | Approved |", "|------|------|------|----------|"]
            for signoff in artifact.signoffs:
                date = signoff.date.date().isoformat() if signoff.date else "Pending"
                rows.append(
                    f"| {signoff.name} | {signoff.role} | {date} | "
                    f"{'yes' if signoff.approved else 'no'} |"
                )
            sections.append(("Sign-offs", "\n".join(rows)))
    elif isinstance(artifact, ADR):
        if artifact.consequences:
            sections.append(("Consequences", _bullets(artifact.consequences)))
        if artifact.alternatives_considered:
            blocks = [
                f"### {alt.name}\n\n{alt.description}\n\n**Rejection Reason:** {alt.rejection_reason}"
                for alt in artifact.alternatives_considered
            ]
            sections.append(("Alternatives Considered", "\n\n".join(blocks)))
    elif isinstance(artifact, DecompositionPlan):
        if artifact.success_metrics:
            sections.append(("Success Metrics", _bullets(artifact.success_metrics)))
        if artifact.phases:
            blocks = []
            for phase in artifact.phases:
                lines = [
                    f"### {phase.name}",
                    "",
                    f"**ID:** {phase.id}",
                    "",
                    phase.description,
                    "",
                    f"**Status:** {phase.status.value}",
                    f"**Estimated Duration:** {phase.estimated_duration}",
                ]
                if phase.dependencies:
                    lines.append(f"**Dependencies:** {', '.join(phase.dependencies)}")
                blocks.append("\n".join(lines))
            sections.append(("Phases", "\n\n".join(blocks)))
        if artifact.team_module_mapping:
            rows = ["| Team | Modules |", "|------|---------|"]
            for mapping in artifact.team_module_mapping:
                rows.append(
                    f"| {mapping.team_name} ({mapping.team_id}) | {', '.join(mapping.modules)} |"
                )
            sections.append(("Team-Module Mapping", "\n".join(rows)))
        if artifact.migration_tasks:
            rows = [
                "| ID | Phase | Description | Assignee | Status |",
                "|----|-------|-------------|----------|--------|",
            ]
            for task in artifact.migration_tasks:
                rows.append(
                    f"| {task.id} | {task.phase_id} | {task.description} | "
                    f"{task.assignee or 'Unassigned'} | {task.status.value} |"
                )
            sections.append(("Migration Tasks", "\n".join(rows)))
    return sections


def serialize(artifact: Artifact) -> str:
    frontmatter = yaml.safe_dump(
        frontmatter_payload(artifact),
        sort_keys=False,
        allow_unicode=True,
        default_flow_style=False,
    )
    sections = [
        (heading, str(getattr(artifact, attribute)))
        for heading, attribute in NARRATIVE_SECTIONS[artifact.type]
    ]
    sections.extend(_readable_sections(artifact))
    body = "\n\n".join(f"## {heading}\n\n{text}".rstrip() for heading, text in sections)
    return f"{_DELIMITER}\n{frontmatter}{_DELIMITER}\n\n# {artifact.title}\n\n{body}\n"


# -- decode ---------------------------------------------------------------


def split_frontmatter(text: str) -> tuple[dict[str, object], str]:
    lines = text.splitlines()
    if not lines or lines[0].strip() != _DELIMITER:
        raise SerializationError("Missing opening frontmatter delimiter (---)", line=1)
    closing = None
    for index in range(1, len(lines)):
        if lines[index].strip() == _DELIMITER:
            closing = index
            break
    if closing is None:
        raise SerializationError("Missing closing frontmatter delimiter (---)", line=len(lines))
    try:
        payload = yaml.safe_load("\n".join(lines[1:closing]))
    except yaml.YAMLError as exc:
        mark = getattr(exc, "problem_mark", None)
        line = mark.line + 2 if mark is not None else None
        raise SerializationError(f"Invalid YAML frontmatter: {exc}", line=line) from exc
    if not isinstance(payload, dict):
        raise SerializationError("Frontmatter must be a mapping", line=2)
    return payload, "\n".join(lines[closing + 1 :])


def parse_sections(body: str) -> dict[str, str]:
    sections: dict[str, str] = {}
    current: str | None = None
    buffer: list[str] = []
    for line in body.splitlines():
        match = _SECTION_RE.match(line)
        if match is not None:
            if current is not None:
                sections[current] = "\n".join(buffer).strip()
            current = match.group("title")
            buffer = []
        elif current is not None:
            buffer.append(line)
    if current is not None:
        sections[current] = "\n".join(buffer).strip()
    return sections


def _require_str(payload: Mapping[str, object], key: str) -> str:
    value = payload.get(key)
    if not isinstance(value, str) or not value:
        raise SerializationError(f"Missing required frontmatter field '{key}'")
    return value


def _str(value: object) -> str:
    return "" if value is None else str(value)


def _str_list(value: object) -> list[str]:
    if value is None:
        return []
    if not isinstance(value, list):
        raise SerializationError(f"Expected a list, got {type(value).__name__}")
    return [str(item) for item in value]


def _mappings(value: object, *, field: str) -> list[Mapping[str, object]]:
    if value is None:
        return []
    if not isinstance(value, list) or not all(isinstance(item, dict) for item in value):
        raise SerializationError(f"Frontmatter field '{field}' must be a list of mappings")
    return value


def _enum(enum_type: Callable[[str], object], value: object, *, field: str):
    try:
        return enum_type(str(value))
    except ValueError as exc:
        raise SerializationError(f"Invalid value for '{field}': {value!r}") from exc


def _references(value: object) -> list[Reference]:
    references = []
    for item in _mappings(value, field="references"):
        references.append(
            Reference(
                target_id=_require_str(item, "targetId"),
                target_type=_enum(ArtifactType, item.get("targetType"), field="targetType"),
                reference_type=_enum(
                    ReferenceType, item.get("referenceType"), field="referenceType"
                ),
            )
        )
    return references


def _rfc_fields(payload: Mapping[str, object]) -> dict[str, object]:
    return {
        "success_criteria": _str_list(payload.get("successCriteria")),
        "options": [
            Option(
                name=_str(item.get("name")),
                description=_str(item.get("description")),
                pros=_str_list(item.get("pros")),
                cons=_str_list(item.get("cons")),
            )
            for item in _mappings(payload.get("options"), field="options")
        ],
        "signoffs": [
            Signoff(
                name=_str(item.get("name")),
                role=_str(item.get("role")),
                date=_optional_timestamp(item.get("date"), field="signoffs.date"),
                approved=bool(item.get("approved", False)),
            )
            for item in _mappings(payload.get("signoffs"), field="signoffs")
        ],
    }


def _adr_fields(payload: Mapping[str, object]) -> dict[str, object]:
    superseded_by = payload.get("supersededBy")
    return {
        "consequences": _str_list(payload.get("consequences")),
        "alternatives_considered": [
            Alternative(
                name=_str(item.get("name")),
                description=_str(item.get("description")),
                rejection_reason=_str(item.get("rejectionReason")),
            )
            for item in _mappings(payload.get("alternatives"), field="alternatives")
        ],
        "superseded_by": str(superseded_by) if superseded_by else None,
    }


def _decomposition_fields(payload: Mapping[str, object]) -> dict[str, object]:
    return {
        "success_metrics": _str_list(payload.get("successMetrics")),
        "phases": [
            Phase(
                id=_str(item.get("id")),
                name=_str(item.get("name")),
                description=_str(item.get("description")),
                dependencies=_str_list(item.get("dependencies")),
                estimated_duration=_str(item.get("estimatedDuration")),
                status=_enum(PhaseStatus, item.get("status", "pending"), field="phases.status"),
                completed_at=_optional_timestamp(
                    item.get("completedAt"), field="phases.completedAt"
                ),
            )
            for item in _mappings(payload.get("phases"), field="phases")
        ],
        "team_module_mapping": [
            TeamModuleMapping(
                team_id=_str(item.get("teamId")),
                team_name=_str(item.get("teamName")),
                modules=_str_list(item.get("modules")),
            )
            for item in _mappings(payload.get("teamModuleMapping"), field="teamModuleMapping")
        ],
        "migration_tasks": [
            MigrationTask(
                id=_str(item.get("id")),
                phase_id=_str(item.get("phaseId")),
                description=_str(item.get("description")),
                assignee=str(item["assignee"]) if item.get("assignee") else None,
                status=_enum(TaskStatus, item.get("status", "todo"), field="migrationTasks.status"),
            )
            for item in _mappings(payload.get("migrationTasks"), field="migrationTasks")
        ],
    }


_TYPE_FIELD_DECODERS: dict[ArtifactType, Callable[[Mapping[str, object]], dict[str, object]]] = {
    ArtifactType.RFC: _rfc_fields,
    ArtifactType.ADR: _adr_fields,
    ArtifactType.DECOMPOSITION: _decomposition_fields,
}


def deserialize(text: str) -> Artifact:
    payload, body = split_frontmatter(text)
    artifact_type = _enum(ArtifactType, payload.get("type"), field="type")
    sections = parse_sections(body)
    values: dict[str, object] = {
        "id": _require_str(payload, "id"),
        "title": _str(payload.get("title")),
        "status": _require_str(payload, "status"),
        "owner": _str(payload.get("owner")),
        "created_at": parse_timestamp(payload.get("createdAt"), field="createdAt"),
        "updated_at": parse_timestamp(payload.get("updatedAt"), field="updatedAt"),
        "tags": _str_list(payload.get("tags")),
        "references": _references(payload.get("references")),
    }
    for heading, attribute in NARRATIVE_SECTIONS[artifact_type]:
        values[attribute] = sections.get(heading, "")
    values.update(_TYPE_FIELD_DECODERS[artifact_type](payload))
    cls = ARTIFACT_CLASSES[artifact_type]
    known = {item.name for item in dataclass_fields(cls)}
    return cls(**{key: value for key, value in values.items() if key in known})
