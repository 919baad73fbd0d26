"""Placeholder content for sections a new artifact was created without."""

from __future__ import annotations

import copy
from dataclasses import fields, is_dataclass

from archkit.model import Alternative, ArtifactType, Option, Phase

PHASE_ID_PREFIX = "phase-"
TASK_ID_PREFIX = "task-"


def _default_option() -> list[Option]:
    return [
        Option(
            name="Option 1",
            description="[Describe this option]",
            pros=["[List advantages]"],
            cons=["[List disadvantages]"],
        )
    ]


def _default_alternative() -> list[Alternative]:
    return [
        Alternative(
            name="Alternative 1",
            description="[Describe this alternative]",
            rejection_reason="[Explain why this alternative was not chosen]",
        )
    ]


def _default_phase() -> list[Phase]:
    return [
        Phase(
            id=f"{PHASE_ID_PREFIX}001",
            name="Phase 1",
            description="[Describe what this phase accomplishes]",
            estimated_duration="[e.g., 2 weeks]",
        )
    ]


# Values are either literals (copied on use) or factories.
DEFAULT_CONTENT: dict[ArtifactType, dict[str, object]] = {
    ArtifactType.RFC: {
        "problem_statement": "[Describe the problem to be addressed]",
        "success_criteria": ["[Define measurable success criteria]"],
        "options": _default_option,
        "recommended_approach": "[Describe the recommended approach]",
        "migration_path": "[Describe the migration path]",
        "rollback_plan": "[Describe the rollback plan]",
        "security_notes": "[Document security considerations]",
        "cost_model": "[Document cost implications]",
        "timeline": "[Define the timeline]",
        "signoffs": [],
    },
    ArtifactType.ADR: {
        "context": "[Describe the context and background for this decision]",
        "decision": "[Describe the decision that was made]",
        "consequences": ["[List the consequences of this decision]"],
        "alternatives_considered": _default_alternative,
    },
    ArtifactType.DECOMPOSITION: {
        "rationale": "[Describe the rationale for this decomposition]",
        "success_metrics": ["[Define measurable success metrics]"],
        "phases": _default_phase,
        "team_module_mapping": [],
        "migration_tasks": [],
    },
}


def default_content(artifact_type: ArtifactType) -> dict[str, object]:
    resolved: dict[str, object] = {}
    for name, value in DEFAULT_CONTENT[artifact_type].items():
        if callable(value):
            resolved[name] = value()
        else:
            resolved[name] = copy.deepcopy(value)
    return resolved


def is_placeholder(text: str) -> bool:
    stripped = text.strip()
    return len(stripped) > 1 and stripped.startswith("[") and stripped.endswith("]")


def section_missing(value: object) -> bool:
    """True when a section is empty or holds only placeholder text."""
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip() or is_placeholder(value)
    if isinstance(value, (list, tuple)):
        return all(section_missing(item) for item in value)
    if is_dataclass(value):
        texts = [
            getattr(value, item.name)
            for item in fields(value)
            if item.name in {"description", "rejection_reason"}
        ]
        return bool(texts) and all(section_missing(text) for text in texts)
    return False
