from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum


class ArtifactType(str, Enum):
    RFC = "rfc"
    ADR = "adr"
    DECOMPOSITION = "decomposition"


class RFCStatus(str, Enum):
    DRAFT = "draft"
    REVIEW = "review"
    APPROVED = "approved"
    REJECTED = "rejected"
    IMPLEMENTED = "implemented"


class ADRStatus(str, Enum):
    PROPOSED = "proposed"
    ACCEPTED = "accepted"
    DEPRECATED = "deprecated"
    SUPERSEDED = "superseded"


class PhaseStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in-progress"
    COMPLETED = "completed"
    BLOCKED = "blocked"


class TaskStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in-progress"
    DONE = "done"


class ReferenceType(str, Enum):
    IMPLEMENTS = "implements"
    SUPERSEDES = "supersedes"
    RELATES_TO = "relates-to"
    DEPENDS_ON = "depends-on"
    BLOCKS = "blocks"
    ENABLES = "enables"


# Statuses whose artifacts no longer carry a live decision.
INACTIVE_STATUSES: frozenset[str] = frozenset({"deprecated", "superseded", "rejected"})
STALE_TARGET_STATUSES: frozenset[str] = frozenset({"deprecated", "superseded"})


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def advance_timestamp(previous: datetime, now: datetime) -> datetime:
    """Return a timestamp strictly later than ``previous``, preferring ``now``."""
    return max(now, previous + timedelta(microseconds=1))


@dataclass(frozen=True)
class Reference:
    target_id: str
    target_type: ArtifactType
    reference_type: ReferenceType


@dataclass
class Option:
    name: str
    description: str = ""
    pros: list[str] = field(default_factory=list)
    cons: list[str] = field(default_factory=list)


@dataclass
class Signoff:
    name: str
    role: str = ""
    date: datetime | None = None
    approved: bool = False


@dataclass
class Alternative:
    name: str
    description: str = ""
    rejection_reason: str = ""


@dataclass
class Phase:
    id: str
    name: str
    description: str = ""
    dependencies: list[str] = field(default_factory=list)
    estimated_duration: str = ""
    status: PhaseStatus = PhaseStatus.PENDING
    completed_at: datetime | None = None


@dataclass
class TeamModuleMapping:
    team_id: str
    team_name: str
    modules: list[str] = field(default_factory=list)


@dataclass
class MigrationTask:
    id: str
    phase_id: str
    description: str
    assignee: str | None = None
    status: TaskStatus = TaskStatus.TODO


@dataclass
class Artifact:
    id: str
    title: str
    status: str
    owner: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)
    tags: list[str] = field(default_factory=list)
    references: list[Reference] = field(default_factory=list)

    # Overridden by each concrete type.
    type = ArtifactType.RFC


@dataclass
class RFC(Artifact):
    type = ArtifactType.RFC

    problem_statement: str = ""
    success_criteria: list[str] = field(default_factory=list)
    options: list[Option] = field(default_factory=list)
    recommended_approach: str = ""
    migration_path: str = ""
    rollback_plan: str = ""
    security_notes: str = ""
    cost_model: str = ""
    timeline: str = ""
    signoffs: list[Signoff] = field(default_factory=list)


@dataclass
class ADR(Artifact):
    type = ArtifactType.ADR

    context: str = ""
    decision: str = ""
    consequences: list[str] = field(default_factory=list)
    alternatives_considered: list[Alternative] = field(default_factory=list)
    superseded_by: str | None = None


@dataclass
class DecompositionPlan(Artifact):
    type = ArtifactType.DECOMPOSITION

    rationale: str = ""
    success_metrics: list[str] = field(default_factory=list)
    phases: list[Phase] = field(default_factory=list)
    team_module_mapping: list[TeamModuleMapping] = field(default_factory=list)
    migration_tasks: list[MigrationTask] = field(default_factory=list)


ARTIFACT_CLASSES: dict[ArtifactType, type[Artifact]] = {
    ArtifactType.RFC: RFC,
    ArtifactType.ADR: ADR,
    ArtifactType.DECOMPOSITION: DecompositionPlan,
}

STATUS_VALUES: dict[ArtifactType, frozenset[str]] = {
    ArtifactType.RFC: frozenset(item.value for item in RFCStatus),
    ArtifactType.ADR: frozenset(item.value for item in ADRStatus),
    ArtifactType.DECOMPOSITION: frozenset(item.value for item in RFCStatus),
}

INITIAL_STATUS: dict[ArtifactType, str] = {
    ArtifactType.RFC: RFCStatus.DRAFT.value,
    ArtifactType.ADR: ADRStatus.PROPOSED.value,
    ArtifactType.DECOMPOSITION: RFCStatus.DRAFT.value,
}
