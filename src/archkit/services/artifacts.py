"""Owning services for each artifact type.

Creation fills omitted sections from ``archkit.defaults``; updates are partial
merges that always advance ``updated_at`` and pass every status change through
the transition tables below.
"""

from __future__ import annotations

import re
from dataclasses import fields, replace
from datetime import datetime
from enum import Enum
from typing import Callable, Generic, Iterable, Mapping, TypeVar

from archkit.config import ArchConfig
from archkit.defaults import PHASE_ID_PREFIX, TASK_ID_PREFIX, default_content
from archkit.exceptions import NotFoundError, ValidationError
from archkit.hooks import ARTIFACT_DELETED, ARTIFACT_SAVED, HookRegistry
from archkit.identifiers import IdGenerator, check_id
from archkit.model import (
    ADR,
    ARTIFACT_CLASSES,
    INITIAL_STATUS,
    RFC,
    STATUS_VALUES,
    ADRStatus,
    Alternative,
    ArtifactType,
    DecompositionPlan,
    MigrationTask,
    Phase,
    PhaseStatus,
    Reference,
    RFCStatus,
    Signoff,
    TaskStatus,
    TeamModuleMapping,
    advance_timestamp,
    utcnow,
)
from archkit.storage.file_store import ArtifactFilters, FileStore

A = TypeVar("A", RFC, ADR, DecompositionPlan)
Transitions = Mapping[str, frozenset[str]]

RFC_TRANSITIONS: Transitions = {
    RFCStatus.DRAFT.value: frozenset({RFCStatus.REVIEW.value}),
    RFCStatus.REVIEW.value: frozenset({RFCStatus.APPROVED.value, RFCStatus.REJECTED.value}),
    RFCStatus.APPROVED.value: frozenset({RFCStatus.IMPLEMENTED.value}),
    RFCStatus.REJECTED.value: frozenset(),
    RFCStatus.IMPLEMENTED.value: frozenset(),
}
ADR_TRANSITIONS: Transitions = {
    ADRStatus.PROPOSED.value: frozenset({ADRStatus.ACCEPTED.value}),
    ADRStatus.ACCEPTED.value: frozenset({ADRStatus.DEPRECATED.value, ADRStatus.SUPERSEDED.value}),
    ADRStatus.DEPRECATED.value: frozenset(),
    ADRStatus.SUPERSEDED.value: frozenset(),
}
PHASE_TRANSITIONS: Transitions = {
    PhaseStatus.PENDING.value: frozenset({PhaseStatus.IN_PROGRESS.value}),
    PhaseStatus.IN_PROGRESS.value: frozenset({PhaseStatus.COMPLETED.value, PhaseStatus.BLOCKED.value}),
    PhaseStatus.BLOCKED.value: frozenset({PhaseStatus.IN_PROGRESS.value, PhaseStatus.PENDING.value}),
    PhaseStatus.COMPLETED.value: frozenset(),
}
STATUS_TRANSITIONS: dict[ArtifactType, Transitions] = {
    ArtifactType.RFC: RFC_TRANSITIONS,
    ArtifactType.ADR: ADR_TRANSITIONS,
    ArtifactType.DECOMPOSITION: RFC_TRANSITIONS,
}

_IMMUTABLE_FIELDS = frozenset({"id", "created_at", "updated_at"})


def validate_transition(table: Transitions, current: str, new: str, *, subject: str = "status") -> None:
    """Raise ``ValidationError`` unless ``current -> new`` is allowed.

    Re-applying the current status is always allowed.
    """
    if new not in table:
        allowed = ", ".join(sorted(table))
        raise ValidationError(f"Invalid {subject} '{new}'. Expected one of: {allowed}", field=subject)
    if new == current:
        return
    if new not in table.get(current, frozenset()):
        raise ValidationError(
            f"Illegal {subject} transition: {current} -> {new}",
            field=subject,
            context={"from": current, "to": new},
        )


def _status_value(value: object) -> str:
    return value.value if isinstance(value, Enum) else str(value)


class ArtifactService(Generic[A]):
    artifact_type: ArtifactType
    label: str

    def __init__(
        self,
        store: FileStore,
        *,
        ids: IdGenerator | None = None,
        config: ArchConfig | None = None,
        hooks: HookRegistry | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.store = store
        self.ids = ids or IdGenerator(store.base_dir)
        self.config = config or ArchConfig()
        self.hooks = hooks or HookRegistry()
        self.clock = clock

    @property
    def artifact_class(self) -> type[A]:
        return ARTIFACT_CLASSES[self.artifact_type]  # type: ignore[return-value]

    def _field_names(self) -> frozenset[str]:
        return frozenset(item.name for item in fields(self.artifact_class)) - _IMMUTABLE_FIELDS

    def _next_id(self) -> str:
        artifact_id = self.ids.generate(self.artifact_type)
        # Files written by hand or by another checkout may be ahead of the counter.
        while self.store.exists(artifact_id):
            artifact_id = self.ids.generate(self.artifact_type)
        return artifact_id

    def create(
        self,
        title: str,
        *,
        owner: str | None = None,
        tags: Iterable[str] | None = None,
        references: Iterable[Reference] | None = None,
        **content: object,
    ) -> A:
        if not title or not title.strip():
            raise ValidationError(f"{self.label} title must not be blank", field="title")
        unknown = set(content) - self._field_names() - {"status"}
        if unknown:
            raise ValidationError(
                f"Unknown {self.label} fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )
        if "status" in content:
            raise ValidationError(
                f"A new {self.label} always starts as '{INITIAL_STATUS[self.artifact_type]}'",
                field="status",
            )
        values = default_content(self.artifact_type)
        values.update({key: value for key, value in content.items() if value is not None})
        now = self.clock()
        artifact = self.artifact_class(
            id=self._next_id(),
            title=title,
            status=INITIAL_STATUS[self.artifact_type],
            owner=owner if owner is not None else (self.config.defaults.owner or ""),
            created_at=now,
            updated_at=now,
            tags=list(tags) if tags is not None else self.config.default_tags(self.artifact_type.value),
            references=list(references or ()),
            **values,
        )
        self._persist(artifact)
        return artifact

    def get(self, artifact_id: str) -> A | None:
        artifact = self.store.load(artifact_id)
        if artifact is None or artifact.type != self.artifact_type:
            return None
        return artifact  # type: ignore[return-value]

    def require(self, artifact_id: str) -> A:
        check_id(artifact_id)
        artifact = self.get(artifact_id)
        if artifact is None:
            raise NotFoundError(self.label, artifact_id)
        return artifact

    def exists(self, artifact_id: str) -> bool:
        return self.get(artifact_id) is not None

    def list(self, filters: ArtifactFilters | None = None) -> list[A]:
        scoped = replace(filters or ArtifactFilters(), type=self.artifact_type)
        return self.store.list(scoped)  # type: ignore[return-value]

    def update(self, artifact_id: str, **changes: object) -> A:
        artifact = self.require(artifact_id)
        known = self._field_names()
        unknown = set(changes) - known
        if unknown:
            raise ValidationError(
                f"Unknown {self.label} fields: {', '.join(sorted(unknown))}", field=sorted(unknown)[0]
            )
        changes = {key: value for key, value in changes.items() if value is not None}
        if "title" in changes and not str(changes["title"]).strip():
            raise ValidationError(f"{self.label} title must not be blank", field="title")
        if "status" in changes:
            changes["status"] = _status_value(changes["status"])
        self._check_changes(artifact, changes)
        for key, value in changes.items():
            setattr(artifact, key, value)
        artifact.updated_at = advance_timestamp(artifact.updated_at, self.clock())
        self._persist(artifact)
        return artifact

    def change_status(self, artifact_id: str, status: str) -> A:
        return self.update(artifact_id, status=status)

    def delete(self, artifact_id: str) -> bool:
        if self.get(artifact_id) is None:
            return False
        removed = self.store.delete(artifact_id)
        if removed:
            self.hooks.emit(ARTIFACT_DELETED, {"id": artifact_id, "type": self.artifact_type.value})
        return removed

    def _check_changes(self, artifact: A, changes: dict[str, object]) -> None:
        if "status" in changes:
            self._check_status(artifact, changes)

    def _check_status(self, artifact: A, changes: dict[str, object]) -> None:
        new_status = str(changes["status"])
        if new_status not in STATUS_VALUES[self.artifact_type]:
            allowed = ", ".join(sorted(STATUS_VALUES[self.artifact_type]))
            raise ValidationError(
                f"Invalid {self.label} status '{new_status}'. Expected one of: {allowed}", field="status"
            )
        validate_transition(STATUS_TRANSITIONS[self.artifact_type], artifact.status, new_status)

    def _persist(self, artifact: A) -> None:
        self.store.save(artifact)
        self.hooks.emit(
            ARTIFACT_SAVED,
            {"id": artifact.id, "type": artifact.type.value, "status": artifact.status},
        )


class RFCService(ArtifactService[RFC]):
    artifact_type = ArtifactType.RFC
    label = "RFC"

    def add_signoff(
        self,
        artifact_id: str,
        name: str,
        *,
        role: str = "",
        approved: bool = False,
        date: datetime | None = None,
    ) -> RFC:
        rfc = self.require(artifact_id)
        if date is None and approved:
            date = self.clock()
        signoff = Signoff(name=name, role=role, approved=approved, date=date)
        return self.update(artifact_id, signoffs=[*rfc.signoffs, signoff])


class ADRService(ArtifactService[ADR]):
    artifact_type = ArtifactType.ADR
    label = "ADR"

    def _check_changes(self, artifact: ADR, changes: dict[str, object]) -> None:
        super()._check_changes(artifact, changes)
        if changes.get("superseded_by"):
            self._check_successor(artifact, str(changes["superseded_by"]))

    def _check_status(self, artifact: ADR, changes: dict[str, object]) -> None:
        super()._check_status(artifact, changes)
        if changes["status"] != ADRStatus.SUPERSEDED.value or changes.get("superseded_by"):
            return
        if artifact.status != ADRStatus.SUPERSEDED.value or not artifact.superseded_by:
            raise ValidationError(
                "Reference to superseding ADR is required when changing status to superseded",
                field="superseded_by",
            )
        self._check_successor(artifact, artifact.superseded_by)

    def _check_successor(self, artifact: ADR, successor: str) -> None:
        if successor == artifact.id:
            raise ValidationError("An ADR cannot supersede itself", field="superseded_by")
        if self.get(successor) is None:
            raise NotFoundError("ADR", successor)

    def change_status(self, artifact_id: str, status: str, superseded_by: str | None = None) -> ADR:
        return self.update(artifact_id, status=status, superseded_by=superseded_by)

    def mark_superseded(self, artifact_id: str, superseding_id: str) -> ADR:
        return self.change_status(artifact_id, ADRStatus.SUPERSEDED.value, superseded_by=superseding_id)

    def add_alternative(
        self, artifact_id: str, name: str, *, description: str = "", rejection_reason: str = ""
    ) -> ADR:
        adr = self.require(artifact_id)
        alternative = Alternative(name=name, description=description, rejection_reason=rejection_reason)
        return self.update(artifact_id, alternatives_considered=[*adr.alternatives_considered, alternative])


_SEQUENCE_RE = re.compile(r"^(?P<prefix>[a-z]+-)(?P<number>\d+)$")


def _next_sequence_id(prefix: str, existing: Iterable[str]) -> str:
    highest = 0
    for item in existing:
        match = _SEQUENCE_RE.match(item)
        if match and match.group("prefix") == prefix:
            highest = max(highest, int(match.group("number")))
    return f"{prefix}{highest + 1:03d}"


def _find_phase(plan: DecompositionPlan, phase_id: str) -> Phase:
    for phase in plan.phases:
        if phase.id == phase_id:
            return phase
    raise NotFoundError("Phase", phase_id)


def _find_task(plan: DecompositionPlan, task_id: str) -> MigrationTask:
    for task in plan.migration_tasks:
        if task.id == task_id:
            return task
    raise NotFoundError("Migration task", task_id)


def _coerce_phase_status(value: PhaseStatus | str) -> PhaseStatus:
    try:
        return PhaseStatus(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in PhaseStatus)
        raise ValidationError(
            f"Invalid phase status '{value}'. Expected one of: {allowed}", field="status"
        ) from exc


def _coerce_task_status(value: TaskStatus | str) -> TaskStatus:
    try:
        return TaskStatus(value)
    except ValueError as exc:
        allowed = ", ".join(item.value for item in TaskStatus)
        raise ValidationError(
            f"Invalid task status '{value}'. Expected one of: {allowed}", field="status"
        ) from exc


class DecompositionService(ArtifactService[DecompositionPlan]):
    artifact_type = ArtifactType.DECOMPOSITION
    label = "Decomposition plan"

    def add_phase(
        self,
        plan_id: str,
        name: str,
        *,
        description: str = "",
        dependencies: Iterable[str] = (),
        estimated_duration: str = "",
    ) -> DecompositionPlan:
        plan = self.require(plan_id)
        deps = list(dependencies)
        known = {phase.id for phase in plan.phases}
        for dep in deps:
            if dep not in known:
                raise ValidationError(f"Unknown phase dependency: {dep}", field="dependencies")
        phase = Phase(
            id=_next_sequence_id(PHASE_ID_PREFIX, known),
            name=name,
            description=description,
            dependencies=deps,
            estimated_duration=estimated_duration,
        )
        return self.update(plan_id, phases=[*plan.phases, phase])

    def update_phase(
        self,
        plan_id: str,
        phase_id: str,
        *,
        name: str | None = None,
        description: str | None = None,
        dependencies: Iterable[str] | None = None,
        estimated_duration: str | None = None,
        status: PhaseStatus | str | None = None,
    ) -> DecompositionPlan:
        plan = self.require(plan_id)
        phase = _find_phase(plan, phase_id)
        if status is not None:
            target = _coerce_phase_status(status)
            validate_transition(PHASE_TRANSITIONS, phase.status.value, target.value, subject="phase status")
            if target is PhaseStatus.COMPLETED and phase.status is not PhaseStatus.COMPLETED:
                phase.completed_at = self.clock()
            phase.status = target
        if name is not None:
            phase.name = name
        if description is not None:
            phase.description = description
        if dependencies is not None:
            phase.dependencies = list(dependencies)
        if estimated_duration is not None:
            phase.estimated_duration = estimated_duration
        return self.update(plan_id, phases=plan.phases)

    def complete_phase(self, plan_id: str, phase_id: str) -> DecompositionPlan:
        """Complete a phase and return blocked dependents whose dependencies are all done to pending."""
        plan = self.require(plan_id)
        phase = _find_phase(plan, phase_id)
        validate_transition(
            PHASE_TRANSITIONS, phase.status.value, PhaseStatus.COMPLETED.value, subject="phase status"
        )
        if phase.status is not PhaseStatus.COMPLETED:
            phase.status = PhaseStatus.COMPLETED
            phase.completed_at = self.clock()
        done = {item.id for item in plan.phases if item.status is PhaseStatus.COMPLETED}
        for other in plan.phases:
            if (
                other.status is PhaseStatus.BLOCKED
                and phase_id in other.dependencies
                and all(dep in done for dep in other.dependencies)
            ):
                other.status = PhaseStatus.PENDING
        return self.update(plan_id, phases=plan.phases)

    def remove_phase(self, plan_id: str, phase_id: str) -> DecompositionPlan:
        plan = self.require(plan_id)
        _find_phase(plan, phase_id)
        phases = [phase for phase in plan.phases if phase.id != phase_id]
        for phase in phases:
            phase.dependencies = [dep for dep in phase.dependencies if dep != phase_id]
        tasks = [task for task in plan.migration_tasks if task.phase_id != phase_id]
        return self.update(plan_id, phases=phases, migration_tasks=tasks)

    def add_team_mapping(
        self, plan_id: str, team_id: str, team_name: str, modules: Iterable[str] = ()
    ) -> DecompositionPlan:
        plan = self.require(plan_id)
        if any(mapping.team_id == team_id for mapping in plan.team_module_mapping):
            raise ValidationError(f"Team mapping already exists for team: {team_id}", field="team_id")
        mapping = TeamModuleMapping(team_id=team_id, team_name=team_name, modules=list(modules))
        return self.update(plan_id, team_module_mapping=[*plan.team_module_mapping, mapping])

    def add_migration_task(
        self, plan_id: str, phase_id: str, description: str, *, assignee: str | None = None
    ) -> DecompositionPlan:
        plan = self.require(plan_id)
        _find_phase(plan, phase_id)
        task = MigrationTask(
            id=_next_sequence_id(TASK_ID_PREFIX, (item.id for item in plan.migration_tasks)),
            phase_id=phase_id,
            description=description,
            assignee=assignee,
        )
        return self.update(plan_id, migration_tasks=[*plan.migration_tasks, task])

    def update_task_status(
        self, plan_id: str, task_id: str, status: TaskStatus | str
    ) -> DecompositionPlan:
        plan = self.require(plan_id)
        task = _find_task(plan, task_id)
        task.status = _coerce_task_status(status)
        return self.update(plan_id, migration_tasks=plan.migration_tasks)

