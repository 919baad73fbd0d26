from __future__ import annotations

from pathlib import Path

import pytest

from archkit.exceptions import NotFoundError, ValidationError
from archkit.hooks import ARTIFACT_DELETED, ARTIFACT_SAVED
from archkit.model import ADR, RFC, PhaseStatus, TaskStatus
from archkit.services.artifacts import ADR_TRANSITIONS, PHASE_TRANSITIONS, validate_transition
from archkit.storage.file_store import ArtifactFilters
from archkit.workspace import Workspace
from tests.artifact_helpers import BASE_TIME, FrozenClock, save_artifact


def test_create_fills_placeholders_and_initial_status(workspace: Workspace) -> None:
    rfc = workspace.rfcs.create("Adopt gRPC", owner="alice", tags=["api"])
    assert isinstance(rfc, RFC)
    assert rfc.id == "RFC-0001"
    assert rfc.status == "draft"
    assert rfc.created_at == rfc.updated_at == BASE_TIME
    assert rfc.problem_statement.startswith("[")
    assert rfc.options[0].name == "Option 1"
    assert workspace.rfcs.require("RFC-0001") == rfc

    adr = workspace.adrs.create("Use Postgres", decision="Postgres it is")
    assert (adr.id, adr.status, adr.decision) == ("ADR-0001", "proposed", "Postgres it is")
    plan = workspace.decompositions.create("Split billing")
    assert [phase.id for phase in plan.phases] == ["phase-001"]


def test_create_rejects_bad_input(workspace: Workspace) -> None:
    with pytest.raises(ValidationError):
        workspace.rfcs.create("   ")
    with pytest.raises(ValidationError):
        workspace.rfcs.create("Title", colour="blue")
    with pytest.raises(ValidationError):
        workspace.rfcs.create("Title", status="approved")
    assert workspace.rfcs.list() == []


def test_create_skips_ids_already_on_disk(workspace: Workspace) -> None:
    save_artifact(workspace.store, "RFC-0001")
    assert workspace.rfcs.create("Second").id == "RFC-0002"


def test_create_uses_configured_defaults(arch_dir: Path, clock: FrozenClock) -> None:
    arch_dir.mkdir(parents=True)
    (arch_dir / "config.yaml").write_text(
        "defaults:\n  owner: platform\n  tags:\n    adr: [architecture]\n", encoding="utf-8"
    )
    workspace = Workspace.open(arch_dir, clock=clock)
    adr = workspace.adrs.create("Decision")
    assert adr.owner == "platform"
    assert adr.tags == ["architecture"]
    assert workspace.rfcs.create("Proposal").tags == []


def test_update_merges_and_advances_timestamp(workspace: Workspace, clock: FrozenClock) -> None:
    rfc = workspace.rfcs.create("Draft")
    updated = workspace.rfcs.update(rfc.id, title="Final", owner=None)
    assert updated.title == "Final"
    assert updated.owner == rfc.owner
    assert updated.updated_at > rfc.updated_at
    clock.advance(days=1)
    again = workspace.rfcs.update(rfc.id, timeline="Q3")
    assert again.updated_at == clock.now
    assert workspace.rfcs.require(rfc.id).timeline == "Q3"


def test_update_rejects_unknown_fields_and_missing_artifacts(workspace: Workspace) -> None:
    rfc = workspace.rfcs.create("Draft")
    with pytest.raises(ValidationError):
        workspace.rfcs.update(rfc.id, created_at=BASE_TIME)
    with pytest.raises(NotFoundError):
        workspace.rfcs.update("RFC-0404", title="x")
    with pytest.raises(NotFoundError):
        workspace.adrs.require(rfc.id)


def test_rfc_lifecycle(workspace: Workspace) -> None:
    rfc = workspace.rfcs.create("Lifecycle")
    with pytest.raises(ValidationError):
        workspace.rfcs.change_status(rfc.id, "approved")
    with pytest.raises(ValidationError):
        workspace.rfcs.change_status(rfc.id, "accepted")
    for status in ("review", "review", "approved", "implemented"):
        workspace.rfcs.change_status(rfc.id, status)
    assert workspace.rfcs.require(rfc.id).status == "implemented"
    with pytest.raises(ValidationError):
        workspace.rfcs.change_status(rfc.id, "draft")


def test_validate_transition_table() -> None:
    validate_transition(ADR_TRANSITIONS, "accepted", "deprecated")
    validate_transition(PHASE_TRANSITIONS, "blocked", "pending", subject="phase status")
    with pytest.raises(ValidationError) as excinfo:
        validate_transition(ADR_TRANSITIONS, "deprecated", "accepted")
    assert excinfo.value.context["from"] == "deprecated"


def test_superseding_requires_an_existing_successor(workspace: Workspace) -> None:
    old = workspace.adrs.create("Old")
    workspace.adrs.change_status(old.id, "accepted")
    before = (workspace.arch_dir / "adr" / f"{old.id}.md").read_text(encoding="utf-8")

    with pytest.raises(ValidationError):
        workspace.adrs.change_status(old.id, "superseded")
    with pytest.raises(ValidationError):
        workspace.adrs.mark_superseded(old.id, old.id)
    with pytest.raises(NotFoundError):
        workspace.adrs.mark_superseded(old.id, "ADR-0404")
    assert (workspace.arch_dir / "adr" / f"{old.id}.md").read_text(encoding="utf-8") == before

    new = workspace.adrs.create("New")
    superseded = workspace.adrs.mark_superseded(old.id, new.id)
    assert isinstance(superseded, ADR)
    assert (superseded.status, superseded.superseded_by) == ("superseded", new.id)


def test_successor_is_checked_without_a_status_change(workspace: Workspace) -> None:
    adr = workspace.adrs.create("Pending")
    with pytest.raises(NotFoundError):
        workspace.adrs.update(adr.id, superseded_by="ADR-9999")
    with pytest.raises(ValidationError):
        workspace.adrs.update(adr.id, superseded_by=adr.id)
    assert workspace.adrs.require(adr.id).superseded_by is None

    other = workspace.adrs.create("Successor")
    assert workspace.adrs.update(adr.id, superseded_by=other.id).superseded_by == other.id


def test_rfc_signoff_and_adr_alternative(workspace: Workspace) -> None:
    rfc = workspace.rfcs.create("Needs review")
    signed = workspace.rfcs.add_signoff(rfc.id, "bob", role="architect", approved=True)
    assert signed.signoffs[-1].date == BASE_TIME
    pending = workspace.rfcs.add_signoff(rfc.id, "carol")
    assert pending.signoffs[-1].date is None
    assert len(workspace.rfcs.require(rfc.id).signoffs) == 2

    adr = workspace.adrs.create("Queue")
    updated = workspace.adrs.add_alternative(adr.id, "SQS", rejection_reason="Vendor lock-in")
    assert updated.alternatives_considered[-1].name == "SQS"


def test_phases_and_unblocking(workspace: Workspace) -> None:
    plan = workspace.decompositions.create("Split")
    plan = workspace.decompositions.add_phase(plan.id, "Cut over", dependencies=["phase-001"])
    assert plan.phases[-1].id == "phase-002"
    with pytest.raises(ValidationError):
        workspace.decompositions.add_phase(plan.id, "Orphan", dependencies=["phase-009"])
    with pytest.raises(ValidationError):
        workspace.decompositions.update_phase(plan.id, "phase-001", status="completed")
    with pytest.raises(ValidationError):
        workspace.decompositions.update_phase(plan.id, "phase-001", status="done")
    with pytest.raises(NotFoundError):
        workspace.decompositions.update_phase(plan.id, "phase-404", name="x")

    workspace.decompositions.update_phase(plan.id, "phase-001", status="in-progress")
    workspace.decompositions.update_phase(plan.id, "phase-002", status="in-progress")
    workspace.decompositions.update_phase(plan.id, "phase-002", status=PhaseStatus.BLOCKED)
    plan = workspace.decompositions.complete_phase(plan.id, "phase-001")

    first, second = plan.phases
    assert first.status is PhaseStatus.COMPLETED
    assert first.completed_at == BASE_TIME
    assert second.status is PhaseStatus.PENDING
    stored = workspace.decompositions.require(plan.id)
    assert [phase.status for phase in stored.phases] == [PhaseStatus.COMPLETED, PhaseStatus.PENDING]


def test_migration_tasks_and_team_mapping(workspace: Workspace) -> None:
    plan = workspace.decompositions.create("Split")
    with pytest.raises(NotFoundError):
        workspace.decompositions.add_migration_task(plan.id, "phase-404", "Nope")
    plan = workspace.decompositions.add_migration_task(plan.id, "phase-001", "Move tables", assignee="dana")
    plan = workspace.decompositions.add_migration_task(plan.id, "phase-001", "Move jobs")
    assert [task.id for task in plan.migration_tasks] == ["task-001", "task-002"]

    plan = workspace.decompositions.update_task_status(plan.id, "task-001", "done")
    assert plan.migration_tasks[0].status is TaskStatus.DONE
    with pytest.raises(ValidationError):
        workspace.decompositions.update_task_status(plan.id, "task-001", "finished")
    with pytest.raises(NotFoundError):
        workspace.decompositions.update_task_status(plan.id, "task-404", "done")

    plan = workspace.decompositions.add_team_mapping(plan.id, "t1", "Payments", ["billing", "invoices"])
    assert plan.team_module_mapping[0].modules == ["billing", "invoices"]
    with pytest.raises(ValidationError):
        workspace.decompositions.add_team_mapping(plan.id, "t1", "Again")


def test_remove_phase_drops_its_tasks_and_dependency_edges(workspace: Workspace) -> None:
    plan = workspace.decompositions.create("Split")
    workspace.decompositions.add_phase(plan.id, "Second", dependencies=["phase-001"])
    workspace.decompositions.add_migration_task(plan.id, "phase-001", "Task")
    plan = workspace.decompositions.remove_phase(plan.id, "phase-001")
    assert [phase.id for phase in plan.phases] == ["phase-002"]
    assert plan.phases[0].dependencies == []
    assert plan.migration_tasks == []


def test_list_is_scoped_to_the_service_type(workspace: Workspace) -> None:
    workspace.rfcs.create("One", owner="alice")
    workspace.rfcs.create("Two", owner="bob")
    workspace.adrs.create("Three", owner="alice")
    owned = workspace.rfcs.list(ArtifactFilters(owner="alice"))
    assert [item.id for item in owned] == ["RFC-0001"]
    assert len(workspace.adrs.list()) == 1


def test_hooks_observe_saves_and_deletes(workspace: Workspace) -> None:
    events: list[tuple[str, str]] = []
    workspace.hooks.register(ARTIFACT_SAVED, lambda payload: events.append(("saved", str(payload["id"]))))
    workspace.hooks.register(
        ARTIFACT_DELETED, lambda payload: events.append(("deleted", str(payload["id"])))
    )

    rfc = workspace.rfcs.create("Observed")
    workspace.rfcs.change_status(rfc.id, "review")
    assert workspace.rfcs.delete(rfc.id) is True
    assert workspace.rfcs.delete(rfc.id) is False

    assert events == [("saved", rfc.id), ("saved", rfc.id), ("deleted", rfc.id)]
