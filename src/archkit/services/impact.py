"""Change and deprecation impact over the incoming side of the link graph."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass
from typing import Literal

from archkit.exceptions import NotFoundError
from archkit.model import INACTIVE_STATUSES, Artifact, ArtifactType
from archkit.services.link import LinkService
from archkit.storage.file_store import FileStore

Priority = Literal["high", "medium", "low"]

TYPE_WEIGHTS: dict[ArtifactType, int] = {
    ArtifactType.RFC: 3,
    ArtifactType.ADR: 2,
    ArtifactType.DECOMPOSITION: 1,
}
STATUS_WEIGHTS: dict[str, int] = {
    "approved": 3,
    "accepted": 3,
    "implemented": 3,
    "review": 2,
    "proposed": 2,
    "draft": 1,
    "pending": 1,
    "deprecated": 0,
    "superseded": 0,
    "rejected": 0,
}

_DIRECT_POINTS = 10
_TRANSITIVE_POINTS = 5
_DEPTH_POINTS = 2
_MAX_RISK = 100
_HIGH_CRITICALITY = 6
_MEDIUM_CRITICALITY = 3
_PRIORITY_ORDER: dict[str, int] = {"high": 0, "medium": 1, "low": 2}


@dataclass(frozen=True)
class Dependent:
    id: str
    depth: int
    artifact: Artifact | None = None

    @property
    def direct(self) -> bool:
        return self.depth == 1


@dataclass(frozen=True)
class ImpactReport:
    artifact_id: str
    direct_dependents: tuple[str, ...]
    transitive_dependents: tuple[str, ...]
    risk_score: int
    max_depth: int


@dataclass(frozen=True)
class ImpactTask:
    artifact_id: str
    action: str
    priority: Priority
    depth: int


@dataclass(frozen=True)
class ImpactChecklist:
    artifact_id: str
    tasks: tuple[ImpactTask, ...]


def criticality(artifact: Artifact | None) -> int:
    """Type weight times status weight; unknown or zero weights count as 1."""
    if artifact is None:
        return 1
    type_weight = TYPE_WEIGHTS.get(artifact.type) or 1
    status_weight = STATUS_WEIGHTS.get(artifact.status) or 1
    return type_weight * status_weight


def priority_for(dependent: Dependent) -> Priority:
    # Direct dependents that still carry a live decision must migrate first.
    if (
        dependent.direct
        and dependent.artifact is not None
        and dependent.artifact.status not in INACTIVE_STATUSES
    ):
        return "high"
    score = criticality(dependent.artifact)
    if score >= _HIGH_CRITICALITY:
        return "high"
    if score >= _MEDIUM_CRITICALITY:
        return "medium"
    return "low"


def risk_score(dependents: list[Dependent]) -> int:
    if not dependents:
        return 0
    score = 0
    for dependent in dependents:
        score += _DIRECT_POINTS if dependent.direct else _TRANSITIVE_POINTS
        if dependent.artifact is not None:
            score += criticality(dependent.artifact)
    score += max(dependent.depth for dependent in dependents) * _DEPTH_POINTS
    return min(_MAX_RISK, score)


class ImpactAnalysisService:
    def __init__(self, store: FileStore, links: LinkService | None = None) -> None:
        self.store = store
        self.links = links or LinkService(store)

    def dependents(self, artifact_id: str) -> list[Dependent]:
        """Breadth-first walk over incoming links, recording first-seen depth."""
        if not self.store.exists(artifact_id):
            raise NotFoundError("Artifact", artifact_id)
        visited = {artifact_id}
        queue: deque[tuple[str, int]] = deque()
        for link in self.links.get_links(artifact_id).incoming:
            if link.source_id not in visited:
                visited.add(link.source_id)
                queue.append((link.source_id, 1))
        found: list[Dependent] = []
        while queue:
            current, depth = queue.popleft()
            found.append(Dependent(id=current, depth=depth, artifact=self.store.load(current)))
            for link in self.links.get_links(current).incoming:
                if link.source_id not in visited:
                    visited.add(link.source_id)
                    queue.append((link.source_id, depth + 1))
        return found

    def analyze_impact(self, artifact_id: str) -> ImpactReport:
        dependents = self.dependents(artifact_id)
        return ImpactReport(
            artifact_id=artifact_id,
            direct_dependents=tuple(item.id for item in dependents if item.direct),
            transitive_dependents=tuple(item.id for item in dependents if not item.direct),
            risk_score=risk_score(dependents),
            max_depth=max((item.depth for item in dependents), default=0),
        )

    def calculate_risk_score(self, artifact_id: str) -> int:
        return risk_score(self.dependents(artifact_id))

    def generate_deprecation_checklist(self, artifact_id: str) -> ImpactChecklist:
        tasks: list[ImpactTask] = []
        for dependent in self.dependents(artifact_id):
            if dependent.direct:
                action = f"Update {dependent.id} to remove direct dependency on {artifact_id}"
            else:
                action = (
                    f"Review {dependent.id} for transitive dependency on {artifact_id} "
                    f"(depth: {dependent.depth})"
                )
            tasks.append(
                ImpactTask(
                    artifact_id=dependent.id,
                    action=action,
                    priority=priority_for(dependent),
                    depth=dependent.depth,
                )
            )
        tasks.sort(key=lambda task: (_PRIORITY_ORDER[task.priority], task.depth, task.artifact_id))
        return ImpactChecklist(artifact_id=artifact_id, tasks=tuple(tasks))
