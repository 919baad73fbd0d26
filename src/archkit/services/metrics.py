from __future__ import annotations

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime

from archkit.config import HealthConfig
from archkit.model import Artifact, ArtifactType, utcnow
from archkit.services.health import Clock, EnhancedHealthStrategy, days_between
from archkit.storage.file_store import ArtifactFilters, FileStore

UNASSIGNED_OWNER = "(unassigned)"
TOP_CONTRIBUTORS = 5
_SECONDS_PER_DAY = 86400


@dataclass(frozen=True)
class ArtifactMention:
    id: str
    title: str
    created_at: datetime


@dataclass(frozen=True)
class Metrics:
    """Corpus snapshot; averages over an empty selection are 0 days and 100 health."""

    timestamp: datetime
    total: int
    by_type: dict[str, int] = field(default_factory=dict)
    by_status: dict[str, int] = field(default_factory=dict)
    by_owner: dict[str, int] = field(default_factory=dict)
    by_month: dict[str, int] = field(default_factory=dict)
    average_age_days: int = 0
    average_health: int = 100
    stale_count: int = 0
    orphaned_count: int = 0
    oldest: ArtifactMention | None = None
    newest: ArtifactMention | None = None
    skipped: int = 0

    def top_contributors(self, limit: int = TOP_CONTRIBUTORS) -> list[tuple[str, int]]:
        return sorted(self.by_owner.items(), key=lambda item: (-item[1], item[0]))[:limit]


def _mention(artifact: Artifact) -> ArtifactMention:
    return ArtifactMention(id=artifact.id, title=artifact.title, created_at=artifact.created_at)


def orphaned_ids(corpus: list[Artifact]) -> set[str]:
    """Artifacts with neither outgoing nor incoming references.

    A lone artifact has nothing to link to and is never counted.
    """
    if len(corpus) < 2:
        return set()
    referenced = {ref.target_id for artifact in corpus for ref in artifact.references}
    return {
        artifact.id for artifact in corpus if not artifact.references and artifact.id not in referenced
    }


class MetricsService:
    def __init__(
        self,
        store: FileStore,
        *,
        health: EnhancedHealthStrategy | None = None,
        config: HealthConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.config = config or HealthConfig()
        self.health = health or EnhancedHealthStrategy(store, config=self.config, clock=clock)
        self.clock = clock

    def calculate_metrics(self, artifact_type: ArtifactType | None = None) -> Metrics:
        corpus = self.store.list()
        skipped = len(self.store.last_skipped)
        selected = (
            corpus
            if artifact_type is None
            else self.store.list(ArtifactFilters(type=artifact_type))
        )
        now = self.clock()
        types = [artifact_type] if artifact_type is not None else list(ArtifactType)
        by_type = {item.value: 0 for item in types}
        by_type.update(Counter(artifact.type.value for artifact in selected))
        if not selected:
            return Metrics(timestamp=now, total=0, by_type=by_type, skipped=skipped)

        orphans = orphaned_ids(corpus)
        ages = [(now - artifact.created_at).total_seconds() for artifact in selected]
        scores = [self.health.calculate_health(artifact.id).score for artifact in selected]
        return Metrics(
            timestamp=now,
            total=len(selected),
            by_type=by_type,
            by_status=dict(Counter(artifact.status for artifact in selected)),
            by_owner=dict(Counter(artifact.owner or UNASSIGNED_OWNER for artifact in selected)),
            by_month=dict(sorted(Counter(f"{artifact.created_at:%Y-%m}" for artifact in selected).items())),
            average_age_days=round(sum(ages) / len(ages) / _SECONDS_PER_DAY),
            average_health=round(sum(scores) / len(scores)),
            stale_count=sum(
                1 for artifact in selected if days_between(artifact.updated_at, now) > self.config.stale_days
            ),
            orphaned_count=sum(1 for artifact in selected if artifact.id in orphans),
            oldest=_mention(min(selected, key=lambda artifact: artifact.created_at)),
            newest=_mention(max(selected, key=lambda artifact: artifact.created_at)),
            skipped=skipped,
        )
