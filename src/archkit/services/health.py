"""Health scoring.

Two scorers ship side by side and are never merged:

* ``EnhancedHealthStrategy`` scores each artifact from 100 down using
  completeness, freshness and relationship penalties.
* ``BasicHealthStrategy`` collects a corpus-wide issue list and derives one
  score from the share of healthy artifacts and the issue severities.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Callable, Literal, Mapping, Sequence, Union

from archkit.config import HealthConfig
from archkit.defaults import section_missing
from archkit.exceptions import ValidationError
from archkit.model import STALE_TARGET_STATUSES, Artifact, ReferenceType, utcnow
from archkit.services.graph import CircularDependency, GraphService, find_cycles
from archkit.services.link import LinkService
from archkit.storage.file_store import FileStore

Clock = Callable[[], datetime]
StrategyName = Literal["basic", "enhanced"]

_SECONDS_PER_DAY = 86400
_DAYS_PER_MONTH = 30
_MISSING_TITLE_POINTS = 20
_MISSING_OWNER_POINTS = 10
_NO_TAGS_POINTS = 5
_MISSING_SECTION_POINTS = 5

_NO_LINKS_REASON = "No outgoing links"
_STALE_REFERENCE_REASON = "Stale reference"
_STALENESS_REASON = "Staleness"


def days_between(earlier: datetime, later: datetime) -> int:
    """Whole days between two instants, rounded up."""
    seconds = abs((later - earlier).total_seconds())
    return math.ceil(seconds / _SECONDS_PER_DAY)


def _clamp(score: float) -> int:
    return max(0, min(100, int(score)))


@dataclass(frozen=True)
class HealthPenalty:
    reason: str
    points: int
    details: str = ""


@dataclass(frozen=True)
class HealthIssue:
    type: str
    severity: str
    message: str


@dataclass(frozen=True)
class HealthScore:
    artifact_id: str
    score: int
    issues: tuple[HealthIssue, ...] = ()


@dataclass(frozen=True)
class HealthBreakdown:
    completeness: int
    freshness: int
    relationships: int
    penalties: tuple[HealthPenalty, ...] = ()

    @property
    def total_penalty(self) -> int:
        return sum(penalty.points for penalty in self.penalties)


@dataclass(frozen=True)
class HealthReportSummary:
    average: int
    below_threshold: int
    critical_issues: int


@dataclass(frozen=True)
class EnhancedHealthReport:
    artifacts: tuple[HealthScore, ...]
    summary: HealthReportSummary
    circular_dependencies: tuple[CircularDependency, ...] = ()
    skipped: int = 0


@dataclass(frozen=True)
class ThresholdResult:
    passed: bool
    failed_count: int


def _issue_for(penalty: HealthPenalty) -> HealthIssue:
    if penalty.reason == _NO_LINKS_REASON:
        issue_type, severity = "missing_links", "warning"
    elif penalty.reason == _STALE_REFERENCE_REASON:
        issue_type, severity = "stale_reference", "warning"
    elif penalty.reason == _STALENESS_REASON:
        issue_type = "staleness"
        severity = "error" if penalty.points >= 15 else "warning"
    else:
        issue_type = "incomplete"
        severity = "error" if penalty.points >= 20 else "warning"
    return HealthIssue(type=issue_type, severity=severity, message=penalty.details or penalty.reason)


class EnhancedHealthStrategy:
    name = "enhanced"

    def __init__(
        self,
        store: FileStore,
        *,
        links: LinkService | None = None,
        graph: GraphService | None = None,
        config: HealthConfig | None = None,
        required_sections: Mapping[str, Sequence[str]] | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.links = links or LinkService(store)
        self.graph = graph or GraphService(store, self.links)
        self.config = config or HealthConfig()
        self.required_sections = {key: list(value) for key, value in (required_sections or {}).items()}
        self.clock = clock

    def calculate_health(self, artifact_id: str) -> HealthScore:
        artifact = self.store.load(artifact_id)
        if artifact is None:
            return HealthScore(
                artifact_id=artifact_id,
                score=0,
                issues=(
                    HealthIssue(
                        type="incomplete",
                        severity="critical",
                        message=f"Artifact {artifact_id} not found",
                    ),
                ),
            )
        return self._score(artifact)

    def get_health_breakdown(self, artifact_id: str) -> HealthBreakdown:
        artifact = self.store.load(artifact_id)
        if artifact is None:
            return HealthBreakdown(
                completeness=0,
                freshness=0,
                relationships=0,
                penalties=(
                    HealthPenalty(
                        reason="Artifact not found",
                        points=100,
                        details=f"Artifact {artifact_id} does not exist",
                    ),
                ),
            )
        return self._breakdown(artifact)

    def calculate_all_health(self, threshold: int | None = None) -> EnhancedHealthReport:
        effective = self.config.threshold if threshold is None else threshold
        scores = tuple(self._score(artifact) for artifact in self.store.list())
        skipped = len(self.store.last_skipped)
        cycles = tuple(self.graph.detect_circular_dependencies())
        average = round(sum(item.score for item in scores) / len(scores)) if scores else 100
        critical = sum(
            1 for item in scores for issue in item.issues if issue.severity == "critical"
        ) + sum(1 for cycle in cycles if cycle.severity == "critical")
        return EnhancedHealthReport(
            artifacts=scores,
            summary=HealthReportSummary(
                average=average,
                below_threshold=sum(1 for item in scores if item.score < effective),
                critical_issues=critical,
            ),
            circular_dependencies=cycles,
            skipped=skipped,
        )

    def check_threshold(self, threshold: int | None = None) -> ThresholdResult:
        report = self.calculate_all_health(threshold)
        failed = report.summary.below_threshold
        return ThresholdResult(passed=failed == 0, failed_count=failed)

    def _score(self, artifact: Artifact) -> HealthScore:
        breakdown = self._breakdown(artifact)
        return HealthScore(
            artifact_id=artifact.id,
            score=_clamp(100 - breakdown.total_penalty),
            issues=tuple(_issue_for(penalty) for penalty in breakdown.penalties),
        )

    def _breakdown(self, artifact: Artifact) -> HealthBreakdown:
        penalties: list[HealthPenalty] = []
        completeness = self._completeness(artifact, penalties)
        freshness = self._freshness(artifact, penalties)
        relationships = self._relationships(artifact, penalties)
        return HealthBreakdown(
            completeness=completeness,
            freshness=freshness,
            relationships=relationships,
            penalties=tuple(penalties),
        )

    def _completeness(self, artifact: Artifact, penalties: list[HealthPenalty]) -> int:
        found: list[HealthPenalty] = []
        if not artifact.title.strip():
            found.append(HealthPenalty("Missing title", _MISSING_TITLE_POINTS, "Artifact has no title"))
        if not (artifact.owner or "").strip():
            found.append(
                HealthPenalty("Missing owner", _MISSING_OWNER_POINTS, "Artifact has no owner assigned")
            )
        if not artifact.tags:
            found.append(
                HealthPenalty("No tags", _NO_TAGS_POINTS, "Artifact has no tags for categorization")
            )
        for section in self.required_sections.get(artifact.type.value, ()):
            if section_missing(getattr(artifact, section, None)):
                found.append(
                    HealthPenalty(
                        "Missing section",
                        _MISSING_SECTION_POINTS,
                        f"Section '{section}' is empty or still holds placeholder text",
                    )
                )
        penalties.extend(found)
        return _clamp(100 - sum(item.points for item in found))

    def _freshness(self, artifact: Artifact, penalties: list[HealthPenalty]) -> int:
        days = days_between(artifact.updated_at, self.clock())
        limit = self.config.staleness_threshold_days
        if days <= limit:
            return 100
        months = (days - limit) // _DAYS_PER_MONTH
        points = months * self.config.staleness_penalty_per_month
        if points <= 0:
            return 100
        penalties.append(
            HealthPenalty(
                _STALENESS_REASON,
                points,
                f"Not updated in {days} days ({months} months over threshold)",
            )
        )
        return _clamp(100 - points)

    def _relationships(self, artifact: Artifact, penalties: list[HealthPenalty]) -> int:
        found: list[HealthPenalty] = []
        outgoing = self.links.get_links(artifact.id).outgoing
        if not outgoing:
            found.append(
                HealthPenalty(
                    _NO_LINKS_REASON,
                    self.config.no_links_penalty,
                    "Artifact has no connections to other artifacts",
                )
            )
        for link in outgoing:
            target = self.store.load(link.target_id)
            if target is not None and target.status in STALE_TARGET_STATUSES:
                found.append(
                    HealthPenalty(
                        _STALE_REFERENCE_REASON,
                        self.config.stale_reference_penalty,
                        f"References {target.status} artifact: {link.target_id}",
                    )
                )
        penalties.extend(found)
        return _clamp(100 - sum(item.points for item in found))


@dataclass(frozen=True)
class CorpusIssue:
    type: str
    severity: Literal["error", "warning", "info"]
    artifact_id: str
    message: str
    suggestion: str


@dataclass(frozen=True)
class IssueSummary:
    errors: int = 0
    warnings: int = 0
    info: int = 0


@dataclass
class TypeSummary:
    total: int = 0
    healthy: int = 0
    issues: int = 0


@dataclass(frozen=True)
class BasicHealthReport:
    timestamp: datetime
    total_artifacts: int
    healthy_artifacts: int
    issues: tuple[CorpusIssue, ...]
    score: int
    summary: IssueSummary
    by_type: dict[str, TypeSummary] = field(default_factory=dict)
    skipped: int = 0


@dataclass(frozen=True)
class QuickStatus:
    status: Literal["healthy", "warning", "critical"]
    score: int
    issue_count: int


_DRAFT_STATUSES = frozenset({"draft", "proposed"})


class BasicHealthStrategy:
    name = "basic"

    def __init__(
        self,
        store: FileStore,
        *,
        config: HealthConfig | None = None,
        clock: Clock = utcnow,
    ) -> None:
        self.store = store
        self.config = config or HealthConfig()
        self.clock = clock

    def run_health_check(self) -> BasicHealthReport:
        artifacts = self.store.list()
        skipped = len(self.store.last_skipped)
        now = self.clock()
        issues: list[CorpusIssue] = []
        known = {artifact.id for artifact in artifacts}
        referenced = {ref.target_id for artifact in artifacts for ref in artifact.references}

        for artifact in artifacts:
            issues.extend(self._artifact_issues(artifact, known, now))

        if len(artifacts) > 1:
            for artifact in artifacts:
                if artifact.id not in referenced and not artifact.references:
                    issues.append(
                        CorpusIssue(
                            type="orphaned",
                            severity="info",
                            artifact_id=artifact.id,
                            message="Not connected to any other artifacts",
                            suggestion="Consider linking to related artifacts",
                        )
                    )

        adjacency = {
            artifact.id: [ref.target_id for ref in artifact.references] for artifact in artifacts
        }
        for cycle in find_cycles([artifact.id for artifact in artifacts], adjacency):
            issues.append(
                CorpusIssue(
                    type="circular-dependency",
                    severity="error",
                    artifact_id=cycle.cycle[0],
                    message=f"Circular dependency: {' -> '.join(cycle.cycle)}",
                    suggestion="Break the circular dependency",
                )
            )

        summary = IssueSummary(
            errors=sum(1 for issue in issues if issue.severity == "error"),
            warnings=sum(1 for issue in issues if issue.severity == "warning"),
            info=sum(1 for issue in issues if issue.severity == "info"),
        )
        flagged = {issue.artifact_id for issue in issues}
        by_type: dict[str, TypeSummary] = {}
        for artifact in artifacts:
            entry = by_type.setdefault(artifact.type.value, TypeSummary())
            entry.total += 1
            if artifact.id in flagged:
                entry.issues += 1
            else:
                entry.healthy += 1

        healthy = len(artifacts) - len(flagged & known)
        if artifacts:
            score = _clamp(
                round(healthy / len(artifacts) * 100 - summary.errors * 5 - summary.warnings * 2)
            )
        else:
            score = 100
        return BasicHealthReport(
            timestamp=now,
            total_artifacts=len(artifacts),
            healthy_artifacts=healthy,
            issues=tuple(issues),
            score=score,
            summary=summary,
            by_type=by_type,
            skipped=skipped,
        )

    def quick_status(self) -> QuickStatus:
        report = self.run_health_check()
        if report.summary.errors > 0 or report.score < 50:
            status = "critical"
        elif report.summary.warnings > 0 or report.score < 80:
            status = "warning"
        else:
            status = "healthy"
        return QuickStatus(status=status, score=report.score, issue_count=len(report.issues))

    def _artifact_issues(
        self, artifact: Artifact, known: set[str], now: datetime
    ) -> list[CorpusIssue]:
        issues: list[CorpusIssue] = []
        idle = days_between(artifact.updated_at, now)
        if idle > self.config.stale_days:
            issues.append(
                CorpusIssue(
                    type="stale",
                    severity="warning",
                    artifact_id=artifact.id,
                    message=f"Not updated in {idle} days",
                    suggestion="Review and update or mark as deprecated",
                )
            )
        if artifact.status in _DRAFT_STATUSES:
            age = days_between(artifact.created_at, now)
            if age > self.config.draft_max_days:
                issues.append(
                    CorpusIssue(
                        type="draft-too-long",
                        severity="warning",
                        artifact_id=artifact.id,
                        message=f"Draft for {age} days",
                        suggestion="Move to review or close if abandoned",
                    )
                )
        for ref in artifact.references:
            if ref.target_id not in known:
                issues.append(
                    CorpusIssue(
                        type="broken-reference",
                        severity="error",
                        artifact_id=artifact.id,
                        message=f"References non-existent artifact: {ref.target_id}",
                        suggestion="Remove or fix the broken reference",
                    )
                )
        if not (artifact.owner or "").strip():
            issues.append(
                CorpusIssue(
                    type="missing-owner",
                    severity="warning",
                    artifact_id=artifact.id,
                    message="No owner assigned",
                    suggestion="Assign an owner accountable for this artifact",
                )
            )
        if len(artifact.tags) < self.config.min_tags:
            issues.append(
                CorpusIssue(
                    type="no-tags",
                    severity="info",
                    artifact_id=artifact.id,
                    message="No tags assigned",
                    suggestion="Add relevant tags for better discoverability",
                )
            )
        if (
            artifact.status == "superseded"
            and not getattr(artifact, "superseded_by", None)
            and not any(ref.reference_type == ReferenceType.SUPERSEDES for ref in artifact.references)
        ):
            issues.append(
                CorpusIssue(
                    type="superseded-active",
                    severity="warning",
                    artifact_id=artifact.id,
                    message="Marked as superseded but no superseding artifact linked",
                    suggestion="Link to the superseding artifact",
                )
            )
        return issues


HealthStrategy = Union[BasicHealthStrategy, EnhancedHealthStrategy]
HEALTH_STRATEGIES: dict[str, type] = {
    BasicHealthStrategy.name: BasicHealthStrategy,
    EnhancedHealthStrategy.name: EnhancedHealthStrategy,
}


def health_strategy(
    name: StrategyName,
    store: FileStore,
    *,
    config: HealthConfig | None = None,
    links: LinkService | None = None,
    graph: GraphService | None = None,
    required_sections: Mapping[str, Sequence[str]] | None = None,
    clock: Clock = utcnow,
) -> HealthStrategy:
    if name == BasicHealthStrategy.name:
        return BasicHealthStrategy(store, config=config, clock=clock)
    if name == EnhancedHealthStrategy.name:
        return EnhancedHealthStrategy(
            store,
            links=links,
            graph=graph,
            config=config,
            required_sections=required_sections,
            clock=clock,
        )
    allowed = ", ".join(sorted(HEALTH_STRATEGIES))
    raise ValidationError(f"Unknown health strategy '{name}'. Expected one of: {allowed}", field="strategy")
