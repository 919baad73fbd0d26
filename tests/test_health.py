from __future__ import annotations

from datetime import timedelta

import pytest

from archkit.config import HealthConfig
from archkit.exceptions import ValidationError
from archkit.services.graph import GraphService
from archkit.services.health import (
    BasicHealthStrategy,
    EnhancedHealthStrategy,
    days_between,
    health_strategy,
)
from archkit.services.link import LinkService
from archkit.storage.file_store import FileStore
from tests.artifact_helpers import BASE_TIME, FrozenClock, save_artifact


@pytest.fixture
def enhanced(
    store: FileStore, links: LinkService, graph: GraphService, clock: FrozenClock
) -> EnhancedHealthStrategy:
    return EnhancedHealthStrategy(store, links=links, graph=graph, clock=clock)


@pytest.fixture
def basic(store: FileStore, clock: FrozenClock) -> BasicHealthStrategy:
    return BasicHealthStrategy(store, clock=clock)


def test_days_between_rounds_up() -> None:
    assert days_between(BASE_TIME, BASE_TIME) == 0
    assert days_between(BASE_TIME, BASE_TIME + timedelta(hours=1)) == 1
    assert days_between(BASE_TIME + timedelta(days=2), BASE_TIME) == 2


def test_linked_complete_artifact_scores_full(store: FileStore, enhanced: EnhancedHealthStrategy) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", refs=["RFC-0001"])
    assert enhanced.calculate_health("RFC-0002").score == 100
    unlinked = enhanced.calculate_health("RFC-0001")
    assert unlinked.score == 90
    assert [(issue.type, issue.severity) for issue in unlinked.issues] == [("missing_links", "warning")]


def test_completeness_penalties(store: FileStore, enhanced: EnhancedHealthStrategy) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", title="", owner="", tags=[], refs=["RFC-0001"])
    score = enhanced.calculate_health("RFC-0002")
    assert score.score == 65
    assert [(issue.type, issue.severity) for issue in score.issues] == [
        ("incomplete", "error"),
        ("incomplete", "warning"),
        ("incomplete", "warning"),
    ]
    breakdown = enhanced.get_health_breakdown("RFC-0002")
    assert breakdown.completeness == 65
    assert breakdown.freshness == 100
    assert breakdown.relationships == 100
    assert breakdown.total_penalty == 35


@pytest.mark.parametrize(
    ("days", "points", "severity"),
    [(90, 0, None), (119, 0, None), (150, 10, "warning"), (181, 15, "error")],
)
def test_staleness_penalty_per_month_over_threshold(
    store: FileStore,
    enhanced: EnhancedHealthStrategy,
    days: int,
    points: int,
    severity: str | None,
) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", refs=["RFC-0001"], updated_at=BASE_TIME - timedelta(days=days))
    score = enhanced.calculate_health("RFC-0002")
    assert score.score == 100 - points
    staleness = [issue.severity for issue in score.issues if issue.type == "staleness"]
    assert staleness == ([severity] if severity else [])


def test_reference_to_deprecated_target(store: FileStore, enhanced: EnhancedHealthStrategy) -> None:
    save_artifact(store, "ADR-0001", status="deprecated")
    save_artifact(store, "ADR-0002", status="superseded", superseded_by="ADR-0003")
    save_artifact(store, "RFC-0001", refs=["ADR-0001", "ADR-0002"])
    score = enhanced.calculate_health("RFC-0001")
    assert score.score == 70
    assert {issue.type for issue in score.issues} == {"stale_reference"}


def test_missing_artifact_scores_zero(enhanced: EnhancedHealthStrategy) -> None:
    score = enhanced.calculate_health("RFC-0404")
    assert score.score == 0
    assert score.issues[0].severity == "critical"
    assert enhanced.get_health_breakdown("RFC-0404").total_penalty == 100


def test_score_never_drops_below_zero(store: FileStore, clock: FrozenClock) -> None:
    stale = BASE_TIME - timedelta(days=900)
    save_artifact(store, "RFC-0001", title="", owner="", tags=[], updated_at=stale)
    strategy = EnhancedHealthStrategy(store, clock=clock)
    assert strategy.calculate_health("RFC-0001").score == 0


def test_required_sections_cost_points(store: FileStore, clock: FrozenClock) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", refs=["RFC-0001"], problem_statement="[Describe the problem]")
    save_artifact(store, "RFC-0003", refs=["RFC-0001"], problem_statement="Real text")
    strategy = EnhancedHealthStrategy(
        store, required_sections={"rfc": ["problem_statement", "success_criteria"]}, clock=clock
    )
    assert strategy.calculate_health("RFC-0002").score == 90
    assert strategy.calculate_health("RFC-0003").score == 95


def test_calculate_all_health_summary(store: FileStore, enhanced: EnhancedHealthStrategy) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", refs=["RFC-0001"])
    save_artifact(store, "RFC-0003", title="", refs=["RFC-0001"])
    report = enhanced.calculate_all_health()
    assert {item.artifact_id: item.score for item in report.artifacts} == {
        "RFC-0001": 90,
        "RFC-0002": 100,
        "RFC-0003": 80,
    }
    assert report.summary.average == 90
    assert report.summary.below_threshold == 0
    assert report.summary.critical_issues == 0
    assert enhanced.calculate_all_health(threshold=95).summary.below_threshold == 2
    assert enhanced.check_threshold(95).passed is False
    assert enhanced.check_threshold(80).passed is True


def test_empty_corpus_averages_full(enhanced: EnhancedHealthStrategy) -> None:
    report = enhanced.calculate_all_health()
    assert report.summary.average == 100
    assert report.artifacts == ()


def test_critical_cycles_count_toward_critical_issues(
    store: FileStore, enhanced: EnhancedHealthStrategy
) -> None:
    save_artifact(store, "RFC-0001", refs=["RFC-0002"])
    save_artifact(store, "RFC-0002", refs=["RFC-0003"])
    save_artifact(store, "RFC-0003", refs=["RFC-0001"])
    report = enhanced.calculate_all_health()
    assert len(report.circular_dependencies) == 1
    assert report.summary.critical_issues == 1


def test_basic_clean_corpus_is_healthy(store: FileStore, basic: BasicHealthStrategy) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", refs=["RFC-0001"])
    report = basic.run_health_check()
    assert report.issues == ()
    assert report.score == 100
    assert report.healthy_artifacts == 2
    assert basic.quick_status().status == "healthy"


def test_basic_empty_corpus(basic: BasicHealthStrategy) -> None:
    report = basic.run_health_check()
    assert (report.total_artifacts, report.score) == (0, 100)


def test_basic_broken_reference_is_an_error(store: FileStore, basic: BasicHealthStrategy) -> None:
    save_artifact(store, "RFC-0001")
    save_artifact(store, "RFC-0002", refs=["RFC-0001"])
    save_artifact(store, "RFC-0003", refs=["RFC-0404"])
    report = basic.run_health_check()
    assert [(issue.type, issue.artifact_id) for issue in report.issues] == [
        ("broken-reference", "RFC-0003")
    ]
    assert report.summary.errors == 1
    assert report.score == 62
    assert report.by_type["rfc"].issues == 1
    status = basic.quick_status()
    assert status.status == "critical"
    assert status.issue_count == 1


def test_basic_issue_catalogue(store: FileStore, basic: BasicHealthStrategy) -> None:
    old = BASE_TIME - timedelta(days=100)
    save_artifact(store, "RFC-0001", created_at=old, refs=["ADR-0001"])
    save_artifact(store, "ADR-0001", status="superseded", owner="", tags=[], refs=["RFC-0001"])
    save_artifact(store, "ADR-0002", status="accepted")

    report = basic.run_health_check()
    found = {(issue.type, issue.artifact_id, issue.severity) for issue in report.issues}

    assert found == {
        ("stale", "RFC-0001", "warning"),
        ("draft-too-long", "RFC-0001", "warning"),
        ("missing-owner", "ADR-0001", "warning"),
        ("no-tags", "ADR-0001", "info"),
        ("superseded-active", "ADR-0001", "warning"),
        ("orphaned", "ADR-0002", "info"),
        ("circular-dependency", "ADR-0001", "error"),
    }


def test_superseded_with_successor_is_fine(store: FileStore, basic: BasicHealthStrategy) -> None:
    save_artifact(store, "ADR-0001", status="superseded", superseded_by="ADR-0002", refs=["ADR-0002"])
    save_artifact(store, "ADR-0002", status="accepted")
    assert basic.run_health_check().issues == ()


def test_single_artifact_is_not_orphaned(store: FileStore, basic: BasicHealthStrategy) -> None:
    save_artifact(store, "RFC-0001")
    assert basic.run_health_check().issues == ()


def test_basic_thresholds_follow_config(store: FileStore, clock: FrozenClock) -> None:
    save_artifact(store, "RFC-0001", updated_at=BASE_TIME - timedelta(days=10))
    strict = BasicHealthStrategy(store, config=HealthConfig(staleDays=5), clock=clock)
    assert [issue.type for issue in strict.run_health_check().issues] == ["stale"]


def test_health_strategy_factory(store: FileStore) -> None:
    assert isinstance(health_strategy("basic", store), BasicHealthStrategy)
    assert isinstance(health_strategy("enhanced", store), EnhancedHealthStrategy)
    with pytest.raises(ValidationError):
        health_strategy("fancy", store)  # type: ignore[arg-type]
