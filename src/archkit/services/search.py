from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import datetime

from archkit.model import ADR, RFC, Artifact, ArtifactType, DecompositionPlan
from archkit.storage.file_store import ArtifactFilters, FileStore

FIELD_WEIGHTS: dict[str, int] = {
    "title": 10,
    "tags": 8,
    "problem_statement": 5,
    "context": 5,
    "rationale": 5,
    "decision": 4,
    "recommended_approach": 4,
    "content": 1,
}

_SNIPPET_LENGTH = 150
_SNIPPET_LEAD = 30
_ELLIPSIS = "..."


@dataclass(frozen=True)
class SearchField:
    name: str
    content: str
    weight: int


@dataclass(frozen=True)
class SearchResult:
    artifact: Artifact
    score: int
    snippet: str


def tokenize(text: str) -> list[str]:
    return [term for term in text.lower().split() if term]


def _content(name: str, text: str) -> SearchField:
    return SearchField(name=name, content=text, weight=FIELD_WEIGHTS["content"])


def _weighted(name: str, text: str) -> SearchField:
    return SearchField(name=name, content=text, weight=FIELD_WEIGHTS[name])


def searchable_fields(artifact: Artifact) -> list[SearchField]:
    found = [_weighted("title", artifact.title), _weighted("tags", " ".join(artifact.tags))]
    if isinstance(artifact, RFC):
        found += [
            _weighted("problem_statement", artifact.problem_statement),
            _weighted("recommended_approach", artifact.recommended_approach),
            _content("success_criteria", " ".join(artifact.success_criteria)),
            _content("migration_path", artifact.migration_path),
            _content("rollback_plan", artifact.rollback_plan),
            _content("security_notes", artifact.security_notes),
            _content("cost_model", artifact.cost_model),
            _content("timeline", artifact.timeline),
        ]
        found += [_content("option", f"{item.name} {item.description}") for item in artifact.options]
    elif isinstance(artifact, ADR):
        found += [
            _weighted("context", artifact.context),
            _weighted("decision", artifact.decision),
            _content("consequences", " ".join(artifact.consequences)),
        ]
        found += [
            _content("alternative", f"{item.name} {item.description}")
            for item in artifact.alternatives_considered
        ]
    elif isinstance(artifact, DecompositionPlan):
        found += [
            _weighted("rationale", artifact.rationale),
            _content("success_metrics", " ".join(artifact.success_metrics)),
        ]
        found += [_content("phase", f"{item.name} {item.description}") for item in artifact.phases]
        found += [_content("task", item.description) for item in artifact.migration_tasks]
        found += [
            _content("team", f"{item.team_name} {' '.join(item.modules)}")
            for item in artifact.team_module_mapping
        ]
    return found


def snippet(content: str, terms: list[str]) -> str:
    if not content:
        return ""
    lowered = content.lower()
    positions = [lowered.find(term) for term in terms]
    hits = [position for position in positions if position >= 0]
    if not hits:
        if len(content) > _SNIPPET_LENGTH:
            return content[:_SNIPPET_LENGTH] + _ELLIPSIS
        return content
    start = max(0, min(hits) - _SNIPPET_LEAD)
    end = min(len(content), start + _SNIPPET_LENGTH)
    text = content[start:end]
    if start > 0:
        text = _ELLIPSIS + text
    if end < len(content):
        text = text + _ELLIPSIS
    return text


def score_fields(fields: list[SearchField], terms: list[str]) -> tuple[int, str]:
    """Sum of match count times weight per field, plus the best field's text."""
    total = 0
    best_score = 0
    best_content = ""
    patterns = [re.compile(re.escape(term), re.IGNORECASE) for term in terms]
    for item in fields:
        matches = sum(len(pattern.findall(item.content)) for pattern in patterns)
        if not matches:
            continue
        field_score = matches * item.weight
        total += field_score
        if field_score > best_score:
            best_score = field_score
            best_content = item.content
    return total, best_content


class SearchService:
    def __init__(self, store: FileStore) -> None:
        self.store = store

    def search(
        self,
        query: str,
        *,
        artifact_type: ArtifactType | None = None,
        date_from: datetime | None = None,
        date_to: datetime | None = None,
    ) -> list[SearchResult]:
        terms = tokenize(query)
        if not terms:
            return []
        filters = ArtifactFilters(type=artifact_type, date_from=date_from, date_to=date_to)
        results: list[SearchResult] = []
        for artifact in self.store.list(filters):
            score, best = score_fields(searchable_fields(artifact), terms)
            if score > 0:
                results.append(SearchResult(artifact=artifact, score=score, snippet=snippet(best, terms)))
        results.sort(key=lambda item: (-item.score, item.artifact.id))
        return results
