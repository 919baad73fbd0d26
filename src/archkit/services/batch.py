"""Bulk edits over every artifact matching a filter expression.

Filter expressions are whitespace separated ``key:value`` tokens; values may
be quoted. Keys: ``type``, ``status``, ``owner``, ``tag`` (repeatable, all
required), ``id`` and ``title`` (case-insensitive regular expressions,
optionally written as ``/pattern/``), ``from``/``datefrom`` and
``to``/``dateto`` (ISO-8601 creation bounds).

Each change is applied through the owning artifact service, so status changes
obey the same transition rules as single edits. A failure on one artifact is
recorded and the rest of the batch still runs.
"""

from __future__ import annotations

import logging
import re
import shlex
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Iterable

from archkit.exceptions import ToolkitError, ValidationError
from archkit.identifiers import check_id
from archkit.model import Artifact, ArtifactType
from archkit.services.artifacts import ArtifactService
from archkit.storage.file_store import ArtifactFilters, FileStore

logger = logging.getLogger(__name__)

ServiceLookup = Callable[[ArtifactType], ArtifactService]

_DATE_FROM_KEYS = frozenset({"from", "datefrom"})
_DATE_TO_KEYS = frozenset({"to", "dateto"})


@dataclass(frozen=True)
class BatchFilter:
    filters: ArtifactFilters = field(default_factory=ArtifactFilters)
    id_pattern: re.Pattern[str] | None = None
    title_pattern: re.Pattern[str] | None = None

    def matches(self, artifact: Artifact) -> bool:
        if not self.filters.matches(artifact):
            return False
        if self.id_pattern is not None and not self.id_pattern.search(artifact.id):
            return False
        if self.title_pattern is not None and not self.title_pattern.search(artifact.title):
            return False
        return True


@dataclass(frozen=True)
class BatchUpdate:
    status: str | None = None
    owner: str | None = None
    add_tags: tuple[str, ...] = ()
    remove_tags: tuple[str, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.status is None and self.owner is None and not self.add_tags and not self.remove_tags


@dataclass(frozen=True)
class FieldChange:
    field: str
    old_value: object
    new_value: object


@dataclass(frozen=True)
class ChangePreview:
    artifact_id: str
    artifact_title: str
    changes: tuple[FieldChange, ...]


@dataclass(frozen=True)
class BatchPreview:
    matching_ids: tuple[str, ...]
    changes: tuple[ChangePreview, ...]

    @property
    def count(self) -> int:
        return len(self.matching_ids)


@dataclass(frozen=True)
class BatchFailure:
    artifact_id: str
    message: str


@dataclass(frozen=True)
class BatchResult:
    updated_ids: tuple[str, ...]
    errors: tuple[BatchFailure, ...] = ()
    dry_run: bool = False

    @property
    def updated_count(self) -> int:
        return len(self.updated_ids)

    @property
    def success(self) -> bool:
        return not self.errors


def _compile(key: str, value: str) -> re.Pattern[str]:
    if value.startswith("/") and value.rfind("/") > 0:
        value = value[1 : value.rfind("/")]
    try:
        return re.compile(value, re.IGNORECASE)
    except re.error as exc:
        raise ValidationError(f"Invalid pattern for '{key}': {exc}", field="filter") from exc


def _date(key: str, value: str) -> datetime:
    try:
        return datetime.fromisoformat(value)
    except ValueError as exc:
        raise ValidationError(f"Invalid date for '{key}': {value}", field="filter") from exc


def _artifact_type(value: str) -> ArtifactType:
    try:
        return ArtifactType(value.lower())
    except ValueError as exc:
        allowed = ", ".join(item.value for item in ArtifactType)
        raise ValidationError(
            f"Invalid artifact type '{value}'. Expected one of: {allowed}", field="filter"
        ) from exc


def parse_filter(expression: str) -> BatchFilter:
    try:
        tokens = shlex.split(expression or "")
    except ValueError as exc:
        raise ValidationError(f"Malformed filter expression: {exc}", field="filter") from exc
    values: dict[str, Any] = {}
    tags: list[str] = []
    patterns: dict[str, re.Pattern[str]] = {}
    for token in tokens:
        key, sep, value = token.partition(":")
        key = key.lower()
        if not sep or not value:
            raise ValidationError(f"Filter terms look like key:value, got '{token}'", field="filter")
        if key == "type":
            values["type"] = _artifact_type(value)
        elif key in ("status", "owner"):
            values[key] = value
        elif key == "tag":
            tags.append(value)
        elif key in ("id", "title"):
            patterns[key] = _compile(key, value)
        elif key in _DATE_FROM_KEYS:
            values["date_from"] = _date(key, value)
        elif key in _DATE_TO_KEYS:
            values["date_to"] = _date(key, value)
        else:
            raise ValidationError(f"Unknown filter key '{key}'", field="filter")
    return BatchFilter(
        filters=ArtifactFilters(tags=tuple(tags), **values),
        id_pattern=patterns.get("id"),
        title_pattern=patterns.get("title"),
    )


def _merged_tags(current: Iterable[str], update: BatchUpdate) -> list[str]:
    tags = list(current)
    for tag in update.add_tags:
        if tag not in tags:
            tags.append(tag)
    removed = set(update.remove_tags)
    return [tag for tag in tags if tag not in removed]


def calculate_changes(artifact: Artifact, update: BatchUpdate) -> tuple[FieldChange, ...]:
    changes: list[FieldChange] = []
    if update.status is not None and artifact.status != update.status:
        changes.append(FieldChange("status", artifact.status, update.status))
    if update.owner is not None and artifact.owner != update.owner:
        changes.append(FieldChange("owner", artifact.owner, update.owner))
    tags = _merged_tags(artifact.tags, update)
    if tags != list(artifact.tags):
        changes.append(FieldChange("tags", list(artifact.tags), tags))
    return tuple(changes)


class BatchService:
    def __init__(self, store: FileStore, services: ServiceLookup) -> None:
        self.store = store
        self.services = services

    def parse_filter(self, expression: str) -> BatchFilter:
        return parse_filter(expression)

    def find_matching(self, batch_filter: BatchFilter) -> list[Artifact]:
        return [artifact for artifact in self.store.list(batch_filter.filters) if batch_filter.matches(artifact)]

    def preview(self, batch_filter: BatchFilter, update: BatchUpdate) -> BatchPreview:
        matching = self.find_matching(batch_filter)
        previews = []
        for artifact in matching:
            changes = calculate_changes(artifact, update)
            if changes:
                previews.append(ChangePreview(artifact.id, artifact.title, changes))
        return BatchPreview(
            matching_ids=tuple(artifact.id for artifact in matching),
            changes=tuple(previews),
        )

    def update(self, batch_filter: BatchFilter, update: BatchUpdate, *, dry_run: bool = False) -> BatchResult:
        """Apply ``update`` to every matching artifact that it would change."""
        if update.is_empty:
            raise ValidationError(
                "At least one of status, owner, add_tags or remove_tags is required", field="update"
            )
        pending = self.preview(batch_filter, update).changes
        if dry_run:
            return BatchResult(updated_ids=tuple(item.artifact_id for item in pending), dry_run=True)
        updated: list[str] = []
        errors: list[BatchFailure] = []
        for item in pending:
            try:
                service = self.services(check_id(item.artifact_id))
                service.update(item.artifact_id, **{change.field: change.new_value for change in item.changes})
            except ToolkitError as error:
                logger.warning("Batch update skipped %s: %s", item.artifact_id, error.message)
                errors.append(BatchFailure(item.artifact_id, error.message))
                continue
            updated.append(item.artifact_id)
        logger.info("Batch updated %d artifact(s), %d failed", len(updated), len(errors))
        return BatchResult(updated_ids=tuple(updated), errors=tuple(errors))
