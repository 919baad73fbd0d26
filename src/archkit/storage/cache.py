from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Callable, Generic, Mapping, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

ALL_KEY = "__all__"

Clock = Callable[[], float]


@dataclass(frozen=True)
class CacheConfig:
    ttl_seconds: float = 30.0
    max_entries: int = 100
    enabled: bool = True


@dataclass(frozen=True)
class CacheStats:
    size: int
    enabled: bool
    ttl_seconds: float


@dataclass(frozen=True)
class _Entry(Generic[T]):
    data: T
    inserted_at: float
    expires_at: float
    type_value: str | None


def _canonical_value(value: object) -> object:
    if isinstance(value, Mapping):
        return {str(key): _canonical_value(value[key]) for key in sorted(value, key=str)}
    if isinstance(value, (list, tuple)):
        return [_canonical_value(item) for item in value]
    if hasattr(value, "isoformat"):
        return value.isoformat()
    if hasattr(value, "value"):
        return _canonical_value(getattr(value, "value"))
    return value


def cache_key(filters: Mapping[str, object] | None) -> str:
    """Canonical key for a filter mapping: sorted-key JSON, unset entries dropped."""
    if not filters:
        return ALL_KEY
    present = {key: value for key, value in filters.items() if value is not None}
    if not present:
        return ALL_KEY
    return json.dumps(_canonical_value(present), sort_keys=True, separators=(",", ":"))


class ArtifactCache(Generic[T]):
    """In-memory TTL cache for list results, keyed by canonical filters."""

    def __init__(self, config: CacheConfig | None = None, *, clock: Clock = time.monotonic) -> None:
        self.config = config or CacheConfig()
        self._clock = clock
        self._entries: dict[str, _Entry[T]] = {}

    def get(self, filters: Mapping[str, object] | None = None) -> T | None:
        if not self.config.enabled:
            return None
        key = cache_key(filters)
        entry = self._entries.get(key)
        if entry is None:
            logger.debug("cache miss %s", key)
            return None
        if self._clock() > entry.expires_at:
            del self._entries[key]
            logger.debug("cache expired %s", key)
            return None
        logger.debug("cache hit %s", key)
        return entry.data

    def set(self, data: T, filters: Mapping[str, object] | None = None) -> None:
        if not self.config.enabled:
            return
        key = cache_key(filters)
        if key not in self._entries and len(self._entries) >= self.config.max_entries:
            self._evict_oldest()
        now = self._clock()
        type_value = _canonical_value((filters or {}).get("type"))
        self._entries[key] = _Entry(
            data=data,
            inserted_at=now,
            expires_at=now + self.config.ttl_seconds,
            type_value=type_value if isinstance(type_value, str) else None,
        )

    def invalidate(self) -> None:
        self._entries.clear()

    def invalidate_by_type(self, artifact_type: object) -> None:
        """Drop entries that could include an artifact of ``artifact_type``.

        That is every entry filtered on this type plus every entry with no
        type filter, the unfiltered ``__all__`` entry among them.
        """
        type_value = _canonical_value(artifact_type)
        stale = [
            key
            for key, entry in self._entries.items()
            if key == ALL_KEY or entry.type_value is None or entry.type_value == type_value
        ]
        for key in stale:
            del self._entries[key]

    def _evict_oldest(self) -> None:
        if not self._entries:
            return
        oldest = min(self._entries, key=lambda key: self._entries[key].inserted_at)
        del self._entries[oldest]

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> CacheStats:
        return CacheStats(
            size=len(self._entries),
            enabled=self.config.enabled,
            ttl_seconds=self.config.ttl_seconds,
        )

    def configure(self, config: CacheConfig) -> None:
        self.config = config
        if not config.enabled:
            self.invalidate()
