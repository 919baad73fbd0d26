from __future__ import annotations

from datetime import datetime, timezone

from archkit.model import ArtifactType
from archkit.storage.cache import ALL_KEY, ArtifactCache, CacheConfig, cache_key
from tests.artifact_helpers import TickClock


def test_cache_key_is_canonical() -> None:
    assert cache_key(None) == ALL_KEY
    assert cache_key({}) == ALL_KEY
    assert cache_key({"status": None, "owner": None}) == ALL_KEY
    first = cache_key({"type": ArtifactType.RFC, "status": "draft"})
    second = cache_key({"status": "draft", "type": "rfc"})
    assert first == second
    stamp = datetime(2024, 1, 1, tzinfo=timezone.utc)
    assert "2024-01-01T00:00:00+00:00" in cache_key({"dateFrom": stamp})


def test_entries_expire_after_ttl() -> None:
    clock = TickClock()
    cache: ArtifactCache[list[str]] = ArtifactCache(CacheConfig(ttl_seconds=10), clock=clock)
    cache.set(["a"], {"status": "draft"})
    clock.advance(10)
    assert cache.get({"status": "draft"}) == ["a"]
    clock.advance(0.5)
    assert cache.get({"status": "draft"}) is None
    assert len(cache) == 0


def test_oldest_entry_is_evicted_at_capacity() -> None:
    clock = TickClock()
    cache: ArtifactCache[int] = ArtifactCache(CacheConfig(max_entries=2), clock=clock)
    cache.set(1, {"owner": "a"})
    clock.advance(1)
    cache.set(2, {"owner": "b"})
    clock.advance(1)
    cache.set(3, {"owner": "c"})
    assert cache.get({"owner": "a"}) is None
    assert cache.get({"owner": "b"}) == 2
    assert cache.get({"owner": "c"}) == 3
    # Overwriting an existing key never evicts.
    cache.set(4, {"owner": "c"})
    assert len(cache) == 2


def test_invalidate_by_type_drops_matching_and_untyped_entries() -> None:
    cache: ArtifactCache[str] = ArtifactCache(clock=TickClock())
    cache.set("all")
    cache.set("rfc", {"type": ArtifactType.RFC})
    cache.set("adr", {"type": ArtifactType.ADR})
    cache.set("drafts", {"status": "draft"})

    cache.invalidate_by_type(ArtifactType.RFC)

    assert cache.get() is None
    assert cache.get({"type": ArtifactType.RFC}) is None
    assert cache.get({"status": "draft"}) is None
    assert cache.get({"type": ArtifactType.ADR}) == "adr"


def test_disabled_cache_stores_nothing() -> None:
    cache: ArtifactCache[str] = ArtifactCache(CacheConfig(enabled=False), clock=TickClock())
    cache.set("x")
    assert cache.get() is None
    stats = cache.stats()
    assert (stats.size, stats.enabled) == (0, False)


def test_configure_disabling_clears_entries() -> None:
    cache: ArtifactCache[str] = ArtifactCache(clock=TickClock())
    cache.set("x")
    cache.configure(CacheConfig(enabled=False))
    assert len(cache) == 0
