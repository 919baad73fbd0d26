"""File-backed artifact persistence."""

from .cache import ArtifactCache, CacheConfig, CacheStats
from .file_store import ArtifactFilters, FileStore

__all__ = ["ArtifactCache", "ArtifactFilters", "CacheConfig", "CacheStats", "FileStore"]
