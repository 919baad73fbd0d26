from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path

from archkit.exceptions import SecurityError, SerializationError, StorageError, ValidationError
from archkit.identifiers import TYPE_DIRECTORIES, check_id
from archkit.model import Artifact, ArtifactType
from archkit.serialization import deserialize, serialize
from archkit.storage.cache import ArtifactCache, CacheConfig, CacheStats

logger = logging.getLogger(__name__)

DEFAULT_BASE_DIR = Path(".arch")
CONFIG_FILE_NAME = "config.yaml"
TEMPLATES_DIR_NAME = "templates"
_CONFIG_STUB = "# Architecture Toolkit Configuration\n"


@dataclass(frozen=True)
class ArtifactFilters:
    type: ArtifactType | None = None
    status: str | None = None
    owner: str | None = None
    tags: tuple[str, ...] = ()
    date_from: datetime | None = None
    date_to: datetime | None = None

    def __post_init__(self) -> None:
        # Stored timestamps are always aware; naive bounds are read as UTC.
        for name in ("date_from", "date_to"):
            value = getattr(self, name)
            if value is not None and value.tzinfo is None:
                object.__setattr__(self, name, value.replace(tzinfo=timezone.utc))

    def to_key(self) -> dict[str, object]:
        return {
            "type": self.type,
            "status": self.status,
            "owner": self.owner,
            "tags": sorted(self.tags) if self.tags else None,
            "dateFrom": self.date_from,
            "dateTo": self.date_to,
        }

    def matches(self, artifact: Artifact) -> bool:
        if self.type is not None and artifact.type != self.type:
            return False
        if self.status and artifact.status != self.status:
            return False
        if self.owner and artifact.owner != self.owner:
            return False
        if self.date_from is not None and artifact.created_at < self.date_from:
            return False
        if self.date_to is not None and artifact.created_at > self.date_to:
            return False
        if self.tags:
            present = set(artifact.tags)
            if not all(tag in present for tag in self.tags):
                return False
        return True


@dataclass
class ListOutcome:
    artifacts: list[Artifact] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)


def _safe_type(artifact_id: str) -> ArtifactType | None:
    try:
        return check_id(artifact_id)
    except (SecurityError, ValidationError):
        return None


class FileStore:
    """Artifact persistence under ``<base_dir>/<type>/<ID>.md``.

    IDs are always validated before a path is derived from them.
    """

    def __init__(
        self,
        base_dir: Path = DEFAULT_BASE_DIR,
        *,
        cache: ArtifactCache[ListOutcome] | None = None,
        cache_config: CacheConfig | None = None,
    ) -> None:
        self.base_dir = Path(base_dir)
        self.cache: ArtifactCache[ListOutcome] = cache or ArtifactCache(cache_config)
        self.last_skipped: list[Path] = []

    def initialize(self) -> None:
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
            for subdir in TYPE_DIRECTORIES.values():
                (self.base_dir / subdir).mkdir(parents=True, exist_ok=True)
            (self.base_dir / TEMPLATES_DIR_NAME).mkdir(parents=True, exist_ok=True)
            config_path = self.base_dir / CONFIG_FILE_NAME
            if not config_path.exists():
                config_path.write_text(_CONFIG_STUB, encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to initialize {self.base_dir}: {exc}") from exc

    def _path_for(self, artifact_id: str, artifact_type: ArtifactType) -> Path:
        return self.base_dir / TYPE_DIRECTORIES[artifact_type] / f"{artifact_id}.md"

    def save(self, artifact: Artifact) -> Path:
        id_type = check_id(artifact.id)
        if id_type != artifact.type:
            raise ValidationError(
                f"Artifact {artifact.id} has type '{artifact.type.value}' "
                f"but its prefix denotes '{id_type.value}'",
                field="type",
            )
        path = self._path_for(artifact.id, id_type)
        content = serialize(artifact)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            path.write_text(content, encoding="utf-8")
        except OSError as exc:
            raise StorageError(f"Failed to write {path}: {exc}") from exc
        self.cache.invalidate_by_type(id_type)
        return path

    def load(self, artifact_id: str) -> Artifact | None:
        artifact_type = _safe_type(artifact_id)
        if artifact_type is None:
            return None
        path = self._path_for(artifact_id, artifact_type)
        try:
            content = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as exc:
            raise StorageError(f"Failed to read {path}: {exc}") from exc
        try:
            return deserialize(content)
        except SerializationError as exc:
            raise SerializationError(f"{path}: {exc.message}", line=None) from exc

    def delete(self, artifact_id: str) -> bool:
        artifact_type = _safe_type(artifact_id)
        if artifact_type is None:
            return False
        path = self._path_for(artifact_id, artifact_type)
        try:
            path.unlink()
        except FileNotFoundError:
            return False
        except OSError as exc:
            raise StorageError(f"Failed to delete {path}: {exc}") from exc
        self.cache.invalidate_by_type(artifact_type)
        return True

    def exists(self, artifact_id: str) -> bool:
        artifact_type = _safe_type(artifact_id)
        if artifact_type is None:
            return False
        return self._path_for(artifact_id, artifact_type).is_file()

    def list(self, filters: ArtifactFilters | None = None) -> list[Artifact]:
        active = filters or ArtifactFilters()
        key = active.to_key()
        outcome = self.cache.get(key)
        if outcome is None:
            outcome = self.scan(active)
            self.cache.set(outcome, key)
        self.last_skipped = list(outcome.skipped)
        return list(outcome.artifacts)

    def scan(self, filters: ArtifactFilters) -> ListOutcome:
        outcome = ListOutcome()
        types = [filters.type] if filters.type is not None else list(ArtifactType)
        for artifact_type in types:
            directory = self.base_dir / TYPE_DIRECTORIES[artifact_type]
            try:
                paths = sorted(directory.glob("*.md"))
            except OSError as exc:
                raise StorageError(f"Failed to list {directory}: {exc}") from exc
            for path in paths:
                try:
                    artifact = deserialize(path.read_text(encoding="utf-8"))
                except (OSError, UnicodeDecodeError, SerializationError) as exc:
                    logger.warning("Skipping unreadable artifact %s: %s", path, exc)
                    outcome.skipped.append(path)
                    continue
                if filters.matches(artifact):
                    outcome.artifacts.append(artifact)
        outcome.artifacts.sort(key=lambda item: item.created_at, reverse=True)
        return outcome

    def clear_cache(self) -> None:
        self.cache.invalidate()

    def cache_stats(self) -> CacheStats:
        return self.cache.stats()

    def configure_cache(self, config: CacheConfig) -> None:
        self.cache.configure(config)
