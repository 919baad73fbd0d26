from __future__ import annotations

from pathlib import Path
from typing import Dict, List, Literal, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field
from pydantic import ValidationError as PydanticValidationError

from archkit.exceptions import StorageError, ValidationError
from archkit.storage.cache import CacheConfig

DEFAULT_ARCH_DIR_NAME = ".arch"
DEFAULT_CONFIG_NAME = "config.yaml"


class _Section(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")


class DefaultsConfig(_Section):
    owner: Optional[str] = None
    tags: Dict[str, List[str]] = {}


class HealthConfig(_Section):
    strategy: Literal["basic", "enhanced"] = "enhanced"
    threshold: int = 80
    staleness_threshold_days: int = Field(90, alias="stalenessThresholdDays")
    no_links_penalty: int = Field(10, alias="noLinksPenalty")
    stale_reference_penalty: int = Field(15, alias="staleReferencePenalty")
    staleness_penalty_per_month: int = Field(5, alias="stalenessPenaltyPerMonth")
    stale_days: int = Field(90, alias="staleDays")
    draft_max_days: int = Field(30, alias="draftMaxDays")
    min_tags: int = Field(1, alias="minTags")


class ValidationConfig(_Section):
    # Keyed by artifact type value; entries name attributes such as "problem_statement".
    required_sections: Dict[str, List[str]] = Field(default_factory=dict, alias="requiredSections")


class CacheSection(_Section):
    enabled: bool = True
    ttl_seconds: float = Field(30.0, alias="ttlSeconds")
    max_entries: int = Field(100, alias="maxEntries")

    def to_cache_config(self) -> CacheConfig:
        return CacheConfig(
            ttl_seconds=self.ttl_seconds,
            max_entries=self.max_entries,
            enabled=self.enabled,
        )


class ArchConfig(_Section):
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    health: HealthConfig = Field(default_factory=HealthConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    cache: CacheSection = Field(default_factory=CacheSection)

    def default_tags(self, artifact_type: str) -> list[str]:
        return list(self.defaults.tags.get(artifact_type, []))


def _load_yaml(path: Path) -> dict[str, object]:
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return {}
    except OSError as exc:
        raise StorageError(f"Failed to read {path}: {exc}") from exc
    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ValidationError(f"{path}: invalid YAML: {exc}", field="config") from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValidationError(f"{path}: configuration must be a mapping", field="config")
    return data


def load_config(arch_dir: Path | None = None, config_path: Path | None = None) -> ArchConfig:
    if config_path is None:
        base = arch_dir if arch_dir is not None else Path.cwd() / DEFAULT_ARCH_DIR_NAME
        config_path = base / DEFAULT_CONFIG_NAME
    data = _load_yaml(config_path)
    try:
        return ArchConfig.model_validate(data)
    except PydanticValidationError as exc:
        first = exc.errors()[0] if exc.errors() else {}
        location = ".".join(str(part) for part in first.get("loc", ()))
        raise ValidationError(
            f"{config_path}: invalid configuration at '{location}': {first.get('msg', exc)}",
            field=location or "config",
        ) from exc
