from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Callable

from archkit.config import ArchConfig, load_config
from archkit.hooks import HookRegistry
from archkit.identifiers import IdGenerator
from archkit.model import ArtifactType, utcnow
from archkit.services.artifacts import ADRService, ArtifactService, DecompositionService, RFCService
from archkit.services.batch import BatchService
from archkit.services.graph import GraphService
from archkit.services.health import HealthStrategy, StrategyName, health_strategy
from archkit.services.impact import ImpactAnalysisService
from archkit.services.link import LinkService
from archkit.services.metrics import MetricsService
from archkit.services.search import SearchService
from archkit.storage.file_store import FileStore


@dataclass
class Workspace:
    """Store and services wired together for one command invocation."""

    arch_dir: Path
    config: ArchConfig
    store: FileStore
    hooks: HookRegistry = field(default_factory=HookRegistry)
    clock: Callable[[], datetime] = utcnow

    def __post_init__(self) -> None:
        self.ids = IdGenerator(self.arch_dir)
        self.links = LinkService(self.store, clock=self.clock)
        self.graph = GraphService(self.store, self.links)
        self.impact = ImpactAnalysisService(self.store, self.links)
        self.search = SearchService(self.store)
        common = dict(ids=self.ids, config=self.config, hooks=self.hooks, clock=self.clock)
        self.rfcs = RFCService(self.store, **common)
        self.adrs = ADRService(self.store, **common)
        self.decompositions = DecompositionService(self.store, **common)
        self.batch = BatchService(self.store, self.service_for)

    @classmethod
    def open(
        cls,
        arch_dir: Path,
        *,
        config_path: Path | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> "Workspace":
        config = load_config(arch_dir, config_path)
        store = FileStore(arch_dir, cache_config=config.cache.to_cache_config())
        return cls(arch_dir=Path(arch_dir), config=config, store=store, clock=clock)

    def service_for(self, artifact_type: ArtifactType) -> ArtifactService:
        return {
            ArtifactType.RFC: self.rfcs,
            ArtifactType.ADR: self.adrs,
            ArtifactType.DECOMPOSITION: self.decompositions,
        }[artifact_type]

    def metrics(self) -> MetricsService:
        return MetricsService(
            self.store,
            health=self.health("enhanced"),  # type: ignore[arg-type]
            config=self.config.health,
            clock=self.clock,
        )

    def health(self, name: StrategyName | None = None) -> HealthStrategy:
        return health_strategy(
            name or self.config.health.strategy,
            self.store,
            config=self.config.health,
            links=self.links,
            graph=self.graph,
            required_sections=self.config.validation.required_sections,
            clock=self.clock,
        )
