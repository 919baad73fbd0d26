from __future__ import annotations

import sys
from datetime import datetime, timezone
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
for entry in (SRC, ROOT):
    if str(entry) not in sys.path:
        sys.path.insert(0, str(entry))


import pytest

from archkit.services.graph import GraphService
from archkit.services.link import LinkService
from archkit.storage.file_store import FileStore
from archkit.workspace import Workspace
from tests.artifact_helpers import FrozenClock


@pytest.fixture
def arch_dir(tmp_path: Path) -> Path:
    return tmp_path / ".arch"


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(datetime(2024, 6, 1, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def store(arch_dir: Path) -> FileStore:
    file_store = FileStore(arch_dir)
    file_store.initialize()
    return file_store


@pytest.fixture
def links(store: FileStore, clock: FrozenClock) -> LinkService:
    return LinkService(store, clock=clock)


@pytest.fixture
def graph(store: FileStore, links: LinkService) -> GraphService:
    return GraphService(store, links)


@pytest.fixture
def workspace(arch_dir: Path, store: FileStore, clock: FrozenClock) -> Workspace:
    return Workspace.open(arch_dir, clock=clock)
