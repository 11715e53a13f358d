"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from terminus.graph.store import GraphStore
from terminus.observability import clear_player
from terminus.persistence.manager import PersistenceManager
from terminus.persistence.storage import MemorySaveStorage
from tests.fixtures.story_fixtures import make_graph_store

if TYPE_CHECKING:
    from collections.abc import Iterator


class FakeClock:
    """Controllable clock returning epoch seconds."""

    def __init__(self, start: float = 1_750_000_000.0) -> None:
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def isolate_terminus_env(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep TERMINUS_* variables from the developer's shell out of tests."""
    for name in (
        "TERMINUS_CONFIG",
        "TERMINUS_STORAGE_BACKEND",
        "TERMINUS_STORAGE_PATH",
        "TERMINUS_CONTENT_PATH",
    ):
        monkeypatch.delenv(name, raising=False)


@pytest.fixture(autouse=True)
def clear_log_context() -> Iterator[None]:
    """Drop the player id a session bound to the logging context."""
    yield
    clear_player()


@pytest.fixture
def project_root() -> Path:
    """Return the project root directory."""
    return Path(__file__).parent.parent


@pytest.fixture
def graph_store() -> GraphStore:
    return make_graph_store()


@pytest.fixture
def storage() -> MemorySaveStorage:
    return MemorySaveStorage()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(
    storage: MemorySaveStorage, graph_store: GraphStore, clock: FakeClock
) -> PersistenceManager:
    return PersistenceManager(storage, graph_store, clock=clock)
