"""
Shared pytest fixtures for catalogsync tests.

Provides scopes, fake collaborators and a ready-wired coordinator.
"""

import pytest

from catalogsync.coordinator import SyncCoordinator
from catalogsync.emitter import BatchEmitter
from catalogsync.models import Scope
from catalogsync.store import InMemorySnapshotStore
from tests.fixtures import FakeCatalogClient, RecordingSleep, ScriptedSink, make_descriptor, make_scope


@pytest.fixture
def scope() -> Scope:
    """The default cat.db scope."""
    return make_scope()


@pytest.fixture
def client() -> FakeCatalogClient:
    """Fake client holding t1(a:int) and t2(x:string)."""
    return FakeCatalogClient([
        make_descriptor("t1", [("a", "int")]),
        make_descriptor("t2", [("x", "string")]),
    ])


@pytest.fixture
def store() -> InMemorySnapshotStore:
    return InMemorySnapshotStore()


@pytest.fixture
def sink() -> ScriptedSink:
    return ScriptedSink()


@pytest.fixture
def sleep() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def emitter(sink: ScriptedSink, sleep: RecordingSleep) -> BatchEmitter:
    """Emitter with fast, recorded backoff and no sink timeout."""
    return BatchEmitter(sink, max_retries=3, backoff_seconds=0.5, timeout_seconds=None, sleep=sleep)


@pytest.fixture
def coordinator(
    client: FakeCatalogClient,
    store: InMemorySnapshotStore,
    emitter: BatchEmitter,
) -> SyncCoordinator:
    return SyncCoordinator(client=client, store=store, emitter=emitter, max_workers=4)
