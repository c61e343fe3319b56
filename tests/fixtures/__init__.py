"""Test fixtures for catalogsync."""

from .fakes import FakeCatalogClient, RecordingSleep, ScriptedSink
from .model_factories import (
    make_descriptor,
    make_entities,
    make_scope,
    make_snapshot,
    make_table,
)

__all__ = [
    "make_scope",
    "make_descriptor",
    "make_table",
    "make_entities",
    "make_snapshot",
    "FakeCatalogClient",
    "ScriptedSink",
    "RecordingSleep",
]
