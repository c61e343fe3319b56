"""
Enum definitions for the canonical catalog model.

This module contains all enumeration types used throughout the sync engine.
"""

from enum import Enum
from typing import Dict


class EntityKind(str, Enum):
    """Identifies which variant of catalog entity a record describes."""
    ASSET = "ASSET"  # Database-level asset
    TABLE = "TABLE"
    COLUMN = "COLUMN"

    @property
    def depth(self) -> int:
        """Position of this kind in the containment hierarchy (asset = 0)."""
        return ENTITY_DEPTH[self]


ENTITY_DEPTH: Dict[EntityKind, int] = {
    EntityKind.ASSET: 0,
    EntityKind.TABLE: 1,
    EntityKind.COLUMN: 2,
}


class ChangeType(str, Enum):
    """Kinds of change the diff engine can report."""
    CREATED = "CREATED"
    UPDATED = "UPDATED"
    DELETED = "DELETED"


class BatchKind(str, Enum):
    """How change records are grouped for the notification sink."""
    ASSET = "ASSET"  # One asset-level change
    TABLE = "TABLE"  # A table plus all of its column changes


class SendOutcome(str, Enum):
    """Result reported by a notification sink for one batch."""
    OK = "OK"
    RETRYABLE_ERROR = "RETRYABLE_ERROR"
    FATAL_ERROR = "FATAL_ERROR"


class CycleState(str, Enum):
    """
    States of a single poll cycle.

    IDLE -> LISTING -> PER_TABLE_FETCH -> DIFFING -> EMITTING -> COMMITTED
    A cycle whose listing fails ends in ABORTED without touching the store.
    A cycle with any table read, emit failure or cancellation ends in
    PARTIALLY_COMMITTED.
    """
    IDLE = "IDLE"
    LISTING = "LISTING"
    PER_TABLE_FETCH = "PER_TABLE_FETCH"
    DIFFING = "DIFFING"
    EMITTING = "EMITTING"
    COMMITTED = "COMMITTED"
    PARTIALLY_COMMITTED = "PARTIALLY_COMMITTED"
    ABORTED = "ABORTED"

    @property
    def is_terminal(self) -> bool:
        return self in (CycleState.COMMITTED, CycleState.PARTIALLY_COMMITTED, CycleState.ABORTED)


class SemanticType(str, Enum):
    """Semantic type tags carried on canonical entities."""
    DATABASE = "Database"
    RELATIONAL_TABLE = "RelationalTable"
    RELATIONAL_VIEW = "RelationalView"
    RELATIONAL_COLUMN = "RelationalColumn"
