"""
Snapshot stores.

The snapshot store exclusively owns the last committed state of every scope.
Each scope is an independent partition: writes to one partition are
serialized, reads may run concurrently and always see a whole snapshot.

Implementations:
- InMemorySnapshotStore: process-local dictionary of snapshots
- JsonFileSnapshotStore: one JSON document per scope under a directory
"""

from __future__ import annotations

import json
import logging
import os
import tempfile
import threading
from collections import defaultdict
from pathlib import Path
from typing import Dict, Iterable, List, Union

from pydantic import ValidationError
from typing_extensions import Protocol

from catalogsync.errors import ConfigurationError, SnapshotStoreError
from catalogsync.models import CatalogEntity, Scope, Snapshot

logger = logging.getLogger(__name__)

SNAPSHOT_FORMAT_VERSION = "1.0"


class SnapshotStore(Protocol):
    """Persistence contract used by the sync coordinator."""

    def load(self, scope: Scope) -> Snapshot:
        """Return the last committed snapshot, empty if none exists."""
        ...

    def commit(self, scope: Scope, entities: Iterable[CatalogEntity]) -> None:
        """Atomically replace the snapshot of a scope."""
        ...

    def merge(
        self,
        scope: Scope,
        upserts: Iterable[CatalogEntity],
        removals: Iterable[str] = (),
    ) -> None:
        """Apply a partial update, keeping prior values for everything omitted."""
        ...


class _ScopeLocks:
    """One writer lock per scope partition."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)

    def for_scope(self, scope: Scope) -> threading.Lock:
        with self._guard:
            return self._locks[scope.key]


def _apply_merge(
    current: Dict[str, CatalogEntity],
    upserts: Iterable[CatalogEntity],
    removals: Iterable[str],
) -> Dict[str, CatalogEntity]:
    merged = dict(current)
    for qualified_name in removals:
        merged.pop(qualified_name, None)
    for entity in upserts:
        merged[entity.qualified_name] = entity.as_entity()
    return merged


class InMemorySnapshotStore:
    """
    Snapshot store kept in process memory.

    Snapshots are swapped in whole under the scope's writer lock, so a
    reader never sees a half-applied commit or merge.
    """

    def __init__(self) -> None:
        self._snapshots: Dict[str, Dict[str, CatalogEntity]] = {}
        self._locks = _ScopeLocks()

    def load(self, scope: Scope) -> Snapshot:
        entries = self._snapshots.get(scope.key, {})
        return Snapshot(scope=scope, entries=dict(entries))

    def commit(self, scope: Scope, entities: Iterable[CatalogEntity]) -> None:
        replacement = {e.qualified_name: e.as_entity() for e in entities}
        with self._locks.for_scope(scope):
            self._snapshots[scope.key] = replacement
        logger.debug(f"Committed {len(replacement)} entities for scope {scope}")

    def merge(
        self,
        scope: Scope,
        upserts: Iterable[CatalogEntity],
        removals: Iterable[str] = (),
    ) -> None:
        with self._locks.for_scope(scope):
            current = self._snapshots.get(scope.key, {})
            self._snapshots[scope.key] = _apply_merge(current, upserts, removals)
        logger.debug(f"Merged changes into scope {scope}")

    def scopes(self) -> List[str]:
        return sorted(self._snapshots)


class JsonFileSnapshotStore:
    """
    Snapshot store writing one JSON document per scope.

    Documents are written to a temporary file in the same directory and
    moved into place with os.replace, so a crash never leaves a partially
    written snapshot behind.

    Example document (my_catalog.sales.json):
        {
            "version": "1.0",
            "scope": {"catalog": "my_catalog", "database": "sales"},
            "entities": [
                {"qualified_name": "my_catalog.sales", "name": "sales", ...}
            ]
        }
    """

    def __init__(self, directory: Union[str, Path]):
        self.directory = Path(directory)
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ConfigurationError(f"Cannot use snapshot directory '{self.directory}': {e}") from e
        self._locks = _ScopeLocks()

    def path_for(self, scope: Scope) -> Path:
        return self.directory / f"{scope.key}.json"

    def load(self, scope: Scope) -> Snapshot:
        path = self.path_for(scope)
        if not path.exists():
            return Snapshot(scope=scope)

        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as e:
            raise SnapshotStoreError(str(scope), str(path), f"invalid JSON: {e}") from e

        if not isinstance(data, dict):
            raise SnapshotStoreError(str(scope), str(path), "document must be a JSON object")
        version = data.get("version")
        if version != SNAPSHOT_FORMAT_VERSION:
            raise SnapshotStoreError(
                str(scope), str(path),
                f"unsupported version {version!r}, expected '{SNAPSHOT_FORMAT_VERSION}'",
            )

        try:
            entities = [CatalogEntity.model_validate(item) for item in data.get("entities", [])]
        except ValidationError as e:
            raise SnapshotStoreError(str(scope), str(path), f"invalid entity: {e}") from e
        return Snapshot.of(scope, entities)

    def commit(self, scope: Scope, entities: Iterable[CatalogEntity]) -> None:
        replacement = {e.qualified_name: e.as_entity() for e in entities}
        with self._locks.for_scope(scope):
            self._write(scope, replacement)
        logger.debug(f"Committed {len(replacement)} entities for scope {scope} to {self.path_for(scope)}")

    def merge(
        self,
        scope: Scope,
        upserts: Iterable[CatalogEntity],
        removals: Iterable[str] = (),
    ) -> None:
        with self._locks.for_scope(scope):
            current = self.load(scope).entries
            self._write(scope, _apply_merge(current, upserts, removals))
        logger.debug(f"Merged changes into scope {scope} at {self.path_for(scope)}")

    def _write(self, scope: Scope, entries: Dict[str, CatalogEntity]) -> None:
        document = {
            "version": SNAPSHOT_FORMAT_VERSION,
            "scope": scope.model_dump(mode="json"),
            "entities": [
                entries[qn].model_dump(mode="json") for qn in sorted(entries)
            ],
        }
        path = self.path_for(scope)
        fd, tmp_name = tempfile.mkstemp(dir=str(self.directory), prefix=f".{scope.key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh, indent=2)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
