"""
Synchronization coordinator.

`SyncCoordinator` runs one poll cycle for a scope end to end:
  1) List the scope's tables
  2) Fetch every listed table on a bounded worker pool
  3) Diff the built entities against the stored snapshot
  4) Emit the changes as batches
  5) Commit (or partially merge) the new state into the snapshot store

Per-table and per-batch failures never abort a cycle; they are collected
into the CycleSummary and the affected entities are retried next cycle.
A failed listing aborts and leaves the store untouched. A failing snapshot
store aborts only the cycle of the scope it failed for.
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Sequence, Tuple

from catalogsync.builder import CanonicalModelBuilder
from catalogsync.client import CatalogClient
from catalogsync.diff import DiffEngine
from catalogsync.emitter import BatchEmitter, EmitResult
from catalogsync.errors import ConfigurationError, EmitError, MalformedDescriptor, ScopeListError, TableFetchError
from catalogsync.models import (
    SCHEMA_SEGMENT,
    SEPARATOR,
    CatalogEntity,
    ChangeRecord,
    ChangeType,
    CycleState,
    Scope,
    Table,
    join_qualified_name,
)
from catalogsync.store import SnapshotStore

logger = logging.getLogger(__name__)


@dataclass
class CycleSummary:
    """Structured outcome of one poll cycle for one scope."""

    scope: Scope
    state: CycleState = CycleState.IDLE
    started_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    duration_seconds: float = 0.0

    tables_listed: int = 0
    tables_fetched: int = 0
    tables_skipped: int = 0
    cancelled: bool = False

    changes: List[ChangeRecord] = field(default_factory=list)
    batches_emitted: int = 0
    batches_failed: int = 0

    scope_error: Optional[ScopeListError] = None
    cycle_error: Optional[Exception] = None
    fetch_errors: List[TableFetchError] = field(default_factory=list)
    malformed: List[MalformedDescriptor] = field(default_factory=list)
    emit_errors: List[EmitError] = field(default_factory=list)

    @property
    def success(self) -> bool:
        """True if the cycle committed everything it observed."""
        return self.state == CycleState.COMMITTED

    @property
    def failure_count(self) -> int:
        return (
            (1 if self.scope_error else 0)
            + (1 if self.cycle_error else 0)
            + len(self.fetch_errors)
            + len(self.malformed)
            + len(self.emit_errors)
        )

    def count(self, change_type: ChangeType) -> int:
        return sum(1 for r in self.changes if r.change_type == change_type)

    def __str__(self) -> str:
        lines = [
            f"Cycle {self.scope}: {self.state.value} in {self.duration_seconds:.2f}s",
            f"  Tables: listed={self.tables_listed} fetched={self.tables_fetched} "
            f"skipped={self.tables_skipped}",
            f"  Changes: created={self.count(ChangeType.CREATED)} "
            f"updated={self.count(ChangeType.UPDATED)} deleted={self.count(ChangeType.DELETED)}",
            f"  Batches: emitted={self.batches_emitted} failed={self.batches_failed}",
        ]
        if self.failure_count:
            lines.append("  Failures:")
            errors: List[Exception] = []
            if self.scope_error:
                errors.append(self.scope_error)
            if self.cycle_error:
                errors.append(self.cycle_error)
            errors.extend(self.fetch_errors)
            errors.extend(self.malformed)
            errors.extend(self.emit_errors)
            for error in errors:
                lines.append(f"  - {error}")
        return "\n".join(lines)


@dataclass
class _FetchOutcome:
    name: str
    table: Optional[Table] = None
    error: Optional[TableFetchError] = None
    malformed: Optional[MalformedDescriptor] = None
    skipped: bool = False


class SyncCoordinator:
    """Coordinates listing, fetching, diffing, emitting and committing for scopes."""

    def __init__(
        self,
        client: CatalogClient,
        store: SnapshotStore,
        emitter: BatchEmitter,
        builder: Optional[CanonicalModelBuilder] = None,
        diff_engine: Optional[DiffEngine] = None,
        table_pattern: str = "*",
        max_workers: int = 8,
        max_parallel_scopes: int = 4,
    ) -> None:
        """
        Initialize the coordinator.

        Custom components can be injected for testing or alternate sources.

        Args:
            client: Catalog client used for every cycle
            store: Snapshot store owning the committed state
            emitter: Batch emitter delivering changes to the sink
            builder: Canonical model builder
            diff_engine: Diff engine
            table_pattern: Glob pattern passed to list_tables
            max_workers: Bound on concurrent table fetches within a cycle
            max_parallel_scopes: Bound on scopes synchronized at once
        """
        self.client = client
        self.store = store
        self.emitter = emitter
        self.builder = builder or CanonicalModelBuilder()
        self.diff_engine = diff_engine or DiffEngine()
        self.table_pattern = table_pattern
        self.max_workers = max(1, max_workers)
        self.max_parallel_scopes = max(1, max_parallel_scopes)
        self._locks_guard = threading.Lock()
        self._scope_locks: Dict[str, threading.Lock] = {}

    # ---------- public API ----------

    def run_cycle(self, scope: Scope, cancel_event: Optional[threading.Event] = None) -> CycleSummary:
        """
        Run one poll cycle for a scope.

        Cycles for the same scope never overlap: a second caller waits for
        the running cycle to finish.

        Args:
            scope: Catalog and database to synchronize
            cancel_event: When set, tables not yet being fetched are skipped and
                the cycle ends partially committed

        Returns:
            CycleSummary describing what happened
        """
        summary = CycleSummary(scope=scope)
        start_time = time.time()
        with self._scope_lock(scope):
            try:
                self._run(scope, summary, cancel_event)
            except ConfigurationError:
                raise
            except Exception as e:
                # Snapshot store failures end this scope's cycle only
                logger.error(f"Cycle for {scope} failed during {summary.state.value}: {e}")
                summary.cycle_error = e
                summary.state = CycleState.ABORTED
            finally:
                summary.duration_seconds = time.time() - start_time

        if summary.state == CycleState.COMMITTED:
            logger.info(f"Cycle for {scope} committed: {len(summary.changes)} change(s)")
        else:
            logger.warning(
                f"Cycle for {scope} ended {summary.state.value} "
                f"with {summary.failure_count} failure(s)"
            )
        return summary

    def run_cycles(
        self,
        scopes: Sequence[Scope],
        cancel_event: Optional[threading.Event] = None,
    ) -> List[CycleSummary]:
        """Run one cycle for each scope, scopes in parallel. Summaries follow scope order."""
        if not scopes:
            return []
        workers = min(self.max_parallel_scopes, len(scopes))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="catalogsync-scope") as pool:
            futures = [pool.submit(self.run_cycle, scope, cancel_event) for scope in scopes]
            return [f.result() for f in futures]

    def poll(
        self,
        scopes: Sequence[Scope],
        interval_seconds: float,
        stop_event: threading.Event,
        max_passes: Optional[int] = None,
    ) -> int:
        """
        Run cycles for all scopes repeatedly until stop_event is set.

        Args:
            scopes: Scopes to synchronize on every pass
            interval_seconds: Wait between the end of one pass and the next
            stop_event: Stops polling; also cancels in-progress cycles
            max_passes: Optional bound on the number of passes

        Returns:
            Number of passes run
        """
        passes = 0
        logger.info(f"Polling {len(scopes)} scope(s) every {interval_seconds}s")
        while not stop_event.is_set():
            self.run_cycles(scopes, stop_event)
            passes += 1
            if max_passes is not None and passes >= max_passes:
                break
            stop_event.wait(interval_seconds)
        logger.info(f"Polling stopped after {passes} pass(es)")
        return passes

    # ---------- cycle stages ----------

    def _run(self, scope: Scope, summary: CycleSummary, cancel_event: Optional[threading.Event]) -> None:
        summary.state = CycleState.LISTING
        names = self._list(scope, summary)
        if names is None:
            summary.state = CycleState.ABORTED
            return

        summary.state = CycleState.PER_TABLE_FETCH
        tables, unread = self._fetch_all(scope, names, summary, cancel_event)

        summary.state = CycleState.DIFFING
        new_entities: List[CatalogEntity] = [self.builder.build_asset(scope)]
        for table in tables:
            new_entities.extend(table.entities())
        old_snapshot = self.store.load(scope)
        summary.changes = self.diff_engine.diff(
            old_snapshot,
            new_entities,
            listing_complete=True,
            retained=self._retained_names(scope, unread),
        )

        summary.state = CycleState.EMITTING
        emit_result = self.emitter.emit(summary.changes)
        summary.batches_emitted = len(emit_result.succeeded)
        summary.batches_failed = len(emit_result.failed)
        summary.emit_errors = emit_result.errors

        if unread or summary.cancelled or not emit_result.success:
            self._merge(scope, emit_result)
            summary.state = CycleState.PARTIALLY_COMMITTED
        else:
            self.store.commit(scope, new_entities)
            summary.state = CycleState.COMMITTED

    def _list(self, scope: Scope, summary: CycleSummary) -> Optional[List[str]]:
        """List table names, or None if the listing failed."""
        try:
            listed = self.client.list_tables(scope.catalog, scope.database, self.table_pattern)
        except Exception as e:
            summary.scope_error = ScopeListError(str(scope), e)
            logger.error(str(summary.scope_error))
            return None

        names = list(dict.fromkeys(listed))  # drop duplicates, keep order
        summary.tables_listed = len(names)
        logger.info(f"Listed {len(names)} table(s) in scope {scope}")
        return names

    def _fetch_all(
        self,
        scope: Scope,
        names: List[str],
        summary: CycleSummary,
        cancel_event: Optional[threading.Event],
    ) -> Tuple[List[Table], List[str]]:
        """Fetch and build every table; returns built tables and names left unread."""
        if not names:
            return [], []

        workers = min(self.max_workers, len(names))
        with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="catalogsync-fetch") as pool:
            futures = [pool.submit(self._fetch_one, scope, name, cancel_event) for name in names]
        # Leaving the pool waits for every fetch: nothing is diffed before all complete
        outcomes = [f.result() for f in futures]

        tables: List[Table] = []
        unread: List[str] = []
        for outcome in outcomes:
            if outcome.table is not None:
                tables.append(outcome.table)
                continue
            unread.append(outcome.name)
            if outcome.skipped:
                summary.tables_skipped += 1
            elif outcome.malformed is not None:
                summary.malformed.append(outcome.malformed)
            elif outcome.error is not None:
                summary.fetch_errors.append(outcome.error)

        if summary.tables_skipped:
            summary.cancelled = True
            logger.warning(f"Cycle for {scope} cancelled; {summary.tables_skipped} table(s) not fetched")
        summary.tables_fetched = len(tables)
        return tables, unread

    def _fetch_one(
        self,
        scope: Scope,
        name: str,
        cancel_event: Optional[threading.Event],
    ) -> _FetchOutcome:
        if cancel_event is not None and cancel_event.is_set():
            return _FetchOutcome(name=name, skipped=True)

        try:
            descriptor = self.client.get_table(scope.catalog, scope.database, name)
        except Exception as e:
            error = TableFetchError(str(scope), name, e)
            logger.warning(str(error))
            return _FetchOutcome(name=name, error=error)

        try:
            table = self.builder.build(descriptor, scope.base_qualified_name)
        except MalformedDescriptor as e:
            logger.warning(f"Skipping table in scope {scope}: {e}")
            return _FetchOutcome(name=name, malformed=e)

        return _FetchOutcome(name=name, table=table)

    def _merge(self, scope: Scope, emit_result: EmitResult) -> None:
        """Write only delivered changes; everything else keeps its prior state."""
        upserts: List[CatalogEntity] = []
        removals: List[str] = []
        for record in emit_result.succeeded_records():
            if record.change_type == ChangeType.DELETED:
                removals.append(record.qualified_name)
            else:
                upserts.append(record.entity)
        self.store.merge(scope, upserts, removals)
        logger.info(
            f"Merged {len(upserts)} upsert(s) and {len(removals)} removal(s) "
            f"into snapshot for {scope}"
        )

    # ---------- helpers ----------

    @staticmethod
    def _retained_names(scope: Scope, unread: List[str]) -> List[str]:
        """Qualified names of listed tables that could not be read this cycle."""
        return [
            join_qualified_name(scope.base_qualified_name, SCHEMA_SEGMENT, name)
            for name in unread
            if name and SEPARATOR not in name
        ]

    def _scope_lock(self, scope: Scope) -> threading.Lock:
        with self._locks_guard:
            lock = self._scope_locks.get(scope.key)
            if lock is None:
                lock = threading.Lock()
                self._scope_locks[scope.key] = lock
            return lock
