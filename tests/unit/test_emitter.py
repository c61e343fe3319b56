"""
Unit tests for BatchEmitter.

Tests batch grouping, retry with backoff and per-batch failure isolation.
"""

import threading

from catalogsync.diff import DiffEngine
from catalogsync.emitter import BatchEmitter
from catalogsync.models import BatchKind, ChangeType, EntityKind, SendOutcome, Snapshot
from tests.fixtures import RecordingSleep, ScriptedSink, make_entities, make_scope, make_snapshot, make_table


def _records_for_new_tables(*tables):
    return DiffEngine().diff(Snapshot(scope=make_scope()), make_entities(list(tables)))


class TestGrouping:
    """Tests for BatchEmitter.group()."""

    def test_asset_and_table_batches(self) -> None:
        """The asset gets its own batch; each table bundles its columns."""
        records = _records_for_new_tables(
            make_table("t1", [("a", "int"), ("b", "int")]),
            make_table("t2", [("x", "int")]),
        )
        batches = BatchEmitter(ScriptedSink()).group(records)

        assert [(b.kind, b.key, len(b)) for b in batches] == [
            (BatchKind.ASSET, "cat.db", 1),
            (BatchKind.TABLE, "cat.db.schema.t1", 3),
            (BatchKind.TABLE, "cat.db.schema.t2", 2),
        ]

    def test_table_record_precedes_columns_in_batch(self) -> None:
        """Inside a batch, the table's creation comes before its columns."""
        records = _records_for_new_tables(make_table("t1", [("a", "int"), ("b", "int")]))
        batch = BatchEmitter(ScriptedSink()).group(records)[1]
        assert batch.records[0].qualified_name == "cat.db.schema.t1"

    def test_updated_table_with_new_column_is_one_batch(self) -> None:
        """An updated table and its created column share one batch."""
        old = make_snapshot([make_table("t1", [("a", "int")])])
        records = DiffEngine().diff(old, make_entities([make_table("t1", [("a", "int"), ("b", "string")])]))

        batches = BatchEmitter(ScriptedSink()).group(records)

        assert len(batches) == 1
        assert batches[0].kind == BatchKind.TABLE
        assert [(r.change_type, r.qualified_name) for r in batches[0].records] == [
            (ChangeType.UPDATED, "cat.db.schema.t1"),
            (ChangeType.CREATED, "cat.db.schema.t1.b"),
        ]

    def test_column_only_changes_grouped_by_table(self) -> None:
        """Column changes without a table change still form a table batch."""
        old = make_snapshot([make_table("t1", [("a", "int"), ("b", "int")])])
        records = DiffEngine().diff(old, make_entities([make_table("t1", [("a", "bigint"), ("b", "bigint")])]))

        batches = BatchEmitter(ScriptedSink()).group(records)

        assert len(batches) == 1
        assert batches[0].key == "cat.db.schema.t1"
        assert len(batches[0]) == 2

    def test_deleted_table_batch_keeps_column_first(self) -> None:
        """A deleted table's batch detaches columns before the table."""
        old = make_snapshot([make_table("t2", [("x", "string")])])
        records = DiffEngine().diff(old, make_entities([]))

        batches = BatchEmitter(ScriptedSink()).group(records)

        assert [r.qualified_name for r in batches[0].records] == ["cat.db.schema.t2.x", "cat.db.schema.t2"]

    def test_empty(self) -> None:
        """No records, no batches."""
        assert BatchEmitter(ScriptedSink()).group([]) == []


class TestEmit:
    """Tests for BatchEmitter.emit()."""

    def test_all_delivered(self) -> None:
        """Every batch is delivered in order."""
        sink = ScriptedSink()
        records = _records_for_new_tables(make_table("t1"), make_table("t2"))

        result = BatchEmitter(sink, timeout_seconds=None).emit(records)

        assert result.success
        assert [b.key for b in sink.delivered] == ["cat.db", "cat.db.schema.t1", "cat.db.schema.t2"]
        assert len(result.succeeded_records()) == len(records)

    def test_retry_then_success(self) -> None:
        """A retryable failure is retried with exponential backoff."""
        sink = ScriptedSink({"cat.db.schema.t1": [SendOutcome.RETRYABLE_ERROR, SendOutcome.RETRYABLE_ERROR]})
        sleep = RecordingSleep()
        emitter = BatchEmitter(sink, max_retries=3, backoff_seconds=0.5, timeout_seconds=None, sleep=sleep)

        result = emitter.emit(_records_for_new_tables(make_table("t1")))

        assert result.success
        assert sink.attempts["cat.db.schema.t1"] == 3
        assert sleep.calls == [0.5, 1.0]
        assert result.results[1].attempts == 3

    def test_exhausted_retries_isolated(self) -> None:
        """A batch that exhausts retries fails alone; siblings still go out."""
        sink = ScriptedSink({"cat.db.schema.t1": [SendOutcome.RETRYABLE_ERROR] * 5})
        emitter = BatchEmitter(sink, max_retries=2, backoff_seconds=0, timeout_seconds=None, sleep=RecordingSleep())

        result = emitter.emit(_records_for_new_tables(make_table("t1"), make_table("t2")))

        assert not result.success
        assert [r.batch.key for r in result.failed] == ["cat.db.schema.t1"]
        assert [b.key for b in sink.delivered] == ["cat.db", "cat.db.schema.t2"]
        assert result.errors[0].batch_key == "cat.db.schema.t1"
        assert result.errors[0].attempts == 2

    def test_fatal_not_retried(self) -> None:
        """A fatal outcome stops retrying at once."""
        sink = ScriptedSink({"cat.db": [SendOutcome.FATAL_ERROR]})
        sleep = RecordingSleep()

        result = BatchEmitter(sink, max_retries=5, timeout_seconds=None, sleep=sleep).emit(
            _records_for_new_tables(make_table("t1"))
        )

        assert sink.attempts["cat.db"] == 1
        assert sleep.calls == []
        assert [r.batch.key for r in result.failed] == ["cat.db"]

    def test_sink_exception_is_retryable(self) -> None:
        """An exception raised by the sink counts as a failed attempt."""
        sink = ScriptedSink({"cat.db": [RuntimeError("connection reset")]})
        result = BatchEmitter(sink, max_retries=2, timeout_seconds=None, sleep=RecordingSleep()).emit(
            _records_for_new_tables(make_table("t1"))
        )
        assert result.success
        assert sink.attempts["cat.db"] == 2

    def test_timeout_is_failure(self) -> None:
        """A sink call exceeding the timeout counts as a failed attempt."""
        release = threading.Event()

        class BlockingSink:
            def send(self, batch):
                release.wait(5)
                return SendOutcome.OK

        emitter = BatchEmitter(BlockingSink(), max_retries=1, timeout_seconds=0.05, sleep=RecordingSleep())
        try:
            result = emitter.emit(_records_for_new_tables(make_table("t1"))[:1])
        finally:
            release.set()

        assert not result.success
        assert "timed out" in str(result.errors[0])

    def test_hung_calls_do_not_delay_later_batches(self) -> None:
        """Abandoned sink calls never hold up healthy batches, in this cycle or later ones."""
        release = threading.Event()

        class HangingTableSink:
            def __init__(self):
                self.delivered = []

            def send(self, batch):
                if batch.key == "cat.db.schema.hung":
                    release.wait(5)
                self.delivered.append(batch.key)
                return SendOutcome.OK

        sink = HangingTableSink()
        emitter = BatchEmitter(sink, max_retries=2, backoff_seconds=0, timeout_seconds=0.2, sleep=RecordingSleep())
        try:
            hung_records = [r for r in _records_for_new_tables(make_table("hung")) if r.kind != EntityKind.ASSET]
            for _ in range(3):
                assert not emitter.emit(hung_records).success

            healthy = emitter.emit(_records_for_new_tables(make_table("t1"), make_table("t2")))
        finally:
            release.set()

        assert healthy.success
        assert [r.batch.key for r in healthy.results] == ["cat.db", "cat.db.schema.t1", "cat.db.schema.t2"]
