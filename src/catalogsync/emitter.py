"""
Batch emitter.

Groups change records into coherent batches and hands them to the
notification sink with retry, backoff and per-batch failure isolation.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from catalogsync.errors import EmitError
from catalogsync.models import BatchKind, ChangeBatch, ChangeRecord, EntityKind, SendOutcome
from catalogsync.sink import NotificationSink

logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of delivering one batch."""

    batch: ChangeBatch
    success: bool
    attempts: int
    error: Optional[EmitError] = None

    def __str__(self) -> str:
        status = "✅" if self.success else "❌"
        return f"{status} {self.batch} after {self.attempts} attempt(s)"


@dataclass
class EmitResult:
    """Outcome of emitting every batch of one cycle."""

    results: List[BatchResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[BatchResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[BatchResult]:
        return [r for r in self.results if not r.success]

    @property
    def errors(self) -> List[EmitError]:
        return [r.error for r in self.results if r.error is not None]

    @property
    def success(self) -> bool:
        return not self.failed

    def succeeded_records(self) -> List[ChangeRecord]:
        """Records of every batch that was delivered."""
        return [rec for r in self.succeeded for rec in r.batch.records]


class BatchEmitter:
    """
    Sends change batches to a notification sink.

    A RETRYABLE_ERROR outcome, an exception raised by the sink, or a sink call
    exceeding timeout_seconds counts as a failed attempt and is retried with
    exponential backoff. FATAL_ERROR stops retrying at once. A batch that
    exhausts its attempts is reported on its own; sibling batches are still
    sent.
    """

    def __init__(
        self,
        sink: NotificationSink,
        max_retries: int = 3,
        backoff_seconds: float = 1.0,
        timeout_seconds: Optional[float] = 30.0,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize the emitter.

        Args:
            sink: Downstream notification sink
            max_retries: Maximum delivery attempts per batch (at least 1)
            backoff_seconds: Base delay; attempt n waits backoff_seconds * 2**n
            timeout_seconds: Bound on a single sink call, None to wait indefinitely
            sleep: Sleep function, replaceable in tests
        """
        self.sink = sink
        self.max_retries = max(1, max_retries)
        self.backoff_seconds = backoff_seconds
        self.timeout_seconds = timeout_seconds
        self._sleep = sleep

    # ---------- grouping ----------

    def group(self, records: Sequence[ChangeRecord]) -> List[ChangeBatch]:
        """
        Group records into batches.

        Each asset-level record gets its own batch. A table's record and all
        of its column records share one batch. Batches are ordered by their
        first record and keep record order inside.
        """
        batches: List[ChangeBatch] = []
        by_table: Dict[str, ChangeBatch] = {}

        for record in records:
            if record.kind == EntityKind.ASSET:
                batches.append(ChangeBatch(BatchKind.ASSET, record.qualified_name, [record]))
                continue

            table_key = record.table_qualified_name or record.qualified_name
            batch = by_table.get(table_key)
            if batch is None:
                batch = ChangeBatch(BatchKind.TABLE, table_key)
                by_table[table_key] = batch
                batches.append(batch)
            batch.records.append(record)

        return batches

    # ---------- emission ----------

    def emit(self, records: Sequence[ChangeRecord]) -> EmitResult:
        """
        Group and send records, one batch at a time.

        Args:
            records: Ordered change records from the diff engine

        Returns:
            EmitResult with one BatchResult per batch
        """
        result = EmitResult()
        for batch in self.group(records):
            result.results.append(self.emit_batch(batch))

        if result.failed:
            logger.warning(
                f"Emitted {len(result.succeeded)} batch(es), "
                f"{len(result.failed)} failed"
            )
        else:
            logger.info(f"Emitted {len(result.succeeded)} batch(es)")
        return result

    def emit_batch(self, batch: ChangeBatch) -> BatchResult:
        """Send a single batch with retry logic."""
        last_error: Optional[Exception] = None
        message = ""

        for attempt in range(self.max_retries):
            try:
                outcome = self._send(batch)
            except _SinkCallTimeout:
                last_error = None
                outcome = SendOutcome.RETRYABLE_ERROR
                message = f"sink call timed out after {self.timeout_seconds}s"
            except Exception as e:
                last_error = e
                outcome = SendOutcome.RETRYABLE_ERROR
                message = str(e)
            else:
                message = f"sink returned {outcome.value}"

            if outcome == SendOutcome.OK:
                logger.debug(f"Delivered {batch}")
                return BatchResult(batch=batch, success=True, attempts=attempt + 1)

            if outcome == SendOutcome.FATAL_ERROR:
                logger.error(f"Sink rejected {batch}: {message}")
                error = EmitError(batch.key, attempt + 1, last_error, message)
                return BatchResult(batch=batch, success=False, attempts=attempt + 1, error=error)

            if attempt < self.max_retries - 1:
                wait_time = self.backoff_seconds * (2 ** attempt)  # Exponential backoff
                logger.warning(
                    f"Attempt {attempt + 1} to emit {batch} failed: {message}. "
                    f"Retrying in {wait_time} seconds..."
                )
                self._sleep(wait_time)
            else:
                logger.error(f"All {self.max_retries} attempts to emit {batch} failed")

        error = EmitError(batch.key, self.max_retries, last_error, message)
        return BatchResult(batch=batch, success=False, attempts=self.max_retries, error=error)

    def _send(self, batch: ChangeBatch) -> SendOutcome:
        if self.timeout_seconds is None:
            return self.sink.send(batch)
        call = _SinkCall(self.sink, batch)
        call.start()
        return call.wait(self.timeout_seconds)


class _SinkCallTimeout(Exception):
    """A sink call did not return within the emitter's timeout."""


class _SinkCall(threading.Thread):
    """
    One sink call on its own daemon thread.

    A call that never returns is abandoned with its thread; it cannot delay
    any later call.
    """

    def __init__(self, sink: NotificationSink, batch: ChangeBatch):
        super().__init__(name=f"catalogsync-emit-{batch.key}", daemon=True)
        self.sink = sink
        self.batch = batch
        self.outcome: Optional[SendOutcome] = None
        self.error: Optional[Exception] = None

    def run(self) -> None:
        try:
            self.outcome = self.sink.send(self.batch)
        except Exception as e:
            self.error = e

    def wait(self, timeout: float) -> SendOutcome:
        self.join(timeout)
        if self.is_alive():
            raise _SinkCallTimeout()
        if self.error is not None:
            raise self.error
        return self.outcome
