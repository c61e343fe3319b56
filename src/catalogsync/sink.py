"""
Notification sinks.

A sink receives change batches from the batch emitter. Any object with a
send(batch) -> SendOutcome method can be used; two implementations ship
with the package:
- LoggingSink: writes each batch to the log
- CollectingSink: keeps batches in memory (dry runs, tests)
"""

import logging
import threading
from typing import List

from typing_extensions import Protocol

from catalogsync.models import ChangeBatch, SendOutcome

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    """Downstream consumer of change batches."""

    def send(self, batch: ChangeBatch) -> SendOutcome:
        ...


class LoggingSink:
    """Sink that logs every batch and its records."""

    def __init__(self, level: int = logging.INFO):
        self.level = level

    def send(self, batch: ChangeBatch) -> SendOutcome:
        logger.log(self.level, f"Emitting {batch}")
        for record in batch.records:
            logger.log(self.level, f"  {record}")
        return SendOutcome.OK


class CollectingSink:
    """Sink that keeps every delivered batch in memory, in delivery order."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.batches: List[ChangeBatch] = []

    def send(self, batch: ChangeBatch) -> SendOutcome:
        with self._lock:
            self.batches.append(batch)
        return SendOutcome.OK

    def clear(self) -> None:
        with self._lock:
            self.batches.clear()
