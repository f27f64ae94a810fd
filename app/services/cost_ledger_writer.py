"""
app/services/cost_ledger_writer.py

Best-effort persistence of cost ledger entries.

The cost governor's in-memory totals are authoritative for budget decisions.
Ledger rows are an audit trail: they are queued and written by a background
thread with retries, so a slow or failing database never blocks ``record()``
and never loosens the budget.
"""

from __future__ import annotations

import logging
import queue
import threading
import time
from collections.abc import Callable
from datetime import datetime
from decimal import Decimal
from typing import Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.cost import CostLedgerEntry
from app.repositories.cost_ledger_repository import CostLedgerRepository
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

_STOP = object()


class LedgerSink(Protocol):
    def append(self, entry: CostLedgerEntry) -> None:
        ...


class SQLAlchemyLedgerSink:
    """
    Writes ledger entries through the repository, one transaction each.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def append(self, entry: CostLedgerEntry) -> None:
        with self._session_factory() as session:
            try:
                CostLedgerRepository(session).insert_entry(entry)
                session.commit()
            except SQLAlchemyError:
                session.rollback()
                raise

    def load_between(self, start: datetime, end: datetime) -> list[CostLedgerEntry]:
        """
        Rebuild ledger entries for a time window, oldest first.
        """

        with self._session_factory() as session:
            rows = CostLedgerRepository(session).list_entries_between(start, end)

        entries: list[CostLedgerEntry] = []
        running_total = Decimal("0")
        for row in rows:
            running_total += row.cost_usd
            entries.append(
                CostLedgerEntry(
                    timestamp=row.called_at,
                    extractor_name=row.extractor_name,
                    kind=row.call_kind,
                    input_tokens=row.input_tokens,
                    output_tokens=row.output_tokens,
                    has_image=row.has_image,
                    cost_usd=row.cost_usd,
                    daily_total_usd=running_total,
                )
            )
        return entries


class BackgroundLedgerWriter:
    """
    Queue-fed worker thread that appends entries to a sink with retries.

    An entry is dropped, with an ERROR log, only after ``max_attempts``
    consecutive failures.
    """

    def __init__(
        self,
        *,
        sink: LedgerSink,
        max_attempts: int = 5,
        backoff_initial_seconds: float = 0.5,
        backoff_multiplier: float = 2.0,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._sink = sink
        self._max_attempts = max(1, max_attempts)
        self._backoff_initial_seconds = max(0.0, backoff_initial_seconds)
        self._backoff_multiplier = max(1.0, backoff_multiplier)
        self._sleep = sleep

        self._queue: queue.Queue[object] = queue.Queue()
        self._pending = 0
        self._pending_changed = threading.Condition()
        self._thread: threading.Thread | None = None
        self._start_lock = threading.Lock()

        self.written = 0
        self.dropped = 0

    def submit(self, entry: CostLedgerEntry) -> None:
        self._ensure_started()
        with self._pending_changed:
            self._pending += 1
        self._queue.put(entry)

    def flush(self, timeout: float | None = None) -> bool:
        """
        Wait until every submitted entry was written or dropped.

        Returns False if ``timeout`` elapsed first.
        """

        deadline = None if timeout is None else time.monotonic() + timeout
        with self._pending_changed:
            while self._pending > 0:
                remaining = None if deadline is None else deadline - time.monotonic()
                if remaining is not None and remaining <= 0:
                    return False
                self._pending_changed.wait(remaining)
        return True

    def close(self, timeout: float | None = 5.0) -> None:
        thread = self._thread
        if thread is None:
            return
        self._queue.put(_STOP)
        thread.join(timeout)
        self._thread = None

    def _ensure_started(self) -> None:
        with self._start_lock:
            if self._thread is not None and self._thread.is_alive():
                return
            self._thread = threading.Thread(
                target=self._run,
                name="cost-ledger-writer",
                daemon=True,
            )
            self._thread.start()

    def _run(self) -> None:
        while True:
            item = self._queue.get()
            if item is _STOP:
                return
            try:
                self._write_with_retry(item)  # type: ignore[arg-type]
            finally:
                with self._pending_changed:
                    self._pending -= 1
                    self._pending_changed.notify_all()

    def _write_with_retry(self, entry: CostLedgerEntry) -> None:
        for attempt in range(1, self._max_attempts + 1):
            try:
                self._sink.append(entry)
                self.written += 1
                return
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    logging.WARNING,
                    "cost_ledger_write_failed",
                    attempt=attempt,
                    max_attempts=self._max_attempts,
                    extractor=entry.extractor_name,
                    error=str(exc),
                )
            if attempt < self._max_attempts:
                self._sleep(
                    self._backoff_initial_seconds * (self._backoff_multiplier ** (attempt - 1))
                )

        self.dropped += 1
        log_event(
            logger,
            logging.ERROR,
            "cost_ledger_entry_dropped",
            extractor=entry.extractor_name,
            timestamp=entry.timestamp,
            cost_usd=entry.cost_usd,
        )
