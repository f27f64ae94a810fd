"""
app/services/cost_governor.py

Daily spending ceiling for metered AI calls.

State per local calendar day
----------------------------
  open:    spend below the alert threshold; calls are authorized.
  warned:  alert threshold <= spend < daily limit; calls are authorized and
           the alert callback fires once, on entry into this state.
  stopped: spend >= daily limit; ``authorize()`` returns
           ``Denied("DAILY_COST_LIMIT_EXCEEDED")`` until local midnight.

Transitions are one-way within a day. The first read or write after local
midnight starts a fresh day at zero.

The running totals live in memory and are updated synchronously under a lock.
Ledger persistence is handed to a ``BackgroundLedgerWriter`` and never affects
the totals.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterable
from datetime import date, datetime, time, timedelta
from decimal import Decimal
from functools import lru_cache

from app.config import CostGovernorSettings, get_cost_governor_settings
from app.domain.cost import (
    Allowed,
    BudgetState,
    CostLedgerEntry,
    CostLedgerSummary,
    Denied,
    MeteredCall,
)
from app.scraping.logging_utils import log_event
from app.services.cost_ledger_writer import BackgroundLedgerWriter

logger = logging.getLogger(__name__)

_TOKENS_PER_UNIT = Decimal(1_000_000)


def _local_now() -> datetime:
    return datetime.now().astimezone()


def _day_of(timestamp: datetime, *, reference: datetime) -> date:
    if timestamp.tzinfo is not None and reference.tzinfo is not None:
        return timestamp.astimezone(reference.tzinfo).date()
    return timestamp.date()


def calculate_cost(
    *,
    input_tokens: int,
    output_tokens: int,
    input_rate_per_mtok: Decimal,
    output_rate_per_mtok: Decimal,
) -> Decimal:
    """
    USD cost of one call from per-million-token rates.

    >>> calculate_cost(input_tokens=1500, output_tokens=500,
    ...                input_rate_per_mtok=Decimal("3"), output_rate_per_mtok=Decimal("15"))
    Decimal('0.0120')
    """

    if input_tokens < 0 or output_tokens < 0:
        raise ValueError("Token counts must be non-negative.")
    input_cost = Decimal(input_tokens) / _TOKENS_PER_UNIT * input_rate_per_mtok
    output_cost = Decimal(output_tokens) / _TOKENS_PER_UNIT * output_rate_per_mtok
    return input_cost + output_cost


class CostGovernor:
    """
    Authorizes, bills and summarizes metered AI calls for the current day.
    """

    def __init__(
        self,
        *,
        settings: CostGovernorSettings,
        ledger_writer: BackgroundLedgerWriter | None = None,
        on_alert: Callable[[CostLedgerSummary], None] | None = None,
        clock: Callable[[], datetime] = _local_now,
    ) -> None:
        if settings.alert_threshold_usd < 0 or settings.max_daily_cost_usd < 0:
            raise ValueError("Cost thresholds must be non-negative.")
        if settings.alert_threshold_usd > settings.max_daily_cost_usd:
            raise ValueError("ALERT_THRESHOLD must not exceed MAX_DAILY_API_COST.")

        self._settings = settings
        self._ledger_writer = ledger_writer
        self._on_alert = on_alert or self._log_alert
        self._clock = clock
        self._lock = threading.Lock()

        self._day: date = clock().date()
        self._entries: list[CostLedgerEntry] = []
        self._total_cost = Decimal("0")
        self._input_tokens = 0
        self._output_tokens = 0
        self._alert_sent = False
        self._stop_logged = False

    @property
    def settings(self) -> CostGovernorSettings:
        return self._settings

    def authorize(self) -> Allowed | Denied:
        """
        Decide whether one more metered call may start. Reads state only.
        """

        today = self._clock().date()
        with self._lock:
            total = self._total_cost if today == self._day else Decimal("0")

        if total >= self._settings.max_daily_cost_usd:
            return Denied()
        if total >= self._settings.alert_threshold_usd:
            return Allowed(state=BudgetState.WARNED)
        return Allowed(state=BudgetState.OPEN)

    def record(self, call: MeteredCall) -> CostLedgerEntry:
        """
        Bill one completed call and return its ledger entry.

        The entry carries the running daily total after billing.
        """

        cost = calculate_cost(
            input_tokens=call.input_tokens,
            output_tokens=call.output_tokens,
            input_rate_per_mtok=self._settings.input_rate_per_mtok,
            output_rate_per_mtok=self._settings.output_rate_per_mtok,
        )
        now = self._clock()

        with self._lock:
            self._roll_over(now.date())
            self._total_cost += cost
            self._input_tokens += call.input_tokens
            self._output_tokens += call.output_tokens
            entry = CostLedgerEntry(
                timestamp=now,
                extractor_name=call.extractor_name,
                kind=call.kind,
                input_tokens=call.input_tokens,
                output_tokens=call.output_tokens,
                has_image=call.has_image,
                cost_usd=cost,
                daily_total_usd=self._total_cost,
            )
            self._entries.append(entry)

            fire_alert = (
                not self._alert_sent and self._total_cost >= self._settings.alert_threshold_usd
            )
            if fire_alert:
                self._alert_sent = True
            log_stop = not self._stop_logged and self._total_cost >= self._settings.max_daily_cost_usd
            if log_stop:
                self._stop_logged = True
            summary = self._summary_locked()

        log_event(
            logger,
            logging.INFO,
            "ai_call_billed",
            extractor=call.extractor_name,
            kind=call.kind,
            input_tokens=call.input_tokens,
            output_tokens=call.output_tokens,
            has_image=call.has_image,
            cost_usd=cost,
            daily_total_usd=entry.daily_total_usd,
        )
        if fire_alert:
            try:
                self._on_alert(summary)
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    logging.ERROR,
                    "ai_cost_alert_failed",
                    day=summary.day,
                    total_cost_usd=summary.total_cost_usd,
                    error=str(exc),
                )
        if log_stop:
            log_event(
                logger,
                logging.ERROR,
                "ai_daily_cost_limit_reached",
                day=summary.day,
                total_cost_usd=summary.total_cost_usd,
                max_daily_cost_usd=summary.max_daily_cost_usd,
            )
        if self._ledger_writer is not None:
            self._ledger_writer.submit(entry)
        return entry

    def get_summary(self) -> CostLedgerSummary:
        today = self._clock().date()
        with self._lock:
            if today != self._day:
                return self._empty_summary(today)
            return self._summary_locked()

    def entries(self) -> list[CostLedgerEntry]:
        """
        Today's billed calls, oldest first.
        """

        today = self._clock().date()
        with self._lock:
            if today != self._day:
                return []
            return list(self._entries)

    def restore(self, entries: Iterable[CostLedgerEntry]) -> int:
        """
        Seed today's totals from persisted ledger entries after a restart.

        Entries from other days are ignored. Thresholds already crossed do
        not fire the alert again. Returns the number of entries applied.
        """

        now = self._clock()
        today = now.date()
        applied = 0
        with self._lock:
            self._roll_over(today)
            for entry in entries:
                if _day_of(entry.timestamp, reference=now) != today:
                    continue
                self._total_cost += entry.cost_usd
                self._input_tokens += entry.input_tokens
                self._output_tokens += entry.output_tokens
                self._entries.append(entry)
                applied += 1
            self._alert_sent = self._total_cost >= self._settings.alert_threshold_usd
            self._stop_logged = self._total_cost >= self._settings.max_daily_cost_usd
            total = self._total_cost

        log_event(
            logger,
            logging.INFO,
            "ai_cost_ledger_restored",
            day=today,
            entries=applied,
            total_cost_usd=total,
        )
        return applied

    def close(self, timeout: float = 5.0) -> None:
        """
        Drain pending ledger writes and stop the writer thread.
        """

        if self._ledger_writer is None:
            return
        if not self._ledger_writer.flush(timeout):
            log_event(logger, logging.WARNING, "cost_ledger_flush_timed_out", timeout_seconds=timeout)
        self._ledger_writer.close()

    def _roll_over(self, today: date) -> None:
        if today == self._day:
            return
        log_event(
            logger,
            logging.INFO,
            "ai_cost_day_rolled_over",
            previous_day=self._day,
            previous_total_usd=self._total_cost,
            day=today,
        )
        self._day = today
        self._entries = []
        self._total_cost = Decimal("0")
        self._input_tokens = 0
        self._output_tokens = 0
        self._alert_sent = False
        self._stop_logged = False

    def _summary_locked(self) -> CostLedgerSummary:
        return CostLedgerSummary(
            day=self._day,
            total_calls=len(self._entries),
            total_input_tokens=self._input_tokens,
            total_output_tokens=self._output_tokens,
            total_cost_usd=self._total_cost,
            alert_threshold_usd=self._settings.alert_threshold_usd,
            max_daily_cost_usd=self._settings.max_daily_cost_usd,
        )

    def _empty_summary(self, day: date) -> CostLedgerSummary:
        return CostLedgerSummary(
            day=day,
            total_calls=0,
            total_input_tokens=0,
            total_output_tokens=0,
            total_cost_usd=Decimal("0"),
            alert_threshold_usd=self._settings.alert_threshold_usd,
            max_daily_cost_usd=self._settings.max_daily_cost_usd,
        )

    @staticmethod
    def _log_alert(summary: CostLedgerSummary) -> None:
        log_event(
            logger,
            logging.WARNING,
            "ai_cost_alert_threshold_reached",
            day=summary.day,
            total_cost_usd=summary.total_cost_usd,
            alert_threshold_usd=summary.alert_threshold_usd,
            max_daily_cost_usd=summary.max_daily_cost_usd,
            remaining_budget_usd=summary.remaining_budget_usd,
        )


@lru_cache(maxsize=1)
def get_cost_governor() -> CostGovernor:
    """
    Build and cache the process-wide cost governor with database ledger persistence.
    """

    from sqlalchemy.exc import SQLAlchemyError

    from app.services.cost_ledger_writer import SQLAlchemyLedgerSink
    from db.session import SessionLocal

    settings = get_cost_governor_settings()
    sink = SQLAlchemyLedgerSink(session_factory=SessionLocal)
    governor = CostGovernor(
        settings=settings,
        ledger_writer=BackgroundLedgerWriter(
            sink=sink,
            max_attempts=settings.ledger_max_attempts,
            backoff_initial_seconds=settings.ledger_backoff_initial_seconds,
        ),
    )

    day_start = datetime.combine(_local_now().date(), time.min).astimezone()
    try:
        governor.restore(sink.load_between(day_start, day_start + timedelta(days=1)))
    except SQLAlchemyError as exc:
        log_event(logger, logging.WARNING, "ai_cost_ledger_restore_failed", error=str(exc))
    return governor
