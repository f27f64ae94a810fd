"""
app/services/scrape_orchestrator.py

Runs the extractor roster as one sequential cycle and keeps run statistics.

Per extractor, in roster order:

  1. authorize with the cost governor (vision only); a denial skips it
  2. run it on a worker thread with its record cap and hard timeout
  3. validate every raw record against the discount rules
  4. bill reported AI usage, including usage attached to a failure
  5. upsert accepted records by URL
  6. wait the inter-extractor delay before the next entry

After the roster, rows older than the retention window are swept.

Anything that raises while an entry runs, including billing and storage of
its output, fails that entry only. Cost billed before the failure stays on
its outcome. A record the store refuses counts as rejected, not as a store
failure.

A single non-blocking lock guards cycles. Scheduled ticks and manual triggers
share it: a request that finds it held is rejected with
``CycleAlreadyRunningError``.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Sequence
from concurrent.futures import Future, ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from dataclasses import replace
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from functools import lru_cache

from apscheduler.schedulers.background import BackgroundScheduler

from app.config import ScrapeSchedulerSettings, get_scrape_scheduler_settings
from app.domain.cost import MeteredCall, TokenUsage
from app.domain.products import Rejected, RejectionReason
from app.domain.scrape_cycle import (
    CycleResult,
    ExtractorOutcome,
    OutcomeReason,
    OutcomeStatus,
    ScheduleHandle,
    SchedulerRunStats,
)
from app.scheduler.jobs import (
    add_initial_scrape_cycle_job,
    add_scrape_cycle_job,
    build_scheduler,
    next_run_time,
    parse_cron_expression,
)
from app.scraping.errors import (
    CycleAlreadyRunningError,
    ExtractionError,
    ExtractorTimeoutError,
    StoreRejectedRecordError,
    StoreUnavailableError,
)
from app.scraping.logging_utils import elapsed_ms, log_event
from app.scraping.storage.base import ProductStore
from app.scraping.types import ExtractionResult, ExtractorDescriptor, ExtractorVariant
from app.services.cost_governor import CostGovernor, get_cost_governor
from app.validators.discount_validator import validate_discount

logger = logging.getLogger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class ScrapeOrchestrator:
    """
    Owns the roster, the in-flight guard, the schedule and the run statistics.
    """

    def __init__(
        self,
        *,
        roster: Sequence[ExtractorDescriptor],
        store: ProductStore,
        cost_governor: CostGovernor,
        settings: ScrapeSchedulerSettings,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self._roster = self._validate_roster(roster)
        self._store = store
        self._cost_governor = cost_governor
        self._settings = settings
        self._sleep = sleep
        self._clock = clock

        self._cycle_lock = threading.Lock()
        self._stats_lock = threading.Lock()
        self._schedule_lock = threading.Lock()
        self._stats = SchedulerRunStats()
        self._scheduler: BackgroundScheduler | None = None
        self._handle: ScheduleHandle | None = None
        self._manual_executor: ThreadPoolExecutor | None = None

    @property
    def roster(self) -> list[ExtractorDescriptor]:
        return list(self._roster)

    @property
    def is_running(self) -> bool:
        return self._cycle_lock.locked()

    @property
    def scheduler_active(self) -> bool:
        with self._schedule_lock:
            return self._scheduler is not None and self._scheduler.running

    # ------------------------------------------------------------------
    # Cycle entry points
    # ------------------------------------------------------------------

    def run_cycle(self) -> CycleResult:
        """
        Run every roster entry once, in order, on the calling thread.

        Raises ``CycleAlreadyRunningError`` if another cycle is in flight and
        ``StoreUnavailableError`` if every upsert attempted in the cycle failed.
        """

        if not self._cycle_lock.acquire(blocking=False):
            raise CycleAlreadyRunningError()
        try:
            return self._run_locked_cycle(trigger="direct")
        finally:
            self._cycle_lock.release()

    def trigger_manual(self) -> Future[CycleResult]:
        """
        Start a cycle in the background and return its future.

        The in-flight guard is taken before returning, so a second call made
        right after this one is rejected with ``CycleAlreadyRunningError``.
        """

        if not self._cycle_lock.acquire(blocking=False):
            log_event(logger, logging.INFO, "scrape_cycle_trigger_rejected", reason="already_running")
            raise CycleAlreadyRunningError()
        try:
            future = self._get_manual_executor().submit(self._run_manual_cycle)
        except BaseException:
            self._cycle_lock.release()
            raise
        log_event(logger, logging.INFO, "scrape_cycle_trigger_accepted")
        return future

    def _run_manual_cycle(self) -> CycleResult:
        try:
            return self._run_locked_cycle(trigger="manual")
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "scrape_cycle_failed", trigger="manual", error=str(exc))
            raise
        finally:
            self._cycle_lock.release()

    def _run_scheduled_cycle(self) -> None:
        try:
            self.run_cycle()
        except CycleAlreadyRunningError:
            log_event(logger, logging.INFO, "scrape_cycle_tick_skipped", reason="already_running")
        except Exception as exc:  # noqa: BLE001
            log_event(logger, logging.ERROR, "scrape_cycle_failed", trigger="schedule", error=str(exc))

    # ------------------------------------------------------------------
    # Schedule control
    # ------------------------------------------------------------------

    def start(self, cron_expression: str | None = None) -> ScheduleHandle:
        """
        Arm the cron schedule and return its handle.

        While the schedule is armed, further calls are no-ops that return the
        existing handle, even when they name a different cron expression.
        """

        expression = cron_expression or self._settings.cycle_cron
        parse_cron_expression(expression)
        with self._schedule_lock:
            active = self._scheduler is not None and self._scheduler.running
            if active and self._handle is not None:
                return self._handle
            scheduler = build_scheduler()
            add_scrape_cycle_job(scheduler, self._run_scheduled_cycle, cron_expression=expression)
            add_initial_scrape_cycle_job(
                scheduler,
                self._run_scheduled_cycle,
                delay_seconds=self._settings.initial_run_delay_seconds,
            )
            scheduler.start()
            self._scheduler = scheduler
            handle = ScheduleHandle(cron_expression=expression, started_at=self._clock())
            self._handle = handle
        log_event(logger, logging.INFO, "scrape_schedule_started", cron=expression)
        return handle

    def stop(self) -> bool:
        """
        Disarm the schedule. A cycle already running finishes on its own.

        Returns False when the schedule was not active.
        """

        with self._schedule_lock:
            scheduler = self._scheduler
            self._scheduler = None
            self._handle = None
        if scheduler is None:
            return False
        if scheduler.running:
            scheduler.shutdown(wait=False)
        log_event(logger, logging.INFO, "scrape_schedule_stopped")
        return True

    def shutdown(self) -> None:
        self.stop()
        executor = self._manual_executor
        self._manual_executor = None
        if executor is not None:
            executor.shutdown(wait=False, cancel_futures=True)

    # ------------------------------------------------------------------
    # Statistics
    # ------------------------------------------------------------------

    def get_stats(self) -> SchedulerRunStats:
        with self._schedule_lock:
            scheduler = self._scheduler
            active = scheduler is not None and scheduler.running
            upcoming = next_run_time(scheduler) if active else None
        with self._stats_lock:
            return replace(
                self._stats,
                scheduler_active=active,
                next_cycle_at=upcoming,
                cycle_in_flight=self._cycle_lock.locked(),
            )

    def _update_stats(self, **changes: object) -> None:
        with self._stats_lock:
            self._stats = replace(self._stats, **changes)

    # ------------------------------------------------------------------
    # Cycle body
    # ------------------------------------------------------------------

    def _run_locked_cycle(self, *, trigger: str) -> CycleResult:
        started_at = self._clock()
        started = time.monotonic()
        self._update_stats(last_cycle_started_at=started_at, current_extractor=None)
        log_event(
            logger,
            logging.INFO,
            "scrape_cycle_started",
            trigger=trigger,
            extractors=len(self._roster),
        )

        outcomes: list[ExtractorOutcome] = []
        for index, descriptor in enumerate(self._roster):
            self._update_stats(current_extractor=descriptor.name)
            outcome = self._run_extractor(descriptor)
            outcomes.append(outcome)
            self._record_outcome_stats(outcome)

            is_last = index == len(self._roster) - 1
            if not is_last and outcome.status != OutcomeStatus.SKIPPED:
                self._pause_between_extractors()

        upserts_attempted = sum(item.records_stored + item.store_failures for item in outcomes)
        upserts_stored = sum(item.records_stored for item in outcomes)
        store_down = upserts_attempted > 0 and upserts_stored == 0

        records_purged = 0
        retention_error: str | None = None
        if not store_down:
            records_purged, retention_error = self._sweep_retention()

        result = CycleResult(
            started_at=started_at,
            finished_at=self._clock(),
            outcomes=outcomes,
            records_purged=records_purged,
            retention_error=retention_error,
        )
        with self._stats_lock:
            self._stats = replace(
                self._stats,
                total_cycles=self._stats.total_cycles + 1,
                last_cycle_finished_at=result.finished_at,
                current_extractor=None,
                last_cycle=result,
                last_error="Product store unavailable for every upsert." if store_down else None,
            )
        log_event(
            logger,
            logging.ERROR if store_down else logging.INFO,
            "scrape_cycle_completed",
            trigger=trigger,
            attempted=result.attempted,
            succeeded=result.succeeded,
            skipped=result.skipped,
            failed=result.failed,
            records_stored=result.records_stored,
            records_purged=result.records_purged,
            duration_ms=elapsed_ms(started),
        )
        if store_down:
            raise StoreUnavailableError(
                f"All {upserts_attempted} upserts in the cycle failed; product store unavailable."
            )
        return result

    def _run_extractor(self, descriptor: ExtractorDescriptor) -> ExtractorOutcome:
        is_vision = descriptor.variant == ExtractorVariant.VISION
        if is_vision:
            decision = self._cost_governor.authorize()
            if not decision.allowed:
                log_event(
                    logger,
                    logging.WARNING,
                    "extractor_skipped_cost_limit",
                    extractor=descriptor.name,
                    reason=decision.reason,
                )
                return ExtractorOutcome(
                    extractor=descriptor.name,
                    variant=descriptor.variant,
                    status=OutcomeStatus.SKIPPED,
                    reason=OutcomeReason.COST_LIMIT,
                )

        started = time.monotonic()
        try:
            result = self._invoke_with_timeout(descriptor)
        except ExtractorTimeoutError as exc:
            log_event(
                logger,
                logging.ERROR,
                "extractor_timed_out",
                extractor=descriptor.name,
                timeout_ms=descriptor.timeout_ms,
            )
            return self._failed_outcome(
                descriptor, reason=OutcomeReason.TIMEOUT, error=str(exc), started=started
            )
        except ExtractionError as exc:
            cost = self._bill_usage(descriptor, exc.usage) if is_vision else Decimal("0")
            log_event(
                logger,
                logging.ERROR,
                "extractor_failed",
                extractor=descriptor.name,
                error=str(exc),
                billed_calls=len(exc.usage),
            )
            return self._failed_outcome(
                descriptor, reason=OutcomeReason.ERROR, error=str(exc), started=started, cost=cost
            )
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                logging.ERROR,
                "extractor_failed",
                extractor=descriptor.name,
                error=str(exc),
            )
            return self._failed_outcome(
                descriptor, reason=OutcomeReason.ERROR, error=str(exc), started=started
            )

        cost = self._bill_usage(descriptor, result.usage) if is_vision else Decimal("0")
        try:
            return self._store_records(descriptor, result, cost=cost, started=started)
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                logging.ERROR,
                "extractor_output_failed",
                extractor=descriptor.name,
                error=str(exc),
            )
            return self._failed_outcome(
                descriptor, reason=OutcomeReason.ERROR, error=str(exc), started=started, cost=cost
            )

    def _store_records(
        self,
        descriptor: ExtractorDescriptor,
        result: ExtractionResult,
        *,
        cost: Decimal,
        started: float,
    ) -> ExtractorOutcome:
        raw_records = list(result.records)[: descriptor.max_records]
        if not raw_records:
            log_event(logger, logging.WARNING, "extractor_no_products", extractor=descriptor.name)
            return self._failed_outcome(
                descriptor,
                reason=OutcomeReason.NO_PRODUCTS_FOUND,
                error="Extractor returned no products.",
                started=started,
                cost=cost,
            )

        scraped_at = self._clock()
        accepted = 0
        rejected = 0
        stored = 0
        store_failures = 0
        for raw in raw_records:
            verdict = validate_discount(raw, scraped_at=scraped_at)
            if isinstance(verdict, Rejected):
                rejected += 1
                self._log_rejection(descriptor, verdict)
                continue
            try:
                self._store.upsert(verdict)
            except StoreRejectedRecordError as exc:
                rejected += 1
                log_event(
                    logger,
                    logging.WARNING,
                    "product_rejected_by_store",
                    extractor=descriptor.name,
                    url=verdict.url,
                    error=str(exc),
                )
                continue
            except StoreUnavailableError as exc:
                accepted += 1
                store_failures += 1
                log_event(
                    logger,
                    logging.WARNING,
                    "product_upsert_failed",
                    extractor=descriptor.name,
                    url=verdict.url,
                    error=str(exc),
                )
                continue
            accepted += 1
            stored += 1

        outcome = ExtractorOutcome(
            extractor=descriptor.name,
            variant=descriptor.variant,
            status=OutcomeStatus.SUCCEEDED,
            records_extracted=len(raw_records),
            records_accepted=accepted,
            records_rejected=rejected,
            records_stored=stored,
            store_failures=store_failures,
            cost_usd=cost,
            duration_ms=elapsed_ms(started),
        )
        log_event(
            logger,
            logging.INFO,
            "extractor_completed",
            extractor=descriptor.name,
            variant=descriptor.variant,
            records_extracted=outcome.records_extracted,
            records_accepted=outcome.records_accepted,
            records_rejected=outcome.records_rejected,
            records_stored=outcome.records_stored,
            store_failures=outcome.store_failures,
            cost_usd=outcome.cost_usd,
            duration_ms=outcome.duration_ms,
        )
        return outcome

    def _invoke_with_timeout(self, descriptor: ExtractorDescriptor) -> ExtractionResult:
        executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix=f"extractor-{descriptor.name}")
        try:
            future = executor.submit(
                descriptor.extractor.run,
                max_records=descriptor.max_records,
                timeout_ms=descriptor.timeout_ms,
            )
            try:
                return future.result(timeout=descriptor.timeout_ms / 1000)
            except FutureTimeoutError:
                future.add_done_callback(
                    lambda late: self._handle_late_completion(descriptor, late)
                )
                raise ExtractorTimeoutError(descriptor.name, descriptor.timeout_ms) from None
        finally:
            executor.shutdown(wait=False, cancel_futures=True)

    def _handle_late_completion(
        self,
        descriptor: ExtractorDescriptor,
        future: Future[ExtractionResult],
    ) -> None:
        """
        Bill usage from an extractor that finished after its timeout. Records are dropped.
        """

        if future.cancelled() or descriptor.variant != ExtractorVariant.VISION:
            return
        error = future.exception()
        if error is None:
            usage = future.result().usage
        elif isinstance(error, ExtractionError):
            usage = error.usage
        else:
            usage = ()
        if not usage:
            return
        try:
            cost = self._bill_usage(descriptor, usage)
        except Exception as exc:  # noqa: BLE001
            log_event(
                logger,
                logging.ERROR,
                "late_usage_billing_failed",
                extractor=descriptor.name,
                error=str(exc),
            )
            return
        log_event(
            logger,
            logging.WARNING,
            "extractor_late_completion_billed",
            extractor=descriptor.name,
            billed_calls=len(usage),
            cost_usd=cost,
        )

    def _bill_usage(
        self,
        descriptor: ExtractorDescriptor,
        usage: Sequence[TokenUsage],
    ) -> Decimal:
        """
        Record each metered call and return the billed total.

        A call that fails to bill is logged and left out of the total.
        """

        total = Decimal("0")
        for item in usage:
            try:
                entry = self._cost_governor.record(MeteredCall.from_usage(descriptor.name, item))
            except Exception as exc:  # noqa: BLE001
                log_event(
                    logger,
                    logging.ERROR,
                    "ai_usage_billing_failed",
                    extractor=descriptor.name,
                    kind=item.kind,
                    input_tokens=item.input_tokens,
                    output_tokens=item.output_tokens,
                    error=str(exc),
                )
                continue
            total += entry.cost_usd
        return total

    def _sweep_retention(self) -> tuple[int, str | None]:
        cutoff = self._clock() - timedelta(days=self._settings.retention_days)
        try:
            purged = self._store.delete_older_than(cutoff)
        except StoreUnavailableError as exc:
            log_event(logger, logging.ERROR, "retention_sweep_failed", cutoff=cutoff, error=str(exc))
            return 0, str(exc)
        log_event(logger, logging.INFO, "retention_sweep_completed", cutoff=cutoff, purged=purged)
        return purged, None

    def _pause_between_extractors(self) -> None:
        delay_ms = self._settings.inter_extractor_delay_ms
        if delay_ms > 0:
            self._sleep(delay_ms / 1000)

    def _record_outcome_stats(self, outcome: ExtractorOutcome) -> None:
        with self._stats_lock:
            stats = self._stats
            changes: dict[str, object] = {
                "total_records_stored": stats.total_records_stored + outcome.records_stored,
            }
            if outcome.status == OutcomeStatus.SUCCEEDED:
                changes["successful_runs"] = stats.successful_runs + 1
            elif outcome.status == OutcomeStatus.FAILED:
                changes["failed_runs"] = stats.failed_runs + 1
            else:
                changes["skipped_runs"] = stats.skipped_runs + 1
            if outcome.status != OutcomeStatus.SKIPPED:
                if outcome.variant == ExtractorVariant.VISION:
                    changes["vision_runs"] = stats.vision_runs + 1
                else:
                    changes["selector_runs"] = stats.selector_runs + 1
            self._stats = replace(stats, **changes)

    def _get_manual_executor(self) -> ThreadPoolExecutor:
        if self._manual_executor is None:
            self._manual_executor = ThreadPoolExecutor(
                max_workers=1,
                thread_name_prefix="scrape-cycle-manual",
            )
        return self._manual_executor

    @staticmethod
    def _log_rejection(descriptor: ExtractorDescriptor, rejection: Rejected) -> None:
        level = (
            logging.WARNING
            if rejection.reason == RejectionReason.ESTIMATED_PRICE
            else logging.DEBUG
        )
        log_event(
            logger,
            level,
            "product_rejected",
            extractor=descriptor.name,
            reason=rejection.reason,
            detail=rejection.message,
            url=rejection.record.url,
        )

    @staticmethod
    def _failed_outcome(
        descriptor: ExtractorDescriptor,
        *,
        reason: str,
        error: str,
        started: float,
        cost: Decimal = Decimal("0"),
    ) -> ExtractorOutcome:
        return ExtractorOutcome(
            extractor=descriptor.name,
            variant=descriptor.variant,
            status=OutcomeStatus.FAILED,
            reason=reason,
            cost_usd=cost,
            duration_ms=elapsed_ms(started),
            error=error,
        )

    @staticmethod
    def _validate_roster(roster: Sequence[ExtractorDescriptor]) -> list[ExtractorDescriptor]:
        seen: set[str] = set()
        for descriptor in roster:
            if descriptor.name in seen:
                raise ValueError(f"Duplicate extractor name '{descriptor.name}' in roster.")
            seen.add(descriptor.name)
            if descriptor.variant not in ExtractorVariant.ALL:
                raise ValueError(
                    f"Extractor '{descriptor.name}' has unknown variant '{descriptor.variant}'."
                )
            if descriptor.extractor.variant != descriptor.variant:
                raise ValueError(
                    f"Extractor '{descriptor.name}' is declared '{descriptor.variant}' but "
                    f"implements '{descriptor.extractor.variant}'."
                )
            if descriptor.max_records <= 0 or descriptor.timeout_ms <= 0:
                raise ValueError(
                    f"Extractor '{descriptor.name}' needs a positive max_records and timeout_ms."
                )
        return list(roster)


@lru_cache(maxsize=1)
def get_scrape_orchestrator() -> ScrapeOrchestrator:
    """
    Build and cache the process-wide orchestrator from the roster file.
    """

    from app.scraping.config import load_extractor_configs
    from app.scraping.registry import ExtractorDependencies, ExtractorRegistry
    from app.scraping.storage import SQLAlchemyProductStore
    from app.config import get_vision_settings
    from db.session import SessionLocal

    settings = get_scrape_scheduler_settings()
    configs = load_extractor_configs(config_path=settings.roster_config_path)
    roster = ExtractorRegistry().build_roster(
        configs=configs,
        dependencies=ExtractorDependencies(
            scheduler_settings=settings,
            vision_settings=get_vision_settings(),
        ),
    )
    return ScrapeOrchestrator(
        roster=roster,
        store=SQLAlchemyProductStore(session_factory=SessionLocal),
        cost_governor=get_cost_governor(),
        settings=settings,
    )
