"""
app/schemas/scraper_admin.py

Response schemas for the scraper admin endpoints.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, Field

from app.domain.cost import CostLedgerSummary
from app.domain.scrape_cycle import CycleResult, ExtractorOutcome, SchedulerRunStats


class ExtractorOutcomeResponse(BaseModel):
    extractor: str
    variant: str
    status: str
    reason: str | None = None
    records_extracted: int = Field(..., ge=0)
    records_accepted: int = Field(..., ge=0)
    records_rejected: int = Field(..., ge=0)
    records_stored: int = Field(..., ge=0)
    store_failures: int = Field(..., ge=0)
    cost_usd: float = Field(..., ge=0)
    duration_ms: int = Field(..., ge=0)
    error: str | None = None

    @classmethod
    def from_outcome(cls, outcome: ExtractorOutcome) -> "ExtractorOutcomeResponse":
        return cls(
            extractor=outcome.extractor,
            variant=outcome.variant,
            status=outcome.status,
            reason=outcome.reason,
            records_extracted=outcome.records_extracted,
            records_accepted=outcome.records_accepted,
            records_rejected=outcome.records_rejected,
            records_stored=outcome.records_stored,
            store_failures=outcome.store_failures,
            cost_usd=float(outcome.cost_usd),
            duration_ms=outcome.duration_ms,
            error=outcome.error,
        )


class CycleResultResponse(BaseModel):
    """
    Summary of the last completed scrape cycle.
    """

    started_at: datetime
    finished_at: datetime
    attempted: int = Field(..., ge=0)
    succeeded: int = Field(..., ge=0)
    skipped: int = Field(..., ge=0)
    failed: int = Field(..., ge=0)
    records_stored: int = Field(..., ge=0)
    records_purged: int = Field(..., ge=0)
    retention_error: str | None = None
    outcomes: list[ExtractorOutcomeResponse] = Field(default_factory=list)

    @classmethod
    def from_result(cls, result: CycleResult) -> "CycleResultResponse":
        return cls(
            started_at=result.started_at,
            finished_at=result.finished_at,
            attempted=result.attempted,
            succeeded=result.succeeded,
            skipped=result.skipped,
            failed=result.failed,
            records_stored=result.records_stored,
            records_purged=result.records_purged,
            retention_error=result.retention_error,
            outcomes=[ExtractorOutcomeResponse.from_outcome(item) for item in result.outcomes],
        )


class ScraperStatusResponse(BaseModel):
    """
    Scheduler statistics since process start.
    """

    scheduler_active: bool
    cycle_in_flight: bool
    current_extractor: str | None = None
    total_cycles: int = Field(..., ge=0)
    successful_runs: int = Field(..., ge=0)
    failed_runs: int = Field(..., ge=0)
    skipped_runs: int = Field(..., ge=0)
    selector_runs: int = Field(..., ge=0)
    vision_runs: int = Field(..., ge=0)
    total_records_stored: int = Field(..., ge=0)
    last_cycle_started_at: datetime | None = None
    last_cycle_finished_at: datetime | None = None
    next_cycle_at: datetime | None = None
    last_error: str | None = None
    last_cycle: CycleResultResponse | None = None

    @classmethod
    def from_stats(cls, stats: SchedulerRunStats) -> "ScraperStatusResponse":
        return cls(
            scheduler_active=stats.scheduler_active,
            cycle_in_flight=stats.cycle_in_flight,
            current_extractor=stats.current_extractor,
            total_cycles=stats.total_cycles,
            successful_runs=stats.successful_runs,
            failed_runs=stats.failed_runs,
            skipped_runs=stats.skipped_runs,
            selector_runs=stats.selector_runs,
            vision_runs=stats.vision_runs,
            total_records_stored=stats.total_records_stored,
            last_cycle_started_at=stats.last_cycle_started_at,
            last_cycle_finished_at=stats.last_cycle_finished_at,
            next_cycle_at=stats.next_cycle_at,
            last_error=stats.last_error,
            last_cycle=(
                CycleResultResponse.from_result(stats.last_cycle)
                if stats.last_cycle is not None
                else None
            ),
        )


class TriggerResponse(BaseModel):
    status: str


class ScheduleStateResponse(BaseModel):
    scheduler_active: bool
    changed: bool
    next_cycle_at: datetime | None = None


class CostSummaryResponse(BaseModel):
    """
    Today's AI spend against the configured thresholds, in USD.
    """

    day: date
    state: str
    total_calls: int = Field(..., ge=0)
    total_input_tokens: int = Field(..., ge=0)
    total_output_tokens: int = Field(..., ge=0)
    total_cost_usd: float = Field(..., ge=0)
    alert_threshold_usd: float = Field(..., ge=0)
    max_daily_cost_usd: float = Field(..., ge=0)
    remaining_budget_usd: float = Field(..., ge=0)
    percent_used: float = Field(..., ge=0)
    alert_triggered: bool
    stopped: bool
    average_cost_per_call_usd: float = Field(..., ge=0)
    estimated_remaining_calls: int | None = None

    @classmethod
    def from_summary(cls, summary: CostLedgerSummary) -> "CostSummaryResponse":
        return cls(
            day=summary.day,
            state=summary.state,
            total_calls=summary.total_calls,
            total_input_tokens=summary.total_input_tokens,
            total_output_tokens=summary.total_output_tokens,
            total_cost_usd=float(summary.total_cost_usd),
            alert_threshold_usd=float(summary.alert_threshold_usd),
            max_daily_cost_usd=float(summary.max_daily_cost_usd),
            remaining_budget_usd=float(summary.remaining_budget_usd),
            percent_used=float(summary.percent_used),
            alert_triggered=summary.alert_triggered,
            stopped=summary.stopped,
            average_cost_per_call_usd=float(summary.average_cost_per_call_usd),
            estimated_remaining_calls=summary.estimated_remaining_calls,
        )


class HealthResponse(BaseModel):
    status: str
    scheduler_active: bool
