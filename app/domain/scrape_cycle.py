"""
app/domain/scrape_cycle.py

Domain models for scrape cycle orchestration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal


class OutcomeStatus:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    SKIPPED = "skipped"


class OutcomeReason:
    COST_LIMIT = "cost_limit"
    TIMEOUT = "timeout"
    ERROR = "error"
    NO_PRODUCTS_FOUND = "no_products_found"


@dataclass(frozen=True)
class ExtractorOutcome:
    """
    Result of one roster entry within a cycle.
    """

    extractor: str
    variant: str
    status: str
    reason: str | None = None
    records_extracted: int = 0
    records_accepted: int = 0
    records_rejected: int = 0
    records_stored: int = 0
    store_failures: int = 0
    cost_usd: Decimal = Decimal("0")
    duration_ms: int = 0
    error: str | None = None


@dataclass(frozen=True)
class CycleResult:
    """
    Aggregate result of one full pass over the extractor roster.
    """

    started_at: datetime
    finished_at: datetime
    outcomes: list[ExtractorOutcome] = field(default_factory=list)
    records_purged: int = 0
    retention_error: str | None = None

    @property
    def attempted(self) -> int:
        return len(self.outcomes)

    @property
    def succeeded(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == OutcomeStatus.SUCCEEDED)

    @property
    def failed(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == OutcomeStatus.FAILED)

    @property
    def skipped(self) -> int:
        return sum(1 for outcome in self.outcomes if outcome.status == OutcomeStatus.SKIPPED)

    @property
    def records_stored(self) -> int:
        return sum(outcome.records_stored for outcome in self.outcomes)

    def to_dict(self) -> dict[str, object]:
        return {
            "started_at": self.started_at.isoformat(),
            "finished_at": self.finished_at.isoformat(),
            "attempted": self.attempted,
            "succeeded": self.succeeded,
            "skipped": self.skipped,
            "failed": self.failed,
            "records_stored": self.records_stored,
            "records_purged": self.records_purged,
            "retention_error": self.retention_error,
            "outcomes": [
                {
                    "extractor": outcome.extractor,
                    "variant": outcome.variant,
                    "status": outcome.status,
                    "reason": outcome.reason,
                    "records_extracted": outcome.records_extracted,
                    "records_accepted": outcome.records_accepted,
                    "records_rejected": outcome.records_rejected,
                    "records_stored": outcome.records_stored,
                    "store_failures": outcome.store_failures,
                    "cost_usd": str(outcome.cost_usd),
                    "duration_ms": outcome.duration_ms,
                    "error": outcome.error,
                }
                for outcome in self.outcomes
            ],
        }


@dataclass(frozen=True)
class SchedulerRunStats:
    """
    Process-wide scheduler statistics snapshot. Not persisted across restarts.
    """

    total_cycles: int = 0
    successful_runs: int = 0
    failed_runs: int = 0
    skipped_runs: int = 0
    selector_runs: int = 0
    vision_runs: int = 0
    total_records_stored: int = 0
    last_cycle_started_at: datetime | None = None
    last_cycle_finished_at: datetime | None = None
    next_cycle_at: datetime | None = None
    cycle_in_flight: bool = False
    current_extractor: str | None = None
    scheduler_active: bool = False
    last_cycle: CycleResult | None = None
    last_error: str | None = None


@dataclass(frozen=True)
class ScheduleHandle:
    """
    The armed cycle schedule. ``start`` hands back the same handle while it stays armed.
    """

    cron_expression: str
    started_at: datetime
