"""
app/domain package marker.
"""

from app.domain.cost import (
    Allowed,
    CostLedgerEntry,
    CostLedgerSummary,
    Denied,
    MeteredCall,
    TokenUsage,
)
from app.domain.products import AcceptedProductRecord, RawProductRecord, Rejected, RejectionReason
from app.domain.scrape_cycle import (
    CycleResult,
    ExtractorOutcome,
    OutcomeReason,
    OutcomeStatus,
    ScheduleHandle,
    SchedulerRunStats,
)

__all__ = [
    "AcceptedProductRecord",
    "Allowed",
    "CostLedgerEntry",
    "CostLedgerSummary",
    "CycleResult",
    "Denied",
    "ExtractorOutcome",
    "MeteredCall",
    "OutcomeReason",
    "OutcomeStatus",
    "ScheduleHandle",
    "RawProductRecord",
    "Rejected",
    "RejectionReason",
    "SchedulerRunStats",
    "TokenUsage",
]
