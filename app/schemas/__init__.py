"""
app/schemas package marker.
"""

from app.schemas.scraper_admin import (
    CostSummaryResponse,
    CycleResultResponse,
    ExtractorOutcomeResponse,
    HealthResponse,
    ScheduleStateResponse,
    ScraperStatusResponse,
    TriggerResponse,
)

__all__ = [
    "CostSummaryResponse",
    "CycleResultResponse",
    "ExtractorOutcomeResponse",
    "HealthResponse",
    "ScheduleStateResponse",
    "ScraperStatusResponse",
    "TriggerResponse",
]
