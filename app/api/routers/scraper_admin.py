"""
app/api/routers/scraper_admin.py

Admin endpoints for the scrape scheduler and the AI cost governor.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import JSONResponse

from app.schemas.scraper_admin import (
    CostSummaryResponse,
    ScheduleStateResponse,
    ScraperStatusResponse,
    TriggerResponse,
)
from app.scraping.errors import CycleAlreadyRunningError
from app.services.cost_governor import CostGovernor, get_cost_governor
from app.services.scrape_orchestrator import ScrapeOrchestrator, get_scrape_orchestrator

router = APIRouter(prefix="/admin/scraper", tags=["scraper-admin"])


@router.get("/status", response_model=ScraperStatusResponse)
def get_status(
    orchestrator: ScrapeOrchestrator = Depends(get_scrape_orchestrator),
) -> ScraperStatusResponse:
    return ScraperStatusResponse.from_stats(orchestrator.get_stats())


@router.post(
    "/trigger",
    status_code=status.HTTP_202_ACCEPTED,
    response_model=TriggerResponse,
    responses={status.HTTP_409_CONFLICT: {"model": TriggerResponse}},
)
def trigger_cycle(
    orchestrator: ScrapeOrchestrator = Depends(get_scrape_orchestrator),
) -> TriggerResponse | JSONResponse:
    """
    Start one cycle in the background. Rejected while another cycle is running.
    """

    try:
        orchestrator.trigger_manual()
    except CycleAlreadyRunningError:
        return JSONResponse(
            status_code=status.HTTP_409_CONFLICT,
            content={"status": "already_running"},
        )
    return TriggerResponse(status="accepted")


@router.post("/start", response_model=ScheduleStateResponse)
def start_schedule(
    orchestrator: ScrapeOrchestrator = Depends(get_scrape_orchestrator),
) -> ScheduleStateResponse:
    was_active = orchestrator.scheduler_active
    try:
        orchestrator.start()
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    return _schedule_state(orchestrator, changed=not was_active)


@router.post("/stop", response_model=ScheduleStateResponse)
def stop_schedule(
    orchestrator: ScrapeOrchestrator = Depends(get_scrape_orchestrator),
) -> ScheduleStateResponse:
    changed = orchestrator.stop()
    return _schedule_state(orchestrator, changed=changed)


@router.get("/cost-summary", response_model=CostSummaryResponse)
def get_cost_summary(
    cost_governor: CostGovernor = Depends(get_cost_governor),
) -> CostSummaryResponse:
    return CostSummaryResponse.from_summary(cost_governor.get_summary())


def _schedule_state(orchestrator: ScrapeOrchestrator, *, changed: bool) -> ScheduleStateResponse:
    stats = orchestrator.get_stats()
    return ScheduleStateResponse(
        scheduler_active=stats.scheduler_active,
        changed=changed,
        next_cycle_at=stats.next_cycle_at,
    )
