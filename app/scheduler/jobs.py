"""
app/scheduler/jobs.py

APScheduler wiring for the periodic scrape cycle.

Jobs
----
  scrape_cycle          cron schedule from ``SCRAPE_CYCLE_CRON``
                        (default ``0 */6 * * *``, server local time)
  scrape_cycle_initial  one-off run shortly after the schedule starts

Both jobs call the same function. They run with ``max_instances=1`` and
``coalesce=True``, so a backlog of missed ticks collapses into one run. The
orchestrator's own in-flight guard still decides whether a tick does work.

Lifecycle
---------
``ScrapeOrchestrator.start()`` builds a fresh scheduler with
``build_scheduler()``, registers the jobs and starts it. ``stop()`` shuts it
down without waiting for a running cycle.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timedelta

from apscheduler.schedulers.background import BackgroundScheduler
from apscheduler.triggers.cron import CronTrigger

logger = logging.getLogger(__name__)

SCRAPE_CYCLE_JOB_ID = "scrape_cycle"
INITIAL_SCRAPE_CYCLE_JOB_ID = "scrape_cycle_initial"


# ---------------------------------------------------------------------------
# Scheduler factory
# ---------------------------------------------------------------------------


def build_scheduler() -> BackgroundScheduler:
    """
    Return a configured but *not yet started* ``BackgroundScheduler``.

    The scheduler uses the host's local timezone so cron expressions read the
    way operators write them.
    """
    return BackgroundScheduler(
        job_defaults={"max_instances": 1, "coalesce": True},
    )


def parse_cron_expression(cron_expression: str) -> CronTrigger:
    """
    Parse a five-field crontab expression. Raises ValueError when malformed.
    """
    try:
        return CronTrigger.from_crontab(cron_expression.strip())
    except (ValueError, TypeError) as exc:
        raise ValueError(f"Invalid cron expression {cron_expression!r}: {exc}") from exc


# ---------------------------------------------------------------------------
# Job registration
# ---------------------------------------------------------------------------


def add_scrape_cycle_job(
    scheduler: BackgroundScheduler,
    func: Callable[[], None],
    *,
    cron_expression: str,
) -> None:
    scheduler.add_job(
        func,
        trigger=parse_cron_expression(cron_expression),
        id=SCRAPE_CYCLE_JOB_ID,
        name="Scrape cycle",
        replace_existing=True,
        max_instances=1,
        coalesce=True,
        misfire_grace_time=900,
    )
    logger.info("Scheduler: scrape_cycle registered cron=%r", cron_expression)


def add_initial_scrape_cycle_job(
    scheduler: BackgroundScheduler,
    func: Callable[[], None],
    *,
    delay_seconds: float,
) -> None:
    """
    Register a single run ``delay_seconds`` from now. Negative delays register nothing.
    """
    if delay_seconds < 0:
        return
    run_date = datetime.now().astimezone() + timedelta(seconds=delay_seconds)
    scheduler.add_job(
        func,
        trigger="date",
        run_date=run_date,
        id=INITIAL_SCRAPE_CYCLE_JOB_ID,
        name="Initial scrape cycle",
        replace_existing=True,
        max_instances=1,
        misfire_grace_time=300,
    )
    logger.info("Scheduler: scrape_cycle_initial registered run_date=%s", run_date.isoformat())


def next_run_time(scheduler: BackgroundScheduler) -> datetime | None:
    """
    Earliest pending fire time across the scrape cycle jobs.
    """
    upcoming = []
    for job_id in (SCRAPE_CYCLE_JOB_ID, INITIAL_SCRAPE_CYCLE_JOB_ID):
        job = scheduler.get_job(job_id)
        if job is not None and job.next_run_time is not None:
            upcoming.append(job.next_run_time)
    return min(upcoming) if upcoming else None
