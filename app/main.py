from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager
from collections.abc import AsyncIterator

from fastapi import FastAPI

from app.schemas.scraper_admin import HealthResponse


def _validate_env() -> None:
    """
    Validate required environment variables at startup.

    Raises RuntimeError listing every missing or invalid variable so the
    operator can fix all problems in one restart cycle.

    Rules:
    - A PostgreSQL URL must be configured.
    - OPENAI_API_KEY is required unless VISION_ADAPTER=mock.
    - ALERT_THRESHOLD must not exceed MAX_DAILY_API_COST.
    """

    from db.config import resolve_database_url

    errors: list[str] = []

    # --- Database URL ---------------------------------------------------
    try:
        database_url = resolve_database_url()
    except RuntimeError as exc:
        errors.append(str(exc))
    else:
        if not database_url.startswith("postgresql"):
            errors.append("Only PostgreSQL database URLs are supported.")

    # --- Vision model key -----------------------------------------------
    adapter = os.getenv("VISION_ADAPTER", "openai").strip().lower()
    if adapter != "mock" and not os.getenv("OPENAI_API_KEY", "").strip():
        errors.append(
            "OPENAI_API_KEY is not set. Provide a key or set VISION_ADAPTER=mock."
        )

    # --- Cost thresholds ------------------------------------------------
    from app.config import get_cost_governor_settings

    cost_settings = get_cost_governor_settings()
    if cost_settings.alert_threshold_usd > cost_settings.max_daily_cost_usd:
        errors.append(
            f"ALERT_THRESHOLD={cost_settings.alert_threshold_usd} exceeds "
            f"MAX_DAILY_API_COST={cost_settings.max_daily_cost_usd}."
        )

    if errors:
        raise RuntimeError(
            "Startup validation failed, missing or invalid environment variables:\n"
            + "\n".join(f"  - {e}" for e in errors)
        )


def _configure_logging() -> None:
    """
    Configure root logging once for the API process.
    """

    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper()
    logging.basicConfig(
        level=getattr(logging, log_level, logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )


def _check_db() -> None:
    """Open a session and run SELECT 1. Raises RuntimeError if the DB is unreachable."""
    from sqlalchemy import text

    from db.session import SessionLocal

    try:
        db = SessionLocal()
        try:
            db.execute(text("SELECT 1"))
        finally:
            db.close()
    except Exception as exc:
        raise RuntimeError("Database unavailable.") from exc


def _check_schema() -> None:
    """
    Every table registered on Base.metadata must exist in the database.

    Does NOT auto-migrate: a missing table aborts startup with a pointer to
    ``alembic upgrade head``.
    """
    from sqlalchemy import inspect as sa_inspect

    import db.models  # noqa: F401
    from db.base import Base
    from db.session import get_engine

    inspector = sa_inspect(get_engine())
    actual: set[str] = set(inspector.get_table_names())
    expected: set[str] = set(Base.metadata.tables.keys())
    missing = expected - actual

    if missing:
        logging.getLogger(__name__).critical(
            "Schema mismatch: %d table(s) absent from the database: %s. "
            "Run 'alembic upgrade head' and restart.",
            len(missing),
            ", ".join(sorted(missing)),
        )
        raise RuntimeError(
            f"Schema mismatch: {len(missing)} table(s) missing from the database "
            f"({', '.join(sorted(missing))}). Run migrations and restart."
        )


@asynccontextmanager
async def _lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Validate the database, build the orchestrator and arm the schedule; tear down on exit."""
    log = logging.getLogger(__name__)
    _check_db()
    log.info("Database connectivity confirmed")
    _check_schema()
    log.info("Database schema validated")

    from app.config import get_scrape_scheduler_settings
    from app.services.cost_governor import get_cost_governor
    from app.services.scrape_orchestrator import get_scrape_orchestrator

    orchestrator = get_scrape_orchestrator()
    log.info("Scrape orchestrator ready with %d extractors", len(orchestrator.roster))
    if get_scrape_scheduler_settings().autostart:
        orchestrator.start()
        log.info("Scrape schedule started")
    try:
        yield
    finally:
        from db.session import dispose_engine

        orchestrator.shutdown()
        get_cost_governor().close()
        dispose_engine()
        log.info("Scrape orchestrator shut down")


def create_app() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """

    _validate_env()
    _configure_logging()

    application = FastAPI(
        title="Deal Scrape Core API",
        version="1.0.0",
        lifespan=_lifespan,
    )

    from app.api.routers import scraper_admin_router

    application.include_router(scraper_admin_router)

    @application.get("/health", response_model=HealthResponse)
    def healthcheck() -> HealthResponse:
        from app.services.scrape_orchestrator import get_scrape_orchestrator

        return HealthResponse(
            status="ok",
            scheduler_active=get_scrape_orchestrator().scheduler_active,
        )

    return application


app = create_app()
