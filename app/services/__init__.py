"""
app/services package marker.
"""

from app.services.cost_governor import CostGovernor, calculate_cost, get_cost_governor
from app.services.cost_ledger_writer import (
    BackgroundLedgerWriter,
    LedgerSink,
    SQLAlchemyLedgerSink,
)
from app.services.scrape_orchestrator import ScrapeOrchestrator, get_scrape_orchestrator

__all__ = [
    "BackgroundLedgerWriter",
    "CostGovernor",
    "LedgerSink",
    "SQLAlchemyLedgerSink",
    "ScrapeOrchestrator",
    "calculate_cost",
    "get_cost_governor",
    "get_scrape_orchestrator",
]
