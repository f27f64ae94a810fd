"""
Model package exports.

Import all SQLAlchemy models here so metadata registration and Alembic
autogeneration work without extra imports.
"""

from db.models.cost_ledger_entry import CostLedgerRecord
from db.models.scraped_product import ScrapedProduct

__all__ = [
    "CostLedgerRecord",
    "ScrapedProduct",
]
