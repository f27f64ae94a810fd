"""
app/repositories package marker.
"""

from app.repositories.cost_ledger_repository import CostLedgerRepository
from app.repositories.product_repository import ProductRepository

__all__ = ["CostLedgerRepository", "ProductRepository"]
