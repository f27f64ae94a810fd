"""
Storage layer exports.
"""

from app.scraping.storage.base import ProductStore
from app.scraping.storage.memory import InMemoryProductStore
from app.scraping.storage.sqlalchemy_storage import SQLAlchemyProductStore

__all__ = ["InMemoryProductStore", "ProductStore", "SQLAlchemyProductStore"]
