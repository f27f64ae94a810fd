"""
Storage layer interfaces for accepted deal products.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from app.domain.products import AcceptedProductRecord


class ProductStore(ABC):
    """
    Upsert-by-URL store for accepted products.

    Implementations raise ``StoreUnavailableError`` when the backing store
    cannot be reached and ``StoreRejectedRecordError`` when it refuses one
    record.
    """

    @abstractmethod
    def upsert(self, record: AcceptedProductRecord) -> None:
        """
        Create or replace the single row keyed by ``record.url``.
        """

    @abstractmethod
    def delete_older_than(self, cutoff: datetime) -> int:
        """
        Delete rows last scraped before ``cutoff`` and return the count deleted.
        """
