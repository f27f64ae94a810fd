"""
In-process product store for dry runs.
"""

from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone

from app.domain.products import AcceptedProductRecord
from app.scraping.storage.base import ProductStore


@dataclass(frozen=True)
class StoredProduct:
    id: uuid.UUID
    created_at: datetime
    record: AcceptedProductRecord


class InMemoryProductStore(ProductStore):
    """
    Dict-backed store keyed by URL with the same upsert semantics as the database.
    """

    def __init__(self) -> None:
        self._rows: dict[str, StoredProduct] = {}
        self._lock = threading.Lock()

    def upsert(self, record: AcceptedProductRecord) -> None:
        with self._lock:
            existing = self._rows.get(record.url)
            if existing is None:
                self._rows[record.url] = StoredProduct(
                    id=uuid.uuid4(),
                    created_at=datetime.now(timezone.utc),
                    record=record,
                )
            else:
                self._rows[record.url] = StoredProduct(
                    id=existing.id,
                    created_at=existing.created_at,
                    record=record,
                )

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._lock:
            stale = [url for url, row in self._rows.items() if row.record.scraped_at < cutoff]
            for url in stale:
                del self._rows[url]
            return len(stale)

    def get(self, url: str) -> StoredProduct | None:
        with self._lock:
            return self._rows.get(url)

    def __len__(self) -> int:
        with self._lock:
            return len(self._rows)

    def records(self) -> list[AcceptedProductRecord]:
        with self._lock:
            return [row.record for row in self._rows.values()]
