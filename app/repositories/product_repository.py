"""
app/repositories/product_repository.py

Persistence layer for scraped deal products.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from sqlalchemy import delete, func
from sqlalchemy.dialects.postgresql import insert
from sqlalchemy.orm import Session

from app.domain.products import AcceptedProductRecord
from db.models.scraped_product import ScrapedProduct

_MUTABLE_COLUMNS = (
    "name",
    "brand",
    "category",
    "original_price",
    "sale_price",
    "discount_percent",
    "currency",
    "image_url",
    "source",
    "regions",
    "verified",
    "scraped_at",
)


def _clip(value: str | None, column: str) -> str | None:
    if value is None:
        return None
    return value[: ScrapedProduct.__table__.c[column].type.length]


class ProductRepository:
    """
    Repository for upserting products by URL and retiring stale rows.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def upsert(self, record: AcceptedProductRecord) -> None:
        """
        Insert or refresh the row for ``record.url`` in one statement.

        The row id and ``created_at`` of an existing product are preserved and
        ``verified`` is reset, since the refreshed prices are unreviewed.
        """

        payload = self._to_payload(record)
        stmt = insert(ScrapedProduct).values(payload)
        stmt = stmt.on_conflict_do_update(
            index_elements=[ScrapedProduct.url],
            set_={
                **{column: stmt.excluded[column] for column in _MUTABLE_COLUMNS},
                "updated_at": func.now(),
            },
        )
        self._session.execute(stmt)

    def delete_scraped_before(self, cutoff: datetime) -> int:
        result = self._session.execute(
            delete(ScrapedProduct).where(ScrapedProduct.scraped_at < cutoff)
        )
        return int(result.rowcount or 0)

    @staticmethod
    def _to_payload(record: AcceptedProductRecord) -> dict[str, Any]:
        return {
            "url": record.url,
            "name": _clip(record.name, "name"),
            "brand": _clip(record.brand, "brand"),
            "category": _clip(record.category, "category"),
            "original_price": Decimal(str(record.original_price)),
            "sale_price": Decimal(str(record.sale_price)),
            "discount_percent": record.discount_percent,
            "currency": _clip(record.currency, "currency"),
            "image_url": record.image_url,
            "source": _clip(record.source, "source"),
            "regions": list(record.regions),
            "verified": False,
            "scraped_at": record.scraped_at,
        }
