"""
SQLAlchemy-backed product store.

Connection-level failures surface as ``StoreUnavailableError``. A statement
the database refuses for one record's data (``DataError``/``IntegrityError``)
surfaces as ``StoreRejectedRecordError`` so it is counted against that record
only.
"""

from __future__ import annotations

from collections.abc import Callable
from datetime import datetime

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from app.domain.products import AcceptedProductRecord
from app.repositories.product_repository import ProductRepository
from app.scraping.errors import StoreRejectedRecordError, StoreUnavailableError
from app.scraping.storage.base import ProductStore


class SQLAlchemyProductStore(ProductStore):
    """
    Persist products through the repository, one short transaction per call.
    """

    def __init__(self, *, session_factory: Callable[[], Session]) -> None:
        self._session_factory = session_factory

    def upsert(self, record: AcceptedProductRecord) -> None:
        with self._session_factory() as session:
            try:
                ProductRepository(session).upsert(record)
                session.commit()
            except (DataError, IntegrityError) as exc:
                session.rollback()
                raise StoreRejectedRecordError(
                    f"Store refused record url={record.url}: {exc}"
                ) from exc
            except SQLAlchemyError as exc:
                session.rollback()
                raise StoreUnavailableError(f"Upsert failed for url={record.url}: {exc}") from exc

    def delete_older_than(self, cutoff: datetime) -> int:
        with self._session_factory() as session:
            try:
                deleted = ProductRepository(session).delete_scraped_before(cutoff)
                session.commit()
                return deleted
            except SQLAlchemyError as exc:
                session.rollback()
                raise StoreUnavailableError(f"Retention sweep failed: {exc}") from exc
