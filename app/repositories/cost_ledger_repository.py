"""
app/repositories/cost_ledger_repository.py

Append-only persistence for the AI cost ledger.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import select
from sqlalchemy.orm import Session

from app.domain.cost import CostLedgerEntry
from db.models.cost_ledger_entry import CostLedgerRecord


class CostLedgerRepository:
    """
    Ledger rows are only ever inserted; there is no update or delete path.
    """

    def __init__(self, session: Session) -> None:
        self._session = session

    def insert_entry(self, entry: CostLedgerEntry) -> None:
        self._session.add(
            CostLedgerRecord(
                called_at=entry.timestamp,
                extractor_name=entry.extractor_name,
                call_kind=entry.kind,
                input_tokens=entry.input_tokens,
                output_tokens=entry.output_tokens,
                has_image=entry.has_image,
                cost_usd=entry.cost_usd,
            )
        )

    def list_entries_between(self, start: datetime, end: datetime) -> list[CostLedgerRecord]:
        stmt = (
            select(CostLedgerRecord)
            .where(CostLedgerRecord.called_at >= start, CostLedgerRecord.called_at < end)
            .order_by(CostLedgerRecord.called_at)
        )
        return list(self._session.scalars(stmt).all())
