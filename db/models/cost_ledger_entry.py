"""
db/models/cost_ledger_entry.py

Append-only audit trail of metered AI calls.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import Boolean, DateTime, Index, Integer, Numeric, String, false, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from db.base import Base


class CostLedgerRecord(Base):
    __tablename__ = "ai_cost_ledger"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4,
    )
    called_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    extractor_name: Mapped[str] = mapped_column(String(120), nullable=False)
    call_kind: Mapped[str] = mapped_column(
        String(16),
        nullable=False,
        comment="screenshot, text",
    )
    input_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    output_tokens: Mapped[int] = mapped_column(Integer, nullable=False)
    has_image: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )
    cost_usd: Mapped[Decimal] = mapped_column(Numeric(12, 6), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    __table_args__ = (
        Index("ix_ai_cost_ledger_called_at", "called_at"),
        Index("ix_ai_cost_ledger_extractor_name", "extractor_name"),
    )
