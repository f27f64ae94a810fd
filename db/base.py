"""
db/base.py

Declarative base for the product and cost ledger tables.
"""

from datetime import datetime, timezone
from typing import Any

from sqlalchemy import DateTime, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """
    Shared metadata for every ORM model; Alembic autogenerates against it.
    """

    type_annotation_map: dict[type, Any] = {datetime: DateTime(timezone=True)}


class TimestampMixin:
    """
    Row bookkeeping columns. ``updated_at`` moves on every ORM update.
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=_utc_now,
    )
