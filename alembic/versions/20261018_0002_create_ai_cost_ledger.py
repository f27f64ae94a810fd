"""create ai_cost_ledger table

Revision ID: 20261018_0002
Revises: 20261018_0001
Create Date: 2026-10-18 09:10:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0002"
down_revision = "20261018_0001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "ai_cost_ledger",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("called_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("extractor_name", sa.String(length=120), nullable=False),
        sa.Column("call_kind", sa.String(length=16), nullable=False, comment="screenshot, text"),
        sa.Column("input_tokens", sa.Integer(), nullable=False),
        sa.Column("output_tokens", sa.Integer(), nullable=False),
        sa.Column("has_image", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column("cost_usd", sa.Numeric(precision=12, scale=6), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_ai_cost_ledger_called_at", "ai_cost_ledger", ["called_at"], unique=False)
    op.create_index("ix_ai_cost_ledger_extractor_name", "ai_cost_ledger", ["extractor_name"], unique=False)


def downgrade() -> None:
    op.drop_index("ix_ai_cost_ledger_extractor_name", table_name="ai_cost_ledger")
    op.drop_index("ix_ai_cost_ledger_called_at", table_name="ai_cost_ledger")
    op.drop_table("ai_cost_ledger")
