"""create scraped_products table

Revision ID: 20261018_0001
Revises:
Create Date: 2026-10-18 09:00:00
"""

from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20261018_0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "scraped_products",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("url", sa.Text(), nullable=False, comment="Product page URL, the natural key for upserts"),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("brand", sa.String(length=120), nullable=True),
        sa.Column("category", sa.String(length=120), nullable=True),
        sa.Column("original_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("sale_price", sa.Numeric(precision=12, scale=2), nullable=False),
        sa.Column("discount_percent", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(length=8), nullable=False),
        sa.Column("image_url", sa.Text(), nullable=True),
        sa.Column("source", sa.String(length=120), nullable=False, comment="Extractor source identifier"),
        sa.Column(
            "regions",
            postgresql.JSONB(astext_type=sa.Text()),
            nullable=False,
            comment="Region tags such as EU, UK, US",
        ),
        sa.Column("verified", sa.Boolean(), server_default=sa.text("false"), nullable=False),
        sa.Column(
            "scraped_at",
            sa.DateTime(timezone=True),
            nullable=False,
            comment="Last time an extractor confirmed this deal",
        ),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.text("now()"), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("url", name="uq_scraped_products_url"),
    )
    op.create_index("ix_scraped_products_scraped_at", "scraped_products", ["scraped_at"], unique=False)
    op.create_index("ix_scraped_products_source", "scraped_products", ["source"], unique=False)
    op.create_index(
        "ix_scraped_products_discount_percent",
        "scraped_products",
        ["discount_percent"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_scraped_products_discount_percent", table_name="scraped_products")
    op.drop_index("ix_scraped_products_source", table_name="scraped_products")
    op.drop_index("ix_scraped_products_scraped_at", table_name="scraped_products")
    op.drop_table("scraped_products")
