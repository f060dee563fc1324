"""Add tax configuration and IRD return tables.

Revision ID: 0002_tax_tables
Revises: 0001_business_records
"""
from __future__ import annotations

import sqlalchemy as sa

from alembic import op

revision = "0002_tax_tables"
down_revision = "0001_business_records"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        "tax_configurations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("country_code", sa.String(length=2), nullable=False, server_default="NZ"),
        sa.Column("tax_type", sa.String(length=20), nullable=False, server_default="GST"),
        sa.Column("tax_rate", sa.Numeric(5, 4), nullable=False),
        sa.Column("tax_name", sa.String(length=50), nullable=False),
        sa.Column("applies_to_services", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("applies_to_goods", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("effective_from", sa.Date(), nullable=False),
        sa.Column("effective_to", sa.Date(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=True, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("tax_rate >= 0 AND tax_rate <= 1", name="ck_tax_configurations_rate"),
        sa.CheckConstraint("tax_type IN ('GST', 'VAT', 'Sales_Tax')", name="ck_tax_configurations_type"),
    )
    op.create_index("ix_tax_configurations_user_id", "tax_configurations", ["user_id"])
    op.create_index("ix_tax_configurations_is_active", "tax_configurations", ["is_active"])

    op.create_table(
        "tax_returns",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("period_start", sa.Date(), nullable=False),
        sa.Column("period_end", sa.Date(), nullable=False),
        sa.Column("return_type", sa.String(length=20), nullable=False),
        sa.Column("total_sales", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("total_purchases", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("gst_on_sales", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("gst_on_purchases", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("net_gst", sa.Numeric(12, 2), nullable=True, server_default="0"),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="draft"),
        sa.Column("ird_reference", sa.String(length=100), nullable=True),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("return_data", sa.JSON(), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(), nullable=True),
        sa.Column("updated_at", sa.DateTime(), nullable=True),
        sa.CheckConstraint("return_type IN ('GST', 'Income_Tax')", name="ck_tax_returns_type"),
        sa.CheckConstraint("status IN ('draft', 'submitted')", name="ck_tax_returns_status"),
    )
    op.create_index("ix_tax_returns_user_id", "tax_returns", ["user_id"])
    op.create_index("ix_tax_returns_user_period", "tax_returns", ["user_id", "period_start", "period_end"])


def downgrade() -> None:
    op.drop_index("ix_tax_returns_user_period", table_name="tax_returns")
    op.drop_index("ix_tax_returns_user_id", table_name="tax_returns")
    op.drop_table("tax_returns")
    op.drop_index("ix_tax_configurations_is_active", table_name="tax_configurations")
    op.drop_index("ix_tax_configurations_user_id", table_name="tax_configurations")
    op.drop_table("tax_configurations")
