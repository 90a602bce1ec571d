"""Enforce at most one active default rate template.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""
from alembic import op
import sqlalchemy as sa

revision = "002"
down_revision = "001"
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_index(
        "uq_rate_template_single_default",
        "commission_rate_templates",
        ["is_default"],
        unique=True,
        schema="crm",
        postgresql_where=sa.text("is_default AND is_active"),
    )


def downgrade() -> None:
    op.drop_index(
        "uq_rate_template_single_default",
        table_name="commission_rate_templates",
        schema="crm",
    )
