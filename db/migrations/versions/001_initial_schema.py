"""Initial schema: crm affiliates, rate templates, rate history, commission entries.

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers
revision = "001"
down_revision = None
branch_labels = None
depends_on = None


def _rate_checks(prefix: str) -> list:
    return [
        sa.CheckConstraint(
            "upfront_rate >= 0 AND upfront_rate <= 100",
            name=f"ck_{prefix}_upfront_rate_range",
        ),
        sa.CheckConstraint(
            "residual_rate >= 0 AND residual_rate <= 100",
            name=f"ck_{prefix}_residual_rate_range",
        ),
        sa.CheckConstraint("upfront_rate + residual_rate <= 100", name=f"ck_{prefix}_rate_sum"),
    ]


def upgrade() -> None:
    op.execute("CREATE SCHEMA IF NOT EXISTS crm")

    op.create_table(
        "affiliates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("external_id", sa.Integer, nullable=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("email", sa.Text, nullable=False),
        sa.Column("phone", sa.Text, nullable=True),
        sa.Column("status", sa.Text, nullable=False, server_default="active"),
        sa.Column("upfront_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("residual_rate", sa.Numeric(5, 2), nullable=False, server_default="0"),
        sa.Column("tier_level", sa.Text, nullable=False, server_default="standard"),
        sa.Column("total_sales", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_commissions", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("onboarding_status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("version", sa.Integer, nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        *_rate_checks("affiliate"),
        sa.CheckConstraint(
            "status IN ('active', 'inactive', 'suspended')",
            name="ck_affiliate_status",
        ),
        sa.CheckConstraint(
            "tier_level IN ('bronze', 'silver', 'gold', 'platinum', 'standard')",
            name="ck_affiliate_tier_level",
        ),
        sa.CheckConstraint(
            "onboarding_status IN ('pending', 'in_progress', 'completed', 'on_hold')",
            name="ck_affiliate_onboarding_status",
        ),
        sa.UniqueConstraint("external_id", name="uq_affiliate_external_id"),
        schema="crm",
    )

    op.create_table(
        "commission_rate_templates",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("upfront_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("residual_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("tier_level", sa.Text, nullable=False),
        sa.Column("is_default", sa.Boolean, nullable=False, server_default="false"),
        sa.Column("is_active", sa.Boolean, nullable=False, server_default="true"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        *_rate_checks("rate_template"),
        sa.CheckConstraint(
            "tier_level IN ('bronze', 'silver', 'gold', 'platinum', 'standard')",
            name="ck_rate_template_tier_level",
        ),
        schema="crm",
    )

    op.create_table(
        "affiliate_rate_history",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("affiliate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("previous_upfront_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("new_upfront_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("previous_residual_rate", sa.Numeric(5, 2), nullable=True),
        sa.Column("new_residual_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("previous_tier_level", sa.Text, nullable=True),
        sa.Column("new_tier_level", sa.Text, nullable=True),
        sa.Column("reason", sa.Text, nullable=False),
        sa.Column("changed_by", sa.Text, nullable=True),
        sa.Column("effective_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(
            ["affiliate_id"], ["crm.affiliates.id"], name="fk_rate_history_affiliate"
        ),
        schema="crm",
    )
    op.create_index(
        "ix_crm_affiliate_rate_history_affiliate_id",
        "affiliate_rate_history",
        ["affiliate_id"],
        schema="crm",
    )

    op.create_table(
        "commission_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True),
        sa.Column("affiliate_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("referral_id", sa.Integer, nullable=True),
        sa.Column("commission_type", sa.Text, nullable=False),
        sa.Column("customer_name", sa.Text, nullable=True),
        sa.Column("customer_email", sa.Text, nullable=True),
        sa.Column("product_name", sa.Text, nullable=True),
        sa.Column("product_id", sa.Integer, nullable=True),
        sa.Column("order_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_amount", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission_rate", sa.Numeric(5, 2), nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default="pending"),
        sa.Column("payment_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("notes", sa.Text, nullable=True),
        sa.Column("details", sa.JSON, nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.CheckConstraint(
            "commission_type IN ('upfront', 'residual')",
            name="ck_commission_entry_type",
        ),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'paid', 'cancelled')",
            name="ck_commission_entry_status",
        ),
        sa.ForeignKeyConstraint(
            ["affiliate_id"], ["crm.affiliates.id"], name="fk_commission_entry_affiliate"
        ),
        schema="crm",
    )
    op.create_index(
        "ix_crm_commission_entries_affiliate_id",
        "commission_entries",
        ["affiliate_id"],
        schema="crm",
    )


def downgrade() -> None:
    op.drop_index("ix_crm_commission_entries_affiliate_id", table_name="commission_entries", schema="crm")
    op.drop_table("commission_entries", schema="crm")
    op.drop_index("ix_crm_affiliate_rate_history_affiliate_id", table_name="affiliate_rate_history", schema="crm")
    op.drop_table("affiliate_rate_history", schema="crm")
    op.drop_table("commission_rate_templates", schema="crm")
    op.drop_table("affiliates", schema="crm")
