"""create affiliate settlement tables

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-18 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


revision = "a1c3e5f70001"
down_revision = None
branch_labels = None
depends_on = None


JSON_TYPE = postgresql.JSONB().with_variant(sa.JSON(), "sqlite")


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    ]


def upgrade():
    op.create_table(
        "affiliate_programs",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("minimum_payout_cents", sa.Integer(), nullable=True),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        *_timestamps(),
        sa.UniqueConstraint("tenant_id", name="uq_affiliate_programs_tenant"),
    )

    op.create_table(
        "affiliates",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("display_name", sa.String(), nullable=False),
        sa.Column("email", sa.String(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="ACTIVE"),
        sa.Column("lifetime_conversions", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("lifetime_revenue_cents", sa.BigInteger(), nullable=False, server_default="0"),
        *_timestamps(),
    )
    op.create_index("ix_affiliates_tenant_id", "affiliates", ["tenant_id"])
    op.create_index("ix_affiliates_tenant_status", "affiliates", ["tenant_id", "status"])

    op.create_table(
        "affiliate_referral_codes",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("code", sa.String(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("tenant_id", "code", name="uq_affiliate_referral_codes_tenant_code"),
    )
    op.create_index("ix_affiliate_referral_codes_affiliate", "affiliate_referral_codes", ["affiliate_id"])

    op.create_table(
        "affiliate_touches",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("ref_code", sa.String(), nullable=False),
        sa.Column("touch_type", sa.String(length=16), nullable=False),
        sa.Column("visitor_fingerprint", sa.String(), nullable=True),
        sa.Column("converted_at", sa.DateTime(), nullable=True),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
    )
    op.create_index(
        "ix_affiliate_touches_tenant_fingerprint",
        "affiliate_touches",
        ["tenant_id", "visitor_fingerprint"],
    )
    op.create_index("ix_affiliate_touches_affiliate", "affiliate_touches", ["affiliate_id"])
    op.create_index("ix_affiliate_touches_ref_code", "affiliate_touches", ["ref_code"])

    op.create_table(
        "affiliate_commission_plans",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(), nullable=False),
        sa.Column("plan_type", sa.String(length=16), nullable=False),
        sa.Column("flat_amount_cents", sa.Integer(), nullable=True),
        sa.Column("percent_bps", sa.Integer(), nullable=True),
        sa.Column("applies_to", sa.String(length=32), nullable=False, server_default="ALL_PAYMENTS"),
        sa.Column("hold_days", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("clawback_enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
    )
    op.create_index("ix_affiliate_commission_plans_tenant", "affiliate_commission_plans", ["tenant_id"])

    op.create_table(
        "affiliate_plan_assignments",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("commission_plan_id", sa.Integer(), nullable=False),
        sa.Column("effective_from", sa.DateTime(), nullable=False),
        sa.Column("effective_to", sa.DateTime(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["commission_plan_id"],
            ["affiliate_commission_plans.id"],
            ondelete="RESTRICT",
        ),
    )
    op.create_index(
        "ix_affiliate_plan_assignments_affiliate",
        "affiliate_plan_assignments",
        ["affiliate_id", "effective_from"],
    )

    op.create_table(
        "affiliate_payouts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("requested_amount_cents", sa.Integer(), nullable=False),
        sa.Column("amount_cents", sa.Integer(), nullable=False),
        sa.Column("fee_cents", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("net_amount_cents", sa.Integer(), nullable=False),
        sa.Column("currency", sa.String(), nullable=False, server_default="USD"),
        sa.Column("method_type", sa.String(length=16), nullable=False),
        sa.Column("status", sa.String(length=24), nullable=False, server_default="PENDING"),
        sa.Column("external_reference", sa.String(), nullable=True),
        sa.Column("stripe_transfer_id", sa.String(), nullable=True),
        sa.Column("paypal_batch_id", sa.String(), nullable=True),
        sa.Column("wire_reference", sa.String(), nullable=True),
        sa.Column("check_number", sa.String(), nullable=True),
        sa.Column("period_start", sa.DateTime(), nullable=True),
        sa.Column("period_end", sa.DateTime(), nullable=True),
        sa.Column("processed_at", sa.DateTime(), nullable=True),
        sa.Column("completed_at", sa.DateTime(), nullable=True),
        sa.Column("failed_at", sa.DateTime(), nullable=True),
        sa.Column("failure_code", sa.String(), nullable=True),
        sa.Column("failure_reason", sa.Text(), nullable=True),
        sa.Column("processed_by", sa.Integer(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
    )
    op.create_index(
        "ix_affiliate_payouts_affiliate_tenant",
        "affiliate_payouts",
        ["affiliate_id", "tenant_id"],
    )
    op.create_index("ix_affiliate_payouts_status", "affiliate_payouts", ["status"])

    op.create_table(
        "affiliate_commission_events",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("source_ref", sa.String(), nullable=True),
        sa.Column("commission_plan_id", sa.Integer(), nullable=True),
        sa.Column("event_amount_cents", sa.Integer(), nullable=False),
        sa.Column("commission_amount_cents", sa.Integer(), nullable=False),
        sa.Column("occurred_at", sa.DateTime(), nullable=False),
        sa.Column("hold_until", sa.DateTime(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("approved_at", sa.DateTime(), nullable=True),
        sa.Column("approved_by", sa.Integer(), nullable=True),
        sa.Column("paid_at", sa.DateTime(), nullable=True),
        sa.Column("payout_id", sa.Integer(), nullable=True),
        sa.Column("reversed_at", sa.DateTime(), nullable=True),
        sa.Column("reversal_reason", sa.Text(), nullable=True),
        sa.Column("metadata_json", JSON_TYPE, nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["commission_plan_id"],
            ["affiliate_commission_plans.id"],
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(["payout_id"], ["affiliate_payouts.id"], ondelete="SET NULL"),
        sa.UniqueConstraint("tenant_id", "source_ref", name="uq_affiliate_commission_events_source"),
    )
    op.create_index(
        "ix_affiliate_commission_events_unclaimed",
        "affiliate_commission_events",
        ["affiliate_id", "tenant_id", "status", "payout_id"],
    )
    op.create_index("ix_affiliate_commission_events_payout", "affiliate_commission_events", ["payout_id"])
    op.create_index("ix_affiliate_commission_events_occurred", "affiliate_commission_events", ["occurred_at"])

    op.create_table(
        "affiliate_payout_methods",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("method_type", sa.String(length=16), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("stripe_account_id", sa.String(), nullable=True),
        sa.Column("paypal_email", sa.String(), nullable=True),
        sa.Column("bank_name", sa.String(), nullable=True),
        sa.Column("bank_account_last4", sa.String(), nullable=True),
        sa.Column("mailing_address_line1", sa.String(), nullable=True),
        sa.Column("mailing_city", sa.String(), nullable=True),
        sa.Column("mailing_state", sa.String(), nullable=True),
        sa.Column("mailing_zip", sa.String(), nullable=True),
        sa.Column("mailing_country", sa.String(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint("affiliate_id", "method_type", name="uq_affiliate_payout_methods_type"),
    )
    op.create_index("ix_affiliate_payout_methods_affiliate_id", "affiliate_payout_methods", ["affiliate_id"])

    op.create_table(
        "affiliate_tax_documents",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("document_type", sa.String(length=16), nullable=False),
        sa.Column("tax_year", sa.Integer(), nullable=False),
        sa.Column("status", sa.String(length=16), nullable=False, server_default="PENDING"),
        sa.Column("submitted_at", sa.DateTime(), nullable=True),
        sa.Column("verified_at", sa.DateTime(), nullable=True),
        sa.Column("verified_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.UniqueConstraint(
            "affiliate_id",
            "document_type",
            "tax_year",
            name="uq_affiliate_tax_documents_year",
        ),
    )
    op.create_index("ix_affiliate_tax_documents_affiliate_id", "affiliate_tax_documents", ["affiliate_id"])

    op.create_table(
        "affiliate_fraud_alerts",
        sa.Column("id", sa.Integer(), primary_key=True, nullable=False),
        sa.Column("tenant_id", sa.Integer(), nullable=False),
        sa.Column("affiliate_id", sa.Integer(), nullable=False),
        sa.Column("commission_event_id", sa.Integer(), nullable=True),
        sa.Column("alert_type", sa.String(), nullable=False),
        sa.Column("severity", sa.String(length=16), nullable=False, server_default="MEDIUM"),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("evidence_json", JSON_TYPE, nullable=True),
        sa.Column("affected_amount_cents", sa.Integer(), nullable=True),
        sa.Column("status", sa.String(length=24), nullable=False, server_default="OPEN"),
        sa.Column("resolution_action", sa.String(length=32), nullable=True),
        sa.Column("resolution", sa.Text(), nullable=True),
        sa.Column("resolved_at", sa.DateTime(), nullable=True),
        sa.Column("resolved_by", sa.Integer(), nullable=True),
        *_timestamps(),
        sa.ForeignKeyConstraint(["affiliate_id"], ["affiliates.id"], ondelete="RESTRICT"),
        sa.ForeignKeyConstraint(
            ["commission_event_id"],
            ["affiliate_commission_events.id"],
            ondelete="SET NULL",
        ),
    )
    op.create_index(
        "ix_affiliate_fraud_alerts_tenant_status",
        "affiliate_fraud_alerts",
        ["tenant_id", "status"],
    )
    op.create_index("ix_affiliate_fraud_alerts_affiliate", "affiliate_fraud_alerts", ["affiliate_id"])


def downgrade():
    op.drop_index("ix_affiliate_fraud_alerts_affiliate", table_name="affiliate_fraud_alerts")
    op.drop_index("ix_affiliate_fraud_alerts_tenant_status", table_name="affiliate_fraud_alerts")
    op.drop_table("affiliate_fraud_alerts")
    op.drop_index("ix_affiliate_tax_documents_affiliate_id", table_name="affiliate_tax_documents")
    op.drop_table("affiliate_tax_documents")
    op.drop_index("ix_affiliate_payout_methods_affiliate_id", table_name="affiliate_payout_methods")
    op.drop_table("affiliate_payout_methods")
    op.drop_index("ix_affiliate_commission_events_occurred", table_name="affiliate_commission_events")
    op.drop_index("ix_affiliate_commission_events_payout", table_name="affiliate_commission_events")
    op.drop_index("ix_affiliate_commission_events_unclaimed", table_name="affiliate_commission_events")
    op.drop_table("affiliate_commission_events")
    op.drop_index("ix_affiliate_payouts_status", table_name="affiliate_payouts")
    op.drop_index("ix_affiliate_payouts_affiliate_tenant", table_name="affiliate_payouts")
    op.drop_table("affiliate_payouts")
    op.drop_index("ix_affiliate_plan_assignments_affiliate", table_name="affiliate_plan_assignments")
    op.drop_table("affiliate_plan_assignments")
    op.drop_index("ix_affiliate_commission_plans_tenant", table_name="affiliate_commission_plans")
    op.drop_table("affiliate_commission_plans")
    op.drop_index("ix_affiliate_touches_ref_code", table_name="affiliate_touches")
    op.drop_index("ix_affiliate_touches_affiliate", table_name="affiliate_touches")
    op.drop_index("ix_affiliate_touches_tenant_fingerprint", table_name="affiliate_touches")
    op.drop_table("affiliate_touches")
    op.drop_index("ix_affiliate_referral_codes_affiliate", table_name="affiliate_referral_codes")
    op.drop_table("affiliate_referral_codes")
    op.drop_index("ix_affiliates_tenant_status", table_name="affiliates")
    op.drop_index("ix_affiliates_tenant_id", table_name="affiliates")
    op.drop_table("affiliates")
    op.drop_table("affiliate_programs")
