from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Enum,
    ForeignKey,
    Index,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB

from settlement.core.db import Base
from settlement.models.enums import (
    CommissionAppliesToEnum,
    CommissionPlanTypeEnum,
    CommissionStatusEnum,
)
from settlement.models.mixins import TimestampMixin


JSON_TYPE = JSONB().with_variant(JSON, "sqlite")


class CommissionPlan(TimestampMixin, Base):
    __tablename__ = "affiliate_commission_plans"
    __table_args__ = (Index("ix_affiliate_commission_plans_tenant", "tenant_id"),)

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    name = Column(String, nullable=False)
    plan_type = Column(
        Enum(
            CommissionPlanTypeEnum,
            name="commission_plan_type_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    flat_amount_cents = Column(Integer, nullable=True)
    percent_bps = Column(Integer, nullable=True)
    applies_to = Column(
        Enum(
            CommissionAppliesToEnum,
            name="commission_applies_to_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=CommissionAppliesToEnum.ALL_PAYMENTS,
    )
    hold_days = Column(Integer, nullable=False, default=0)
    clawback_enabled = Column(Boolean, nullable=False, default=True)
    is_active = Column(Boolean, nullable=False, default=True)


class PlanAssignment(TimestampMixin, Base):
    __tablename__ = "affiliate_plan_assignments"
    __table_args__ = (
        Index("ix_affiliate_plan_assignments_affiliate", "affiliate_id", "effective_from"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    commission_plan_id = Column(
        Integer,
        ForeignKey("affiliate_commission_plans.id", ondelete="RESTRICT"),
        nullable=False,
    )
    effective_from = Column(DateTime, nullable=False)
    effective_to = Column(DateTime, nullable=True)


class CommissionEvent(TimestampMixin, Base):
    __tablename__ = "affiliate_commission_events"
    __table_args__ = (
        UniqueConstraint("tenant_id", "source_ref", name="uq_affiliate_commission_events_source"),
        Index("ix_affiliate_commission_events_unclaimed", "affiliate_id", "tenant_id", "status", "payout_id"),
        Index("ix_affiliate_commission_events_payout", "payout_id"),
        Index("ix_affiliate_commission_events_occurred", "occurred_at"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    source_ref = Column(String, nullable=True)
    commission_plan_id = Column(
        Integer,
        ForeignKey("affiliate_commission_plans.id", ondelete="SET NULL"),
        nullable=True,
    )
    event_amount_cents = Column(Integer, nullable=False)
    # Frozen at creation; plan changes never rewrite it.
    commission_amount_cents = Column(Integer, nullable=False)
    occurred_at = Column(DateTime, nullable=False)
    hold_until = Column(DateTime, nullable=True)
    status = Column(
        Enum(
            CommissionStatusEnum,
            name="commission_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=CommissionStatusEnum.PENDING,
    )
    approved_at = Column(DateTime, nullable=True)
    approved_by = Column(Integer, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    # Claim marker. Written only by the allocator's claim/release functions.
    payout_id = Column(Integer, ForeignKey("affiliate_payouts.id", ondelete="SET NULL"), nullable=True)
    reversed_at = Column(DateTime, nullable=True)
    reversal_reason = Column(Text, nullable=True)
    metadata_json = Column(JSON_TYPE, nullable=True)
