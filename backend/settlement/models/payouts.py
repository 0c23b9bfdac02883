from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, String, Text

from settlement.core.db import Base
from settlement.models.enums import PayoutMethodTypeEnum, PayoutStatusEnum
from settlement.models.mixins import TimestampMixin


class Payout(TimestampMixin, Base):
    __tablename__ = "affiliate_payouts"
    __table_args__ = (
        Index("ix_affiliate_payouts_affiliate_tenant", "affiliate_id", "tenant_id"),
        Index("ix_affiliate_payouts_status", "status"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    requested_amount_cents = Column(Integer, nullable=False)
    # Sum of the claimed events; may exceed the request by one event.
    amount_cents = Column(Integer, nullable=False)
    fee_cents = Column(Integer, nullable=False, default=0)
    net_amount_cents = Column(Integer, nullable=False)
    currency = Column(String, nullable=False, default="USD")
    method_type = Column(
        Enum(
            PayoutMethodTypeEnum,
            name="payout_method_type_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
    )
    status = Column(
        Enum(
            PayoutStatusEnum,
            name="payout_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=PayoutStatusEnum.PENDING,
    )
    external_reference = Column(String, nullable=True)
    stripe_transfer_id = Column(String, nullable=True)
    paypal_batch_id = Column(String, nullable=True)
    wire_reference = Column(String, nullable=True)
    check_number = Column(String, nullable=True)
    period_start = Column(DateTime, nullable=True)
    period_end = Column(DateTime, nullable=True)
    processed_at = Column(DateTime, nullable=True)
    completed_at = Column(DateTime, nullable=True)
    failed_at = Column(DateTime, nullable=True)
    failure_code = Column(String, nullable=True)
    failure_reason = Column(Text, nullable=True)
    processed_by = Column(Integer, nullable=True)
    approved_by = Column(Integer, nullable=True)
    notes = Column(Text, nullable=True)
