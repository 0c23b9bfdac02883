from sqlalchemy import Column, DateTime, Enum, ForeignKey, Index, Integer, JSON, String, Text
from sqlalchemy.dialects.postgresql import JSONB

from settlement.core.db import Base
from settlement.models.enums import (
    FraudAlertStatusEnum,
    FraudResolutionActionEnum,
    FraudSeverityEnum,
)
from settlement.models.mixins import TimestampMixin


JSON_TYPE = JSONB().with_variant(JSON, "sqlite")


class FraudAlert(TimestampMixin, Base):
    __tablename__ = "affiliate_fraud_alerts"
    __table_args__ = (
        Index("ix_affiliate_fraud_alerts_tenant_status", "tenant_id", "status"),
        Index("ix_affiliate_fraud_alerts_affiliate", "affiliate_id"),
    )

    id = Column(Integer, primary_key=True, index=True)
    tenant_id = Column(Integer, nullable=False)
    affiliate_id = Column(Integer, ForeignKey("affiliates.id", ondelete="RESTRICT"), nullable=False)
    commission_event_id = Column(
        Integer,
        ForeignKey("affiliate_commission_events.id", ondelete="SET NULL"),
        nullable=True,
    )
    alert_type = Column(String, nullable=False)
    severity = Column(
        Enum(
            FraudSeverityEnum,
            name="fraud_severity_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=FraudSeverityEnum.MEDIUM,
    )
    description = Column(Text, nullable=False)
    evidence_json = Column(JSON_TYPE, nullable=True)
    affected_amount_cents = Column(Integer, nullable=True)
    status = Column(
        Enum(
            FraudAlertStatusEnum,
            name="fraud_alert_status_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=False,
        default=FraudAlertStatusEnum.OPEN,
    )
    resolution_action = Column(
        Enum(
            FraudResolutionActionEnum,
            name="fraud_resolution_action_enum",
            native_enum=False,
            validate_strings=True,
        ),
        nullable=True,
    )
    resolution = Column(Text, nullable=True)
    resolved_at = Column(DateTime, nullable=True)
    resolved_by = Column(Integer, nullable=True)
