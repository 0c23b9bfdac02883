from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from settlement.models.enums import (
    FraudAlertStatusEnum,
    FraudResolutionActionEnum,
    FraudSeverityEnum,
)


class FraudAlertCreate(BaseModel):
    tenant_id: int
    affiliate_id: int
    alert_type: str = Field(min_length=1)
    severity: FraudSeverityEnum = FraudSeverityEnum.MEDIUM
    description: str = Field(min_length=1)
    evidence: Optional[dict] = None
    commission_event_id: Optional[int] = None
    affected_amount_cents: Optional[int] = Field(default=None, ge=0)


class FraudAlertResolve(BaseModel):
    tenant_id: int
    status: FraudAlertStatusEnum
    resolution_action: Optional[FraudResolutionActionEnum] = None
    resolution: Optional[str] = None
    reverse_commission: bool = False


class FraudAlertRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    affiliate_id: int
    commission_event_id: Optional[int] = None
    alert_type: str
    severity: FraudSeverityEnum
    description: str
    evidence_json: Optional[dict] = None
    affected_amount_cents: Optional[int] = None
    status: FraudAlertStatusEnum
    resolution_action: Optional[FraudResolutionActionEnum] = None
    resolution: Optional[str] = None
    resolved_at: Optional[datetime] = None
    resolved_by: Optional[int] = None
    created_at: datetime


class FraudAlertListResponse(BaseModel):
    items: list[FraudAlertRead]
    total: int
    page: int
    page_size: int
