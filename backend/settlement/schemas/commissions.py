from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from settlement.models.enums import (
    CommissionAppliesToEnum,
    CommissionPlanTypeEnum,
    CommissionStatusEnum,
)


class CommissionPlanCreate(BaseModel):
    tenant_id: int
    name: str = Field(min_length=1)
    plan_type: CommissionPlanTypeEnum
    flat_amount_cents: Optional[int] = Field(default=None, ge=0)
    percent_bps: Optional[int] = Field(default=None, ge=0, le=10000)
    applies_to: CommissionAppliesToEnum = CommissionAppliesToEnum.ALL_PAYMENTS
    hold_days: int = Field(default=0, ge=0)
    clawback_enabled: bool = True


class CommissionPlanRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    name: str
    plan_type: CommissionPlanTypeEnum
    flat_amount_cents: Optional[int] = None
    percent_bps: Optional[int] = None
    applies_to: CommissionAppliesToEnum
    hold_days: int
    clawback_enabled: bool
    is_active: bool


class PlanAssignmentCreate(BaseModel):
    tenant_id: int
    commission_plan_id: int
    effective_from: datetime
    effective_to: Optional[datetime] = None


class PlanAssignmentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    affiliate_id: int
    commission_plan_id: int
    effective_from: datetime
    effective_to: Optional[datetime] = None


class CommissionEventCreate(BaseModel):
    tenant_id: int
    affiliate_id: int
    event_amount_cents: int
    commission_amount_cents: int
    occurred_at: datetime
    source_ref: Optional[str] = None
    hold_until: Optional[datetime] = None
    commission_plan_id: Optional[int] = None
    metadata: Optional[dict] = None


class CommissionEventRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    affiliate_id: int
    source_ref: Optional[str] = None
    commission_plan_id: Optional[int] = None
    event_amount_cents: int
    commission_amount_cents: int
    occurred_at: datetime
    hold_until: Optional[datetime] = None
    status: CommissionStatusEnum
    approved_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    payout_id: Optional[int] = None
    reversed_at: Optional[datetime] = None
    reversal_reason: Optional[str] = None


class CommissionReverseRequest(BaseModel):
    tenant_id: int
    reason: str = Field(min_length=1)


class CommissionStatusTotals(BaseModel):
    count: int
    amount_cents: int


class CommissionSummaryRead(BaseModel):
    affiliate_id: int
    tenant_id: int
    by_status: dict[str, CommissionStatusTotals]
    total_earned_cents: int


class CommissionListResponse(BaseModel):
    items: list[CommissionEventRead]
    summary: CommissionSummaryRead
