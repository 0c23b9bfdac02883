from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from settlement.models.enums import PayoutMethodTypeEnum


class PayoutCreate(BaseModel):
    tenant_id: int
    affiliate_id: int
    amount_cents: int = Field(gt=0)
    method_type: PayoutMethodTypeEnum
    notes: Optional[str] = None


class PayoutResultRead(BaseModel):
    success: bool
    payout_id: Optional[int] = None
    status: Optional[str] = None
    external_reference: Optional[str] = None
    error: Optional[str] = None
    error_code: Optional[str] = None
    amount_cents: Optional[int] = None
    net_amount_cents: Optional[int] = None


class PayoutRead(BaseModel):
    id: int
    affiliate_id: int
    tenant_id: int
    requested_amount_cents: int
    amount_cents: int
    fee_cents: int
    net_amount_cents: int
    currency: str
    method_type: str
    status: str
    external_reference: Optional[str] = None
    stripe_transfer_id: Optional[str] = None
    paypal_batch_id: Optional[str] = None
    wire_reference: Optional[str] = None
    check_number: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    processed_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    failure_code: Optional[str] = None
    failure_reason: Optional[str] = None
    created_at: datetime
    commission_count: int = 0


class PayoutHistoryResponse(BaseModel):
    items: list[PayoutRead]
    total: int
    page: int
    page_size: int


class PayoutCompleteRequest(BaseModel):
    tenant_id: int
    reference_number: str = Field(min_length=1)


class PayoutCancelRequest(BaseModel):
    tenant_id: int
    reason: Optional[str] = None


class RailOutcomeRequest(BaseModel):
    tenant_id: int
    succeeded: bool
    failure_reason: Optional[str] = None
