from __future__ import annotations

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field

from settlement.models.enums import (
    AffiliateStatusEnum,
    PayoutMethodTypeEnum,
    TaxDocumentStatusEnum,
    TaxDocumentTypeEnum,
)


class AffiliateCreate(BaseModel):
    tenant_id: int
    display_name: str = Field(min_length=1)
    email: Optional[str] = None


class AffiliateRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    display_name: str
    email: Optional[str] = None
    status: AffiliateStatusEnum
    lifetime_conversions: int
    lifetime_revenue_cents: int
    created_at: datetime


class AffiliateProgramUpdate(BaseModel):
    is_active: Optional[bool] = None
    minimum_payout_cents: Optional[int] = Field(default=None, gt=0)
    currency: Optional[str] = Field(default=None, min_length=3, max_length=3)


class AffiliateProgramRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    is_active: bool
    minimum_payout_cents: Optional[int] = None
    currency: str


class ReferralCodeCreate(BaseModel):
    tenant_id: int
    code: Optional[str] = None


class ReferralCodeRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tenant_id: int
    affiliate_id: int
    code: str
    is_active: bool


class PayoutMethodUpsert(BaseModel):
    tenant_id: int
    method_type: PayoutMethodTypeEnum
    is_default: bool = False
    stripe_account_id: Optional[str] = None
    paypal_email: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_last4: Optional[str] = Field(default=None, min_length=4, max_length=4)
    mailing_address_line1: Optional[str] = None
    mailing_city: Optional[str] = None
    mailing_state: Optional[str] = None
    mailing_zip: Optional[str] = None
    mailing_country: Optional[str] = None


class PayoutMethodRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    affiliate_id: int
    method_type: PayoutMethodTypeEnum
    is_default: bool
    is_verified: bool
    verified_at: Optional[datetime] = None
    stripe_account_id: Optional[str] = None
    paypal_email: Optional[str] = None
    bank_name: Optional[str] = None
    bank_account_last4: Optional[str] = None


class TaxDocumentCreate(BaseModel):
    tenant_id: int
    document_type: TaxDocumentTypeEnum
    tax_year: int = Field(ge=2000, le=2100)


class TaxDocumentRead(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    affiliate_id: int
    document_type: TaxDocumentTypeEnum
    tax_year: int
    status: TaxDocumentStatusEnum
    submitted_at: Optional[datetime] = None
    verified_at: Optional[datetime] = None


class EligibilityRead(BaseModel):
    affiliate_id: int
    eligible: bool
    reason: Optional[str] = None
    available_amount_cents: int
    minimum_payout_cents: int
    has_payout_method: bool
    has_tax_docs: bool
    affiliate_status: str
