from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime

from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.core.errors import NotFound
from settlement.core.time import normalize_ts, utcnow
from settlement.crud.affiliates import (
    get_affiliate,
    get_program,
    has_verified_payout_method,
    has_verified_tax_document,
)
from settlement.crud.commissions import sum_unclaimed_approved
from settlement.crud.payouts import sum_completed_payouts_since
from settlement.models.enums import AffiliateStatusEnum


@dataclass
class PayoutEligibility:
    eligible: bool
    reason: str | None
    available_amount_cents: int
    minimum_payout_cents: int
    has_payout_method: bool
    has_tax_docs: bool
    affiliate_status: str

    def to_dict(self) -> dict:
        return asdict(self)


def _dollars(cents: int) -> str:
    return f"${cents / 100:.2f}"


def resolve_minimum_payout_cents(db: Session, *, tenant_id: int) -> int:
    program = get_program(db, tenant_id=tenant_id)
    if program and program.minimum_payout_cents:
        return int(program.minimum_payout_cents)
    return int(settings.AFFILIATE_DEFAULT_MINIMUM_PAYOUT_CENTS)


def check_payout_eligibility(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    now: datetime | None = None,
) -> PayoutEligibility:
    affiliate = get_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    if not affiliate:
        raise NotFound("Affiliate not found")

    now = normalize_ts(now) or utcnow()
    available = sum_unclaimed_approved(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    minimum = resolve_minimum_payout_cents(db, tenant_id=tenant_id)
    has_method = has_verified_payout_method(db, affiliate_id=affiliate_id)

    year_start = datetime(now.year, 1, 1)
    ytd_paid = sum_completed_payouts_since(db, affiliate_id=affiliate_id, since=year_start)
    requires_tax_doc = ytd_paid + available >= settings.TAX_REPORTING_THRESHOLD_CENTS
    has_tax_docs = not requires_tax_doc or has_verified_tax_document(
        db,
        affiliate_id=affiliate_id,
        tax_year=now.year,
    )

    status = affiliate.status
    reason = None
    if status != AffiliateStatusEnum.ACTIVE:
        reason = f"Affiliate is {status.value}"
    elif available < minimum:
        reason = f"Balance ({_dollars(available)}) below minimum payout ({_dollars(minimum)})"
    elif not has_method:
        reason = "No verified payout method on file"
    elif not has_tax_docs:
        reason = "Tax documents required but not verified"

    return PayoutEligibility(
        eligible=reason is None,
        reason=reason,
        available_amount_cents=available,
        minimum_payout_cents=minimum,
        has_payout_method=has_method,
        has_tax_docs=has_tax_docs,
        affiliate_status=status.value,
    )
