from datetime import timedelta
from uuid import uuid4

from settlement.core.time import utcnow
from settlement.crud.affiliates import (
    create_affiliate,
    create_tax_document,
    upsert_payout_method,
    upsert_program,
    verify_payout_method,
    verify_tax_document,
)
from settlement.crud.commissions import create_plan, create_plan_assignment
from settlement.models.commissions import CommissionEvent
from settlement.models.enums import (
    CommissionPlanTypeEnum,
    CommissionStatusEnum,
    PayoutMethodTypeEnum,
    TaxDocumentTypeEnum,
)


DEFAULT_TENANT_ID = 1

METHOD_DETAILS = {
    PayoutMethodTypeEnum.STRIPE_CONNECT: {"stripe_account_id": "acct_test123"},
    PayoutMethodTypeEnum.PAYPAL: {"paypal_email": "affiliate@example.com"},
    PayoutMethodTypeEnum.BANK_WIRE: {"bank_name": "First Bank", "bank_account_last4": "4321"},
    PayoutMethodTypeEnum.CHECK: {"mailing_address_line1": "1 Main St", "mailing_city": "Austin"},
    PayoutMethodTypeEnum.MANUAL: {},
}


def make_program(db, *, tenant_id: int = DEFAULT_TENANT_ID, minimum_payout_cents: int | None = 1000):
    return upsert_program(
        db,
        tenant_id=tenant_id,
        updates={"minimum_payout_cents": minimum_payout_cents, "is_active": True, "currency": "USD"},
    )


def make_affiliate(db, *, tenant_id: int = DEFAULT_TENANT_ID, display_name: str | None = None):
    display_name = display_name or f"Affiliate {uuid4().hex[:6]}"
    return create_affiliate(
        db,
        tenant_id=tenant_id,
        display_name=display_name,
        email=f"{uuid4().hex[:8]}@example.com",
    )


def make_verified_method(
    db,
    *,
    affiliate,
    method_type: PayoutMethodTypeEnum = PayoutMethodTypeEnum.STRIPE_CONNECT,
    details: dict | None = None,
):
    method = upsert_payout_method(
        db,
        affiliate_id=affiliate.id,
        method_type=method_type,
        details=details if details is not None else dict(METHOD_DETAILS[method_type]),
    )
    return verify_payout_method(db, method=method)


def make_verified_tax_document(db, *, affiliate, tax_year: int | None = None):
    document = create_tax_document(
        db,
        affiliate_id=affiliate.id,
        document_type=TaxDocumentTypeEnum.W9,
        tax_year=tax_year or utcnow().year,
    )
    return verify_tax_document(db, document=document, verified_by=None)


def make_event(
    db,
    *,
    affiliate,
    commission_amount_cents: int,
    status: CommissionStatusEnum = CommissionStatusEnum.APPROVED,
    occurred_at=None,
    hold_until=None,
    source_ref: str | None = None,
):
    now = utcnow()
    event = CommissionEvent(
        tenant_id=affiliate.tenant_id,
        affiliate_id=affiliate.id,
        source_ref=source_ref or f"src_{uuid4().hex[:10]}",
        event_amount_cents=commission_amount_cents * 10,
        commission_amount_cents=commission_amount_cents,
        occurred_at=occurred_at or now,
        hold_until=hold_until,
        status=status,
        approved_at=now if status == CommissionStatusEnum.APPROVED else None,
        metadata_json={},
    )
    db.add(event)
    db.commit()
    db.refresh(event)
    return event


def make_fifo_events(db, *, affiliate, amounts: list[int]):
    base = utcnow() - timedelta(days=len(amounts) + 1)
    return [
        make_event(
            db,
            affiliate=affiliate,
            commission_amount_cents=amount,
            occurred_at=base + timedelta(days=index),
        )
        for index, amount in enumerate(amounts)
    ]


def make_plan_for(
    db,
    *,
    affiliate,
    plan_type: CommissionPlanTypeEnum = CommissionPlanTypeEnum.PERCENT,
    percent_bps: int | None = 1000,
    flat_amount_cents: int | None = None,
    hold_days: int = 0,
    clawback_enabled: bool = True,
    effective_from=None,
    **plan_kwargs,
):
    plan = create_plan(
        db,
        tenant_id=affiliate.tenant_id,
        name=f"Plan {uuid4().hex[:6]}",
        plan_type=plan_type,
        percent_bps=percent_bps,
        flat_amount_cents=flat_amount_cents,
        hold_days=hold_days,
        clawback_enabled=clawback_enabled,
        **plan_kwargs,
    )
    create_plan_assignment(
        db,
        tenant_id=affiliate.tenant_id,
        affiliate_id=affiliate.id,
        commission_plan_id=plan.id,
        effective_from=effective_from or utcnow() - timedelta(days=30),
    )
    return plan


def make_payable_affiliate(
    db,
    *,
    amounts: list[int],
    method_type: PayoutMethodTypeEnum = PayoutMethodTypeEnum.STRIPE_CONNECT,
    tenant_id: int = DEFAULT_TENANT_ID,
    minimum_payout_cents: int = 1000,
):
    make_program(db, tenant_id=tenant_id, minimum_payout_cents=minimum_payout_cents)
    affiliate = make_affiliate(db, tenant_id=tenant_id)
    make_verified_method(db, affiliate=affiliate, method_type=method_type)
    events = make_fifo_events(db, affiliate=affiliate, amounts=amounts)
    return affiliate, events
