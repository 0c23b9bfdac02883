"""
Commission ledger: ingestion of conversions into commission events and the
PENDING -> APPROVED -> PAID / REVERSED lifecycle.

Status writes are conditional updates guarded on the expected prior state, so
two concurrent writers can never both move the same event. The claim marker
(``payout_id``) is owned by ``settlement.core.allocator`` and is never touched
here.
"""

from __future__ import annotations

from datetime import datetime, timedelta
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from settlement.core.errors import InvalidTransition, NotFound, ValidationFailed
from settlement.core.logging import get_structured_logger
from settlement.core.metrics import record_commission_transition
from settlement.core.time import normalize_ts, utcnow
from settlement.core.transitions import ensure_transition
from settlement.crud.affiliates import get_affiliate, mark_touch_converted
from settlement.crud.commissions import (
    get_active_assignment,
    get_commission_by_source_ref,
    get_commission_event,
    get_plan,
    summarize_commissions,
)
from settlement.models.commissions import CommissionEvent, CommissionPlan
from settlement.models.enums import (
    AffiliateStatusEnum,
    CommissionAppliesToEnum,
    CommissionPlanTypeEnum,
    CommissionStatusEnum,
)


logger = get_structured_logger("settlement.ledger")

REVERSIBLE_STATUSES = (CommissionStatusEnum.PENDING, CommissionStatusEnum.APPROVED)


def calculate_commission(plan: CommissionPlan, event_amount_cents: int) -> int:
    if plan.plan_type == CommissionPlanTypeEnum.FLAT:
        return int(plan.flat_amount_cents or 0)
    bps = int(plan.percent_bps or 0)
    amount = Decimal(int(event_amount_cents)) * Decimal(bps) / Decimal(10000)
    return int(amount.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_effective_commission_plan(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    at: datetime,
) -> CommissionPlan | None:
    assignment = get_active_assignment(
        db,
        affiliate_id=affiliate_id,
        tenant_id=tenant_id,
        at=normalize_ts(at),
    )
    if not assignment:
        return None
    plan = get_plan(db, plan_id=assignment.commission_plan_id, tenant_id=tenant_id)
    if not plan or not plan.is_active:
        return None
    return plan


def record_commission_event(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    event_amount_cents: int,
    commission_amount_cents: int,
    occurred_at: datetime,
    source_ref: str | None = None,
    hold_until: datetime | None = None,
    commission_plan_id: int | None = None,
    metadata: dict | None = None,
) -> CommissionEvent:
    if event_amount_cents < 0 or commission_amount_cents < 0:
        raise ValidationFailed("Commission amounts must not be negative.")

    affiliate = get_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    if not affiliate:
        raise ValidationFailed("Unknown affiliate for this tenant.")
    if affiliate.status != AffiliateStatusEnum.ACTIVE:
        raise ValidationFailed("Affiliate is not active.")

    source_ref = source_ref.strip() if source_ref else None
    existing = get_commission_by_source_ref(db, tenant_id=tenant_id, source_ref=source_ref)
    if existing:
        return existing

    event = CommissionEvent(
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        source_ref=source_ref,
        commission_plan_id=commission_plan_id,
        event_amount_cents=int(event_amount_cents),
        commission_amount_cents=int(commission_amount_cents),
        occurred_at=normalize_ts(occurred_at),
        hold_until=normalize_ts(hold_until),
        status=CommissionStatusEnum.PENDING,
        metadata_json=metadata or {},
    )
    db.add(event)
    affiliate.lifetime_conversions = (affiliate.lifetime_conversions or 0) + 1
    affiliate.lifetime_revenue_cents = (affiliate.lifetime_revenue_cents or 0) + int(event_amount_cents)
    try:
        db.commit()
    except IntegrityError:
        # Concurrent replay of the same source_ref won the insert.
        db.rollback()
        existing = get_commission_by_source_ref(db, tenant_id=tenant_id, source_ref=source_ref)
        if existing:
            return existing
        raise
    db.refresh(event)
    record_commission_transition(CommissionStatusEnum.PENDING.value)
    logger.info(
        "commission.recorded",
        extra={
            "tenant_id": tenant_id,
            "affiliate_id": affiliate_id,
            "commission_event_id": event.id,
            "commission_amount_cents": event.commission_amount_cents,
        },
    )
    return event


def record_conversion(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    event_amount_cents: int,
    occurred_at: datetime,
    source_ref: str | None = None,
    is_first_payment: bool = True,
    touch_id: int | None = None,
    metadata: dict | None = None,
) -> CommissionEvent | None:
    plan = get_effective_commission_plan(
        db,
        affiliate_id=affiliate_id,
        tenant_id=tenant_id,
        at=occurred_at,
    )
    if not plan:
        return None
    if plan.applies_to == CommissionAppliesToEnum.FIRST_PAYMENT_ONLY and not is_first_payment:
        return None
    if plan.applies_to == CommissionAppliesToEnum.RECURRING_ONLY and is_first_payment:
        return None

    commission_cents = calculate_commission(plan, event_amount_cents)
    if commission_cents <= 0:
        return None

    occurred_at = normalize_ts(occurred_at)
    hold_until = occurred_at + timedelta(days=plan.hold_days) if plan.hold_days else None
    event_metadata = dict(metadata or {})
    event_metadata.setdefault("is_first_payment", is_first_payment)
    event = record_commission_event(
        db,
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        event_amount_cents=event_amount_cents,
        commission_amount_cents=commission_cents,
        occurred_at=occurred_at,
        source_ref=source_ref,
        hold_until=hold_until,
        commission_plan_id=plan.id,
        metadata=event_metadata,
    )
    if touch_id is not None:
        mark_touch_converted(db, touch_id=touch_id, converted_at=occurred_at)
    return event


def _require_event(db: Session, *, event_id: int, tenant_id: int) -> CommissionEvent:
    event = get_commission_event(db, event_id=event_id, tenant_id=tenant_id)
    if not event:
        raise NotFound("Commission event not found")
    return event


def approve_commission_event(
    db: Session,
    *,
    event_id: int,
    tenant_id: int,
    approved_by: int | None = None,
) -> CommissionEvent:
    event = _require_event(db, event_id=event_id, tenant_id=tenant_id)
    ensure_transition(event.status, CommissionStatusEnum.APPROVED)

    now = utcnow()
    updated = (
        db.query(CommissionEvent)
        .filter(
            CommissionEvent.id == event.id,
            CommissionEvent.status == CommissionStatusEnum.PENDING,
        )
        .update(
            {
                CommissionEvent.status: CommissionStatusEnum.APPROVED,
                CommissionEvent.approved_at: now,
                CommissionEvent.approved_by: approved_by,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        raise InvalidTransition("Commission changed state while it was being approved")
    db.commit()
    db.refresh(event)
    record_commission_transition(CommissionStatusEnum.APPROVED.value)
    return event


def approve_pending_commissions(db: Session, *, now: datetime | None = None) -> int:
    now = normalize_ts(now) or utcnow()
    updated = (
        db.query(CommissionEvent)
        .filter(
            CommissionEvent.status == CommissionStatusEnum.PENDING,
            or_(CommissionEvent.hold_until.is_(None), CommissionEvent.hold_until <= now),
        )
        .update(
            {
                CommissionEvent.status: CommissionStatusEnum.APPROVED,
                CommissionEvent.approved_at: now,
            },
            synchronize_session=False,
        )
    )
    db.commit()
    record_commission_transition(CommissionStatusEnum.APPROVED.value, updated)
    if updated:
        logger.info("commission.batch_approved", extra={"approved_count": updated})
    return int(updated)


def _reversal_blocker(event: CommissionEvent) -> InvalidTransition | None:
    if event.status == CommissionStatusEnum.PAID:
        return InvalidTransition(
            "Commission has already been paid out and cannot be reversed",
            code="commission_paid",
        )
    if event.status == CommissionStatusEnum.REVERSED:
        return InvalidTransition("Commission is already reversed")
    if event.payout_id is not None:
        return InvalidTransition(
            "Commission is claimed by an in-flight payout",
            code="commission_claimed",
        )
    return None


def apply_reversal(db: Session, *, event: CommissionEvent, reason: str | None) -> None:
    """Reverse ``event`` inside the caller's transaction; the caller commits.

    The update only matches an unclaimed, unreversed PENDING/APPROVED row, so a
    racing claim or a second reversal leaves this one with nothing to update.
    """
    blocker = _reversal_blocker(event)
    if blocker:
        raise blocker
    ensure_transition(event.status, CommissionStatusEnum.REVERSED)

    updated = (
        db.query(CommissionEvent)
        .filter(
            CommissionEvent.id == event.id,
            CommissionEvent.status.in_(REVERSIBLE_STATUSES),
            CommissionEvent.reversed_at.is_(None),
            CommissionEvent.payout_id.is_(None),
        )
        .update(
            {
                CommissionEvent.status: CommissionStatusEnum.REVERSED,
                CommissionEvent.reversed_at: utcnow(),
                CommissionEvent.reversal_reason: reason,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        db.refresh(event)
        raise _reversal_blocker(event) or InvalidTransition(
            "Commission changed state while it was being reversed"
        )


def reverse_commission_event(
    db: Session,
    *,
    event_id: int,
    tenant_id: int,
    reason: str | None,
) -> CommissionEvent:
    event = _require_event(db, event_id=event_id, tenant_id=tenant_id)
    apply_reversal(db, event=event, reason=reason)
    db.commit()
    db.refresh(event)
    record_commission_transition(CommissionStatusEnum.REVERSED.value)
    logger.info(
        "commission.reversed",
        extra={
            "tenant_id": tenant_id,
            "affiliate_id": event.affiliate_id,
            "commission_event_id": event.id,
            "reason": reason,
        },
    )
    return event


def reverse_commission_for_refund(
    db: Session,
    *,
    tenant_id: int,
    source_ref: str,
    reason: str | None = None,
) -> CommissionEvent | None:
    event = get_commission_by_source_ref(db, tenant_id=tenant_id, source_ref=source_ref)
    if not event or event.status not in REVERSIBLE_STATUSES:
        return None

    plan = get_effective_commission_plan(
        db,
        affiliate_id=event.affiliate_id,
        tenant_id=tenant_id,
        at=utcnow(),
    )
    if plan is None and event.commission_plan_id is not None:
        plan = get_plan(db, plan_id=event.commission_plan_id, tenant_id=tenant_id)
    if not plan or not plan.clawback_enabled:
        logger.info(
            "commission.refund_skipped",
            extra={"tenant_id": tenant_id, "commission_event_id": event.id},
        )
        return None

    return reverse_commission_event(
        db,
        event_id=event.id,
        tenant_id=tenant_id,
        reason=reason or "refund",
    )


def build_commission_summary(db: Session, *, affiliate_id: int, tenant_id: int) -> dict:
    by_status = summarize_commissions(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    return {
        "affiliate_id": affiliate_id,
        "tenant_id": tenant_id,
        "by_status": by_status,
        "total_earned_cents": sum(
            by_status[status.value]["amount_cents"]
            for status in (
                CommissionStatusEnum.PENDING,
                CommissionStatusEnum.APPROVED,
                CommissionStatusEnum.PAID,
            )
        ),
    }
