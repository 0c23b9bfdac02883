"""
Payout assignment allocator.

``claim_commission_events`` reserves a FIFO batch of approved, unclaimed
commission events for a new payout; ``release_payout_claims`` is its
compensating action. These are the only two writers of
``CommissionEvent.payout_id``.

The claim runs as one transaction: the payout row and the claim markers land
together or not at all. Rows are locked with ``FOR UPDATE`` where the backend
supports it, and the claim itself is a conditional update on
``payout_id IS NULL`` so a competing claim is detected by row count on every
backend.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from settlement.core.config import settings
from settlement.core.errors import InsufficientBalance, ValidationFailed
from settlement.core.logging import get_structured_logger
from settlement.core.metrics import record_claim_conflict, record_commission_transition
from settlement.core.time import utcnow
from settlement.crud.commissions import unclaimed_approved_filter
from settlement.models.commissions import CommissionEvent
from settlement.models.enums import (
    CommissionStatusEnum,
    PayoutMethodTypeEnum,
    PayoutStatusEnum,
)
from settlement.models.payouts import Payout


logger = get_structured_logger("settlement.allocator")


def fee_for_method(method_type: PayoutMethodTypeEnum) -> int:
    schedule = settings.PAYOUT_FEE_SCHEDULE_CENTS or {}
    return int(schedule.get(method_type.value, 0))


def _load_unclaimed_events(db: Session, *, affiliate_id: int, tenant_id: int) -> list[CommissionEvent]:
    return (
        db.query(CommissionEvent)
        .filter(unclaimed_approved_filter(affiliate_id=affiliate_id, tenant_id=tenant_id))
        .order_by(CommissionEvent.occurred_at.asc(), CommissionEvent.id.asc())
        .with_for_update()
        .all()
    )


def select_events_for_amount(events: list[CommissionEvent], requested_amount_cents: int) -> list[CommissionEvent]:
    # Whole events only; the last one taken may overshoot the request.
    selected: list[CommissionEvent] = []
    accumulated = 0
    for event in events:
        if accumulated >= requested_amount_cents:
            break
        selected.append(event)
        accumulated += event.commission_amount_cents
    return selected


def claim_commission_events(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    requested_amount_cents: int,
    method_type: PayoutMethodTypeEnum,
    fee_cents: int,
    currency: str,
    processed_by: int | None = None,
    notes: str | None = None,
) -> Payout:
    if requested_amount_cents <= 0:
        raise ValidationFailed("Payout amount must be positive.")

    max_attempts = max(1, int(settings.PAYOUT_CLAIM_MAX_ATTEMPTS))
    for attempt in range(1, max_attempts + 1):
        events = _load_unclaimed_events(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
        available = sum(event.commission_amount_cents for event in events)
        if available < requested_amount_cents:
            db.rollback()
            raise InsufficientBalance(
                f"Insufficient balance: {available} cents available, {requested_amount_cents} requested"
            )

        selected = select_events_for_amount(events, requested_amount_cents)
        amount = sum(event.commission_amount_cents for event in selected)
        now = utcnow()
        payout = Payout(
            tenant_id=tenant_id,
            affiliate_id=affiliate_id,
            requested_amount_cents=requested_amount_cents,
            amount_cents=amount,
            fee_cents=fee_cents,
            net_amount_cents=amount - fee_cents,
            currency=currency,
            method_type=method_type,
            status=PayoutStatusEnum.PROCESSING,
            period_start=min(event.occurred_at for event in selected),
            period_end=now,
            processed_at=now,
            processed_by=processed_by,
            notes=notes,
        )
        db.add(payout)
        db.flush()

        event_ids = [event.id for event in selected]
        claimed = (
            db.query(CommissionEvent)
            .filter(
                CommissionEvent.id.in_(event_ids),
                CommissionEvent.payout_id.is_(None),
                CommissionEvent.status == CommissionStatusEnum.APPROVED,
            )
            .update({CommissionEvent.payout_id: payout.id}, synchronize_session=False)
        )
        if claimed != len(event_ids):
            db.rollback()
            record_claim_conflict()
            logger.warning(
                "payout.claim_conflict",
                extra={
                    "affiliate_id": affiliate_id,
                    "tenant_id": tenant_id,
                    "attempt": attempt,
                    "expected": len(event_ids),
                    "claimed": claimed,
                },
            )
            continue

        db.commit()
        db.refresh(payout)
        logger.info(
            "payout.claimed",
            extra={
                "affiliate_id": affiliate_id,
                "tenant_id": tenant_id,
                "payout_id": payout.id,
                "event_count": len(event_ids),
                "amount_cents": amount,
            },
        )
        return payout

    raise InsufficientBalance("Commission balance kept changing while claiming; retry the payout")


def release_payout_claims(db: Session, *, payout_id: int) -> int:
    """Clear the claim marker on every still-approved event of ``payout_id``.

    Runs inside the caller's transaction so the release lands in the same
    commit as the payout's terminal status.
    """
    released = (
        db.query(CommissionEvent)
        .filter(
            CommissionEvent.payout_id == payout_id,
            CommissionEvent.status == CommissionStatusEnum.APPROVED,
        )
        .update({CommissionEvent.payout_id: None}, synchronize_session=False)
    )
    if released:
        logger.info(
            "payout.claims_released",
            extra={"payout_id": payout_id, "released_count": released},
        )
    return int(released)


def mark_payout_events_paid(db: Session, *, payout_id: int) -> int:
    paid = (
        db.query(CommissionEvent)
        .filter(
            CommissionEvent.payout_id == payout_id,
            CommissionEvent.status == CommissionStatusEnum.APPROVED,
        )
        .update(
            {
                CommissionEvent.status: CommissionStatusEnum.PAID,
                CommissionEvent.paid_at: utcnow(),
            },
            synchronize_session=False,
        )
    )
    record_commission_transition(CommissionStatusEnum.PAID.value, paid)
    return int(paid)
