"""
Settlement dispatcher.

``process_payout`` validates a request, claims commission events through the
allocator, then hands the committed payout to a rail adapter. Rail calls run
outside the claim transaction; any failure marks the payout FAILED and
releases its claims in the same commit, so a failed disbursement leaves the
ledger as if it had never been attempted.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from time import monotonic

from sqlalchemy.orm import Session

from settlement.core.allocator import (
    claim_commission_events,
    fee_for_method,
    mark_payout_events_paid,
    release_payout_claims,
)
from settlement.core.config import settings
from settlement.core.eligibility import check_payout_eligibility
from settlement.core.errors import (
    Ineligible,
    InvalidTransition,
    NotFound,
    NoVerifiedMethod,
    ValidationFailed,
)
from settlement.core.logging import get_structured_logger
from settlement.core.metrics import record_payout, record_rail_dispatch
from settlement.core.time import utcnow
from settlement.core.transitions import ensure_transition
from settlement.crud.affiliates import get_affiliate, get_program, get_verified_payout_method
from settlement.crud.payouts import (
    count_claimed_events,
    count_payouts_for_affiliate,
    get_payout,
    list_payouts_for_affiliate,
)
from settlement.models.affiliates import PayoutMethod
from settlement.models.enums import PayoutMethodTypeEnum, PayoutStatusEnum
from settlement.models.payouts import Payout
from settlement.rails import get_rail
from settlement.rails.base import RailError, RailResult


logger = get_structured_logger("settlement.payouts")

MANUAL_COMPLETION_STATUSES = (PayoutStatusEnum.AWAITING_APPROVAL, PayoutStatusEnum.PENDING)
REMOTE_RAILS = {PayoutMethodTypeEnum.STRIPE_CONNECT, PayoutMethodTypeEnum.PAYPAL}


@dataclass
class PayoutRequest:
    affiliate_id: int
    tenant_id: int
    amount_cents: int
    method_type: PayoutMethodTypeEnum | str
    processed_by: int | None = None
    notes: str | None = None


@dataclass
class PayoutResult:
    success: bool
    payout_id: int | None = None
    status: str | None = None
    external_reference: str | None = None
    error: str | None = None
    error_code: str | None = None
    amount_cents: int | None = None
    net_amount_cents: int | None = None

    def to_dict(self) -> dict:
        return asdict(self)


def _parse_method_type(value: PayoutMethodTypeEnum | str) -> PayoutMethodTypeEnum:
    if isinstance(value, PayoutMethodTypeEnum):
        return value
    try:
        return PayoutMethodTypeEnum(str(value or "").strip().lower())
    except ValueError as exc:
        raise ValidationFailed(f"Unknown payout method: {value}") from exc


def _log_extra(payout: Payout, **extra) -> dict:
    return {
        "affiliate_id": payout.affiliate_id,
        "tenant_id": payout.tenant_id,
        "payout_id": payout.id,
        "method": payout.method_type.value,
        **extra,
    }


def _result_for(payout: Payout, *, error: str | None = None, error_code: str | None = None) -> PayoutResult:
    return PayoutResult(
        success=error_code is None,
        payout_id=payout.id,
        status=payout.status.value,
        external_reference=payout.external_reference,
        error=error,
        error_code=error_code,
        amount_cents=payout.amount_cents,
        net_amount_cents=payout.net_amount_cents,
    )


def _require_payout(db: Session, *, payout_id: int, tenant_id: int | None) -> Payout:
    payout = get_payout(db, payout_id=payout_id, tenant_id=tenant_id)
    if not payout:
        raise NotFound("Payout not found")
    return payout


def _validate_request(request: PayoutRequest) -> tuple[PayoutMethodTypeEnum, int]:
    if request.amount_cents is None or int(request.amount_cents) <= 0:
        raise ValidationFailed("Payout amount must be positive.")
    method_type = _parse_method_type(request.method_type)
    fee_cents = fee_for_method(method_type)
    if request.amount_cents <= fee_cents:
        raise ValidationFailed(
            f"Payout amount must exceed the {method_type.value} fee of {fee_cents} cents."
        )
    return method_type, fee_cents


def _resolve_method(db: Session, *, affiliate_id: int, method_type: PayoutMethodTypeEnum) -> PayoutMethod:
    method = get_verified_payout_method(db, affiliate_id=affiliate_id, method_type=method_type)
    if not method:
        raise NoVerifiedMethod(f"No verified {method_type.value} payout method on file")
    if method_type in REMOTE_RAILS and not method.destination:
        raise NoVerifiedMethod(f"Verified {method_type.value} method has no destination")
    return method


def _fail_payout(db: Session, payout: Payout, *, code: str, reason: str) -> None:
    ensure_transition(payout.status, PayoutStatusEnum.FAILED)
    payout.status = PayoutStatusEnum.FAILED
    payout.failed_at = utcnow()
    payout.failure_code = code
    payout.failure_reason = reason
    release_payout_claims(db, payout_id=payout.id)
    db.commit()
    db.refresh(payout)
    record_payout(method=payout.method_type.value, status=payout.status.value)


def _apply_rail_result(db: Session, payout: Payout, result: RailResult) -> None:
    if result.status != payout.status:
        ensure_transition(payout.status, result.status)
        payout.status = result.status
    if result.external_reference:
        payout.external_reference = result.external_reference
        if result.reference_field:
            setattr(payout, result.reference_field, result.external_reference)
    if result.status == PayoutStatusEnum.COMPLETED:
        payout.completed_at = utcnow()
        mark_payout_events_paid(db, payout_id=payout.id)
    db.commit()
    db.refresh(payout)
    record_payout(method=payout.method_type.value, status=payout.status.value)


def process_payout(db: Session, request: PayoutRequest) -> PayoutResult:
    method_type, fee_cents = _validate_request(request)

    affiliate = get_affiliate(db, affiliate_id=request.affiliate_id, tenant_id=request.tenant_id)
    if not affiliate:
        raise NotFound("Affiliate not found")
    eligibility = check_payout_eligibility(
        db,
        affiliate_id=request.affiliate_id,
        tenant_id=request.tenant_id,
    )
    if not eligibility.eligible:
        raise Ineligible(eligibility.reason or "Affiliate is not eligible for a payout")

    method = _resolve_method(db, affiliate_id=affiliate.id, method_type=method_type)
    program = get_program(db, tenant_id=request.tenant_id)
    currency = (program.currency if program and program.currency else settings.PAYOUT_CURRENCY).upper()

    payout = claim_commission_events(
        db,
        affiliate_id=affiliate.id,
        tenant_id=request.tenant_id,
        requested_amount_cents=int(request.amount_cents),
        method_type=method_type,
        fee_cents=fee_cents,
        currency=currency,
        processed_by=request.processed_by,
        notes=request.notes,
    )

    rail = get_rail(method_type)
    started = monotonic()
    try:
        if rail is None:
            raise RailError(f"No payout rail registered for {method_type.value}")
        result = rail.dispatch(payout=payout, method=method)
    except RailError as exc:
        record_rail_dispatch(method=method_type.value, duration_seconds=monotonic() - started)
        logger.error(
            "payout.rail_failed",
            extra=_log_extra(payout, error_code="rail_failure", error=exc.message, retryable=exc.retryable),
        )
        _fail_payout(db, payout, code="rail_failure", reason=exc.message)
        return _result_for(payout, error=exc.message, error_code="rail_failure")
    except Exception as exc:
        record_rail_dispatch(method=method_type.value, duration_seconds=monotonic() - started)
        logger.exception("payout.dispatch_error", extra=_log_extra(payout, error_code="internal"))
        db.rollback()
        _fail_payout(db, payout, code="internal", reason=str(exc) or exc.__class__.__name__)
        return _result_for(payout, error="Payout dispatch failed", error_code="internal")

    record_rail_dispatch(method=method_type.value, duration_seconds=monotonic() - started)
    _apply_rail_result(db, payout, result)
    logger.info(
        "payout.dispatched",
        extra=_log_extra(
            payout,
            status=payout.status.value,
            external_reference=payout.external_reference,
            amount_cents=payout.amount_cents,
            net_amount_cents=payout.net_amount_cents,
        ),
    )
    return _result_for(payout)


def _store_manual_reference(payout: Payout, reference_number: str) -> None:
    if payout.method_type == PayoutMethodTypeEnum.BANK_WIRE:
        payout.wire_reference = reference_number
    elif payout.method_type == PayoutMethodTypeEnum.CHECK:
        payout.check_number = reference_number
    else:
        payout.external_reference = reference_number


def complete_manual_payout(
    db: Session,
    *,
    payout_id: int,
    reference_number: str,
    approver_id: int | None,
    tenant_id: int | None = None,
) -> Payout:
    reference_number = (reference_number or "").strip()
    if not reference_number:
        raise ValidationFailed("A reference number is required to complete a payout.")
    payout = _require_payout(db, payout_id=payout_id, tenant_id=tenant_id)
    if payout.status not in MANUAL_COMPLETION_STATUSES:
        raise InvalidTransition(f"Payout cannot be completed from {payout.status.value}")
    ensure_transition(payout.status, PayoutStatusEnum.COMPLETED)

    now = utcnow()
    updated = (
        db.query(Payout)
        .filter(Payout.id == payout.id, Payout.status.in_(MANUAL_COMPLETION_STATUSES))
        .update(
            {
                Payout.status: PayoutStatusEnum.COMPLETED,
                Payout.completed_at: now,
                Payout.approved_by: approver_id,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        raise InvalidTransition("Payout changed state while it was being completed")
    _store_manual_reference(payout, reference_number)
    paid = mark_payout_events_paid(db, payout_id=payout.id)
    db.commit()
    db.refresh(payout)
    record_payout(method=payout.method_type.value, status=payout.status.value)
    logger.info(
        "payout.completed",
        extra=_log_extra(payout, approved_by=approver_id, paid_event_count=paid),
    )
    return payout


def apply_cancellation(
    db: Session,
    *,
    payout: Payout,
    reason: str | None,
    cancelled_by: int | None,
) -> int:
    """Cancel ``payout`` and release its claims inside the caller's transaction.

    Returns the number of released commission events; the caller commits.
    """
    ensure_transition(payout.status, PayoutStatusEnum.CANCELLED)
    updated = (
        db.query(Payout)
        .filter(Payout.id == payout.id, Payout.status.in_(MANUAL_COMPLETION_STATUSES))
        .update(
            {
                Payout.status: PayoutStatusEnum.CANCELLED,
                Payout.failure_reason: reason,
                Payout.approved_by: cancelled_by,
            },
            synchronize_session=False,
        )
    )
    if updated != 1:
        db.rollback()
        raise InvalidTransition("Payout changed state while it was being cancelled")
    return release_payout_claims(db, payout_id=payout.id)


def cancel_payout(
    db: Session,
    *,
    payout_id: int,
    reason: str | None,
    cancelled_by: int | None,
    tenant_id: int | None = None,
) -> Payout:
    payout = _require_payout(db, payout_id=payout_id, tenant_id=tenant_id)
    released = apply_cancellation(db, payout=payout, reason=reason, cancelled_by=cancelled_by)
    db.commit()
    db.refresh(payout)
    record_payout(method=payout.method_type.value, status=payout.status.value)
    logger.info(
        "payout.cancelled",
        extra=_log_extra(payout, cancelled_by=cancelled_by, released_count=released),
    )
    return payout


def apply_rail_outcome(
    db: Session,
    *,
    payout_id: int,
    succeeded: bool,
    failure_reason: str | None = None,
    tenant_id: int | None = None,
) -> Payout:
    payout = _require_payout(db, payout_id=payout_id, tenant_id=tenant_id)
    target = PayoutStatusEnum.COMPLETED if succeeded else PayoutStatusEnum.FAILED
    if payout.status == target:
        # Replayed webhook; the first delivery already settled it.
        return payout
    if payout.status != PayoutStatusEnum.PROCESSING:
        raise InvalidTransition(f"Payout is {payout.status.value}, not processing")
    ensure_transition(payout.status, target)

    if not succeeded:
        reason = failure_reason or "Rail reported failure"
        logger.error("payout.rail_failed", extra=_log_extra(payout, error_code="rail_failure", error=reason))
        _fail_payout(db, payout, code="rail_failure", reason=reason)
        return payout

    payout.status = PayoutStatusEnum.COMPLETED
    payout.completed_at = utcnow()
    paid = mark_payout_events_paid(db, payout_id=payout.id)
    db.commit()
    db.refresh(payout)
    record_payout(method=payout.method_type.value, status=payout.status.value)
    logger.info("payout.completed", extra=_log_extra(payout, paid_event_count=paid))
    return payout


def serialize_payout(payout: Payout, *, commission_count: int = 0) -> dict:
    return {
        "id": payout.id,
        "affiliate_id": payout.affiliate_id,
        "tenant_id": payout.tenant_id,
        "requested_amount_cents": payout.requested_amount_cents,
        "amount_cents": payout.amount_cents,
        "fee_cents": payout.fee_cents,
        "net_amount_cents": payout.net_amount_cents,
        "currency": payout.currency,
        "method_type": payout.method_type.value,
        "status": payout.status.value,
        "external_reference": payout.external_reference,
        "stripe_transfer_id": payout.stripe_transfer_id,
        "paypal_batch_id": payout.paypal_batch_id,
        "wire_reference": payout.wire_reference,
        "check_number": payout.check_number,
        "period_start": payout.period_start,
        "period_end": payout.period_end,
        "processed_at": payout.processed_at,
        "completed_at": payout.completed_at,
        "failed_at": payout.failed_at,
        "failure_code": payout.failure_code,
        "failure_reason": payout.failure_reason,
        "created_at": payout.created_at,
        "commission_count": commission_count,
    }


def get_payout_history(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    page: int = 1,
    limit: int = 20,
) -> dict:
    page = max(1, int(page))
    limit = max(1, min(int(limit), 100))
    total = count_payouts_for_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    rows = list_payouts_for_affiliate(
        db,
        affiliate_id=affiliate_id,
        tenant_id=tenant_id,
        offset=(page - 1) * limit,
        limit=limit,
    )
    counts = count_claimed_events(db, payout_ids=[row.id for row in rows])
    return {
        "items": [serialize_payout(row, commission_count=counts.get(row.id, 0)) for row in rows],
        "total": total,
        "page": page,
        "page_size": limit,
    }
