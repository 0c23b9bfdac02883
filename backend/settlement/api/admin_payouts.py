from __future__ import annotations

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from settlement.api.dependencies import Reviewer, require_reviewer
from settlement.core.db import get_db
from settlement.core.eligibility import check_payout_eligibility
from settlement.core.errors import RailFailure, SettlementError
from settlement.core.payouts import (
    PayoutRequest,
    apply_rail_outcome,
    cancel_payout,
    complete_manual_payout,
    get_payout_history,
    process_payout,
    serialize_payout,
)
from settlement.schemas.affiliates import EligibilityRead
from settlement.schemas.payouts import (
    PayoutCancelRequest,
    PayoutCompleteRequest,
    PayoutCreate,
    PayoutHistoryResponse,
    PayoutRead,
    PayoutResultRead,
    RailOutcomeRequest,
)


router = APIRouter(prefix="/admin/affiliates", tags=["payouts"])

FINANCE_ROLES = {"admin", "finance"}


@router.get("/{affiliate_id}/eligibility", response_model=EligibilityRead)
def get_affiliate_eligibility(
    affiliate_id: int,
    tenant_id: int = Query(...),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    eligibility = check_payout_eligibility(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    return EligibilityRead(affiliate_id=affiliate_id, **eligibility.to_dict())


@router.post("/payouts", response_model=PayoutResultRead, status_code=status.HTTP_201_CREATED)
def request_payout(
    payload: PayoutCreate,
    db: Session = Depends(get_db),
    reviewer: Reviewer = Depends(require_reviewer(FINANCE_ROLES)),
):
    result = process_payout(
        db,
        PayoutRequest(
            affiliate_id=payload.affiliate_id,
            tenant_id=payload.tenant_id,
            amount_cents=payload.amount_cents,
            method_type=payload.method_type,
            processed_by=reviewer.user_id,
            notes=payload.notes,
        ),
    )
    if result.error_code == "rail_failure":
        raise RailFailure(result.error or "Payout rail failed", payout_id=result.payout_id)
    if result.error_code:
        raise SettlementError(
            code=result.error_code,
            message=result.error or "Payout failed",
            payout_id=result.payout_id,
        )
    return PayoutResultRead(**result.to_dict())


@router.get("/{affiliate_id}/payouts", response_model=PayoutHistoryResponse)
def list_affiliate_payouts(
    affiliate_id: int,
    tenant_id: int = Query(...),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    history = get_payout_history(
        db,
        affiliate_id=affiliate_id,
        tenant_id=tenant_id,
        page=page,
        limit=limit,
    )
    return PayoutHistoryResponse(**history)


@router.post("/payouts/{payout_id}/complete", response_model=PayoutRead)
def complete_payout(
    payout_id: int,
    payload: PayoutCompleteRequest,
    db: Session = Depends(get_db),
    reviewer: Reviewer = Depends(require_reviewer(FINANCE_ROLES)),
):
    payout = complete_manual_payout(
        db,
        payout_id=payout_id,
        reference_number=payload.reference_number,
        approver_id=reviewer.user_id,
        tenant_id=payload.tenant_id,
    )
    return PayoutRead(**serialize_payout(payout))


@router.post("/payouts/{payout_id}/cancel", response_model=PayoutRead)
def cancel_manual_payout(
    payout_id: int,
    payload: PayoutCancelRequest,
    db: Session = Depends(get_db),
    reviewer: Reviewer = Depends(require_reviewer(FINANCE_ROLES)),
):
    payout = cancel_payout(
        db,
        payout_id=payout_id,
        reason=payload.reason,
        cancelled_by=reviewer.user_id,
        tenant_id=payload.tenant_id,
    )
    return PayoutRead(**serialize_payout(payout))


@router.post("/payouts/{payout_id}/rail-outcome", response_model=PayoutRead)
def record_rail_outcome(
    payout_id: int,
    payload: RailOutcomeRequest,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer(FINANCE_ROLES)),
):
    payout = apply_rail_outcome(
        db,
        payout_id=payout_id,
        succeeded=payload.succeeded,
        failure_reason=payload.failure_reason,
        tenant_id=payload.tenant_id,
    )
    return PayoutRead(**serialize_payout(payout))
