from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from settlement.api.dependencies import Reviewer, require_reviewer
from settlement.core.db import get_db
from settlement.core.errors import NotFound, ValidationFailed
from settlement.core.ledger import (
    approve_commission_event,
    build_commission_summary,
    record_commission_event,
    reverse_commission_event,
)
from settlement.crud.affiliates import get_affiliate
from settlement.crud.commissions import (
    create_plan,
    create_plan_assignment,
    get_plan,
    list_commissions_for_affiliate,
)
from settlement.models.enums import CommissionPlanTypeEnum, CommissionStatusEnum
from settlement.schemas.commissions import (
    CommissionEventCreate,
    CommissionEventRead,
    CommissionListResponse,
    CommissionPlanCreate,
    CommissionPlanRead,
    CommissionReverseRequest,
    CommissionSummaryRead,
    PlanAssignmentCreate,
    PlanAssignmentRead,
)


router = APIRouter(prefix="/admin/affiliates", tags=["commissions"])


@router.post("/commissions", response_model=CommissionEventRead, status_code=status.HTTP_201_CREATED)
def create_commission_event(
    payload: CommissionEventCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer({"admin", "finance"})),
):
    event = record_commission_event(
        db,
        tenant_id=payload.tenant_id,
        affiliate_id=payload.affiliate_id,
        event_amount_cents=payload.event_amount_cents,
        commission_amount_cents=payload.commission_amount_cents,
        occurred_at=payload.occurred_at,
        source_ref=payload.source_ref,
        hold_until=payload.hold_until,
        commission_plan_id=payload.commission_plan_id,
        metadata=payload.metadata,
    )
    return CommissionEventRead.model_validate(event)


@router.post("/commissions/{event_id}/approve", response_model=CommissionEventRead)
def approve_commission(
    event_id: int,
    tenant_id: int = Query(...),
    db: Session = Depends(get_db),
    reviewer: Reviewer = Depends(require_reviewer()),
):
    event = approve_commission_event(
        db,
        event_id=event_id,
        tenant_id=tenant_id,
        approved_by=reviewer.user_id,
    )
    return CommissionEventRead.model_validate(event)


@router.post("/commissions/{event_id}/reverse", response_model=CommissionEventRead)
def reverse_commission(
    event_id: int,
    payload: CommissionReverseRequest,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    event = reverse_commission_event(
        db,
        event_id=event_id,
        tenant_id=payload.tenant_id,
        reason=payload.reason,
    )
    return CommissionEventRead.model_validate(event)


@router.get("/{affiliate_id}/commissions", response_model=CommissionListResponse)
def list_affiliate_commissions(
    affiliate_id: int,
    tenant_id: int = Query(...),
    status_filter: Optional[CommissionStatusEnum] = Query(None, alias="status"),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    if not get_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id):
        raise NotFound("Affiliate not found")
    events = list_commissions_for_affiliate(
        db,
        affiliate_id=affiliate_id,
        tenant_id=tenant_id,
        status=status_filter,
    )
    summary = build_commission_summary(db, affiliate_id=affiliate_id, tenant_id=tenant_id)
    return CommissionListResponse(
        items=[CommissionEventRead.model_validate(event) for event in events],
        summary=CommissionSummaryRead(**summary),
    )


@router.post("/commission-plans", response_model=CommissionPlanRead, status_code=status.HTTP_201_CREATED)
def create_commission_plan(
    payload: CommissionPlanCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer({"admin"})),
):
    if payload.plan_type == CommissionPlanTypeEnum.FLAT and payload.flat_amount_cents is None:
        raise ValidationFailed("Flat plans need flat_amount_cents.")
    if payload.plan_type == CommissionPlanTypeEnum.PERCENT and payload.percent_bps is None:
        raise ValidationFailed("Percent plans need percent_bps.")
    plan = create_plan(db, **payload.model_dump())
    return CommissionPlanRead.model_validate(plan)


@router.post(
    "/{affiliate_id}/plan-assignments",
    response_model=PlanAssignmentRead,
    status_code=status.HTTP_201_CREATED,
)
def assign_commission_plan(
    affiliate_id: int,
    payload: PlanAssignmentCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer({"admin"})),
):
    if not get_affiliate(db, affiliate_id=affiliate_id, tenant_id=payload.tenant_id):
        raise NotFound("Affiliate not found")
    if not get_plan(db, plan_id=payload.commission_plan_id, tenant_id=payload.tenant_id):
        raise NotFound("Commission plan not found")
    try:
        assignment = create_plan_assignment(
            db,
            tenant_id=payload.tenant_id,
            affiliate_id=affiliate_id,
            commission_plan_id=payload.commission_plan_id,
            effective_from=payload.effective_from,
            effective_to=payload.effective_to,
        )
    except ValueError as exc:
        raise ValidationFailed(str(exc)) from exc
    return PlanAssignmentRead.model_validate(assignment)
