from __future__ import annotations

from datetime import datetime

from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from settlement.models.commissions import CommissionEvent, CommissionPlan, PlanAssignment
from settlement.models.enums import (
    CommissionAppliesToEnum,
    CommissionPlanTypeEnum,
    CommissionStatusEnum,
)


def create_plan(
    db: Session,
    *,
    tenant_id: int,
    name: str,
    plan_type: CommissionPlanTypeEnum,
    flat_amount_cents: int | None = None,
    percent_bps: int | None = None,
    applies_to: CommissionAppliesToEnum = CommissionAppliesToEnum.ALL_PAYMENTS,
    hold_days: int = 0,
    clawback_enabled: bool = True,
) -> CommissionPlan:
    plan = CommissionPlan(
        tenant_id=tenant_id,
        name=name,
        plan_type=plan_type,
        flat_amount_cents=flat_amount_cents,
        percent_bps=percent_bps,
        applies_to=applies_to,
        hold_days=hold_days,
        clawback_enabled=clawback_enabled,
        is_active=True,
    )
    db.add(plan)
    db.commit()
    db.refresh(plan)
    return plan


def get_plan(db: Session, *, plan_id: int, tenant_id: int) -> CommissionPlan | None:
    return (
        db.query(CommissionPlan)
        .filter(CommissionPlan.id == plan_id, CommissionPlan.tenant_id == tenant_id)
        .first()
    )


def _overlapping_assignments(
    db: Session,
    *,
    affiliate_id: int,
    effective_from: datetime,
    effective_to: datetime | None,
):
    # Two windows overlap when each starts before the other ends; open ends run forever.
    query = db.query(PlanAssignment).filter(
        PlanAssignment.affiliate_id == affiliate_id,
        or_(PlanAssignment.effective_to.is_(None), PlanAssignment.effective_to > effective_from),
    )
    if effective_to is not None:
        query = query.filter(PlanAssignment.effective_from < effective_to)
    return query


def create_plan_assignment(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    commission_plan_id: int,
    effective_from: datetime,
    effective_to: datetime | None = None,
) -> PlanAssignment:
    if effective_to is not None and effective_to <= effective_from:
        raise ValueError("Assignment must end after it starts.")
    overlap = _overlapping_assignments(
        db,
        affiliate_id=affiliate_id,
        effective_from=effective_from,
        effective_to=effective_to,
    ).first()
    if overlap:
        raise ValueError("Affiliate already has a plan assignment for that period.")
    assignment = PlanAssignment(
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        commission_plan_id=commission_plan_id,
        effective_from=effective_from,
        effective_to=effective_to,
    )
    db.add(assignment)
    db.commit()
    db.refresh(assignment)
    return assignment


def get_active_assignment(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    at: datetime,
) -> PlanAssignment | None:
    return (
        db.query(PlanAssignment)
        .filter(
            PlanAssignment.affiliate_id == affiliate_id,
            PlanAssignment.tenant_id == tenant_id,
            PlanAssignment.effective_from <= at,
            or_(PlanAssignment.effective_to.is_(None), PlanAssignment.effective_to > at),
        )
        .order_by(PlanAssignment.effective_from.desc())
        .first()
    )


def get_commission_event(db: Session, *, event_id: int, tenant_id: int | None = None) -> CommissionEvent | None:
    query = db.query(CommissionEvent).filter(CommissionEvent.id == event_id)
    if tenant_id is not None:
        query = query.filter(CommissionEvent.tenant_id == tenant_id)
    return query.first()


def get_commission_by_source_ref(
    db: Session,
    *,
    tenant_id: int,
    source_ref: str | None,
) -> CommissionEvent | None:
    if not source_ref:
        return None
    return (
        db.query(CommissionEvent)
        .filter(CommissionEvent.tenant_id == tenant_id, CommissionEvent.source_ref == source_ref)
        .first()
    )


def list_commissions_for_affiliate(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    status: CommissionStatusEnum | None = None,
) -> list[CommissionEvent]:
    query = db.query(CommissionEvent).filter(
        CommissionEvent.affiliate_id == affiliate_id,
        CommissionEvent.tenant_id == tenant_id,
    )
    if status is not None:
        query = query.filter(CommissionEvent.status == status)
    return query.order_by(CommissionEvent.occurred_at.desc(), CommissionEvent.id.desc()).all()


def unclaimed_approved_filter(*, affiliate_id: int, tenant_id: int):
    return and_(
        CommissionEvent.affiliate_id == affiliate_id,
        CommissionEvent.tenant_id == tenant_id,
        CommissionEvent.status == CommissionStatusEnum.APPROVED,
        CommissionEvent.payout_id.is_(None),
    )


def sum_unclaimed_approved(db: Session, *, affiliate_id: int, tenant_id: int) -> int:
    total = (
        db.query(func.coalesce(func.sum(CommissionEvent.commission_amount_cents), 0))
        .filter(unclaimed_approved_filter(affiliate_id=affiliate_id, tenant_id=tenant_id))
        .scalar()
    )
    return int(total or 0)


def summarize_commissions(db: Session, *, affiliate_id: int, tenant_id: int) -> dict[str, dict[str, int]]:
    rows = (
        db.query(
            CommissionEvent.status,
            func.count(CommissionEvent.id),
            func.coalesce(func.sum(CommissionEvent.commission_amount_cents), 0),
        )
        .filter(
            CommissionEvent.affiliate_id == affiliate_id,
            CommissionEvent.tenant_id == tenant_id,
        )
        .group_by(CommissionEvent.status)
        .all()
    )
    summary = {status.value: {"count": 0, "amount_cents": 0} for status in CommissionStatusEnum}
    for status, count, amount in rows:
        summary[status.value] = {"count": int(count or 0), "amount_cents": int(amount or 0)}
    return summary
