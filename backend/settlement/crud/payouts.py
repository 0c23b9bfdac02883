from __future__ import annotations

from datetime import datetime

from sqlalchemy import func
from sqlalchemy.orm import Session

from settlement.models.commissions import CommissionEvent
from settlement.models.enums import PayoutStatusEnum
from settlement.models.payouts import Payout


def get_payout(db: Session, *, payout_id: int, tenant_id: int | None = None) -> Payout | None:
    query = db.query(Payout).filter(Payout.id == payout_id)
    if tenant_id is not None:
        query = query.filter(Payout.tenant_id == tenant_id)
    return query.first()


def list_payouts_for_affiliate(
    db: Session,
    *,
    affiliate_id: int,
    tenant_id: int,
    offset: int,
    limit: int,
) -> list[Payout]:
    return (
        db.query(Payout)
        .filter(Payout.affiliate_id == affiliate_id, Payout.tenant_id == tenant_id)
        .order_by(Payout.created_at.desc(), Payout.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )


def count_payouts_for_affiliate(db: Session, *, affiliate_id: int, tenant_id: int) -> int:
    return (
        db.query(Payout)
        .filter(Payout.affiliate_id == affiliate_id, Payout.tenant_id == tenant_id)
        .count()
    )


def count_claimed_events(db: Session, *, payout_ids: list[int]) -> dict[int, int]:
    if not payout_ids:
        return {}
    rows = (
        db.query(CommissionEvent.payout_id, func.count(CommissionEvent.id))
        .filter(CommissionEvent.payout_id.in_(payout_ids))
        .group_by(CommissionEvent.payout_id)
        .all()
    )
    return {int(payout_id): int(count) for payout_id, count in rows}


def sum_completed_payouts_since(
    db: Session,
    *,
    affiliate_id: int,
    since: datetime,
) -> int:
    total = (
        db.query(func.coalesce(func.sum(Payout.net_amount_cents), 0))
        .filter(
            Payout.affiliate_id == affiliate_id,
            Payout.status == PayoutStatusEnum.COMPLETED,
            Payout.completed_at >= since,
        )
        .scalar()
    )
    return int(total or 0)


def list_stale_terminal_payouts_with_claims(
    db: Session,
    *,
    before: datetime,
    limit: int = 500,
) -> list[Payout]:
    claimed = (
        db.query(CommissionEvent.payout_id)
        .filter(CommissionEvent.payout_id.isnot(None))
        .distinct()
    )
    return (
        db.query(Payout)
        .filter(
            Payout.status.in_([PayoutStatusEnum.FAILED, PayoutStatusEnum.CANCELLED]),
            Payout.updated_at < before,
            Payout.id.in_(claimed),
        )
        .order_by(Payout.id.asc())
        .limit(limit)
        .all()
    )
