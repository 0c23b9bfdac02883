from __future__ import annotations

from sqlalchemy.orm import Session

from settlement.core.errors import NotFound, ValidationFailed
from settlement.core.ledger import apply_reversal
from settlement.core.logging import get_structured_logger
from settlement.core.metrics import record_commission_transition, record_payout
from settlement.core.payouts import MANUAL_COMPLETION_STATUSES, apply_cancellation
from settlement.core.time import utcnow
from settlement.core.transitions import ensure_transition, is_terminal
from settlement.crud.affiliates import get_affiliate
from settlement.crud.commissions import get_commission_event
from settlement.crud.fraud_alerts import create_alert, get_alert, list_alerts
from settlement.crud.payouts import get_payout
from settlement.models.enums import (
    AffiliateStatusEnum,
    CommissionStatusEnum,
    FraudAlertStatusEnum,
    FraudResolutionActionEnum,
    FraudSeverityEnum,
    PayoutStatusEnum,
)
from settlement.models.commissions import CommissionEvent
from settlement.models.fraud_alerts import FraudAlert
from settlement.models.payouts import Payout


logger = get_structured_logger("settlement.fraud")

AFFILIATE_ACTIONS = {
    FraudResolutionActionEnum.AFFILIATE_SUSPENDED: AffiliateStatusEnum.SUSPENDED,
    FraudResolutionActionEnum.AFFILIATE_TERMINATED: AffiliateStatusEnum.INACTIVE,
}
CONFIRMED_ONLY_ACTIONS = set(AFFILIATE_ACTIONS) | {FraudResolutionActionEnum.COMMISSION_REVERSED}


def _withdraw_unsent_payout(
    db: Session,
    *,
    event: CommissionEvent,
    reason: str,
    cancelled_by: int | None,
) -> Payout | None:
    """Cancel the not-yet-sent payout holding ``event`` so it can be reversed.

    A PROCESSING payout is left alone; the reversal then fails with
    ``commission_claimed``.
    """
    if event.payout_id is None or event.status != CommissionStatusEnum.APPROVED:
        return None
    payout = get_payout(db, payout_id=event.payout_id, tenant_id=event.tenant_id)
    if payout is None or payout.status not in MANUAL_COMPLETION_STATUSES:
        return None
    apply_cancellation(db, payout=payout, reason=reason, cancelled_by=cancelled_by)
    db.refresh(event)
    return payout


def create_fraud_alert(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    alert_type: str,
    severity: FraudSeverityEnum,
    description: str,
    evidence: dict | None = None,
    commission_event_id: int | None = None,
    affected_amount_cents: int | None = None,
) -> FraudAlert:
    if not get_affiliate(db, affiliate_id=affiliate_id, tenant_id=tenant_id):
        raise NotFound("Affiliate not found")
    if commission_event_id is not None:
        event = get_commission_event(db, event_id=commission_event_id, tenant_id=tenant_id)
        if not event or event.affiliate_id != affiliate_id:
            raise ValidationFailed("Commission event does not belong to this affiliate.")
        if affected_amount_cents is None:
            affected_amount_cents = event.commission_amount_cents
    alert_type = (alert_type or "").strip()
    if not alert_type:
        raise ValidationFailed("Alert type is required.")

    alert = create_alert(
        db,
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        alert_type=alert_type,
        severity=severity,
        description=description,
        evidence=evidence,
        commission_event_id=commission_event_id,
        affected_amount_cents=affected_amount_cents,
    )
    logger.info(
        "fraud_alert.created",
        extra={
            "tenant_id": tenant_id,
            "affiliate_id": affiliate_id,
            "fraud_alert_id": alert.id,
            "severity": severity.value,
        },
    )
    return alert


def resolve_fraud_alert(
    db: Session,
    *,
    alert_id: int,
    tenant_id: int,
    status: FraudAlertStatusEnum,
    resolved_by: int | None,
    resolution_action: FraudResolutionActionEnum | None = None,
    resolution: str | None = None,
    reverse_commission: bool = False,
) -> FraudAlert:
    alert = get_alert(db, alert_id=alert_id, tenant_id=tenant_id)
    if not alert:
        raise NotFound("Fraud alert not found")
    ensure_transition(alert.status, status)

    if resolution_action == FraudResolutionActionEnum.COMMISSION_REVERSED:
        reverse_commission = True
    confirmed = status == FraudAlertStatusEnum.CONFIRMED_FRAUD
    if not confirmed and (reverse_commission or resolution_action in CONFIRMED_ONLY_ACTIONS):
        raise ValidationFailed("Reversals and affiliate actions require confirmed fraud.")

    reversed_event_id = None
    cancelled_payout = None
    if reverse_commission:
        if alert.commission_event_id is None:
            raise ValidationFailed("Alert is not linked to a commission event.")
        event = get_commission_event(db, event_id=alert.commission_event_id, tenant_id=tenant_id)
        if not event:
            raise NotFound("Commission event not found")
        reason = resolution or f"Confirmed fraud (alert {alert.id})"
        cancelled_payout = _withdraw_unsent_payout(db, event=event, reason=reason, cancelled_by=resolved_by)
        apply_reversal(db, event=event, reason=reason)
        reversed_event_id = event.id

    affiliate_status = AFFILIATE_ACTIONS.get(resolution_action)
    if affiliate_status is not None:
        affiliate = get_affiliate(db, affiliate_id=alert.affiliate_id, tenant_id=tenant_id)
        if not affiliate:
            raise NotFound("Affiliate not found")
        affiliate.status = affiliate_status

    alert.status = status
    alert.resolution_action = resolution_action
    alert.resolution = resolution
    if is_terminal(status):
        alert.resolved_at = utcnow()
        alert.resolved_by = resolved_by
    db.commit()
    db.refresh(alert)

    if reversed_event_id is not None:
        record_commission_transition(CommissionStatusEnum.REVERSED.value)
    if cancelled_payout is not None:
        record_payout(method=cancelled_payout.method_type.value, status=PayoutStatusEnum.CANCELLED.value)
    logger.info(
        "fraud_alert.resolved",
        extra={
            "tenant_id": tenant_id,
            "affiliate_id": alert.affiliate_id,
            "fraud_alert_id": alert.id,
            "status": status.value,
            "resolution_action": resolution_action.value if resolution_action else None,
            "reversed_commission_event_id": reversed_event_id,
            "payout_id": cancelled_payout.id if cancelled_payout is not None else None,
        },
    )
    return alert


def list_fraud_alerts(
    db: Session,
    *,
    tenant_id: int,
    status: FraudAlertStatusEnum | None = None,
    severity: FraudSeverityEnum | None = None,
    page: int = 1,
    limit: int = 50,
) -> tuple[list[FraudAlert], int]:
    page = max(1, int(page))
    limit = max(1, min(int(limit), 200))
    return list_alerts(
        db,
        tenant_id=tenant_id,
        status=status,
        severity=severity,
        offset=(page - 1) * limit,
        limit=limit,
    )
