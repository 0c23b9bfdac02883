from __future__ import annotations

from sqlalchemy.orm import Session

from settlement.models.enums import FraudAlertStatusEnum, FraudSeverityEnum
from settlement.models.fraud_alerts import FraudAlert


def create_alert(
    db: Session,
    *,
    tenant_id: int,
    affiliate_id: int,
    alert_type: str,
    severity: FraudSeverityEnum,
    description: str,
    evidence: dict | None,
    commission_event_id: int | None,
    affected_amount_cents: int | None,
) -> FraudAlert:
    alert = FraudAlert(
        tenant_id=tenant_id,
        affiliate_id=affiliate_id,
        alert_type=alert_type,
        severity=severity,
        description=description,
        evidence_json=evidence or {},
        commission_event_id=commission_event_id,
        affected_amount_cents=affected_amount_cents,
        status=FraudAlertStatusEnum.OPEN,
    )
    db.add(alert)
    db.commit()
    db.refresh(alert)
    return alert


def get_alert(db: Session, *, alert_id: int, tenant_id: int | None = None) -> FraudAlert | None:
    query = db.query(FraudAlert).filter(FraudAlert.id == alert_id)
    if tenant_id is not None:
        query = query.filter(FraudAlert.tenant_id == tenant_id)
    return query.first()


def list_alerts(
    db: Session,
    *,
    tenant_id: int,
    status: FraudAlertStatusEnum | None = None,
    severity: FraudSeverityEnum | None = None,
    offset: int = 0,
    limit: int = 50,
) -> tuple[list[FraudAlert], int]:
    query = db.query(FraudAlert).filter(FraudAlert.tenant_id == tenant_id)
    if status is not None:
        query = query.filter(FraudAlert.status == status)
    if severity is not None:
        query = query.filter(FraudAlert.severity == severity)
    total = query.count()
    rows = query.order_by(FraudAlert.created_at.desc(), FraudAlert.id.desc()).offset(offset).limit(limit).all()
    return rows, total
