from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from settlement.api.dependencies import Reviewer, require_reviewer
from settlement.core.db import get_db
from settlement.core.fraud import create_fraud_alert, list_fraud_alerts, resolve_fraud_alert
from settlement.models.enums import FraudAlertStatusEnum, FraudSeverityEnum
from settlement.schemas.fraud_alerts import (
    FraudAlertCreate,
    FraudAlertListResponse,
    FraudAlertRead,
    FraudAlertResolve,
)


router = APIRouter(prefix="/admin/affiliates/fraud-alerts", tags=["fraud"])


@router.get("", response_model=FraudAlertListResponse)
def get_fraud_alerts(
    tenant_id: int = Query(...),
    status_filter: Optional[FraudAlertStatusEnum] = Query(None, alias="status"),
    severity: Optional[FraudSeverityEnum] = None,
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    rows, total = list_fraud_alerts(
        db,
        tenant_id=tenant_id,
        status=status_filter,
        severity=severity,
        page=page,
        limit=page_size,
    )
    return FraudAlertListResponse(
        items=[FraudAlertRead.model_validate(row) for row in rows],
        total=total,
        page=page,
        page_size=page_size,
    )


@router.post("", response_model=FraudAlertRead, status_code=status.HTTP_201_CREATED)
def post_fraud_alert(
    payload: FraudAlertCreate,
    db: Session = Depends(get_db),
    _reviewer: Reviewer = Depends(require_reviewer()),
):
    alert = create_fraud_alert(
        db,
        tenant_id=payload.tenant_id,
        affiliate_id=payload.affiliate_id,
        alert_type=payload.alert_type,
        severity=payload.severity,
        description=payload.description,
        evidence=payload.evidence,
        commission_event_id=payload.commission_event_id,
        affected_amount_cents=payload.affected_amount_cents,
    )
    return FraudAlertRead.model_validate(alert)


@router.patch("/{alert_id}", response_model=FraudAlertRead)
def patch_fraud_alert(
    alert_id: int,
    payload: FraudAlertResolve,
    db: Session = Depends(get_db),
    reviewer: Reviewer = Depends(require_reviewer({"admin", "reviewer"})),
):
    alert = resolve_fraud_alert(
        db,
        alert_id=alert_id,
        tenant_id=payload.tenant_id,
        status=payload.status,
        resolved_by=reviewer.user_id,
        resolution_action=payload.resolution_action,
        resolution=payload.resolution,
        reverse_commission=payload.reverse_commission,
    )
    return FraudAlertRead.model_validate(alert)
