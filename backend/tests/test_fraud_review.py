import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./settlement_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

import pytest  # noqa: E402
import stripe  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from settlement.core.config import settings  # noqa: E402
from settlement.core.db import Base  # noqa: E402
from settlement.core.errors import InvalidTransition, NotFound, ValidationFailed  # noqa: E402
from settlement.core.fraud import (  # noqa: E402
    create_fraud_alert,
    list_fraud_alerts,
    resolve_fraud_alert,
)
from settlement.core.payouts import PayoutRequest, process_payout  # noqa: E402
from settlement.models.commissions import CommissionEvent  # noqa: E402
from settlement.models.enums import (  # noqa: E402
    AffiliateStatusEnum,
    CommissionStatusEnum,
    FraudAlertStatusEnum,
    FraudResolutionActionEnum,
    FraudSeverityEnum,
    PayoutMethodTypeEnum,
    PayoutStatusEnum,
)
from settlement.models.affiliates import Affiliate  # noqa: E402
from settlement.models.payouts import Payout  # noqa: E402
from factories import make_affiliate, make_event, make_payable_affiliate  # noqa: E402


def _setup_db(db_url: str):
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        future=True,
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    return SessionLocal


def _alert_for(db, affiliate, event, severity=FraudSeverityEnum.HIGH):
    return create_fraud_alert(
        db,
        tenant_id=affiliate.tenant_id,
        affiliate_id=affiliate.id,
        alert_type="self_referral",
        severity=severity,
        description="Referral and customer share a payment fingerprint",
        evidence={"fingerprint": "fp_1"},
        commission_event_id=event.id if event else None,
    )


def test_confirmed_fraud_reverses_commission_and_suspends_affiliate(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        event = make_event(db, affiliate=affiliate, commission_amount_cents=4200)
        alert = _alert_for(db, affiliate, event)
        assert alert.affected_amount_cents == 4200
        assert alert.status == FraudAlertStatusEnum.OPEN

        resolved = resolve_fraud_alert(
            db,
            alert_id=alert.id,
            tenant_id=affiliate.tenant_id,
            status=FraudAlertStatusEnum.CONFIRMED_FRAUD,
            resolved_by=11,
            resolution_action=FraudResolutionActionEnum.AFFILIATE_SUSPENDED,
            resolution="Self-referral confirmed",
            reverse_commission=True,
        )

        assert resolved.status == FraudAlertStatusEnum.CONFIRMED_FRAUD
        assert resolved.resolved_by == 11
        assert resolved.resolved_at is not None
        stored_event = db.query(CommissionEvent).filter(CommissionEvent.id == event.id).one()
        assert stored_event.status == CommissionStatusEnum.REVERSED
        assert stored_event.reversal_reason == "Self-referral confirmed"
        stored_affiliate = db.query(Affiliate).filter(Affiliate.id == affiliate.id).one()
        assert stored_affiliate.status == AffiliateStatusEnum.SUSPENDED


def test_reversal_requires_confirmed_fraud(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        event = make_event(db, affiliate=affiliate, commission_amount_cents=1000)
        alert = _alert_for(db, affiliate, event)

        with pytest.raises(ValidationFailed):
            resolve_fraud_alert(
                db,
                alert_id=alert.id,
                tenant_id=affiliate.tenant_id,
                status=FraudAlertStatusEnum.DISMISSED,
                resolved_by=11,
                reverse_commission=True,
            )

        db.refresh(event)
        assert event.status == CommissionStatusEnum.APPROVED


def test_paid_commission_cannot_be_reversed_by_review(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        event = make_event(
            db,
            affiliate=affiliate,
            commission_amount_cents=1000,
            status=CommissionStatusEnum.PAID,
        )
        alert = _alert_for(db, affiliate, event)

        with pytest.raises(InvalidTransition) as excinfo:
            resolve_fraud_alert(
                db,
                alert_id=alert.id,
                tenant_id=affiliate.tenant_id,
                status=FraudAlertStatusEnum.CONFIRMED_FRAUD,
                resolved_by=11,
                resolution_action=FraudResolutionActionEnum.COMMISSION_REVERSED,
            )

        assert excinfo.value.code == "commission_paid"
        db.refresh(alert)
        assert alert.status == FraudAlertStatusEnum.OPEN


def test_investigation_then_dismissal_is_terminal(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        alert = _alert_for(db, affiliate, None, severity=FraudSeverityEnum.LOW)

        investigating = resolve_fraud_alert(
            db,
            alert_id=alert.id,
            tenant_id=affiliate.tenant_id,
            status=FraudAlertStatusEnum.INVESTIGATING,
            resolved_by=11,
        )
        assert investigating.resolved_at is None

        dismissed = resolve_fraud_alert(
            db,
            alert_id=alert.id,
            tenant_id=affiliate.tenant_id,
            status=FraudAlertStatusEnum.DISMISSED,
            resolved_by=11,
            resolution_action=FraudResolutionActionEnum.NO_ACTION,
        )
        assert dismissed.resolved_at is not None

        with pytest.raises(InvalidTransition):
            resolve_fraud_alert(
                db,
                alert_id=alert.id,
                tenant_id=affiliate.tenant_id,
                status=FraudAlertStatusEnum.CONFIRMED_FRAUD,
                resolved_by=11,
            )


def test_alert_event_must_belong_to_affiliate(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        other = make_affiliate(db)
        event = make_event(db, affiliate=other, commission_amount_cents=1000)

        with pytest.raises(ValidationFailed):
            _alert_for(db, affiliate, event)
        with pytest.raises(NotFound):
            create_fraud_alert(
                db,
                tenant_id=affiliate.tenant_id,
                affiliate_id=999,
                alert_type="velocity",
                severity=FraudSeverityEnum.LOW,
                description="Too many clicks",
            )


def test_list_filters_by_status_and_severity(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        high = _alert_for(db, affiliate, None, severity=FraudSeverityEnum.HIGH)
        _alert_for(db, affiliate, None, severity=FraudSeverityEnum.LOW)
        resolve_fraud_alert(
            db,
            alert_id=high.id,
            tenant_id=affiliate.tenant_id,
            status=FraudAlertStatusEnum.FALSE_POSITIVE,
            resolved_by=11,
        )

        open_rows, open_total = list_fraud_alerts(
            db,
            tenant_id=affiliate.tenant_id,
            status=FraudAlertStatusEnum.OPEN,
        )
        high_rows, high_total = list_fraud_alerts(
            db,
            tenant_id=affiliate.tenant_id,
            severity=FraudSeverityEnum.HIGH,
        )
        other_tenant_rows, other_total = list_fraud_alerts(db, tenant_id=2)

        assert open_total == 1 and open_rows[0].severity == FraudSeverityEnum.LOW
        assert high_total == 1 and high_rows[0].id == high.id
        assert other_total == 0 and other_tenant_rows == []


def _payout_request(affiliate, amount_cents, method_type):
    return PayoutRequest(
        affiliate_id=affiliate.id,
        tenant_id=affiliate.tenant_id,
        amount_cents=amount_cents,
        method_type=method_type,
        processed_by=7,
    )


def test_confirmed_fraud_cancels_wire_awaiting_approval(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    with SessionLocal() as db:
        affiliate, events = make_payable_affiliate(
            db,
            amounts=[2000, 2000],
            method_type=PayoutMethodTypeEnum.BANK_WIRE,
        )
        result = process_payout(db, _payout_request(affiliate, 3000, PayoutMethodTypeEnum.BANK_WIRE))
        assert result.status == "awaiting_approval"
        fraudulent, legitimate = events
        alert = _alert_for(db, affiliate, fraudulent)

        resolve_fraud_alert(
            db,
            alert_id=alert.id,
            tenant_id=affiliate.tenant_id,
            status=FraudAlertStatusEnum.CONFIRMED_FRAUD,
            resolved_by=11,
            resolution_action=FraudResolutionActionEnum.COMMISSION_REVERSED,
            resolution="Stolen card",
        )

        payout = db.query(Payout).filter(Payout.id == result.payout_id).one()
        assert payout.status == PayoutStatusEnum.CANCELLED
        assert payout.failure_reason == "Stolen card"
        assert payout.approved_by == 11
        reversed_event = db.query(CommissionEvent).filter(CommissionEvent.id == fraudulent.id).one()
        assert reversed_event.status == CommissionStatusEnum.REVERSED
        assert reversed_event.payout_id is None
        released_event = db.query(CommissionEvent).filter(CommissionEvent.id == legitimate.id).one()
        assert released_event.status == CommissionStatusEnum.APPROVED
        assert released_event.payout_id is None


def test_commission_on_processing_payout_stays_claimed(tmp_path, monkeypatch):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'fraud.db'}")
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", "sk_test_123")
    monkeypatch.setattr(stripe.Transfer, "create", lambda **kwargs: {"id": "tr_1"})
    with SessionLocal() as db:
        affiliate, events = make_payable_affiliate(db, amounts=[2000])
        result = process_payout(db, _payout_request(affiliate, 2000, PayoutMethodTypeEnum.STRIPE_CONNECT))
        assert result.status == "processing"
        alert = _alert_for(db, affiliate, events[0])

        with pytest.raises(InvalidTransition) as excinfo:
            resolve_fraud_alert(
                db,
                alert_id=alert.id,
                tenant_id=affiliate.tenant_id,
                status=FraudAlertStatusEnum.CONFIRMED_FRAUD,
                resolved_by=11,
                reverse_commission=True,
            )

        assert excinfo.value.code == "commission_claimed"
        payout = db.query(Payout).filter(Payout.id == result.payout_id).one()
        assert payout.status == PayoutStatusEnum.PROCESSING
        db.refresh(alert)
        assert alert.status == FraudAlertStatusEnum.OPEN
