import os

os.environ.setdefault("DATABASE_URL", "sqlite:///./settlement_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import settlement.core.db as db_module  # noqa: E402
from settlement.core.config import settings  # noqa: E402
from settlement.core.db import Base  # noqa: E402
from settlement.core.security import create_access_token  # noqa: E402
from settlement.main import app  # noqa: E402
from settlement.models.commissions import CommissionEvent  # noqa: E402
from settlement.models.enums import CommissionStatusEnum, PayoutMethodTypeEnum  # noqa: E402
from settlement.models.payouts import Payout  # noqa: E402
from factories import make_affiliate, make_event, make_payable_affiliate  # noqa: E402


client = TestClient(app)


def _setup_db(db_url: str):
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        future=True,
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    return SessionLocal


@pytest.fixture
def session_factory(tmp_path, monkeypatch):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'api.db'}")
    monkeypatch.setattr(db_module, "SessionLocal", SessionLocal)
    return SessionLocal


def _auth_headers(role: str, user_id: int = 7) -> dict:
    token = create_access_token({"sub": f"{role}@example.com", "user_id": user_id, "role": role})
    return {"Authorization": f"Bearer {token}"}


def test_requests_without_token_are_rejected(session_factory):
    resp = client.get("/admin/affiliates", params={"tenant_id": 1})
    assert resp.status_code == 401


def test_unknown_role_is_forbidden(session_factory):
    resp = client.get("/admin/affiliates", params={"tenant_id": 1}, headers=_auth_headers("support"))
    assert resp.status_code == 403


def test_reviewer_cannot_request_payouts(session_factory):
    resp = client.post(
        "/admin/affiliates/payouts",
        json={"tenant_id": 1, "affiliate_id": 1, "amount_cents": 5000, "method_type": "stripe_connect"},
        headers=_auth_headers("reviewer"),
    )
    assert resp.status_code == 403


def test_wire_payout_flow_end_to_end(session_factory):
    admin = _auth_headers("admin", user_id=1)
    finance = _auth_headers("finance", user_id=9)

    resp = client.post(
        "/admin/affiliates",
        json={"tenant_id": 1, "display_name": "Partner One", "email": "partner@example.com"},
        headers=admin,
    )
    assert resp.status_code == 201
    affiliate_id = resp.json()["id"]

    resp = client.put(
        "/admin/affiliates/program",
        params={"tenant_id": 1},
        json={"minimum_payout_cents": 1000, "currency": "usd"},
        headers=admin,
    )
    assert resp.status_code == 200
    assert resp.json()["currency"] == "USD"

    resp = client.put(
        f"/admin/affiliates/{affiliate_id}/payout-methods",
        json={
            "tenant_id": 1,
            "method_type": "bank_wire",
            "bank_name": "First Bank",
            "bank_account_last4": "4321",
        },
        headers=admin,
    )
    assert resp.status_code == 200
    assert resp.json()["is_verified"] is False
    resp = client.post(
        f"/admin/affiliates/{affiliate_id}/payout-methods/bank_wire/verify",
        params={"tenant_id": 1},
        headers=finance,
    )
    assert resp.status_code == 200
    assert resp.json()["is_verified"] is True

    for index, amount in enumerate([3000, 2000]):
        resp = client.post(
            "/admin/affiliates/commissions",
            json={
                "tenant_id": 1,
                "affiliate_id": affiliate_id,
                "event_amount_cents": amount * 10,
                "commission_amount_cents": amount,
                "occurred_at": f"2026-01-0{index + 1}T12:00:00",
                "source_ref": f"inv_{index}",
            },
            headers=finance,
        )
        assert resp.status_code == 201
        assert resp.json()["status"] == "pending"
        approved = client.post(
            f"/admin/affiliates/commissions/{resp.json()['id']}/approve",
            params={"tenant_id": 1},
            headers=finance,
        )
        assert approved.status_code == 200
        assert approved.json()["status"] == "approved"

    resp = client.get(
        f"/admin/affiliates/{affiliate_id}/eligibility",
        params={"tenant_id": 1},
        headers=finance,
    )
    assert resp.status_code == 200
    assert resp.json()["eligible"] is True
    assert resp.json()["available_amount_cents"] == 5000

    resp = client.post(
        "/admin/affiliates/payouts",
        json={"tenant_id": 1, "affiliate_id": affiliate_id, "amount_cents": 4000, "method_type": "bank_wire"},
        headers=finance,
    )
    assert resp.status_code == 201
    body = resp.json()
    assert body["status"] == "awaiting_approval"
    assert body["amount_cents"] == 5000
    assert body["net_amount_cents"] == 2500
    payout_id = body["payout_id"]

    resp = client.post(
        f"/admin/affiliates/payouts/{payout_id}/complete",
        json={"tenant_id": 1, "reference_number": "WIRE-2026-01"},
        headers=finance,
    )
    assert resp.status_code == 200
    assert resp.json()["status"] == "completed"
    assert resp.json()["wire_reference"] == "WIRE-2026-01"

    resp = client.post(
        f"/admin/affiliates/payouts/{payout_id}/complete",
        json={"tenant_id": 1, "reference_number": "WIRE-2026-02"},
        headers=finance,
    )
    assert resp.status_code == 409
    assert resp.headers["X-Error-Code"] == "invalid_transition"

    resp = client.get(
        f"/admin/affiliates/{affiliate_id}/commissions",
        params={"tenant_id": 1},
        headers=finance,
    )
    assert resp.status_code == 200
    summary = resp.json()["summary"]
    assert summary["by_status"]["paid"] == {"count": 2, "amount_cents": 5000}
    assert summary["total_earned_cents"] == 5000

    resp = client.get(
        f"/admin/affiliates/{affiliate_id}/payouts",
        params={"tenant_id": 1},
        headers=finance,
    )
    assert resp.status_code == 200
    history = resp.json()
    assert history["total"] == 1
    assert history["items"][0]["commission_count"] == 2


def test_insufficient_balance_maps_to_conflict(session_factory):
    with session_factory() as db:
        affiliate, _events = make_payable_affiliate(db, amounts=[1500])
        affiliate_id = affiliate.id

    resp = client.post(
        "/admin/affiliates/payouts",
        json={"tenant_id": 1, "affiliate_id": affiliate_id, "amount_cents": 2000, "method_type": "stripe_connect"},
        headers=_auth_headers("finance"),
    )

    assert resp.status_code == 409
    assert resp.headers["X-Error-Code"] == "insufficient_balance"
    assert resp.json()["code"] == "insufficient_balance"
    with session_factory() as db:
        assert db.query(Payout).count() == 0


def test_rail_failure_returns_bad_gateway_with_payout_id(session_factory, monkeypatch):
    monkeypatch.setattr(settings, "STRIPE_SECRET_KEY", None)
    with session_factory() as db:
        affiliate, _events = make_payable_affiliate(db, amounts=[2000, 2000])
        affiliate_id = affiliate.id

    resp = client.post(
        "/admin/affiliates/payouts",
        json={"tenant_id": 1, "affiliate_id": affiliate_id, "amount_cents": 4000, "method_type": "stripe_connect"},
        headers=_auth_headers("finance"),
    )

    assert resp.status_code == 502
    body = resp.json()
    assert body["code"] == "rail_failure"
    assert body["message"] == "Stripe is not configured"
    with session_factory() as db:
        payout = db.query(Payout).filter(Payout.id == body["payout_id"]).one()
        assert payout.status.value == "failed"
        assert db.query(CommissionEvent).filter(CommissionEvent.payout_id.isnot(None)).count() == 0


def test_payout_method_requires_destination(session_factory):
    with session_factory() as db:
        affiliate_id = make_affiliate(db).id

    resp = client.put(
        f"/admin/affiliates/{affiliate_id}/payout-methods",
        json={"tenant_id": 1, "method_type": PayoutMethodTypeEnum.PAYPAL.value},
        headers=_auth_headers("admin"),
    )

    assert resp.status_code == 422
    assert resp.json()["code"] == "validation_error"


def test_fraud_review_reverses_commission(session_factory):
    with session_factory() as db:
        affiliate = make_affiliate(db)
        event = make_event(db, affiliate=affiliate, commission_amount_cents=2500)
        affiliate_id, event_id = affiliate.id, event.id

    reviewer = _auth_headers("reviewer", user_id=21)
    resp = client.post(
        "/admin/affiliates/fraud-alerts",
        json={
            "tenant_id": 1,
            "affiliate_id": affiliate_id,
            "alert_type": "velocity",
            "severity": "high",
            "description": "40 conversions in 5 minutes",
            "commission_event_id": event_id,
        },
        headers=reviewer,
    )
    assert resp.status_code == 201
    alert = resp.json()
    assert alert["affected_amount_cents"] == 2500

    resp = client.get(
        "/admin/affiliates/fraud-alerts",
        params={"tenant_id": 1, "status": "open"},
        headers=reviewer,
    )
    assert resp.status_code == 200
    assert resp.json()["total"] == 1

    resp = client.patch(
        f"/admin/affiliates/fraud-alerts/{alert['id']}",
        json={
            "tenant_id": 1,
            "status": "confirmed_fraud",
            "resolution_action": "affiliate_terminated",
            "reverse_commission": True,
        },
        headers=reviewer,
    )
    assert resp.status_code == 200
    assert resp.json()["resolved_by"] == 21

    with session_factory() as db:
        stored = db.query(CommissionEvent).filter(CommissionEvent.id == event_id).one()
        assert stored.status == CommissionStatusEnum.REVERSED


def test_health_and_metrics(session_factory):
    resp = client.get("/health")
    assert resp.status_code == 200
    assert resp.json() == {"status": "ok"}
    assert resp.headers.get("X-Request-ID")

    metrics = client.get("/metrics")
    assert metrics.status_code == 200
    assert "affiliate_payout_claim_conflicts_total" in metrics.text
    assert "request_duration_ms" in metrics.text
