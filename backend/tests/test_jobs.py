import os
from datetime import timedelta

os.environ.setdefault("DATABASE_URL", "sqlite:///./settlement_test.db")
os.environ.setdefault("SECRET_KEY", "test-secret")
os.environ.setdefault("SKIP_MIGRATIONS", "1")

import pytest  # noqa: E402
from prometheus_client import REGISTRY  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

import settlement.jobs.approve_commissions as approval_job  # noqa: E402
from settlement.core.db import Base  # noqa: E402
from settlement.core.time import utcnow  # noqa: E402
from settlement.jobs.approve_commissions import run_commission_approval  # noqa: E402
from settlement.jobs.payout_cleanup import run_failed_payout_cleanup  # noqa: E402
from settlement.models.commissions import CommissionEvent  # noqa: E402
from settlement.models.enums import (  # noqa: E402
    CommissionStatusEnum,
    PayoutMethodTypeEnum,
    PayoutStatusEnum,
)
from settlement.models.payouts import Payout  # noqa: E402
from factories import make_affiliate, make_event  # noqa: E402


def _setup_db(db_url: str):
    engine = create_engine(
        db_url,
        connect_args={"check_same_thread": False},
        future=True,
    )
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    Base.metadata.create_all(bind=engine)
    return SessionLocal


def _job_runs(job_name: str, status: str) -> float:
    return REGISTRY.get_sample_value("job_run_total", {"job_name": job_name, "status": status}) or 0.0


def _terminal_payout(db, *, affiliate, status, updated_at):
    payout = Payout(
        tenant_id=affiliate.tenant_id,
        affiliate_id=affiliate.id,
        requested_amount_cents=1000,
        amount_cents=1000,
        fee_cents=0,
        net_amount_cents=1000,
        currency="USD",
        method_type=PayoutMethodTypeEnum.STRIPE_CONNECT,
        status=status,
        created_at=updated_at,
        updated_at=updated_at,
    )
    db.add(payout)
    db.commit()
    db.refresh(payout)
    return payout


def test_approval_job_approves_elapsed_holds(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'jobs.db'}")
    runs_before = _job_runs("approve_commissions", "success")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        now = utcnow()
        ready = make_event(
            db,
            affiliate=affiliate,
            commission_amount_cents=500,
            status=CommissionStatusEnum.PENDING,
            hold_until=now - timedelta(hours=1),
        )
        held = make_event(
            db,
            affiliate=affiliate,
            commission_amount_cents=500,
            status=CommissionStatusEnum.PENDING,
            hold_until=now + timedelta(days=10),
        )

        assert run_commission_approval(db, now=now) == 1

        db.refresh(ready)
        db.refresh(held)
        assert ready.status == CommissionStatusEnum.APPROVED
        assert held.status == CommissionStatusEnum.PENDING
    assert _job_runs("approve_commissions", "success") == runs_before + 1


def test_approval_job_records_failures(tmp_path, monkeypatch):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'jobs.db'}")
    failures_before = _job_runs("approve_commissions", "failure")

    def broken(db, *, now=None):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(approval_job, "approve_pending_commissions", broken)
    with SessionLocal() as db:
        with pytest.raises(RuntimeError):
            run_commission_approval(db)

    assert _job_runs("approve_commissions", "failure") == failures_before + 1


def test_cleanup_releases_claims_left_on_stale_failed_payouts(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'jobs.db'}")
    with SessionLocal() as db:
        affiliate = make_affiliate(db)
        long_ago = utcnow() - timedelta(hours=48)
        stale_failed = _terminal_payout(db, affiliate=affiliate, status=PayoutStatusEnum.FAILED, updated_at=long_ago)
        recent_failed = _terminal_payout(
            db,
            affiliate=affiliate,
            status=PayoutStatusEnum.FAILED,
            updated_at=utcnow(),
        )
        in_flight = _terminal_payout(
            db,
            affiliate=affiliate,
            status=PayoutStatusEnum.PROCESSING,
            updated_at=long_ago,
        )
        claims = {}
        for payout in (stale_failed, recent_failed, in_flight):
            event = make_event(db, affiliate=affiliate, commission_amount_cents=1000)
            event.payout_id = payout.id
            claims[payout.id] = event.id
        db.commit()

        released = run_failed_payout_cleanup(db, older_than_hours=24)

        assert released == 1
        rows = {row.id: row.payout_id for row in db.query(CommissionEvent).all()}
        assert rows[claims[stale_failed.id]] is None
        assert rows[claims[recent_failed.id]] == recent_failed.id
        assert rows[claims[in_flight.id]] == in_flight.id


def test_cleanup_with_nothing_to_release(tmp_path):
    SessionLocal = _setup_db(f"sqlite:///{tmp_path / 'jobs.db'}")
    with SessionLocal() as db:
        assert run_failed_payout_cleanup(db) == 0
