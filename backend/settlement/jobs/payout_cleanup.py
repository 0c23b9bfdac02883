from __future__ import annotations

import argparse
import logging
from datetime import timedelta

from sqlalchemy.orm import Session

from settlement.core.allocator import release_payout_claims
from settlement.core.config import settings
from settlement.core.db import SessionLocal
from settlement.core.metrics import record_job_run
from settlement.core.time import utcnow
from settlement.crud.payouts import list_stale_terminal_payouts_with_claims


logger = logging.getLogger(__name__)

JOB_NAME = "payout_cleanup"


def run_failed_payout_cleanup(db: Session, older_than_hours: int | None = None) -> int:
    """Release claims still held by FAILED or CANCELLED payouts.

    Normal failure handling releases claims in the same commit as the status
    change; this sweep only finds payouts whose compensation never landed.
    Returns the number of commission events released.
    """
    hours = older_than_hours or settings.FAILED_PAYOUT_CLEANUP_HOURS
    cutoff = utcnow() - timedelta(hours=hours)
    released_total = 0
    try:
        payouts = list_stale_terminal_payouts_with_claims(db, before=cutoff)
        for payout in payouts:
            released = release_payout_claims(db, payout_id=payout.id)
            released_total += released
            logger.warning(
                "Released %s stale claims from %s payout %s",
                released,
                payout.status.value,
                payout.id,
            )
        db.commit()
    except Exception:
        db.rollback()
        record_job_run(job_name=JOB_NAME, success=False)
        logger.exception("Payout cleanup job failed")
        raise
    record_job_run(job_name=JOB_NAME, success=True)
    return released_total


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Release claims held by failed or cancelled payouts.")
    parser.add_argument(
        "--older-than-hours",
        type=int,
        default=None,
        help="Only sweep payouts last updated before this many hours ago.",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    with SessionLocal() as db:
        run_failed_payout_cleanup(db, older_than_hours=args.older_than_hours)


if __name__ == "__main__":
    main()
