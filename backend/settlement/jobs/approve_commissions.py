from __future__ import annotations

import argparse
import logging
from datetime import datetime

from sqlalchemy.orm import Session

from settlement.core.db import SessionLocal
from settlement.core.ledger import approve_pending_commissions
from settlement.core.metrics import record_job_run


logger = logging.getLogger(__name__)

JOB_NAME = "approve_commissions"


def run_commission_approval(db: Session, now: datetime | None = None) -> int:
    try:
        approved = approve_pending_commissions(db, now=now)
    except Exception:
        db.rollback()
        record_job_run(job_name=JOB_NAME, success=False)
        logger.exception("Commission approval job failed")
        raise
    record_job_run(job_name=JOB_NAME, success=True)
    logger.info("Approved %s pending commission events", approved)
    return approved


def _parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Approve commissions whose hold period has elapsed.")
    parser.add_argument(
        "--as-of",
        type=datetime.fromisoformat,
        default=None,
        help="Approve as if run at this ISO timestamp (UTC).",
    )
    return parser.parse_args()


def main() -> None:
    args = _parse_args()
    with SessionLocal() as db:
        run_commission_approval(db, now=args.as_of)


if __name__ == "__main__":
    main()
