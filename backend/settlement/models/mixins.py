from sqlalchemy import Column, DateTime

from settlement.core.time import utcnow


class TimestampMixin:
    # onupdate also fires for bulk Query.update(), which the ledger relies on.
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
