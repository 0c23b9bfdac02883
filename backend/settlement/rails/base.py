from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from settlement.models.affiliates import PayoutMethod
from settlement.models.enums import PayoutStatusEnum
from settlement.models.payouts import Payout


class RailError(Exception):
    def __init__(self, message: str, *, retryable: bool = False):
        super().__init__(message)
        self.message = message
        self.retryable = retryable


@dataclass
class RailResult:
    status: PayoutStatusEnum
    external_reference: str | None = None
    # Payout column that also receives the reference, e.g. stripe_transfer_id.
    reference_field: str | None = None
    details: dict[str, Any] = field(default_factory=dict)


class PayoutRail:
    name = "base"

    def dispatch(self, *, payout: Payout, method: PayoutMethod) -> RailResult:
        raise NotImplementedError
