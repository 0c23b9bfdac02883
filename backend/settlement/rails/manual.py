from __future__ import annotations

from settlement.models.affiliates import PayoutMethod
from settlement.models.enums import PayoutStatusEnum
from settlement.models.payouts import Payout
from settlement.rails.base import PayoutRail, RailResult


class ManualRail(PayoutRail):
    """Wire, check and manual payouts wait for finance to record the transfer."""

    name = "manual"

    def dispatch(self, *, payout: Payout, method: PayoutMethod) -> RailResult:
        _ = method
        return RailResult(
            status=PayoutStatusEnum.AWAITING_APPROVAL,
            details={"method_type": payout.method_type.value},
        )
