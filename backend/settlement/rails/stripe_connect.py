from __future__ import annotations

import stripe

from settlement.core.config import settings
from settlement.models.affiliates import PayoutMethod
from settlement.models.enums import PayoutStatusEnum
from settlement.models.payouts import Payout
from settlement.rails.base import PayoutRail, RailError, RailResult


# Process-wide transport settings, applied once; the API key goes per request.
stripe.max_network_retries = 0
stripe.default_http_client = stripe.RequestsClient(timeout=settings.PAYOUT_RAIL_TIMEOUT_SECONDS)


def _secret_key() -> str:
    if not settings.STRIPE_SECRET_KEY:
        raise RailError("Stripe is not configured")
    return settings.STRIPE_SECRET_KEY


class StripeConnectRail(PayoutRail):
    name = "stripe_connect"

    def dispatch(self, *, payout: Payout, method: PayoutMethod) -> RailResult:
        destination = method.stripe_account_id
        if not destination:
            raise RailError("Stripe Connect account not configured")
        api_key = _secret_key()
        try:
            transfer = stripe.Transfer.create(
                api_key=api_key,
                amount=payout.net_amount_cents,
                currency=payout.currency.lower(),
                destination=destination,
                description=f"Affiliate payout {payout.id}",
                metadata={
                    "affiliate_id": str(payout.affiliate_id),
                    "tenant_id": str(payout.tenant_id),
                    "payout_id": str(payout.id),
                    "type": "affiliate_payout",
                },
                idempotency_key=f"affiliate-payout-{payout.id}",
            )
        except stripe.StripeError as exc:
            message = getattr(exc, "user_message", None) or str(exc) or "Stripe transfer failed"
            raise RailError(message, retryable=isinstance(exc, stripe.APIConnectionError)) from exc

        transfer_id = transfer["id"] if isinstance(transfer, dict) else transfer.id
        return RailResult(
            status=PayoutStatusEnum.PROCESSING,
            external_reference=transfer_id,
            reference_field="stripe_transfer_id",
            details={"destination": destination},
        )
