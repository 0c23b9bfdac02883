from __future__ import annotations

from typing import Any

import requests

from settlement.core.config import settings
from settlement.models.affiliates import PayoutMethod
from settlement.models.enums import PayoutStatusEnum
from settlement.models.payouts import Payout
from settlement.rails.base import PayoutRail, RailError, RailResult


def _api_url(path: str) -> str:
    return f"{settings.PAYPAL_API_BASE.rstrip('/')}{path}"


def _json_object(resp: requests.Response) -> dict[str, Any]:
    try:
        body = resp.json()
    except ValueError:
        return {}
    return body if isinstance(body, dict) else {}


def _response_error(resp: requests.Response, fallback: str) -> str:
    body = _json_object(resp)
    message = body.get("message") or body.get("error_description") or fallback
    return f"{message} (status {resp.status_code})"


def _get_access_token() -> str:
    if not settings.PAYPAL_CLIENT_ID or not settings.PAYPAL_CLIENT_SECRET:
        raise RailError("PayPal is not configured")
    try:
        resp = requests.post(
            _api_url("/v1/oauth2/token"),
            data={"grant_type": "client_credentials"},
            auth=(settings.PAYPAL_CLIENT_ID, settings.PAYPAL_CLIENT_SECRET),
            headers={"Accept": "application/json"},
            timeout=settings.PAYOUT_RAIL_TIMEOUT_SECONDS,
        )
    except requests.RequestException as exc:
        raise RailError(f"PayPal authentication failed: {exc}", retryable=True) from exc
    if resp.status_code >= 400:
        raise RailError(_response_error(resp, "PayPal authentication failed"))
    token = _json_object(resp).get("access_token")
    if not token:
        raise RailError("PayPal authentication returned no token")
    return token


def build_payout_body(payout: Payout, receiver: str) -> dict[str, Any]:
    return {
        "sender_batch_header": {
            "sender_batch_id": f"aff_{payout.affiliate_id}_payout_{payout.id}",
            "email_subject": "You have received an affiliate payout",
            "email_message": "Thank you for your referrals.",
        },
        "items": [
            {
                "recipient_type": "EMAIL",
                "amount": {
                    "value": f"{payout.net_amount_cents / 100:.2f}",
                    "currency": payout.currency.upper(),
                },
                "receiver": receiver,
                "note": f"Affiliate payout {payout.id}",
                "sender_item_id": f"payout_{payout.id}",
            }
        ],
    }


class PayPalPayoutsRail(PayoutRail):
    name = "paypal"

    def dispatch(self, *, payout: Payout, method: PayoutMethod) -> RailResult:
        receiver = method.paypal_email
        if not receiver:
            raise RailError("PayPal email not configured")
        token = _get_access_token()
        try:
            resp = requests.post(
                _api_url("/v1/payments/payouts"),
                json=build_payout_body(payout, receiver),
                headers={
                    "Authorization": f"Bearer {token}",
                    "Content-Type": "application/json",
                },
                timeout=settings.PAYOUT_RAIL_TIMEOUT_SECONDS,
            )
        except requests.RequestException as exc:
            raise RailError(f"PayPal payout request failed: {exc}", retryable=True) from exc
        if resp.status_code >= 400:
            raise RailError(_response_error(resp, "PayPal payout failed"))

        header = _json_object(resp).get("batch_header")
        if not isinstance(header, dict):
            header = {}
        batch_id = header.get("payout_batch_id")
        if not batch_id:
            raise RailError("PayPal response missing payout batch id")
        return RailResult(
            status=PayoutStatusEnum.PROCESSING,
            external_reference=batch_id,
            reference_field="paypal_batch_id",
            details={"batch_status": header.get("batch_status")},
        )
