from __future__ import annotations

from dataclasses import dataclass
from typing import Any


@dataclass
class SettlementError(Exception):
    code: str
    message: str
    status_code: int = 500
    payout_id: int | None = None

    def __post_init__(self) -> None:
        super().__init__(self.message)

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"code": self.code, "message": self.message}
        if self.payout_id is not None:
            payload["payout_id"] = self.payout_id
        return payload


class ValidationFailed(SettlementError):
    def __init__(self, message: str):
        super().__init__(code="validation_error", message=message, status_code=422)


class NotFound(SettlementError):
    def __init__(self, message: str):
        super().__init__(code="not_found", message=message, status_code=404)


class InsufficientBalance(SettlementError):
    def __init__(self, message: str):
        super().__init__(code="insufficient_balance", message=message, status_code=409)


class Ineligible(SettlementError):
    def __init__(self, message: str):
        super().__init__(code="ineligible", message=message, status_code=409)


class NoVerifiedMethod(SettlementError):
    def __init__(self, message: str):
        super().__init__(code="no_verified_method", message=message, status_code=409)


class RailFailure(SettlementError):
    def __init__(self, message: str, *, payout_id: int | None = None, code: str = "rail_failure"):
        super().__init__(code=code, message=message, status_code=502, payout_id=payout_id)


class InvalidTransition(SettlementError):
    def __init__(self, message: str, *, code: str = "invalid_transition"):
        super().__init__(code=code, message=message, status_code=409)
