# Structured JSON logging shared by the API middleware and the payout
# domain modules. Every payout log line carries affiliate/tenant/payout ids
# so finance can reconcile rail activity against the ledger.

from __future__ import annotations

import json
import logging
import os
from datetime import datetime, timezone
from time import monotonic
from typing import Any
from uuid import uuid4

from fastapi import Request
from jose import JWTError
from starlette.middleware.base import BaseHTTPMiddleware

from settlement.core.security import decode_access_token


# Attributes every LogRecord has; anything else arrived through ``extra``.
_RECORD_ATTRS = set(logging.LogRecord("", logging.INFO, "", 0, "", (), None).__dict__) | {
    "message",
    "asctime",
}

# Reconciliation keys stay in the payload even when empty.
_ALWAYS_FIELDS = {
    "request_id",
    "tenant_id",
    "affiliate_id",
    "payout_id",
    "error_code",
}


class JsonLogFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        for key, value in record.__dict__.items():
            if key in _RECORD_ATTRS:
                continue
            if value is None and key not in _ALWAYS_FIELDS:
                continue
            payload[key] = value
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload, separators=(",", ":"), ensure_ascii=True, default=str)


def get_structured_logger(name: str) -> logging.Logger:
    logger = logging.getLogger(name)
    if logger.handlers:
        return logger
    handler = logging.StreamHandler()
    handler.setFormatter(JsonLogFormatter())
    logger.addHandler(handler)
    logger.setLevel(os.getenv("LOG_LEVEL", "INFO").upper())
    logger.propagate = False
    return logger


logger = get_structured_logger("api_logger")


def _reviewer_claims(request: Request) -> tuple[Any, str | None]:
    auth = request.headers.get("Authorization") or ""
    scheme, _, token = auth.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None, None
    try:
        claims = decode_access_token(token)
    except JWTError:
        return None, None
    return claims.get("user_id") or claims.get("sub"), claims.get("role")


def _request_context(request: Request, request_id: str, started: float) -> dict[str, Any]:
    route = request.scope.get("route")
    user_id, role = _reviewer_claims(request)
    return {
        "request_id": request_id,
        "tenant_id": request.query_params.get("tenant_id"),
        "user_id": user_id,
        "reviewer_role": role,
        "route": getattr(route, "path", None) or request.url.path,
        "path": request.url.path,
        "method": request.method,
        "duration_ms": round((monotonic() - started) * 1000.0, 2),
    }


class APILoggingMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        started = monotonic()
        request_id = request.headers.get("X-Request-ID") or uuid4().hex
        request.state.request_id = request_id
        try:
            response = await call_next(request)
        except Exception:
            logger.exception(
                "request.failed",
                extra={
                    **_request_context(request, request_id, started),
                    "status_code": 500,
                    "error_code": "unhandled_exception",
                },
            )
            raise

        logger.info(
            "request.completed",
            extra={
                **_request_context(request, request_id, started),
                "status_code": response.status_code,
                "error_code": response.headers.get("X-Error-Code"),
            },
        )
        response.headers["X-Request-ID"] = request_id
        return response
