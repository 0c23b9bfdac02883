# This file bootstraps the FastAPI app for the settlement engine: it
# registers the SettlementError handler, wires up logging/metrics
# middlewares and includes the admin routers.

import os

from fastapi import FastAPI, Response
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest

from settlement.core.db import Base, engine
from settlement.core.errors import SettlementError
from settlement.core.logging import APILoggingMiddleware, logger
from settlement.core.metrics import MetricsMiddleware
import settlement.models  # noqa: F401

from settlement.api.admin_fraud import router as admin_fraud_router
from settlement.api.admin_payouts import router as admin_payouts_router
from settlement.api.admin_commissions import router as admin_commissions_router
from settlement.api.admin_affiliates import router as admin_affiliates_router


# Create tables directly when Alembic is not driving the schema (tests, local dev).
if os.getenv("SKIP_MIGRATIONS") != "1":
    Base.metadata.create_all(bind=engine)

app = FastAPI(title="Affiliate Settlement Engine")


@app.exception_handler(SettlementError)
def handle_settlement_error(request, exc: SettlementError):
    if exc.status_code >= 500:
        logger.error(
            "request.settlement_error",
            extra={
                "request_id": getattr(request.state, "request_id", None),
                "error_code": exc.code,
                "payout_id": exc.payout_id,
                "path": request.url.path,
            },
        )
    response = JSONResponse(status_code=exc.status_code, content=exc.to_payload())
    response.headers["X-Error-Code"] = exc.code
    return response


app.add_middleware(APILoggingMiddleware)
app.add_middleware(MetricsMiddleware)

# Fraud alerts first: its static path would otherwise be read as an affiliate id.
app.include_router(admin_fraud_router)
app.include_router(admin_payouts_router)
app.include_router(admin_commissions_router)
app.include_router(admin_affiliates_router)


# /metrics endpoint (Prometheus scraping)
@app.get("/metrics", include_in_schema=False)
def metrics() -> Response:
    return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)


@app.get("/health")
def health():
    return {"status": "ok"}
