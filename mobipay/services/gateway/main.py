"""HTTP surface for the payment gateway.

Checkout posts payment requests here and polls status; operators use the
internal provisioning route once per MTN sandbox subscription.
"""

from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Header, HTTPException, Query, Request
from pydantic import BaseModel

from mobipay.common.config import settings
from mobipay.common.logging import configure_logging, logger, trace_id_ctx
from mobipay.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from mobipay.common.startup import log_startup_config
from mobipay.common.tracing import instrument_app, setup_tracing
from mobipay.payments.errors import ProvisioningError
from mobipay.payments.gateway import PaymentGateway
from mobipay.payments.provisioning import MtnProvisioningClient
from mobipay.payments.schemas import PaymentMethod, PaymentRequest, PaymentResponse

configure_logging()
setup_tracing(settings.service_name)
log_startup_config(
    settings.service_name,
    [
        "SERVICE_NAME",
        "PUBLIC_BASE_URL",
        "MTN_MOMO_API_BASE_URL",
        "MTN_MOMO_ENVIRONMENT",
        "MTN_MOMO_PRIMARY_KEY",
        "MTN_MOMO_API_USER_ID",
        "MTN_MOMO_API_KEY",
        "ORANGE_MONEY_API_BASE_URL",
        "ORANGE_MONEY_CLIENT_ID",
        "ORANGE_MONEY_CLIENT_SECRET",
        "ORANGE_MONEY_MERCHANT_KEY",
    ],
    settings,
)
gateway = PaymentGateway.from_settings(settings)
app = FastAPI(title="Mobipay Payment Gateway")
instrument_app(app)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency, and bind a trace id for log lines."""

    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    trace_token = trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
    try:
        response = await call_next(request)
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
        trace_id_ctx.reset(trace_token)
        elapsed = max(0.0, perf_counter() - start)
        http_request_duration_seconds.labels(
            service=settings.service_name,
            route=route,
            method=method,
        ).observe(elapsed)
        http_requests_total.labels(
            service=settings.service_name,
            route=route,
            method=method,
            status_code=str(status_code),
        ).inc()


class ProvisionRequest(BaseModel):
    """Payload accepted by `POST /internal/mtn/provision`."""

    callback_host: str | None = None


class ProvisionResponse(BaseModel):
    api_user_id: str
    api_key: str


def enforce_api_key(x_api_key: str | None) -> None:
    """Reject internal calls without the configured API key."""

    if not settings.internal_api_key:
        raise HTTPException(status_code=403, detail="internal API disabled")
    if x_api_key != settings.internal_api_key:
        raise HTTPException(status_code=401, detail="invalid API key")


@app.post("/payments", response_model=PaymentResponse, response_model_exclude_none=True)
async def create_payment(req: PaymentRequest):
    """Initiate a payment; failures come back as `status=FAILED`, not HTTP errors."""

    return await gateway.process_payment(req)


@app.get("/payments/mtn/{transaction_id}/status", response_model=PaymentResponse, response_model_exclude_none=True)
async def mtn_payment_status(transaction_id: str):
    """Ask MTN for the state of one request-to-pay."""

    return await gateway.check_mtn_payment_status(transaction_id)


@app.get("/payments/{reference}/status", response_model=PaymentResponse, response_model_exclude_none=True)
async def payment_status(reference: str, method: PaymentMethod = Query(default=PaymentMethod.MTN_MOMO)):
    """Simulated status for generic polling screens (`simulated=true`)."""

    return await gateway.simulate_payment_status(reference, method)


@app.post("/internal/mtn/provision", response_model=ProvisionResponse)
async def provision_mtn(req: ProvisionRequest, x_api_key: str | None = Header(default=None)):
    """Create an MTN sandbox API user and key for the configured primary key."""

    enforce_api_key(x_api_key)
    client = MtnProvisioningClient(settings.mtn_credentials(), timeout=settings.provider_timeout_seconds)
    try:
        api_user_id = await client.create_api_user(req.callback_host)
        api_key = await client.generate_api_key(api_user_id)
    except ProvisioningError as exc:
        logger.error("mtn provisioning failed: %s", exc)
        raise HTTPException(status_code=502, detail=str(exc)) from exc
    return ProvisionResponse(api_user_id=api_user_id, api_key=api_key)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Container health check endpoint."""

    return {"ok": True}
