"""Public HTTP surface for checkout order creation and payment verification.

Routes are served both at the root and under `/api` so the checkout form can
talk to either mount.
"""

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from time import perf_counter
from uuid import uuid4

import uvicorn
from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from checkoutpay.common.config import settings
from checkoutpay.common.errors import CheckoutError
from checkoutpay.common.logging import configure_logging, logger, trace_id_ctx
from checkoutpay.common.metrics import http_request_duration_seconds, http_requests_total, metrics_response
from checkoutpay.common.signature import SettingsSecretProvider
from checkoutpay.common.startup import log_startup_config
from checkoutpay.common.tracing import instrument_app, setup_tracing
from checkoutpay.services.checkout.schemas import OrderCreatePayload, VerificationPayload
from checkoutpay.services.checkout.service import CheckoutService
from checkoutpay.services.gateway.client import RazorpayClient

configure_logging(settings.service_name, settings.log_level)
setup_tracing(settings.service_name, settings.otel_exporter_otlp_endpoint)
log_startup_config(
    settings,
    [
        "environment",
        "port",
        "razorpay_key_id",
        "razorpay_key_secret",
        "razorpay_api_url",
        "allowed_currencies",
        "fetch_failure_policy",
        "verify_credentials_on_startup",
    ],
)
gateway = RazorpayClient(
    settings.razorpay_key_id,
    settings.razorpay_key_secret.get_secret_value(),
    base_url=settings.razorpay_api_url,
    timeout=settings.gateway_timeout_seconds,
)
service = CheckoutService(
    gateway,
    SettingsSecretProvider(settings.razorpay_key_secret),
    publishable_key=settings.razorpay_key_id,
    allowed_currencies=settings.allowed_currencies,
    fetch_failure_policy=settings.fetch_failure_policy,
    expose_error_detail=settings.is_development,
    service_name=settings.service_name,
)


def get_service() -> CheckoutService:
    return service


@asynccontextmanager
async def lifespan(_: FastAPI):
    """Refuse to start serving when the gateway rejects our credentials."""

    if settings.verify_credentials_on_startup:
        try:
            await gateway.check_credentials()
        except Exception:
            logger.critical("gateway_credentials_rejected key_id=%s", settings.razorpay_key_id)
            raise
        logger.info("gateway_credentials_ok key_id=%s", settings.razorpay_key_id)
    yield


app = FastAPI(title="Checkout Payments", lifespan=lifespan)
instrument_app(app)


def unhandled_error_response(exc: Exception) -> JSONResponse:
    body = {"success": False, "message": "Server error"}
    if settings.is_development:
        body["error"] = str(exc)
    return JSONResponse(status_code=500, content=body)


@app.middleware("http")
async def metrics_middleware(request: Request, call_next):
    """Record request count and latency for every HTTP call.

    Unexpected errors are rendered here so the 500 body still passes through
    CORS on its way out.
    """

    trace_id_ctx.set(request.headers.get("x-correlation-id") or str(uuid4()))
    start = perf_counter()
    route = request.url.path
    method = request.method
    status_code = 500
    try:
        response = await call_next(request)
    except Exception as exc:
        logger.exception("unhandled_error")
        response = unhandled_error_response(exc)
    try:
        status_code = response.status_code
        route_obj = request.scope.get("route")
        if route_obj is not None and getattr(route_obj, "path", None):
            route = route_obj.path
        return response
    finally:
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
        logger.info("%s %s status=%s", method, route, status_code)


# Added last so it wraps every other middleware, error responses included.
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(CheckoutError)
async def checkout_error_handler(_: Request, exc: CheckoutError):
    body = {"success": False, "message": exc.message}
    if exc.detail:
        body["error"] = exc.detail
    return JSONResponse(status_code=exc.status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(_: Request, exc: RequestValidationError):
    body = {"success": False, "message": "invalid request body"}
    if settings.is_development:
        body["error"] = str(exc.errors())
    return JSONResponse(status_code=400, content=body)


@app.post("/order")
@app.post("/api/order")
async def create_order(req: OrderCreatePayload, checkout: CheckoutService = Depends(get_service)):
    """Create a gateway order and hand the browser what it needs to open checkout."""

    order = await checkout.create_order(req)
    return {
        "success": True,
        "order": order.model_dump(),
        "razorpay_key_id": checkout.publishable_key,
    }


@app.post("/verify-payment")
@app.post("/api/verify-payment")
async def verify_payment(req: VerificationPayload, checkout: CheckoutService = Depends(get_service)):
    """Verify the checkout callback; negative outcomes are 400 with `success: false`."""

    result = await checkout.verify_payment(req)
    body = {"success": result.verified, "message": result.message, "data": result.to_response()}
    return JSONResponse(status_code=200 if result.verified else 400, content=body)


@app.get("/metrics")
def metrics():
    """Prometheus scrape endpoint."""

    return metrics_response()


@app.get("/health")
def health():
    """Liveness check."""

    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat()}


if __name__ == "__main__":
    uvicorn.run(app, host=settings.host, port=settings.port)
