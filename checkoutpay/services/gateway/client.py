"""Payment gateway client.

`PaymentGatewayClient` is the contract the checkout service depends on;
`RazorpayClient` implements it against the Razorpay REST API with basic auth.
Every call opens a short-lived `httpx.AsyncClient`, so the client holds no
connection state between requests.
"""

from time import perf_counter
from typing import Any, Protocol

import httpx

from checkoutpay.common.logging import logger
from checkoutpay.common.metrics import gateway_errors_total, gateway_request_duration_seconds


class GatewayApiError(Exception):
    """Gateway answered with a structured error body."""

    def __init__(self, status_code: int, code: str, description: str) -> None:
        super().__init__(f"{code}: {description}")
        self.status_code = status_code
        self.code = code
        self.description = description


class GatewayUnavailableError(Exception):
    """Gateway could not be reached or returned an unreadable response."""


class PaymentGatewayClient(Protocol):
    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, Any],
        payment_capture: bool = True,
    ) -> dict[str, Any]: ...

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]: ...

    async def check_credentials(self) -> None: ...


class RazorpayClient:
    """Thin async wrapper over the Razorpay orders/payments endpoints."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 5.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.key_id = key_id
        self._auth = httpx.BasicAuth(key_id, key_secret)
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport

    def __repr__(self) -> str:
        return f"RazorpayClient(key_id={self.key_id!r}, base_url={self.base_url!r})"

    async def _request(self, operation: str, method: str, path: str, **kwargs) -> dict[str, Any]:
        start = perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                auth=self._auth,
                timeout=self.timeout,
                transport=self._transport,
            ) as client:
                resp = await client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            gateway_errors_total.labels(operation=operation, error_type="transport").inc()
            logger.warning("gateway_unreachable operation=%s error=%s", operation, exc)
            raise GatewayUnavailableError(f"{operation} failed: {exc}") from exc
        finally:
            gateway_request_duration_seconds.labels(operation=operation).observe(max(0.0, perf_counter() - start))

        try:
            body = resp.json()
        except ValueError as exc:
            gateway_errors_total.labels(operation=operation, error_type="bad_response").inc()
            raise GatewayUnavailableError(
                f"{operation} returned unreadable body status={resp.status_code}"
            ) from exc

        if resp.status_code >= 400:
            error = body.get("error") if isinstance(body, dict) else None
            if isinstance(error, dict) and (error.get("code") or error.get("description")):
                gateway_errors_total.labels(operation=operation, error_type="api").inc()
                raise GatewayApiError(
                    resp.status_code,
                    str(error.get("code") or "GATEWAY_ERROR"),
                    str(error.get("description") or "gateway rejected the request"),
                )
            gateway_errors_total.labels(operation=operation, error_type="bad_response").inc()
            raise GatewayUnavailableError(f"{operation} failed status={resp.status_code}")
        if not isinstance(body, dict):
            gateway_errors_total.labels(operation=operation, error_type="bad_response").inc()
            raise GatewayUnavailableError(f"{operation} returned non-object body")
        return body

    async def create_order(
        self,
        amount: int,
        currency: str,
        receipt: str,
        notes: dict[str, Any],
        payment_capture: bool = True,
    ) -> dict[str, Any]:
        payload = {
            "amount": amount,
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
            "payment_capture": 1 if payment_capture else 0,
        }
        return await self._request("create_order", "POST", "/orders", json=payload)

    async def fetch_payment(self, payment_id: str) -> dict[str, Any]:
        return await self._request("fetch_payment", "GET", f"/payments/{payment_id}")

    async def check_credentials(self) -> None:
        """Cheapest authenticated call; raises if the key pair is rejected."""

        await self._request("check_credentials", "GET", "/orders", params={"count": 1})
