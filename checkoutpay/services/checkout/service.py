"""Checkout order creation and payment verification.

Both operations are stateless: the service only holds the injected gateway
client, the secret provider and read-only policy knobs. Verification trusts
nothing but the recomputed HMAC signature and the gateway's own payment
record.
"""

from datetime import datetime, timezone
from enum import Enum
from time import time
from uuid import uuid4

from checkoutpay.common.errors import GatewayError, InternalError, ValidationError
from checkoutpay.common.logging import logger, order_id_ctx, payment_id_ctx
from checkoutpay.common.metrics import order_failures_total, orders_created_total, verifications_total
from checkoutpay.common.payment_status import is_successful, normalize_status
from checkoutpay.common.signature import SecretProvider, compute_signature, signatures_match
from checkoutpay.services.checkout.schemas import (
    OrderCreatePayload,
    OrderDescriptor,
    OrderRequest,
    VerificationPayload,
    VerificationRequest,
    VerificationResult,
)
from checkoutpay.services.gateway.client import GatewayApiError, GatewayUnavailableError, PaymentGatewayClient

DEFAULT_CURRENCIES = ("INR", "USD", "EUR", "GBP")
ORDER_ID_PREFIX = "order_"
PAYMENT_ID_PREFIX = "pay_"
MAX_RECEIPT_LENGTH = 40


class FetchFailurePolicy(str, Enum):
    """What verification does when the status fetch fails after a valid signature."""

    TRUST_SIGNATURE = "trust_signature"
    FAIL_CLOSED = "fail_closed"


def generate_receipt() -> str:
    """`receipt_<epoch millis>_<8 hex>`; unique enough for an advisory label."""

    return f"receipt_{int(time() * 1000)}_{uuid4().hex[:8]}"


def _utf8_encodable(value: str) -> bool:
    try:
        value.encode("utf-8")
    except UnicodeEncodeError:
        return False
    return True


class CheckoutService:
    """Validates checkout calls and reconciles them against the gateway."""

    def __init__(
        self,
        gateway: PaymentGatewayClient,
        secrets: SecretProvider,
        publishable_key: str,
        allowed_currencies=DEFAULT_CURRENCIES,
        fetch_failure_policy: FetchFailurePolicy = FetchFailurePolicy.TRUST_SIGNATURE,
        expose_error_detail: bool = False,
        service_name: str = "checkout",
    ) -> None:
        self.gateway = gateway
        self.secrets = secrets
        self.publishable_key = publishable_key
        self.allowed_currencies = frozenset(c.upper() for c in allowed_currencies)
        self.fetch_failure_policy = FetchFailurePolicy(fetch_failure_policy)
        self.expose_error_detail = expose_error_detail
        self.service_name = service_name

    def _validate_order(self, payload: OrderCreatePayload) -> OrderRequest:
        """Short-circuits on the first failing rule."""

        if payload.amount is None or payload.currency in (None, ""):
            raise ValidationError("missing required fields")

        amount = payload.amount
        if isinstance(amount, float) and amount.is_integer():
            amount = int(amount)
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("invalid amount")

        currency = payload.currency.upper() if isinstance(payload.currency, str) else None
        if currency not in self.allowed_currencies:
            raise ValidationError("unsupported currency")

        receipt = payload.receipt
        if receipt is None or receipt == "":
            receipt = generate_receipt()
        elif not isinstance(receipt, str) or len(receipt) > MAX_RECEIPT_LENGTH or not _utf8_encodable(receipt):
            raise ValidationError("invalid receipt")

        if payload.notes is not None and not isinstance(payload.notes, dict):
            raise ValidationError("invalid notes")
        for key, value in (payload.notes or {}).items():
            if not _utf8_encodable(key) or (isinstance(value, str) and not _utf8_encodable(value)):
                raise ValidationError("invalid notes")

        notes = dict(payload.notes or {})
        # Server metadata wins over caller keys of the same name.
        for key in ("customer_id", "customer_email", "customer_phone"):
            value = getattr(payload, key)
            if value is not None:
                notes[key] = str(value)
        notes["created_at"] = datetime.now(timezone.utc).isoformat()
        return OrderRequest(amount=amount, currency=currency, receipt=receipt, notes=notes)

    async def create_order(self, payload: OrderCreatePayload) -> OrderDescriptor:
        """Validate, create the order at the gateway with auto-capture, and sanitize it."""

        req = self._validate_order(payload)
        try:
            order = await self.gateway.create_order(
                amount=req.amount,
                currency=req.currency,
                receipt=req.receipt,
                notes=req.notes,
                payment_capture=True,
            )
        except GatewayApiError as exc:
            order_failures_total.labels(service=self.service_name, error_type="gateway").inc()
            logger.warning("order_rejected code=%s description=%s", exc.code, exc.description)
            raise GatewayError(exc.description, code=exc.code) from exc
        except Exception as exc:
            order_failures_total.labels(service=self.service_name, error_type="internal").inc()
            logger.exception("order_create_failed receipt=%s", req.receipt)
            raise InternalError(
                "Failed to create order",
                detail=str(exc) if self.expose_error_detail else None,
            ) from exc

        try:
            descriptor = OrderDescriptor(
                id=order["id"],
                amount=order.get("amount", req.amount),
                currency=order.get("currency", req.currency),
                receipt=order.get("receipt", req.receipt),
                status=order.get("status", "created"),
                created_at=order.get("created_at"),
            )
        except (KeyError, ValueError) as exc:
            order_failures_total.labels(service=self.service_name, error_type="internal").inc()
            logger.error("order_response_invalid error=%s", exc)
            raise InternalError(
                "Failed to create order",
                detail=str(exc) if self.expose_error_detail else None,
            ) from exc

        order_id_ctx.set(descriptor.id)
        orders_created_total.labels(service=self.service_name, currency=descriptor.currency).inc()
        logger.info(
            "order_created order_id=%s amount=%s currency=%s receipt=%s",
            descriptor.id,
            descriptor.amount,
            descriptor.currency,
            descriptor.receipt,
        )
        return descriptor

    def _validate_verification(self, payload: VerificationPayload) -> VerificationRequest:
        fields = (payload.order_id, payload.payment_id, payload.signature)
        if any(not isinstance(value, str) or not value for value in fields):
            raise ValidationError("missing required fields")
        if not payload.order_id.startswith(ORDER_ID_PREFIX) or not payload.payment_id.startswith(PAYMENT_ID_PREFIX):
            raise ValidationError("invalid id format")
        # JSON allows lone surrogate escapes, which cannot be signed or compared.
        if not _utf8_encodable(payload.order_id) or not _utf8_encodable(payload.payment_id):
            raise ValidationError("invalid id format")
        if not _utf8_encodable(payload.signature):
            raise ValidationError("invalid signature format")
        return VerificationRequest(
            order_id=payload.order_id,
            payment_id=payload.payment_id,
            signature=payload.signature,
        )

    def _result(
        self, req: VerificationRequest, verified: bool, message: str, *, outcome: str, **details
    ) -> VerificationResult:
        verifications_total.labels(service=self.service_name, outcome=outcome).inc()
        return VerificationResult(
            verified=verified,
            message=message,
            order_id=req.order_id,
            payment_id=req.payment_id,
            verified_at=datetime.now(timezone.utc),
            **details,
        )

    async def verify_payment(self, payload: VerificationPayload) -> VerificationResult:
        """Prove the checkout callback with HMAC, then reconcile with the gateway record.

        Signature checking always precedes the status fetch, so a forged
        signature never causes a gateway call.
        """

        req = self._validate_verification(payload)
        order_id_ctx.set(req.order_id)
        payment_id_ctx.set(req.payment_id)

        expected = compute_signature(self.secrets.get_secret(), req.order_id, req.payment_id)
        if not signatures_match(expected, req.signature):
            logger.warning(
                "signature_mismatch order_id=%s payment_id=%s expected=%s received=%s",
                req.order_id,
                req.payment_id,
                expected,
                req.signature,
            )
            return self._result(req, False, "Payment signature verification failed", outcome="bad_signature")

        try:
            payment = await self.gateway.fetch_payment(req.payment_id)
        except (GatewayApiError, GatewayUnavailableError) as exc:
            if self.fetch_failure_policy is FetchFailurePolicy.FAIL_CLOSED:
                logger.error("payment_fetch_failed policy=fail_closed error=%s", exc)
                verifications_total.labels(service=self.service_name, outcome="fetch_failed").inc()
                raise InternalError(
                    "Unable to confirm payment status",
                    detail=str(exc) if self.expose_error_detail else None,
                ) from exc
            logger.warning("payment_fetch_failed policy=trust_signature error=%s", exc)
            return self._result(
                req,
                True,
                "Payment verified successfully (payment details unavailable)",
                details_available=False,
                outcome="verified_degraded",
            )

        raw_status = payment.get("status")
        status = normalize_status(raw_status)
        if not is_successful(status):
            logger.warning("payment_not_successful status=%s", raw_status)
            return self._result(
                req,
                False,
                f"Payment not successful. Status: {raw_status}",
                gateway_status=status,
                details_available=True,
                outcome="not_successful",
            )
        if payment.get("order_id") != req.order_id:
            logger.warning("order_id_mismatch gateway_order_id=%s", payment.get("order_id"))
            return self._result(
                req,
                False,
                "Order ID mismatch",
                gateway_status=status,
                details_available=True,
                outcome="order_mismatch",
            )

        logger.info("payment_verified status=%s method=%s", status.value, payment.get("method"))
        return self._result(
            req,
            True,
            "Payment verified successfully",
            gateway_status=status,
            amount=payment.get("amount"),
            currency=payment.get("currency"),
            method=payment.get("method"),
            details_available=True,
            outcome="verified",
        )
