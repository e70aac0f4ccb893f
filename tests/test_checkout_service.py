"""Service-level tests for order creation and payment verification."""

import asyncio
import re

import pytest

from checkoutpay.common.errors import GatewayError, InternalError, ValidationError
from checkoutpay.common.payment_status import GatewayStatus
from checkoutpay.common.signature import StaticSecretProvider, compute_signature
from checkoutpay.services.checkout.schemas import OrderCreatePayload, VerificationPayload
from checkoutpay.services.checkout.service import CheckoutService, FetchFailurePolicy
from checkoutpay.services.gateway.client import GatewayApiError, GatewayUnavailableError

from conftest import SECRET


def run(coro):
    return asyncio.run(coro)


def order(**fields):
    return OrderCreatePayload(**fields)


def verification(order_id="order_ABC", payment_id="pay_XYZ", signature=None):
    if signature is None:
        signature = compute_signature(SECRET, order_id, payment_id)
    return VerificationPayload(razorpay_order_id=order_id, razorpay_payment_id=payment_id, razorpay_signature=signature)


# Order creation


def test_create_order_calls_gateway_once_and_echoes_input(checkout, gateway):
    """One gateway call with auto-capture, and the descriptor echoes the input."""

    descriptor = run(checkout.create_order(order(amount=50000, currency="INR", receipt="receipt#1")))

    assert len(gateway.created) == 1
    assert gateway.created[0]["payment_capture"] is True
    assert descriptor.id == "order_ABC"
    assert (descriptor.amount, descriptor.currency, descriptor.receipt) == (50000, "INR", "receipt#1")
    assert descriptor.status == "created"


def test_receipt_generated_when_absent(checkout, gateway):
    """Missing receipts get a generated advisory label."""

    descriptor = run(checkout.create_order(order(amount=100, currency="usd")))

    assert re.fullmatch(r"receipt_\d+_[0-9a-f]{8}", descriptor.receipt)
    assert gateway.created[0]["currency"] == "USD"


@pytest.mark.parametrize(
    "fields, message",
    [
        ({"currency": "INR"}, "missing required fields"),
        ({"amount": 100}, "missing required fields"),
        ({"amount": 0, "currency": "INR"}, "invalid amount"),
        ({"amount": -5, "currency": "INR"}, "invalid amount"),
        ({"amount": 10.5, "currency": "INR"}, "invalid amount"),
        ({"amount": "100", "currency": "INR"}, "invalid amount"),
        ({"amount": True, "currency": "INR"}, "invalid amount"),
        ({"amount": 100, "currency": "JPY"}, "unsupported currency"),
        ({"amount": 100, "currency": "INR", "notes": ["a"]}, "invalid notes"),
        ({"amount": 100, "currency": "INR", "receipt": "r" * 41}, "invalid receipt"),
        ({"amount": 100, "currency": "INR", "receipt": "r\ud800"}, "invalid receipt"),
        ({"amount": 100, "currency": "INR", "notes": {"plan": "\ud800"}}, "invalid notes"),
    ],
)
def test_invalid_orders_never_reach_gateway(checkout, gateway, fields, message):
    """Each validation rule fails fast with its own message and no gateway call."""

    with pytest.raises(ValidationError) as excinfo:
        run(checkout.create_order(order(**fields)))

    assert excinfo.value.message == message
    assert excinfo.value.status_code == 400
    assert gateway.created == []


def test_server_metadata_overrides_caller_notes(checkout, gateway):
    """Callers cannot spoof audit fields through notes."""

    run(
        checkout.create_order(
            order(
                amount=100,
                currency="INR",
                customer_id="cust-1",
                notes={"customer_id": "spoofed", "created_at": "1999", "plan": "gold"},
            )
        )
    )

    notes = gateway.created[0]["notes"]
    assert notes["customer_id"] == "cust-1"
    assert notes["created_at"] != "1999"
    assert notes["plan"] == "gold"
    assert "customer_email" not in notes


def test_structured_gateway_error_is_surfaced(checkout, gateway):
    """Gateway rejections keep their description for the caller."""

    gateway.create_error = GatewayApiError(400, "BAD_REQUEST_ERROR", "Order amount less than minimum amount allowed")

    with pytest.raises(GatewayError) as excinfo:
        run(checkout.create_order(order(amount=1, currency="INR")))

    assert excinfo.value.message == "Order amount less than minimum amount allowed"
    assert excinfo.value.code == "BAD_REQUEST_ERROR"


def test_unexpected_gateway_failure_hides_detail_by_default(checkout, gateway):
    """Raw diagnostics stay server side unless detail is enabled."""

    gateway.create_error = GatewayUnavailableError("connect timeout to api host")

    with pytest.raises(InternalError) as excinfo:
        run(checkout.create_order(order(amount=100, currency="INR")))

    assert excinfo.value.message == "Failed to create order"
    assert excinfo.value.detail is None


def test_unexpected_gateway_failure_detail_in_development(gateway):
    """Development mode exposes the underlying failure."""

    service = CheckoutService(gateway, StaticSecretProvider(SECRET), "rzp_test_key", expose_error_detail=True)
    gateway.create_error = GatewayUnavailableError("connect timeout to api host")

    with pytest.raises(InternalError) as excinfo:
        run(service.create_order(order(amount=100, currency="INR")))

    assert "connect timeout" in excinfo.value.detail


# Verification


def test_scenario_a_valid_signature_and_captured_payment(checkout, gateway):
    """Valid signature plus a captured payment verifies with full detail."""

    result = run(checkout.verify_payment(verification()))

    assert result.verified is True
    assert result.gateway_status is GatewayStatus.CAPTURED
    assert (result.amount, result.currency, result.method) == (50000, "INR", "upi")
    assert result.details_available is True
    assert gateway.fetched == ["pay_XYZ"]


def test_scenario_b_bad_signature(checkout, gateway):
    """A forged signature fails without contacting the gateway."""

    result = run(checkout.verify_payment(verification(signature="deadbeef")))

    assert result.verified is False
    assert result.message == "Payment signature verification failed"
    assert gateway.fetched == []


def test_flipped_bit_fails_without_gateway_fetch(checkout, gateway):
    """One flipped bit is enough to fail, and the expected value never leaks."""

    good = compute_signature(SECRET, "order_ABC", "pay_XYZ")
    flipped = good[:-1] + format(int(good[-1], 16) ^ 1, "x")

    result = run(checkout.verify_payment(verification(signature=flipped)))

    assert result.verified is False
    assert gateway.fetched == []
    assert good not in result.to_response().values()


def test_scenario_c_failed_payment_status(checkout, gateway):
    """A failed payment reports its literal gateway status."""

    gateway.payment["status"] = "failed"

    result = run(checkout.verify_payment(verification()))

    assert result.verified is False
    assert result.message == "Payment not successful. Status: failed"
    assert result.gateway_status is GatewayStatus.FAILED


def test_authorized_payment_is_accepted(checkout, gateway):
    """Authorized payments count as successful."""

    gateway.payment["status"] = "authorized"

    assert run(checkout.verify_payment(verification())).verified is True


def test_order_id_mismatch(checkout, gateway):
    """A payment belonging to another order is rejected."""

    gateway.payment["order_id"] = "order_OTHER"

    result = run(checkout.verify_payment(verification()))

    assert result.verified is False
    assert result.message == "Order ID mismatch"


def test_fetch_failure_trusts_signature_by_default(checkout, gateway):
    """Unreachable gateway degrades to signature-only proof."""

    gateway.fetch_error = GatewayUnavailableError("gateway down")

    result = run(checkout.verify_payment(verification()))

    assert result.verified is True
    assert result.details_available is False
    assert result.amount is None and result.gateway_status is None
    assert result.to_response()["detailsAvailable"] is False


def test_fetch_failure_fail_closed(gateway):
    """Fail-closed policy turns a fetch failure into an internal error."""

    service = CheckoutService(
        gateway,
        StaticSecretProvider(SECRET),
        "rzp_test_key",
        fetch_failure_policy=FetchFailurePolicy.FAIL_CLOSED,
    )
    gateway.fetch_error = GatewayApiError(404, "BAD_REQUEST_ERROR", "The id provided does not exist")

    with pytest.raises(InternalError):
        run(service.verify_payment(verification()))


def test_verification_is_idempotent(checkout, gateway):
    """Repeating a verification yields the same outcome."""

    first = run(checkout.verify_payment(verification()))
    second = run(checkout.verify_payment(verification()))

    assert first.verified == second.verified is True
    assert gateway.fetched == ["pay_XYZ", "pay_XYZ"]


@pytest.mark.parametrize(
    "payload, message",
    [
        (VerificationPayload(orderId="order_ABC", paymentId="pay_XYZ"), "missing required fields"),
        (VerificationPayload(orderId="order_ABC", signature="abc"), "missing required fields"),
        (VerificationPayload(orderId="ord_ABC", paymentId="pay_XYZ", signature="abc"), "invalid id format"),
        (VerificationPayload(orderId="order_ABC", paymentId="pmt_XYZ", signature="abc"), "invalid id format"),
        (VerificationPayload(orderId="order_\ud800", paymentId="pay_XYZ", signature="abc"), "invalid id format"),
        (VerificationPayload(orderId="order_ABC", paymentId="pay_XYZ", signature="\ud800"), "invalid signature format"),
    ],
)
def test_malformed_verification_rejected_before_crypto(checkout, gateway, payload, message):
    """Missing or misprefixed ids are rejected before any HMAC work."""

    with pytest.raises(ValidationError) as excinfo:
        run(checkout.verify_payment(payload))

    assert excinfo.value.message == message
    assert gateway.fetched == []


def test_result_serializes_camel_case(checkout):
    """Result payload uses camelCase keys."""

    body = run(checkout.verify_payment(verification())).to_response()

    assert body["orderId"] == "order_ABC"
    assert body["paymentId"] == "pay_XYZ"
    assert body["gatewayStatus"] == "captured"
    assert "verifiedAt" in body
