"""Shared fixtures: deterministic credentials and an in-memory gateway."""

import os

import pytest

# Settings are loaded at import time; these must exist before any app import.
os.environ.setdefault("RAZORPAY_KEY_ID", "rzp_test_key")
os.environ.setdefault("RAZORPAY_KEY_SECRET", "s3cr3t")
os.environ.setdefault("ENVIRONMENT", "development")

from checkoutpay.common.signature import StaticSecretProvider  # noqa: E402
from checkoutpay.services.checkout.service import CheckoutService  # noqa: E402

SECRET = "s3cr3t"


class FakeGateway:
    """Records calls and replays canned gateway responses."""

    def __init__(self) -> None:
        self.created: list[dict] = []
        self.fetched: list[str] = []
        self.payment = {
            "id": "pay_XYZ",
            "order_id": "order_ABC",
            "status": "captured",
            "amount": 50000,
            "currency": "INR",
            "method": "upi",
        }
        self.create_error: Exception | None = None
        self.fetch_error: Exception | None = None

    async def create_order(self, amount, currency, receipt, notes, payment_capture=True):
        self.created.append(
            {
                "amount": amount,
                "currency": currency,
                "receipt": receipt,
                "notes": notes,
                "payment_capture": payment_capture,
            }
        )
        if self.create_error is not None:
            raise self.create_error
        return {
            "id": "order_ABC",
            "entity": "order",
            "amount": amount,
            "amount_paid": 0,
            "currency": currency,
            "receipt": receipt,
            "status": "created",
            "notes": notes,
            "created_at": 1700000000,
        }

    async def fetch_payment(self, payment_id):
        self.fetched.append(payment_id)
        if self.fetch_error is not None:
            raise self.fetch_error
        return dict(self.payment)

    async def check_credentials(self):
        return None


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def checkout(gateway):
    return CheckoutService(gateway, StaticSecretProvider(SECRET), publishable_key="rzp_test_key")
