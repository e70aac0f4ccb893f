"""HMAC signature helpers for checkout payment callbacks.

The gateway signs `order_id|payment_id` with the merchant key secret using
HMAC-SHA256 and hands the hex digest to the browser. Recomputing it server
side is the only proof that the callback was not forged.
"""

import hashlib
import hmac
from typing import Protocol

from pydantic import SecretStr


class SecretProvider(Protocol):
    """Supplies the shared gateway secret used for signing."""

    def get_secret(self) -> str: ...


class StaticSecretProvider:
    """Fixed secret, used by tests and scripts."""

    def __init__(self, secret: str) -> None:
        self._secret = secret

    def get_secret(self) -> str:
        return self._secret


class SettingsSecretProvider:
    """Reads the key secret from loaded settings without exposing it in reprs."""

    def __init__(self, secret: SecretStr) -> None:
        self._secret = secret

    def get_secret(self) -> str:
        return self._secret.get_secret_value()


def signed_payload(order_id: str, payment_id: str) -> str:
    return f"{order_id}|{payment_id}"


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """Hex HMAC-SHA256 over `order_id|payment_id`."""

    return hmac.new(
        secret.encode("utf-8"),
        signed_payload(order_id, payment_id).encode("utf-8"),
        hashlib.sha256,
    ).hexdigest()


def signatures_match(expected: str, supplied: str) -> bool:
    """Constant-time comparison over UTF-8 bytes.

    Both values must be encodable; callers reject lone surrogates up front.
    """

    return hmac.compare_digest(expected.encode("utf-8"), supplied.encode("utf-8"))
