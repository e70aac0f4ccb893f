"""Startup-time helpers for safe config logging."""

from pydantic import SecretStr

from checkoutpay.common.config import CheckoutSettings
from checkoutpay.common.logging import logger


def _safe_value(name: str, value):
    """Redact secret-typed values and anything with a secret-like field name."""

    if value is None:
        return "<unset>"
    if isinstance(value, SecretStr) or any(word in name for word in ["secret", "password", "token"]):
        return "<redacted>"
    return value


def log_startup_config(settings: CheckoutSettings, fields: list[str]) -> None:
    """Log selected settings fields for quick troubleshooting."""

    config = {"service": settings.service_name}
    for field in fields:
        config[field] = _safe_value(field, getattr(settings, field, None))
    logger.info("startup_config=%s", config)
