"""Gateway payment status vocabulary and success rules used by verification."""

from enum import Enum


class GatewayStatus(str, Enum):
    CREATED = "created"
    AUTHORIZED = "authorized"
    CAPTURED = "captured"
    FAILED = "failed"
    REFUNDED = "refunded"
    OTHER = "other"


# Auto-capture is assumed, but an authorized payment is already paid for.
SUCCESSFUL_STATUSES: set[GatewayStatus] = {GatewayStatus.CAPTURED, GatewayStatus.AUTHORIZED}


def normalize_status(raw: str | None) -> GatewayStatus:
    """Map a raw gateway status string onto `GatewayStatus` (unknown -> OTHER)."""

    try:
        return GatewayStatus(str(raw or "").strip().lower())
    except ValueError:
        return GatewayStatus.OTHER


def is_successful(status: GatewayStatus) -> bool:
    return status in SUCCESSFUL_STATUSES
