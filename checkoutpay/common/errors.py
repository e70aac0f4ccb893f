"""Error taxonomy shared by order creation and payment verification.

Each error maps to exactly one HTTP status. `message` is always safe to show
to callers; `detail` carries diagnostics that are only rendered in
development mode.
"""


class CheckoutError(Exception):
    """Base class for errors rendered into the `{success: false}` envelope."""

    status_code = 500

    def __init__(self, message: str, detail: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.detail = detail


class ValidationError(CheckoutError):
    """Malformed or missing caller input."""

    status_code = 400


class GatewayError(CheckoutError):
    """The payment gateway rejected the call with a structured error."""

    status_code = 400

    def __init__(self, message: str, code: str | None = None, detail: str | None = None) -> None:
        super().__init__(message, detail=detail)
        self.code = code


class InternalError(CheckoutError):
    """Unexpected failure; detail is suppressed outside development mode."""

    status_code = 500
