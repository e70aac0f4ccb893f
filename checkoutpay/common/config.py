"""Central environment-driven settings for the checkout service.

The process loads this once at startup. Gateway credentials are required: a
missing key id or secret raises here and the process never starts serving.
"""

from typing import Literal

from pydantic import SecretStr
from pydantic_settings import BaseSettings, SettingsConfigDict


class CheckoutSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "checkout"
    environment: str = "development"
    log_level: str = "INFO"
    host: str = "0.0.0.0"
    port: int = 3000
    razorpay_key_id: str
    razorpay_key_secret: SecretStr
    razorpay_api_url: str = "https://api.razorpay.com/v1"
    gateway_timeout_seconds: float = 5.0
    verify_credentials_on_startup: bool = False
    allowed_currencies: list[str] = ["INR", "USD", "EUR", "GBP"]
    fetch_failure_policy: Literal["trust_signature", "fail_closed"] = "trust_signature"
    cors_origins: list[str] = ["*"]
    otel_exporter_otlp_endpoint: str | None = None
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_development(self) -> bool:
        return self.environment.lower() != "production"


settings = CheckoutSettings()
