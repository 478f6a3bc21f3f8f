"""Central environment-driven settings for the payment route service.

The process loads this once at startup. Behavior is controlled by environment
variables (see `.env.example`).
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class CommonSettings(BaseSettings):
    """Typed view of runtime configuration from environment variables."""

    service_name: str = "payroute"
    environment: str = "development"
    log_level: str = "INFO"
    log_dir: str | None = None
    api_key: str
    stripe_secret_key: str
    stripe_webhook_secret: str
    paypal_client_id: str
    paypal_client_secret: str
    paypal_environment: str = "sandbox"
    frontend_url: str = "http://localhost:3000"
    orders_url: str = "http://orders:8000"
    redis_url: str = "redis://redis:6379/0"
    rate_limit_enabled: bool = True
    rate_limit_max_requests: int = 100
    rate_limit_window_seconds: int = 15 * 60
    vendor_timeout_seconds: float = 10.0
    tracing_enabled: bool = True
    otel_exporter_otlp_endpoint: str = "http://otel-collector:4318/v1/traces"
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    @property
    def is_production(self) -> bool:
        return self.environment.lower() == "production"

    @property
    def payment_return_url(self) -> str:
        return f"{self.frontend_url.rstrip('/')}/payment/confirm"


settings = CommonSettings()
