"""Application configuration via environment variables."""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    database_url: str = "sqlite+aiosqlite:///./payment_router.db"
    log_level: str = "INFO"

    gateway_base_url: str = "https://api.xendit.co"
    gateway_secret_key: Optional[str] = None
    gateway_timeout_seconds: float = 30.0
    gateway_transport_retries: int = 1  # retries after the first attempt, transport failures only
    gateway_retry_delay_seconds: float = 1.0

    payment_webhook_url: Optional[str] = None  # callback URL handed to the gateway
    payment_expiry_hours: int = 24
    duplicate_order_window_seconds: int = 120
    disabled_channels: list[str] = []

    notification_webhook_url: Optional[str] = None  # LogNotifier when unset

    model_config = {"env_file": ".env", "env_file_encoding": "utf-8"}


settings = Settings()
