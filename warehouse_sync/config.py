"""
Configuration management.
Simple .env based config for VPS deployment.
"""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Server
    host: str = "0.0.0.0"
    port: int = 8080

    # Security
    session_secret: str = "change-me-in-production-use-random-string"
    encryption_key: str = ""  # root secret for stored store credentials
    encryption_salt: str = "warehouse-sync-salt"

    # Database
    database_path: str = "./data/app.db"

    # Scheduler
    scheduler_enabled: bool = True
    scheduler_tick_seconds: float = 60.0
    scheduler_max_concurrent: int = 5
    store_sync_timeout_seconds: float = 1800.0

    # WooCommerce API
    request_timeout_seconds: float = 30.0
    connect_timeout_seconds: float = 10.0
    max_retries: int = 4
    order_page_size: int = 50
    product_page_size: int = 50
    variation_page_size: int = 100
    default_currency: str = "USD"
    default_low_stock_threshold: int = 5

    # Logging
    log_level: str = "INFO"


# Global settings instance
settings = Settings()
