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
    admin_password_hash: str = ""  # bcrypt hash
    session_secure_cookies: bool = False

    # Database
    database_path: str = "./data/price-sync.db"
    encryption_key: str = ""  # 64 hex chars, AES-256-GCM key for store credentials

    # Logging
    log_level: str = "INFO"

    # Outbound HTTP
    http_timeout: float = 30.0  # seconds, applies to every channel call

    # StreetPricer
    streetpricer_api_url: str = "https://api.streetpricer.com/api/v1"
    streetpricer_username: str = ""
    streetpricer_password: str = ""
    streetpricer_stores_endpoint: str = "/stores"
    streetpricer_products_endpoint: str = "/products"
    streetpricer_max_attempts: int = 3

    # Scheduling
    default_sync_interval: int = 3600  # seconds
    scheduler_enabled: bool = True
    reconcile_interval: int = 60  # seconds
    max_concurrent_syncs: int = 5


# Global settings instance
settings = Settings()
