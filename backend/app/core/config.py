"""Application configuration using pydantic-settings."""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Development-only fallback. Every deployment must override ENCRYPTION_KEY.
DEFAULT_ENCRYPTION_KEY = "12345678901234567890123456789012"
DEFAULT_SESSION_SECRET = "certguard-secret-key-change-in-production"


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # App
    app_name: str = "CertGuard"
    app_version: str = "1.0.0"
    debug: bool = False
    log_level: str = "INFO"
    port: int = 5000

    # Database URL MUST be provided via environment (DATABASE_URL)
    database_url: str
    database_pool_size: int = 10
    database_max_overflow: int = 0
    database_pool_timeout: int = 5
    database_pool_recycle: int = 30

    # Sessions
    session_secret: str = DEFAULT_SESSION_SECRET
    session_algorithm: str = "HS256"
    session_cookie_name: str = "certguard.sid"
    session_max_age_hours: int = 24
    session_cookie_secure: bool = False

    # Certificate password encryption (AES-256-CBC, 32-byte key)
    encryption_key: str = DEFAULT_ENCRYPTION_KEY

    # Login lockout
    login_max_attempts: int = 5
    login_lockout_minutes: int = 15

    # Certificate status
    expiring_threshold_days: int = 30

    # Rate limiting (per client IP)
    rate_limit_requests: int = 100
    rate_limit_window_seconds: int = 60
    sensitive_rate_limit_requests: int = 20

    # Audit dispatch
    audit_queue_maxsize: int = 10000

    # Two-factor
    totp_issuer: str = "CertGuard"

    # Bootstrap system admin (only created when no users exist)
    seed_admin_username: str = "admin"
    seed_admin_email: str = "admin@localhost"
    seed_admin_password: Optional[str] = None

    # API
    api_prefix: str = "/api"
    allowed_origins: list[str] = ["http://localhost:5173"]

    @field_validator("encryption_key")
    @classmethod
    def _check_key_length(cls, value: str) -> str:
        if len(value.encode("utf-8")) != 32:
            raise ValueError("ENCRYPTION_KEY must be exactly 32 bytes")
        return value

    @property
    def uses_default_encryption_key(self) -> bool:
        return self.encryption_key == DEFAULT_ENCRYPTION_KEY


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
