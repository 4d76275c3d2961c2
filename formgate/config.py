"""Environment-driven configuration for the formgate service.

All runtime configuration is read from environment variables (optionally
loaded from a ``.env`` file via python-dotenv) and validated into a single
immutable ``Settings`` model. Components receive the settings object they
need instead of reading ``os.environ`` themselves, which keeps key resolution
and CORS selection pure functions of their inputs.

Environment Variables:
    - APP_ENV: Deployment environment (production, staging, dev, development)
    - DEV_MODE: Enables the development key and debug error detail
    - FORMIE_API_KEY: Primary key with full permissions
    - FORMIE_API_KEY_LIMITED: Limited key with read_forms only
    - FORMIE_API_KEY_TEST: Development key (only honoured when DEV_MODE is on)
    - FORMIE_API_IP_WHITELIST: Comma-separated IPs / CIDR blocks for primary and limited keys
    - FORMIE_API_CORS_ORIGINS: Comma-separated origins overriding the per-environment table
    - FORMIE_API_RATE_WINDOW: Sliding window length in seconds (default 3600)
    - FORMIE_API_IP_RATE_LIMIT: Per-client-IP ceiling in slowapi syntax (default "300/minute")
    - FORMIE_API_IP_RATE_LIMIT_ENABLED: Toggle for the per-IP ceiling (default true)

Used by:
    - formgate.container: Builds every service from one Settings instance
    - formgate.auth.key_registry: Key sources, environment and dev flag
    - formgate.service.main: CORS table, debug detail, per-IP limiter
"""

import os
from typing import Optional

from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, field_validator

# Load environment variables
load_dotenv()

DEFAULT_TEST_KEY = "test_key_dev_only"

_TRUTHY = {"1", "true", "yes", "on"}


def _split_csv(raw: Optional[str]) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


def _env_flag(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return raw.strip().lower() in _TRUTHY


class Settings(BaseModel):
    """Validated service configuration.

    Attributes:
        environment: Deployment environment tag used for rate limit and CORS tables
        dev_mode: Development flag; enables the test key and error detail
        primary_key: Full-access key value, if configured
        limited_key: Read-forms-only key value, if configured
        test_key: Development key value (used only when dev_mode is set)
        ip_whitelist: Allowed client IPs / CIDR blocks for primary and limited keys
        cors_origins: Explicit origin list; None falls back to the environment table
        rate_window_seconds: Sliding window length for per-key limits
        ip_rate_limit: slowapi limit string applied per client IP
        ip_rate_limit_enabled: Whether the per-IP ceiling is active
    """

    model_config = ConfigDict(frozen=True)

    environment: str = Field("development", description="Deployment environment")
    dev_mode: bool = Field(False, description="Development mode flag")
    primary_key: Optional[str] = Field(None, description="Primary API key")
    limited_key: Optional[str] = Field(None, description="Limited API key")
    test_key: str = Field(DEFAULT_TEST_KEY, description="Development-only API key")
    ip_whitelist: tuple[str, ...] = Field(default_factory=tuple)
    cors_origins: Optional[tuple[str, ...]] = None
    rate_window_seconds: int = Field(3600, ge=1)
    ip_rate_limit: str = "300/minute"
    ip_rate_limit_enabled: bool = True

    @field_validator("environment")
    @classmethod
    def normalize_environment(cls, v: str) -> str:
        return (v or "development").strip().lower()

    @classmethod
    def from_env(cls) -> "Settings":
        """Build settings from the current process environment."""
        cors = _split_csv(os.getenv("FORMIE_API_CORS_ORIGINS"))
        return cls(
            environment=os.getenv("APP_ENV", "development"),
            dev_mode=_env_flag("DEV_MODE", False),
            primary_key=os.getenv("FORMIE_API_KEY") or None,
            limited_key=os.getenv("FORMIE_API_KEY_LIMITED") or None,
            test_key=os.getenv("FORMIE_API_KEY_TEST") or DEFAULT_TEST_KEY,
            ip_whitelist=_split_csv(os.getenv("FORMIE_API_IP_WHITELIST")),
            cors_origins=cors or None,
            rate_window_seconds=int(os.getenv("FORMIE_API_RATE_WINDOW", "3600")),
            ip_rate_limit=os.getenv("FORMIE_API_IP_RATE_LIMIT", "300/minute"),
            ip_rate_limit_enabled=_env_flag("FORMIE_API_IP_RATE_LIMIT_ENABLED", True),
        )


_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get the process-wide settings, reading the environment on first use."""
    global _settings
    if _settings is None:
        _settings = Settings.from_env()
    return _settings


def reset_settings() -> None:
    """Forget cached settings so the next call re-reads the environment."""
    global _settings
    _settings = None
