"""Centralized configuration — all env vars in one place."""

import os

DEFAULT_ACUITY_BASE_URL = "https://acuityscheduling.com/api/v1"


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_float(name: str) -> float | None:
    value = os.getenv(name)
    return float(value) if value else None


class Settings:
    """Application settings loaded from environment variables."""

    def __init__(self):
        self.cors_origins: list[str] = os.getenv("CORS_ORIGINS", "*").split(",")
        self.git_sha: str = os.getenv("GIT_SHA", "unknown")
        self.environment: str = os.getenv("ENVIRONMENT", "local")

        # Acuity Scheduling
        self.acuity_base_url: str = os.getenv("ACUITY_BASE_URL") or DEFAULT_ACUITY_BASE_URL
        self.acuity_user_id: str | None = os.getenv("ACUITY_USER_ID")
        self.acuity_api_key: str | None = os.getenv("ACUITY_API_KEY")
        self.acuity_timeout: float | None = _env_float("ACUITY_TIMEOUT_SECONDS")

        # Availability cache
        self.cache_ttl_seconds: float = float(os.getenv("AVAILABILITY_CACHE_TTL_SECONDS", "300"))
        self.cache_sweep_interval: float = float(os.getenv("CACHE_SWEEP_INTERVAL_SECONDS", "60"))

        # Fixed-window rate limiting
        self.rate_limit_enabled: bool = _env_bool("RATE_LIMIT_ENABLED", True)
        self.rate_limit_window_seconds: float = float(os.getenv("RATE_LIMIT_WINDOW_SECONDS", "60"))
        self.rate_limit_max_requests: int = int(os.getenv("RATE_LIMIT_MAX_REQUESTS", "10"))

    @property
    def is_production(self) -> bool:
        return self.environment == "production"

    def validate(self) -> list[str]:
        """Return list of missing env vars required for upstream calls."""
        required = ["ACUITY_USER_ID", "ACUITY_API_KEY"]
        return [var for var in required if not getattr(self, _attr_for(var))]


settings = Settings()


def _attr_for(env_var: str) -> str:
    """Map env var name to Settings attribute name."""
    mapping = {
        "ACUITY_USER_ID": "acuity_user_id",
        "ACUITY_API_KEY": "acuity_api_key",
    }
    return mapping.get(env_var, env_var.lower())
