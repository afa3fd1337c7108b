"""
knotulus_api.settings

Central configuration model (Pydantic Settings).

Responsibilities:
- Provide strongly-typed, env-driven settings for all layers.
- Hide secrets from repr/logging (e.g., JWT secret).
- Offer a cached settings instance for the process entrypoint.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Deployment-level knobs. Security policy (roles, quotas, field lists) is not
    configured here; see `knotulus_api.policy`.
    """

    model_config = SettingsConfigDict(env_prefix="KNOTULUS_", case_sensitive=False)

    # "dev" also enables the admin rate-limit bypass when the flag below is set.
    env: Literal["dev", "test", "prod"] = "dev"
    service_name: str = "knotulus-api"
    log_level: str = "INFO"

    api_host: str = "0.0.0.0"
    api_port: int = 8080
    # Comma-separated proxy addresses whose X-Forwarded-For is trusted.
    forwarded_allow_ips: str = "127.0.0.1"

    # Token verification
    jwt_alg: str = "HS256"
    jwt_issuer: str = "knotulus-identity"
    jwt_audience: str = "knotulus-api"
    jwt_secret: str = Field(default="dev-secret-change-me", repr=False)

    # Persistence
    database_url: str = "sqlite+aiosqlite:///./knotulus.db"

    # Commerce API
    commerce_api_version: str = "2024-04"
    upstream_timeout_seconds: float = Field(default=10.0, gt=0)

    # Rate limiting
    rate_limit_sweep_interval_seconds: float = Field(default=300.0, gt=0)
    rate_limit_admin_bypass_in_dev: bool = True

    @property
    def admin_rate_limit_bypass(self) -> bool:
        return self.env == "dev" and self.rate_limit_admin_bypass_in_dev


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    # Cache avoids re-parsing env vars when the entrypoint asks more than once.
    return Settings()


# --- Module Notes -----------------------------------------------------------
# Request handlers read the Settings instance the app was built with
# (`app.state.settings`), so tests can build apps with explicit settings.
