"""
Configuration settings for the tunnel backoff engine.

All settings are loaded from environment variables with sensible defaults.
Use .env file for local development.

These are process settings; carrier error policies are not settings and
are handed to the engine as raw text (see RetryEngine.on_configuration_changed).
"""

from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # === Application ===
    APP_NAME: str = "Tunnel Backoff Engine"
    APP_VERSION: str = "0.1.0"
    ENVIRONMENT: str = "development"  # "production" switches logs to JSON
    LOG_LEVEL: str = "INFO"

    # === Policy Configuration ===
    DEFAULT_POLICY_PATH: Optional[str] = None  # None = packaged default_error_policies.json
    POLICY_SCHEMA_PATH: Optional[str] = None  # None = packaged error_policy_config.schema.json

    # === Error Statistics ===
    ERROR_STATS_MAX_APNS: int = 10  # Stats reset once this many APNs are tracked
    ERROR_STATS_MAX_ERRORS: int = 1000  # Stats reset after this many reports

    # === Monitoring ===
    PROMETHEUS_ENABLED: bool = True

