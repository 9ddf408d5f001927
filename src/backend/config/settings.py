"""Centralized application settings loaded from environment variables.

All configuration is defined once here. Other modules should import
``get_settings()`` rather than calling ``os.getenv()`` directly.
"""

from __future__ import annotations

from pathlib import Path

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_RULES_FILE = Path(__file__).resolve().parent / "rules.json"


class Settings(BaseSettings):
    """Application-wide configuration backed by environment variables.

    Field names are **lowercased** versions of the env-var names.
    ``pydantic-settings`` maps them automatically (case-insensitive).

    Example::

        settings = Settings()  # reads .env + real env
        dsn = settings.database_dsn
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # -- Destination database ----------------------------------------------

    database_dsn: str = ""
    """ODBC connection string of the database queries run against (empty → not configured)."""

    db_pool_min_size: int = 1
    """Connections opened eagerly per pool."""

    db_pool_max_size: int = 10
    """Upper bound on concurrent connections per pool."""

    query_timeout_seconds: float = 30.0
    """Bound on each probe / execute call."""

    default_row_limit: int = 50
    """LIMIT appended to statements that have none."""

    max_row_limit: int = 500
    """Largest LIMIT a caller may ask for."""

    # -- System database (rules + audit log) --------------------------------

    system_database_dsn: str = ""
    """ODBC connection string of the configuration database (empty → file only)."""

    rules_config_id: int | None = None
    """``database_settings_id`` row holding the rules in ``database_config_files``."""

    rules_file: Path = DEFAULT_RULES_FILE
    """JSON rules file used when the system database has none."""

    # -- OpenAI --------------------------------------------------------------

    openai_api_key: str | None = None
    """API key (None → AI generation disabled)."""

    openai_model: str = "gpt-4o-mini"
    """Chat model used for SQL generation."""

    openai_temperature: float = 0.2
    """Sampling temperature."""

    openai_max_tokens: int = 2000
    """Completion token limit."""

    openai_timeout_seconds: float = 20.0
    """Request timeout for the OpenAI client."""

    openai_base_url: str | None = None
    """Alternative OpenAI-compatible endpoint."""

    # -- Anthropic -----------------------------------------------------------

    anthropic_api_key: str | None = None
    """API key; when set, Anthropic is used instead of OpenAI."""

    anthropic_model: str = "claude-3-5-haiku-20241022"
    """Messages model used for SQL generation."""

    anthropic_temperature: float = 0.3
    """Sampling temperature."""

    anthropic_max_tokens: int = 1000
    """Response token limit."""

    anthropic_timeout_seconds: float = 20.0
    """Request timeout for the Anthropic client."""

    # -- Operational -------------------------------------------------------

    max_prompt_length: int = 500
    """Longest accepted natural-language prompt."""

    sandbox_mode: bool = False
    """Refuse configuration edits (public demo deployments)."""

    environment: str = "production"
    """``development`` exposes internal error details in responses."""

    log_level: str = "INFO"
    """Root log level."""

    cors_origins: list[str] = ["http://localhost:3000", "http://127.0.0.1:3000"]
    """Origins allowed by the CORS middleware."""

    @field_validator("log_level")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        return value.upper()

    @property
    def expose_error_details(self) -> bool:
        return self.environment.lower() == "development"

    @property
    def ai_configured(self) -> bool:
        return bool(self.anthropic_api_key or self.openai_api_key)


def get_settings() -> Settings:
    """Return a cached ``Settings`` instance.

    Uses ``lru_cache`` semantics via a module-level singleton so the
    ``.env`` file is read at most once per process.

    Returns:
        The global ``Settings`` object.
    """
    return _settings


_settings = Settings()
