"""Configuration management for the PropBrain acquisition tracker.

All configuration is loaded from environment variables and/or .env file.
External lookups (geocoder, link preview) are free services and default to
enabled; the LLM is enabled whenever an API key is present.
"""
from __future__ import annotations

from functools import lru_cache
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Project root detection
PROJECT_ROOT = Path(__file__).resolve().parents[2]
ENV_FILE = PROJECT_ROOT / ".env"

DATABASE_FILE = PROJECT_ROOT / "propbrain.db"
ABSOLUTE_DATABASE_URL = f"sqlite:///{DATABASE_FILE.as_posix()}"


def _resolve_database_url(url: str) -> str:
    """
    Convert relative SQLite paths to absolute paths based on PROJECT_ROOT.

    In-memory databases and non-SQLite URLs are returned untouched.
    """
    if not url.startswith("sqlite:///"):
        return url

    path_part = url.replace("sqlite:///", "")
    if path_part == ":memory:" or path_part == "":
        return url

    if path_part.startswith("./") or (not path_part.startswith("/") and ":" not in path_part):
        if path_part.startswith("./"):
            path_part = path_part[2:]
        absolute_path = PROJECT_ROOT / path_part
        return f"sqlite:///{absolute_path.as_posix()}"

    return url


class Settings(BaseSettings):
    """
    Runtime configuration powered by environment variables and .env overrides.

    All settings can be configured via:
    1. Environment variables (highest priority)
    2. .env file in project root (loaded automatically)
    3. Default values (lowest priority)
    """

    model_config = SettingsConfigDict(
        env_file=ENV_FILE if ENV_FILE.exists() else None,
        env_file_encoding="utf-8",
        extra="ignore",
        case_sensitive=False,
        populate_by_name=True,
    )

    # -------------------------------------------------------------------------
    # Database
    # -------------------------------------------------------------------------
    database_url: str = Field(
        default=ABSOLUTE_DATABASE_URL,
        alias="DATABASE_URL",
        description="SQLAlchemy connection string.",
    )
    db_pool_size: int = Field(default=5, alias="DB_POOL_SIZE", ge=1)
    db_max_overflow: int = Field(default=10, alias="DB_MAX_OVERFLOW", ge=0)
    db_pool_timeout: int = Field(default=30, alias="DB_POOL_TIMEOUT", ge=1)

    # -------------------------------------------------------------------------
    # OpenAI (primary listing parser)
    # -------------------------------------------------------------------------
    openai_api_key: Optional[str] = Field(default=None, alias="OPENAI_API_KEY")
    openai_model: str = Field(default="gpt-4o-mini", alias="OPENAI_MODEL")
    openai_temperature: float = Field(default=0.2, alias="OPENAI_TEMPERATURE", ge=0.0, le=1.0)
    openai_timeout_seconds: int = Field(default=30, alias="OPENAI_TIMEOUT_SECONDS", ge=1)

    # -------------------------------------------------------------------------
    # Anthropic (Claude, fallback)
    # -------------------------------------------------------------------------
    anthropic_api_key: Optional[str] = Field(default=None, alias="ANTHROPIC_API_KEY")
    anthropic_model: str = Field(default="claude-sonnet-4-20250514", alias="ANTHROPIC_MODEL")
    anthropic_temperature: float = Field(default=0.2, alias="ANTHROPIC_TEMPERATURE", ge=0.0, le=1.0)
    anthropic_timeout_seconds: int = Field(default=30, alias="ANTHROPIC_TIMEOUT_SECONDS", ge=1)

    # -------------------------------------------------------------------------
    # Geocoder (Photon)
    # -------------------------------------------------------------------------
    geocoder_url: str = Field(default="https://photon.komoot.io/api/", alias="GEOCODER_URL")
    geocoder_timeout: int = Field(default=10, alias="GEOCODER_TIMEOUT", ge=1)
    enable_geocoder: bool = Field(
        default=True,
        alias="ENABLE_GEOCODER",
        description="Enable address validation against the geocoder",
    )
    geocode_cache_ttl_hours: int = Field(default=168, alias="GEOCODE_CACHE_TTL_HOURS", ge=1)

    # -------------------------------------------------------------------------
    # Address validation
    # -------------------------------------------------------------------------
    address_debounce_ms: int = Field(default=1000, alias="ADDRESS_DEBOUNCE_MS", ge=0)
    address_min_length: int = Field(default=4, alias="ADDRESS_MIN_LENGTH", ge=1)

    # -------------------------------------------------------------------------
    # Link preview (screenshot + title)
    # -------------------------------------------------------------------------
    preview_api_url: str = Field(default="https://api.microlink.io/", alias="PREVIEW_API_URL")
    preview_timeout: int = Field(default=15, alias="PREVIEW_TIMEOUT", ge=1)
    enable_link_preview: bool = Field(
        default=True,
        alias="ENABLE_LINK_PREVIEW",
        description="Enable the screenshot/title preview API",
    )
    mshots_host: str = Field(default="s0.wp.com", alias="MSHOTS_HOST")
    mshots_width: int = Field(default=1200, alias="MSHOTS_WIDTH", ge=1)
    preview_cache_ttl_hours: int = Field(default=24, alias="PREVIEW_CACHE_TTL_HOURS", ge=1)

    # -------------------------------------------------------------------------
    # External Service Settings
    # -------------------------------------------------------------------------
    external_max_retries: int = Field(default=2, alias="EXTERNAL_MAX_RETRIES", ge=1)

    # -------------------------------------------------------------------------
    # Application
    # -------------------------------------------------------------------------
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")
    log_format: str = Field(default="text", alias="LOG_FORMAT")  # "text" or "json"
    environment: str = Field(default="local", alias="ENVIRONMENT")
    api_host: str = Field(default="127.0.0.1", alias="API_HOST")
    api_port: int = Field(default=8000, alias="API_PORT", ge=1)
    allowed_origins: str = Field(default="*", alias="ALLOWED_ORIGINS")

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        """Ensure log level is valid."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        upper = v.upper()
        if upper not in valid_levels:
            raise ValueError(f"log_level must be one of {valid_levels}")
        return upper

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v: str) -> str:
        """Ensure log format is valid."""
        lower = v.lower()
        if lower not in {"text", "json"}:
            raise ValueError("log_format must be 'text' or 'json'")
        return lower

    @model_validator(mode="after")
    def resolve_database_url(self) -> "Settings":
        """Convert relative SQLite paths to absolute paths."""
        self.database_url = _resolve_database_url(self.database_url)
        return self

    # -------------------------------------------------------------------------
    # Helper Methods for Feature Detection
    # -------------------------------------------------------------------------

    @property
    def address_debounce_seconds(self) -> float:
        return self.address_debounce_ms / 1000.0

    def cors_origins(self) -> List[str]:
        """Split ALLOWED_ORIGINS into a list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]

    def is_geocoder_enabled(self) -> bool:
        """Check if the geocoder is enabled and has an endpoint."""
        return self.enable_geocoder and bool(self.geocoder_url)

    def is_link_preview_enabled(self) -> bool:
        """Check if the preview API is enabled and has an endpoint."""
        return self.enable_link_preview and bool(self.preview_api_url)

    def is_anthropic_enabled(self) -> bool:
        """Check if Anthropic/Claude is configured."""
        return bool(self.anthropic_api_key)

    def is_openai_enabled(self) -> bool:
        """Check if OpenAI is configured."""
        return bool(self.openai_api_key)

    def is_llm_enabled(self) -> bool:
        """Check if any LLM is configured (OpenAI or Anthropic)."""
        return self.is_openai_enabled() or self.is_anthropic_enabled()

    def get_enabled_services(self) -> list[str]:
        """Get list of enabled external services."""
        services = []
        if self.is_geocoder_enabled():
            services.append("geocoder")
        if self.is_link_preview_enabled():
            services.append("link_preview")
        if self.is_openai_enabled():
            services.append("openai")
        if self.is_anthropic_enabled():
            services.append("anthropic")
        return services


@lru_cache
def get_settings() -> Settings:
    """
    Get cached settings instance.

    Settings are loaded once and cached. To reload settings,
    call `get_settings.cache_clear()` first.

    Returns:
        Settings object with all configuration.
    """
    return Settings()


def reload_settings() -> Settings:
    """
    Clear settings cache and reload from environment.

    Useful for testing or after modifying .env file.
    """
    get_settings.cache_clear()
    return get_settings()
