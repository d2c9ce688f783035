"""Configuration management for the rule builder.

This module uses Pydantic Settings to load and validate configuration from
environment variables and .env files. Settings are loaded once per process
and are immutable afterwards; editor-level configuration (operators, types,
functions) lives in ``rulebuilder.core.tree.catalog``.
"""

from functools import lru_cache
from typing import Literal

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application configuration settings.

    Settings are loaded from environment variables and .env files.
    All configuration values are validated at startup.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="RULEBUILDER_",
        case_sensitive=False,
        extra="ignore",
    )

    # Application Settings
    app_name: str = "RuleBuilder"
    app_version: str = "0.1.0"
    environment: Literal["development", "production", "testing"] = "development"

    # Rule Service Settings
    api_base_url: str = "http://localhost:8080/api/v1"
    http_timeout_seconds: float = 10.0

    # Editor Defaults
    default_field: str = "TABLE1.NUMBER_FIELD_01"
    default_return_type: str = "number"
    numeric_operators: list[str] = Field(default=["+", "-", "*", "/"])
    allowed_rule_types: list[str] = Field(default_factory=list)
    consistency_cache_size: int = 256

    # Logging Settings
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "INFO"
    log_format: Literal["json", "console"] = "json"

    @field_validator("numeric_operators", "allowed_rule_types", mode="before")
    @classmethod
    def parse_comma_separated(cls, v: str | list[str]) -> list[str]:
        """Parse list settings from a comma-separated string or list."""
        if isinstance(v, str):
            return [item.strip() for item in v.split(",") if item.strip()]
        return v

    @field_validator("api_base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Normalize the service root so paths can be appended."""
        return v.rstrip("/")

    @property
    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "production"

    @property
    def is_development(self) -> bool:
        """Check if running in development environment."""
        return self.environment == "development"

    @property
    def is_testing(self) -> bool:
        """Check if running in testing environment."""
        return self.environment == "testing"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance.

    Returns:
        Settings: Cached application settings instance.
    """
    return Settings()
