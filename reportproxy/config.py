"""
Configuration Management for reportproxy

Uses Pydantic Settings for environment-based configuration with
sensible defaults for test runs and long-lived services alike.
"""

from pathlib import Path
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Configuration loaded from environment variables.

    Environment variables should be prefixed with REPORTPROXY_.
    Example: REPORTPROXY_REQUIRE_ACTIVE_REPORT=true
    """

    model_config = SettingsConfigDict(
        env_prefix="REPORTPROXY_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
    )

    # =========================================================================
    # General Settings
    # =========================================================================

    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(
        default="INFO",
        description="Logging level for the library"
    )

    log_format: Literal["console", "json"] = Field(
        default="console",
        description="Renderer used for structured log output"
    )

    # =========================================================================
    # Interception Settings
    # =========================================================================

    require_active_report: bool = Field(
        default=False,
        description="Raise instead of forwarding unreported when no report is active"
    )

    normalize_arguments: bool = Field(
        default=True,
        description="Bind reported arguments to the declared member signature"
    )

    exclusions_file: Path | None = Field(
        default=None,
        description="YAML file listing members that must never be reported"
    )

    @property
    def effective_log_level(self) -> str:
        """Log level after applying debug mode."""
        return "DEBUG" if self.debug else self.log_level


# Global settings instance - lazy loaded
_settings: Settings | None = None


def get_settings() -> Settings:
    """
    Get the settings instance.

    Uses lazy loading to defer configuration parsing until first use.
    This allows environment variables and .env files to be set up
    before the settings are accessed.

    Returns:
        Settings: The library configuration.
    """
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reset_settings() -> None:
    """
    Reset the settings instance.

    Useful for testing or when environment variables change.
    """
    global _settings
    _settings = None
