"""
Configuration settings for the QA runner.

All settings can be overridden via environment variables, and explicit
overrides (pytest command-line options) take priority over both.
"""

from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


HEADLESS_WIDTH = 2560
HEADLESS_HEIGHT = 1440

TRUE_VALUES = {"true", "1", "yes", "on"}
FALSE_VALUES = {"", "false", "0", "no", "off"}


class Settings(BaseSettings):
    """Execution settings with environment variable support."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
    )

    # Browser Configuration
    BROWSER: str = Field(default="chrome", description="Browser kind: chrome, edge or firefox")
    HEADLESS: Optional[str] = Field(default=None, description="Run the browser without a window (true/1/yes/on)")
    CI: Optional[str] = Field(default=None, description="Continuous-integration indicator, forces headless when present")
    HEADLESS_WIDTH: int = Field(default=HEADLESS_WIDTH, description="Headless window width")
    HEADLESS_HEIGHT: int = Field(default=HEADLESS_HEIGHT, description="Headless window height")

    # Target Environment
    TEST_ENV: str = Field(default="production.dev", description="Target environment name")
    APP_DOMAIN: str = Field(default="erp.example.com", description="Application domain")
    TEST_USER: Optional[str] = Field(default=None, description="Test user identity")
    TEST_USER_EMAIL: Optional[str] = Field(default=None, description="Test user login email")
    TEST_USER_PASSWORD: Optional[str] = Field(default=None, description="Test user password")
    KEYCLIENT: Optional[str] = Field(default=None, description="Client key to restore the test database with")

    # Suite and Reporting
    SUITE: str = Field(default="suite", description="Suite name, also names the results file")
    SEND_EMAIL_REPORT: bool = Field(default=False, description="Email a summary after the run")
    SEND_XRAY_REPORT: bool = Field(default=False, description="Upload results to Xray after the run")
    REPORT_SETTINGS_FILE: str = Field(
        default="reporting-settings.properties",
        description="Local, non-versioned reporting credentials file"
    )

    # Artifact Storage
    ARTIFACTS_PATH: str = Field(default="target", description="Root folder for run artifacts")

    # Logging
    LOG_LEVEL: str = Field(default="INFO", description="Log level")
    LOG_FORMAT: str = Field(default="text", description="Log format: json or text")

    @field_validator("HEADLESS", "CI", mode="before")
    @classmethod
    def _flag_to_text(cls, value: Any) -> Any:
        """Command-line switches arrive as booleans."""
        if isinstance(value, bool):
            return "true" if value else "false"
        return value

    @property
    def headless_enabled(self) -> bool:
        """
        Headless when asked for explicitly or when running under CI.

        Any CI value other than a false spelling (woodpecker, true, ...)
        counts as CI.
        """
        headless = (self.HEADLESS or "").strip().lower() in TRUE_VALUES
        ci = self.CI is not None and self.CI.strip().lower() not in FALSE_VALUES
        return headless or ci

    @property
    def publication_enabled(self) -> bool:
        return self.SEND_EMAIL_REPORT or self.SEND_XRAY_REPORT

    @property
    def artifacts_dir(self) -> Path:
        return Path(self.ARTIFACTS_PATH)


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Settings resolved from the environment only, loaded once."""
    return Settings()


def resolve_settings(overrides: Optional[Dict[str, Any]] = None) -> Settings:
    """
    Resolve settings once with explicit overrides on top.

    Args:
        overrides: Field name -> value; ``None`` values are ignored

    Returns:
        Frozen Settings instance
    """
    explicit = {k: v for k, v in (overrides or {}).items() if v is not None}
    if not explicit:
        return get_settings()
    return Settings(**explicit)


# Secret patterns for redaction
SECRET_PATTERNS = [
    r"password",
    r"secret",
    r"token",
    r"api[_-]?key",
    r"auth",
    r"credential",
    r"bearer",
    r"jwt",
]
