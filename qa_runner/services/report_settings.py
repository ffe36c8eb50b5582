"""
Reporting settings loaded from a local, non-versioned file.

The file holds SMTP, email and Xray credentials as ``key=value`` lines;
blank lines and ``#`` comments are allowed. The ``key: value`` and
``key value`` forms of Java properties files are rejected with a
ConfigurationError.

A missing file is not an error: consumers only fail when they ask for a
required key that is not there.
"""

import logging
import re
from pathlib import Path
from types import MappingProxyType
from typing import List, Mapping, Optional, Union

from dotenv import dotenv_values

from qa_runner.utils.errors import ConfigurationError, StateInvalidError

logger = logging.getLogger(__name__)

SETTINGS_FILE = "reporting-settings.properties"

DEFAULT_PIPELINE_BASE_URL = "https://bitbucket.org/erp-qa/qa-automation-bot/pipelines/results/"
DEFAULT_XRAY_BASE_URL = "https://xray.cloud.getxray.app"
DEFAULT_XRAY_ISSUE_TYPE = "Test Execution"

_LIST_SEPARATORS = re.compile(r"[,;\s]+")
_TRUE_VALUES = {"true", "1", "yes", "on"}
# key=value, optionally prefixed with export; keys hold no whitespace or colon
_ENTRY = re.compile(r"^(?:export\s+)?[^\s=:#]+\s*=")


class ReportSettings:
    """Immutable view over the reporting settings file."""

    def __init__(self, values: Optional[Mapping[str, Optional[str]]] = None, source: Optional[str] = None):
        self._values = MappingProxyType(dict(values or {}))
        self.source = source or SETTINGS_FILE

    @classmethod
    def load(cls, path: Union[str, Path, None] = None) -> "ReportSettings":
        """
        Load settings from disk.

        Args:
            path: Settings file; defaults to reporting-settings.properties

        Returns:
            ReportSettings, empty when the file does not exist
        """
        settings_path = Path(path or SETTINGS_FILE)
        if not settings_path.is_file():
            logger.info(f"{settings_path} not found, reporting settings will be empty")
            return cls({}, str(settings_path))

        try:
            text = settings_path.read_text(encoding="utf-8")
            values = dotenv_values(settings_path, interpolate=False, encoding="utf-8")
        except (OSError, UnicodeDecodeError) as e:
            logger.error(f"Failed to read {settings_path}: {e}")
            raise StateInvalidError(f"Failed to read {settings_path}") from e

        cls._check_lines(text, settings_path)
        logger.info(f"Reporting settings loaded from {settings_path}")
        return cls(values, str(settings_path))

    @staticmethod
    def _check_lines(text: str, settings_path: Path) -> None:
        """Reject ``key: value`` and ``key value`` lines instead of dropping them."""
        for number, line in enumerate(text.splitlines(), start=1):
            stripped = line.strip()
            if not stripped or stripped.startswith("#"):
                continue
            if not _ENTRY.match(stripped):
                raise ConfigurationError(f"{settings_path}:{number}: expected a 'key=value' line")

    def __contains__(self, key: str) -> bool:
        return self.get(key) is not None

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        """Return the stripped value, treating blank values as absent."""
        value = self._values.get(key)
        if value is None or not value.strip():
            return default
        return value.strip()

    def get_required(self, key: str) -> str:
        value = self.get(key)
        if value is None:
            raise ConfigurationError(f"Missing required setting '{key}' in {self.source}")
        return value

    def get_bool(self, key: str, default: bool) -> bool:
        value = self.get(key)
        if value is None:
            return default
        return value.lower() in _TRUE_VALUES

    def get_int(self, key: str, default: int) -> int:
        value = self.get(key)
        if value is None:
            return default
        try:
            return int(value)
        except ValueError as e:
            raise ConfigurationError(f"Setting '{key}' must be numeric, got '{value}'") from e

    def get_list(self, key: str) -> List[str]:
        """Split a value on commas, semicolons or whitespace."""
        value = self.get(key)
        if value is None:
            return []
        return [item for item in _LIST_SEPARATORS.split(value) if item]

    @property
    def pipeline_base_url(self) -> str:
        return self.get("pipeline.baseUrl", DEFAULT_PIPELINE_BASE_URL)

    @property
    def xray_base_url(self) -> str:
        return self.get("xray.baseUrl", DEFAULT_XRAY_BASE_URL).rstrip("/")

    @property
    def xray_issue_type(self) -> str:
        return self.get("xray.issueType", DEFAULT_XRAY_ISSUE_TYPE)
