"""Utility modules for the QA runner."""

from qa_runner.utils.config import Settings, get_settings, resolve_settings
from qa_runner.utils.logging import setup_logging, redact_dict
from qa_runner.utils.errors import StateInvalidError, ConfigurationError, FileNotStableError

__all__ = [
    'Settings',
    'get_settings',
    'resolve_settings',
    'setup_logging',
    'redact_dict',
    'StateInvalidError',
    'ConfigurationError',
    'FileNotStableError',
]
