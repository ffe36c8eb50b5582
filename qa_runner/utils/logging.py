"""
Logging configuration with secret redaction.

Ensures credentials exchanged with Xray, SMTP or the application API never
end up in the run logs.
"""

import re
import logging
import json
from typing import Any, Dict, Optional
from datetime import datetime, timezone

from qa_runner.utils.config import SECRET_PATTERNS, Settings


class RedactingFilter(logging.Filter):
    """Filter that redacts sensitive information from log records."""

    REDACTION_PATTERNS = [
        re.compile(pattern, re.IGNORECASE) for pattern in SECRET_PATTERNS
    ]

    # Common secret value patterns
    VALUE_PATTERNS = [
        re.compile(r'Bearer\s+[A-Za-z0-9\-_\.]+', re.IGNORECASE),
        re.compile(r'Basic\s+[A-Za-z0-9\+/=]+', re.IGNORECASE),
        re.compile(r'eyJ[A-Za-z0-9\-_]+\.eyJ[A-Za-z0-9\-_]+'),  # JWTs
    ]

    REDACTED = "[REDACTED]"

    def filter(self, record: logging.LogRecord) -> bool:
        """Redact sensitive data from log record."""
        if hasattr(record, 'msg'):
            record.msg = self._redact_string(str(record.msg))

        if hasattr(record, 'args') and record.args:
            record.args = tuple(
                self._redact_string(str(arg)) if isinstance(arg, str) else arg
                for arg in record.args
            )

        return True

    def _redact_string(self, text: str) -> str:
        """Redact sensitive patterns from a string."""
        result = text

        for pattern in self.VALUE_PATTERNS:
            result = pattern.sub(self.REDACTED, result)

        # key=value or key: value with a sensitive key
        for pattern in self.REDACTION_PATTERNS:
            result = re.sub(
                rf'({pattern.pattern})\s*[=:]\s*["\']?([^"\'\s,}}]+)["\']?',
                rf'\1={self.REDACTED}',
                result,
                flags=re.IGNORECASE
            )

        return result


class JSONFormatter(logging.Formatter):
    """JSON log formatter for structured logging."""

    STANDARD_ATTRS = {
        'name', 'msg', 'args', 'created', 'filename', 'funcName',
        'levelname', 'levelno', 'lineno', 'module', 'msecs',
        'pathname', 'process', 'processName', 'relativeCreated',
        'stack_info', 'exc_info', 'exc_text', 'thread', 'threadName',
        'taskName', 'message'
    }

    def __init__(self):
        super().__init__()
        self.redacting_filter = RedactingFilter()

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON."""
        self.redacting_filter.filter(record)

        log_data = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
            "thread": record.threadName,
            "module": record.module,
            "function": record.funcName,
            "line": record.lineno,
        }

        if record.exc_info:
            log_data["exception"] = self.formatException(record.exc_info)

        for key, value in record.__dict__.items():
            if key not in self.STANDARD_ATTRS:
                log_data[key] = value

        return json.dumps(log_data, default=str)


_HANDLER_NAME = "qa_runner"


def setup_logging(settings: Optional[Settings] = None) -> logging.Handler:
    """
    Configure runner logging.

    Installs a single handler on the root logger; calling it again replaces
    the handler instead of stacking a new one.
    """
    if settings is None:
        from qa_runner.utils.config import get_settings
        settings = get_settings()

    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO))

    for existing in list(root_logger.handlers):
        if existing.get_name() == _HANDLER_NAME:
            root_logger.removeHandler(existing)

    handler = logging.StreamHandler()
    handler.set_name(_HANDLER_NAME)

    if settings.LOG_FORMAT.lower() == "json":
        handler.setFormatter(JSONFormatter())
    else:
        handler.setFormatter(logging.Formatter(
            "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
        ))

    handler.addFilter(RedactingFilter())
    root_logger.addHandler(handler)

    # Reduce noise from third-party libraries
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    return handler


def redact_dict(data: Dict[str, Any], keys_to_redact: list = None) -> Dict[str, Any]:
    """Redact sensitive keys from a dictionary."""
    if keys_to_redact is None:
        keys_to_redact = SECRET_PATTERNS

    redacted = {}
    for key, value in data.items():
        should_redact = any(
            re.search(pattern, key, re.IGNORECASE)
            for pattern in keys_to_redact
        )

        if should_redact:
            redacted[key] = "[REDACTED]"
        elif isinstance(value, dict):
            redacted[key] = redact_dict(value, keys_to_redact)
        elif isinstance(value, list):
            redacted[key] = [
                redact_dict(item, keys_to_redact) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            redacted[key] = value

    return redacted
