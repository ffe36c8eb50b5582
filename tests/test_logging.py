"""Tests for logging utilities."""

import json
import logging

from qa_runner.utils.logging import JSONFormatter, RedactingFilter, redact_dict, setup_logging


class TestRedactingFilter:
    """Tests for RedactingFilter."""

    def test_redacts_bearer_token(self):
        """Should redact Bearer tokens."""
        filter = RedactingFilter()
        result = filter._redact_string("Authorization: Bearer abc123xyz789")

        assert "abc123xyz789" not in result
        assert "[REDACTED]" in result

    def test_redacts_client_secret_in_key_value(self):
        """Should redact client secrets."""
        filter = RedactingFilter()
        result = filter._redact_string("client_secret=s3cr3tvalue")

        assert "s3cr3tvalue" not in result

    def test_redacts_smtp_password(self):
        """Should redact SMTP passwords."""
        filter = RedactingFilter()
        result = filter._redact_string("smtp.password: hunter2")

        assert "hunter2" not in result

    def test_preserves_non_sensitive_data(self):
        """Should preserve non-sensitive data."""
        filter = RedactingFilter()
        result = filter._redact_string("suite=Smoke, environment=staging")

        assert "Smoke" in result
        assert "staging" in result


class TestRedactDict:
    """Tests for redact_dict function."""

    def test_redacts_credentials_payload(self):
        """Should redact the Xray authentication payload."""
        result = redact_dict({"client_id": "abc", "client_secret": "xyz"})

        assert result["client_id"] == "abc"
        assert result["client_secret"] == "[REDACTED]"

    def test_redacts_nested_dict(self):
        """Should redact nested dictionaries."""
        result = redact_dict({"user": {"Email": "qa@example.com", "Password": "pw"}})

        assert result["user"]["Email"] == "qa@example.com"
        assert result["user"]["Password"] == "[REDACTED]"

    def test_redacts_in_list(self):
        """Should redact dicts inside lists."""
        result = redact_dict({"items": [{"token": "t"}, "plain"]})

        assert result["items"][0]["token"] == "[REDACTED]"
        assert result["items"][1] == "plain"


class TestJSONFormatter:
    """Tests for JSONFormatter."""

    def test_formats_as_json_with_extras(self):
        """Should emit JSON including extra fields and the thread name."""
        record = logging.LogRecord("qa", logging.INFO, __file__, 1, "hello", None, None)
        record.body = {"a": 1}

        data = json.loads(JSONFormatter().format(record))

        assert data["message"] == "hello"
        assert data["level"] == "INFO"
        assert data["body"] == {"a": 1}
        assert "thread" in data


class TestSetupLogging:
    """Tests for setup_logging."""

    def test_replaces_its_own_handler(self, make_settings):
        """Calling twice should not stack handlers."""
        settings = make_settings(LOG_FORMAT="json")
        root = logging.getLogger()

        first = setup_logging(settings)
        second = setup_logging(settings)
        try:
            assert first not in root.handlers
            assert second in root.handlers
            assert isinstance(second.formatter, JSONFormatter)
        finally:
            root.removeHandler(second)

    def test_leaves_unrelated_loggers_alone(self, make_settings):
        """Only the HTTP client logger is quietened."""
        asyncio_logger = logging.getLogger("asyncio")
        previous = asyncio_logger.level
        asyncio_logger.setLevel(logging.NOTSET)

        handler = setup_logging(make_settings())
        try:
            assert asyncio_logger.level == logging.NOTSET
            assert logging.getLogger("urllib3").level == logging.WARNING
        finally:
            logging.getLogger().removeHandler(handler)
            asyncio_logger.setLevel(previous)
