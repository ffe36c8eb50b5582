"""Email channel: plaintext suite summary over authenticated SMTP."""

import logging
import smtplib
import ssl
from email.message import EmailMessage
from typing import Callable, List, Optional

from qa_runner.models.report import ExecutionReportMetadata
from qa_runner.services.report_settings import ReportSettings
from qa_runner.utils.errors import ConfigurationError, StateInvalidError

logger = logging.getLogger(__name__)

DEFAULT_SMTP_PORT = 587
DEFAULT_TIMEOUT_MS = 10000


class EmailReportSender:
    """Sends the execution summary by email."""

    def __init__(
        self,
        settings: ReportSettings,
        smtp_factory: Callable[..., smtplib.SMTP] = smtplib.SMTP
    ):
        self.settings = settings
        self._smtp_factory = smtp_factory

    def send_execution_summary(self, metadata: ExecutionReportMetadata) -> EmailMessage:
        """
        Compose and send the summary.

        Returns:
            The message that was sent

        Raises:
            ConfigurationError: If recipients, sender, host or password are missing
            StateInvalidError: If the SMTP exchange fails
        """
        to_recipients = self.settings.get_list("email.to")
        if not to_recipients:
            raise ConfigurationError("At least one recipient must be configured in email.to")

        message = self.build_message(metadata, to_recipients)

        host = self.settings.get_required("smtp.host")
        port = self.settings.get_int("smtp.port", DEFAULT_SMTP_PORT)
        auth_enabled = self.settings.get_bool("smtp.auth", True)
        starttls_enabled = self.settings.get_bool("smtp.starttls", True)
        connect_timeout = self.settings.get_int("smtp.connectionTimeout", DEFAULT_TIMEOUT_MS) / 1000
        read_timeout = self.settings.get_int("smtp.timeout", DEFAULT_TIMEOUT_MS) / 1000

        username: Optional[str] = None
        password: Optional[str] = None
        if auth_enabled:
            username = self.settings.get("smtp.username") or self.settings.get_required("email.from")
            password = self.settings.get_required("smtp.password")

        recipients = to_recipients + self.settings.get_list("email.cc") + self.settings.get_list("email.bcc")

        logger.info(f"Sending suite summary through {host}:{port} to {len(recipients)} recipient(s)")
        try:
            with self._smtp_factory(host, port, timeout=connect_timeout) as server:
                if server.sock is not None:
                    server.sock.settimeout(read_timeout)
                if starttls_enabled:
                    server.starttls(context=ssl.create_default_context())
                if auth_enabled:
                    server.login(username, password)
                server.send_message(message, to_addrs=recipients)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send the suite summary email: {e}")
            raise StateInvalidError("Failed to send the suite summary email") from e

        logger.info(f"Summary email for suite '{metadata.suite}' sent")
        return message

    def build_message(self, metadata: ExecutionReportMetadata, to_recipients: List[str]) -> EmailMessage:
        message = EmailMessage()
        message["From"] = self.settings.get_required("email.from")
        message["To"] = ", ".join(to_recipients)
        cc = self.settings.get_list("email.cc")
        if cc:
            message["Cc"] = ", ".join(cc)
        message["Subject"] = metadata.build_email_subject()
        message.set_content(metadata.build_email_body())
        return message
