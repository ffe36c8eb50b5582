"""
Post-suite report publication.

Runs once, after every scenario has finished and the runner has written the
cucumber JSON. Xray goes first, then email; a failing channel is logged and
never stops the other one.
"""

import logging
import os
from pathlib import Path
from typing import Callable, Dict, Mapping, Optional

from pydantic import BaseModel, Field

from qa_runner.models.report import ExecutionReportMetadata
from qa_runner.services.email_sender import EmailReportSender
from qa_runner.services.report_settings import ReportSettings
from qa_runner.services.xray_uploader import XrayReportUploader
from qa_runner.utils.config import Settings

logger = logging.getLogger(__name__)

# Metadata variables that are also Settings fields
SETTINGS_BACKED_VARS = ("SUITE", "TEST_ENV", "BROWSER", "TEST_USER", "KEYCLIENT")


def metadata_environment(settings: Settings, environ: Optional[Mapping[str, str]] = None) -> Dict[str, str]:
    """
    Environment layer for the metadata, taken from the resolved settings.

    Variables backed by a Settings field come from the fields that were
    actually set (process environment, .env or command line). Other
    variables (CLIENTE, SPRINT, pipeline numbers) are read from the process
    environment.
    """
    environ = os.environ if environ is None else environ
    layer = {name: value for name, value in environ.items() if name not in SETTINGS_BACKED_VARS}
    for name in SETTINGS_BACKED_VARS:
        value = getattr(settings, name)
        if name in settings.model_fields_set and value is not None:
            layer[name] = str(value)
    return layer


class ChannelOutcome(BaseModel):
    """Result of one publication channel."""

    channel: str = Field(..., description="Channel name (xray or email)")
    succeeded: bool = Field(..., description="Whether the channel completed")
    error: Optional[str] = Field(None, description="Failure message when it did not")


class PublicationResult(BaseModel):
    """What finalize() did."""

    enabled: bool = Field(default=False, description="Whether any channel was enabled")
    metadata: Optional[ExecutionReportMetadata] = Field(None, description="Metadata used by the channels")
    channels: Dict[str, ChannelOutcome] = Field(default_factory=dict, description="Outcome per channel")

    @property
    def succeeded(self) -> bool:
        return self.enabled and all(outcome.succeeded for outcome in self.channels.values())

    def __bool__(self) -> bool:
        return self.enabled


class ReportPublisher:
    """Sequences the enabled report channels."""

    def __init__(
        self,
        settings: Settings,
        overrides: Optional[Mapping[str, Optional[str]]] = None,
        settings_loader: Callable[[str], ReportSettings] = ReportSettings.load,
        uploader_factory: Callable[[ReportSettings], XrayReportUploader] = XrayReportUploader,
        sender_factory: Callable[[ReportSettings], EmailReportSender] = EmailReportSender
    ):
        self.settings = settings
        self.overrides = dict(overrides or {})
        self._settings_loader = settings_loader
        self._uploader_factory = uploader_factory
        self._sender_factory = sender_factory

    def finalize(self, results_path: Optional[Path] = None) -> PublicationResult:
        """
        Publish the finished suite through the enabled channels.

        Args:
            results_path: Cucumber JSON to upload; derived from the suite
                name and the artifacts folder when omitted

        Returns:
            PublicationResult, falsy when no channel is enabled
        """
        if not self.settings.publication_enabled:
            logger.info("Report publication disabled (SEND_EMAIL_REPORT and SEND_XRAY_REPORT are false)")
            return PublicationResult(enabled=False)

        report_settings = self._settings_loader(self.settings.REPORT_SETTINGS_FILE)
        metadata = ExecutionReportMetadata.collect(
            report_settings,
            self.overrides,
            metadata_environment(self.settings)
        )
        result = PublicationResult(enabled=True, metadata=metadata)

        if self.settings.SEND_XRAY_REPORT:
            path = Path(results_path) if results_path else metadata.results_path(self.settings.artifacts_dir)
            result.channels["xray"] = self._run(
                "xray",
                lambda: self._uploader_factory(report_settings).upload(metadata, path)
            )

        if self.settings.SEND_EMAIL_REPORT:
            result.channels["email"] = self._run(
                "email",
                lambda: self._sender_factory(report_settings).send_execution_summary(metadata)
            )

        return result

    @staticmethod
    def _run(channel: str, action: Callable[[], object]) -> ChannelOutcome:
        try:
            action()
        except Exception as e:
            logger.exception(f"Error publishing the {channel} report")
            return ChannelOutcome(channel=channel, succeeded=False, error=str(e))
        return ChannelOutcome(channel=channel, succeeded=True)
