"""Services for the QA runner."""

from qa_runner.services.artifact_manager import ArtifactManager, DownloadWatcher
from qa_runner.services.browser_manager import BrowserManager
from qa_runner.services.email_sender import EmailReportSender
from qa_runner.services.environment import EnvironmentUrls, recover_test_db
from qa_runner.services.page_registry import PageCache, PageRegistry, register_page
from qa_runner.services.report_publisher import PublicationResult, ReportPublisher
from qa_runner.services.report_settings import ReportSettings
from qa_runner.services.scenario_lifecycle import ScenarioLifecycle
from qa_runner.services.xray_uploader import XrayReportUploader

__all__ = [
    "ArtifactManager",
    "DownloadWatcher",
    "BrowserManager",
    "EmailReportSender",
    "EnvironmentUrls",
    "recover_test_db",
    "PageCache",
    "PageRegistry",
    "register_page",
    "PublicationResult",
    "ReportPublisher",
    "ReportSettings",
    "ScenarioLifecycle",
    "XrayReportUploader",
]
