"""Data models for the QA runner."""

from qa_runner.models.browser import BrowserKind, BrowserSession
from qa_runner.models.scenario import (
    Attachment,
    ScenarioContext,
    ScenarioHandle,
    ScenarioState,
)
from qa_runner.models.report import ExecutionReportMetadata, NOT_AVAILABLE

__all__ = [
    "BrowserKind",
    "BrowserSession",
    "Attachment",
    "ScenarioContext",
    "ScenarioHandle",
    "ScenarioState",
    "ExecutionReportMetadata",
    "NOT_AVAILABLE",
]
