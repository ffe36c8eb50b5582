"""Shared fakes and fixtures for the runner tests."""

from pathlib import Path
from typing import Any, Dict, List, Optional

import pytest

from qa_runner.services.report_settings import ReportSettings
from qa_runner.utils.config import Settings

pytest_plugins = ["pytester"]


class FakeCDPSession:
    """Records remote-debugging commands."""

    def __init__(self, fail: bool = False):
        self.sent: List[tuple] = []
        self.fail = fail

    def send(self, method: str, params: Optional[Dict[str, Any]] = None):
        if self.fail:
            raise RuntimeError(f"CDP failure on {method}")
        self.sent.append((method, params))
        if method == "Browser.getWindowForTarget":
            return {"windowId": 7, "bounds": {}}
        return {}


class FakePage:
    def __init__(self, viewport: Optional[Dict[str, int]] = None):
        self.viewport_size = viewport
        self.screenshots: List[str] = []
        self.visited: List[str] = []
        self.fail_screenshot = False

    def set_viewport_size(self, size: Dict[str, int]) -> None:
        self.viewport_size = dict(size)

    def screenshot(self, path: str, full_page: bool = False) -> bytes:
        if self.fail_screenshot:
            raise RuntimeError("screenshot failed")
        Path(path).write_bytes(b"\x89PNG fake")
        self.screenshots.append(path)
        return b""

    def goto(self, url: str) -> None:
        self.visited.append(url)


class FakeContext:
    def __init__(self, options: Dict[str, Any], cdp_fail: bool = False):
        self.options = options
        self.closed = False
        self.cdp_sessions: List[FakeCDPSession] = []
        self.cdp_fail = cdp_fail
        self.pages: List[FakePage] = []

    def new_page(self) -> FakePage:
        page = FakePage(self.options.get("viewport"))
        self.pages.append(page)
        return page

    def new_cdp_session(self, page) -> FakeCDPSession:
        session = FakeCDPSession(fail=self.cdp_fail)
        self.cdp_sessions.append(session)
        return session

    def close(self) -> None:
        self.closed = True


class FakeBrowser:
    def __init__(self, launch_options: Dict[str, Any], cdp_fail: bool = False):
        self.launch_options = launch_options
        self.contexts: List[FakeContext] = []
        self.closed = False
        self.cdp_fail = cdp_fail

    def new_context(self, **options) -> FakeContext:
        context = FakeContext(options, cdp_fail=self.cdp_fail)
        self.contexts.append(context)
        return context

    def close(self) -> None:
        self.closed = True


class FakeBrowserType:
    def __init__(self, name: str, owner: "FakePlaywright"):
        self.name = name
        self.owner = owner

    def launch(self, **options) -> FakeBrowser:
        if self.owner.launch_error is not None:
            raise self.owner.launch_error
        browser = FakeBrowser(options, cdp_fail=self.owner.cdp_fail)
        self.owner.browsers.append(browser)
        return browser


class FakePlaywright:
    """Stands in for the object returned by ``sync_playwright().start()``."""

    def __init__(self):
        self.browsers: List[FakeBrowser] = []
        self.starts = 0
        self.stops = 0
        self.launch_error: Optional[Exception] = None
        self.cdp_fail = False
        self.chromium = FakeBrowserType("chromium", self)
        self.firefox = FakeBrowserType("firefox", self)

    # sync_playwright() returns a context manager whose start() yields the driver
    def start(self) -> "FakePlaywright":
        self.starts += 1
        return self

    def stop(self) -> None:
        self.stops += 1


@pytest.fixture
def fake_playwright() -> FakePlaywright:
    return FakePlaywright()


@pytest.fixture
def make_settings(tmp_path):
    """Build Settings without reading the process environment or .env."""
    def _make(**overrides) -> Settings:
        values = {
            "BROWSER": "chrome",
            "HEADLESS": False,
            "CI": False,
            "ARTIFACTS_PATH": str(tmp_path / "target"),
            "REPORT_SETTINGS_FILE": str(tmp_path / "reporting-settings.properties"),
        }
        values.update(overrides)
        return Settings(_env_file=None, **values)
    return _make


@pytest.fixture
def xray_settings() -> ReportSettings:
    return ReportSettings({
        "xray.clientId": "client-id",
        "xray.clientSecret": "client-secret",
        "xray.projectKey": "QA",
    })


@pytest.fixture
def results_file(tmp_path) -> Path:
    path = tmp_path / "suite.json"
    path.write_text('[{"id": "feature", "elements": []}]', encoding="utf-8")
    return path


@pytest.fixture
def fake_page() -> FakePage:
    return FakePage()
