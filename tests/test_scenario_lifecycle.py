"""Tests for the scenario lifecycle."""

from pathlib import Path

import pytest

from qa_runner.models.scenario import ScenarioHandle, ScenarioState
from qa_runner.services.artifact_manager import ArtifactManager
from qa_runner.services.browser_manager import BrowserManager
from qa_runner.services.page_registry import PageRegistry
from qa_runner.services.scenario_lifecycle import FAILURE_EVIDENCE_LABEL, ScenarioLifecycle
from qa_runner.pages.base import BasePage
from qa_runner.utils.errors import StateInvalidError


@pytest.fixture
def manager(fake_playwright, make_settings):
    return BrowserManager(make_settings(HEADLESS=True), playwright_factory=lambda: fake_playwright)


@pytest.fixture
def artifacts(tmp_path):
    return ArtifactManager(str(tmp_path / "target"))


@pytest.fixture
def registry():
    registry = PageRegistry()
    registry.register("home", BasePage)
    return registry


@pytest.fixture
def lifecycle(manager, artifacts, registry):
    return ScenarioLifecycle(manager, artifacts, registry)


class TestEntry:
    """Tests for the entry actions."""

    def test_start_binds_everything(self, lifecycle, tmp_path):
        """Starting should bind the session, scenario, pages and sandboxes."""
        handle = ScenarioHandle(name="Export invoices")

        lifecycle.start(handle)

        assert lifecycle.state is ScenarioState.RUNNING
        assert lifecycle.session is not None
        assert lifecycle.context.scenario is handle
        assert lifecycle.pages.get("home").session is lifecycle.session
        assert lifecycle.screenshots_dir.parent == tmp_path / "target" / "screenshots"
        assert lifecycle.downloads_dir.name.startswith("Export_invoices_")
        assert lifecycle.downloads_dir.is_dir()

    def test_start_redirects_downloads(self, lifecycle, fake_playwright):
        """Chromium sessions should get the download folder through CDP."""
        lifecycle.start(ScenarioHandle(name="Download"))

        cdp = fake_playwright.browsers[0].contexts[0].cdp_sessions[-1]
        method, params = cdp.sent[-1]
        assert method == "Page.setDownloadBehavior"
        assert params["behavior"] == "allow"
        assert params["downloadPath"] == str(Path(lifecycle.downloads_dir).resolve())

    def test_cdp_failure_is_ignored(self, lifecycle, fake_playwright):
        """A CDP error while redirecting downloads should not fail entry."""
        fake_playwright.cdp_fail = True

        lifecycle.start(ScenarioHandle(name="Download"))

        assert lifecycle.state is ScenarioState.RUNNING

    def test_firefox_keeps_default_downloads(self, fake_playwright, make_settings, artifacts):
        """Non-Chromium sessions should start without CDP."""
        manager = BrowserManager(make_settings(BROWSER="firefox", HEADLESS=True), lambda: fake_playwright)
        lifecycle = ScenarioLifecycle(manager, artifacts)

        lifecycle.start(ScenarioHandle(name="Firefox"))

        assert fake_playwright.browsers[0].contexts[0].cdp_sessions == []

    def test_cannot_start_twice(self, lifecycle):
        """A lifecycle should only be started once."""
        lifecycle.start(ScenarioHandle(name="Once"))

        with pytest.raises(StateInvalidError):
            lifecycle.start(ScenarioHandle(name="Twice"))


class TestExit:
    """Tests for the exit actions."""

    def test_finish_releases_everything(self, lifecycle, manager, tmp_path):
        """Finishing should clear the scenario state and quit the session."""
        lifecycle.start(ScenarioHandle(name="Release"))
        session = lifecycle.session
        lifecycle.context.last_downloaded = tmp_path / "file.xlsx"

        lifecycle.finish()

        assert lifecycle.state is ScenarioState.FINISHED
        assert lifecycle.context.last_downloaded is None
        assert lifecycle.pages is None
        assert lifecycle.screenshots_dir is None
        assert lifecycle.downloads_dir is None
        assert session.closed is True
        assert manager.current_session() is None

    def test_failed_scenario_gets_evidence(self, lifecycle):
        """A failed scenario should get a screenshot attached."""
        handle = ScenarioHandle(name="Broken")
        lifecycle.start(handle)
        screenshots_dir = lifecycle.screenshots_dir

        lifecycle.finish(failed=True)

        assert handle.failed is True
        assert len(handle.attachments) == 1
        assert handle.attachments[0].label == FAILURE_EVIDENCE_LABEL
        assert Path(handle.attachments[0].path).parent == screenshots_dir

    def test_evidence_failure_still_releases(self, lifecycle, manager):
        """A screenshot error should not prevent cleanup."""
        lifecycle.start(ScenarioHandle(name="Broken"))
        lifecycle.session.page.fail_screenshot = True

        lifecycle.finish(failed=True)

        assert manager.current_session() is None
        assert lifecycle.state is ScenarioState.FINISHED

    def test_finish_twice_is_harmless(self, lifecycle, fake_playwright):
        """Exit actions should be idempotent."""
        lifecycle.start(ScenarioHandle(name="Twice"))

        lifecycle.finish()
        lifecycle.finish()

        assert fake_playwright.stops == 1

    def test_finish_after_failed_start(self, fake_playwright, make_settings, artifacts):
        """Exit should run cleanly when the session could not be created."""
        fake_playwright.launch_error = RuntimeError("no browser")
        manager = BrowserManager(make_settings(), lambda: fake_playwright)
        lifecycle = ScenarioLifecycle(manager, artifacts)

        with pytest.raises(RuntimeError):
            lifecycle.start(ScenarioHandle(name="No browser"))
        lifecycle.finish(failed=True)

        assert lifecycle.state is ScenarioState.FINISHED

    def test_context_manager_marks_failure(self, lifecycle):
        """Leaving the with-block on an exception should mark the scenario failed."""
        handle = ScenarioHandle(name="With block")

        with pytest.raises(AssertionError):
            with lifecycle.start(handle):
                raise AssertionError("step failed")

        assert handle.failed is True


class TestIsolation:
    """Tests for scenario isolation."""

    def test_consecutive_scenarios_do_not_share_state(self, manager, artifacts, registry):
        """Each scenario should get its own session, context and folders."""
        first = ScenarioLifecycle(manager, artifacts, registry)
        first.start(ScenarioHandle(name="First"))
        first.context.set_value("order", 42)
        first_session, first_downloads = first.session, first.downloads_dir
        first.finish()

        second = ScenarioLifecycle(manager, artifacts, registry)
        second.start(ScenarioHandle(name="Second"))

        assert second.session is not first_session
        assert second.downloads_dir != first_downloads
        assert second.context.get_value("order") is None
        assert second.context.last_downloaded is None


class TestDownloads:
    """Tests for download tracking."""

    def test_watcher_requires_active_scenario(self, lifecycle):
        """Asking for a watcher before start should fail."""
        with pytest.raises(StateInvalidError):
            lifecycle.download_watcher()

    def test_wait_for_download_records_last_file(self, lifecycle, monkeypatch, tmp_path):
        """The detected download should become the last downloaded file."""
        lifecycle.start(ScenarioHandle(name="Download"))
        watcher = lifecycle.download_watcher()
        stamped = tmp_path / "report_20240101_000000.xlsx"
        monkeypatch.setattr(watcher, "wait_new_and_stamp", lambda pattern, timeout: stamped)

        assert lifecycle.wait_for_download(watcher) == stamped
        assert lifecycle.context.last_downloaded == stamped
