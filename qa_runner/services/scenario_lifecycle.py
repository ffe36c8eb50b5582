"""
Scenario lifecycle: everything that happens around one scenario.

NOT_STARTED -> RUNNING -> FINISHED. Entering acquires the thread's browser
session, binds the scenario into its context, builds the page cache,
creates the screenshot and download sandboxes and points browser downloads
at the sandbox. Finishing captures evidence for failed scenarios and
always releases everything, even when entering failed half-way.
"""

import logging
from pathlib import Path
from typing import Optional

from qa_runner.models.browser import BrowserSession
from qa_runner.models.scenario import ScenarioContext, ScenarioHandle, ScenarioState
from qa_runner.services.artifact_manager import (
    DEFAULT_DOWNLOAD_PATTERN,
    ArtifactManager,
    DownloadWatcher,
)
from qa_runner.services.browser_manager import BrowserManager
from qa_runner.services.page_registry import PageCache, PageRegistry
from qa_runner.utils.errors import StateInvalidError

logger = logging.getLogger(__name__)

FAILURE_EVIDENCE_LABEL = "Failure evidence"


class ScenarioLifecycle:
    """Per-scenario state, handed to steps through fixtures."""

    def __init__(
        self,
        browser_manager: BrowserManager,
        artifact_manager: ArtifactManager,
        registry: Optional[PageRegistry] = None,
        context: Optional[ScenarioContext] = None
    ):
        self.browser_manager = browser_manager
        self.artifact_manager = artifact_manager
        self.registry = registry
        self.context = context or ScenarioContext()
        self.state = ScenarioState.NOT_STARTED

        self.session: Optional[BrowserSession] = None
        self.pages: Optional[PageCache] = None
        self.screenshots_dir: Optional[Path] = None
        self.downloads_dir: Optional[Path] = None

    @property
    def scenario(self) -> Optional[ScenarioHandle]:
        return self.context.scenario

    def start(self, scenario: ScenarioHandle) -> "ScenarioLifecycle":
        """
        Run the entry actions.

        Raises:
            StateInvalidError: If the lifecycle was already started
            Whatever the browser manager raises when no session can be created
        """
        if self.state is not ScenarioState.NOT_STARTED:
            raise StateInvalidError(f"Scenario '{scenario.name}' cannot start from state {self.state.value}")
        self.state = ScenarioState.RUNNING

        self.session = self.browser_manager.get_session()
        self.context.scenario = scenario
        self.pages = PageCache(self.session, self.context, self.registry)

        folder = self.artifact_manager.folder_name(scenario.name)
        sandboxes = self.artifact_manager.create_scenario_sandboxes(folder)
        self.screenshots_dir = sandboxes.screenshots
        self.downloads_dir = sandboxes.downloads

        try:
            self._redirect_downloads(self.session, self.downloads_dir)
        except Exception as e:
            logger.error(f"Could not set the download folder through CDP: {e}")

        logger.info(f"Scenario started: {scenario.name}")
        return self

    def finish(self, failed: bool = False) -> None:
        """
        Run the exit actions; safe to call after a partial start and twice.
        """
        if self.state is ScenarioState.FINISHED:
            return

        scenario = self.context.scenario
        try:
            if failed:
                if scenario is not None:
                    scenario.failed = True
                self._capture_failure_evidence()
        finally:
            if scenario is not None:
                logger.info(f"Scenario finished: {scenario.name}")
            self.context.last_downloaded = None
            if self.pages is not None:
                self.pages.clear()
            self.pages = None
            self.screenshots_dir = None
            self.downloads_dir = None
            self.session = None
            self.state = ScenarioState.FINISHED
            self.browser_manager.quit_session()

    def screenshot(self, label: str) -> Optional[Path]:
        """Capture the page and attach it to the scenario."""
        if self.session is None or self.screenshots_dir is None:
            logger.warning(f"No active session, cannot capture '{label}'")
            return None
        path = self.artifact_manager.save_screenshot(self.session, self.screenshots_dir, label)
        if self.context.scenario is not None:
            self.context.scenario.attach(path, label)
        return path

    def download_watcher(self) -> DownloadWatcher:
        """Watch the scenario's download sandbox; create it before triggering the download."""
        if self.downloads_dir is None or not self.downloads_dir.is_dir():
            raise StateInvalidError("Download folder is not initialized for the current scenario")
        return DownloadWatcher(self.downloads_dir)

    def wait_for_download(
        self,
        watcher: DownloadWatcher,
        pattern: str = DEFAULT_DOWNLOAD_PATTERN,
        timeout: float = 50.0
    ) -> Path:
        """Wait for the watched download and remember it as the last downloaded file."""
        downloaded = watcher.wait_new_and_stamp(pattern, timeout=timeout)
        self.context.last_downloaded = downloaded
        return downloaded

    def _redirect_downloads(self, session: BrowserSession, directory: Path) -> bool:
        if not session.kind.supports_cdp:
            logger.warning(f"{session.kind.value} is not Chromium-based; download folder cannot be forced")
            return False
        cdp = session.new_cdp_session()
        cdp.send("Page.setDownloadBehavior", {
            "behavior": "allow",
            "downloadPath": str(Path(directory).resolve())
        })
        logger.info(f"Download folder set to {directory}")
        return True

    def _capture_failure_evidence(self) -> None:
        scenario = self.context.scenario
        if scenario is not None:
            logger.error(f"Scenario failed: {scenario.name}")
        try:
            self.screenshot(FAILURE_EVIDENCE_LABEL)
        except Exception:
            logger.exception("Could not capture failure evidence")

    def __enter__(self) -> "ScenarioLifecycle":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.finish(failed=exc is not None)
