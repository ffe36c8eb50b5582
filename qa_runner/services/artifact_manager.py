"""
Artifact management for scenarios.

Handles the per-scenario screenshot and download sandboxes, screenshot
capture and detection of files downloaded by the browser.
"""

import logging
import re
import time
from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from qa_runner.models.browser import BrowserSession
from qa_runner.services.file_stability import wait_until_stable
from qa_runner.utils.config import get_settings
from qa_runner.utils.errors import FileNotStableError, StateInvalidError

logger = logging.getLogger(__name__)

_UNSAFE_CHARS = re.compile(r"[^a-zA-Z0-9]")
FOLDER_TIMESTAMP = "%Y%m%d%H%M%S"
DOWNLOAD_TIMESTAMP = "%Y%m%d_%H%M%S"
PARTIAL_DOWNLOAD_SUFFIXES = (".crdownload", ".part", ".download")
DEFAULT_DOWNLOAD_PATTERN = r".*\.(xlsx|xls|csv|zip)"


def sanitize(name: str) -> str:
    """Replace every non-alphanumeric character with an underscore."""
    return _UNSAFE_CHARS.sub("_", name)


@dataclass(frozen=True)
class ScenarioSandboxes:
    """Folders isolating one scenario's files from the others."""
    screenshots: Path
    downloads: Path


class ArtifactManager:
    """Manages scenario artifacts."""

    SCREENSHOTS_DIR = "screenshots"
    DOWNLOADS_DIR = "downloads"

    def __init__(self, base_path: Optional[str] = None):
        self.base_path = Path(base_path or get_settings().ARTIFACTS_PATH)

    @staticmethod
    def folder_name(scenario_name: str, now: Optional[datetime] = None) -> str:
        """Unique folder name: sanitized scenario name plus a timestamp."""
        stamp = (now or datetime.now()).strftime(FOLDER_TIMESTAMP)
        return f"{sanitize(scenario_name)}_{stamp}"

    def create_scenario_sandboxes(self, folder_name: str) -> ScenarioSandboxes:
        """Create the screenshot and download folders for a scenario."""
        sandboxes = ScenarioSandboxes(
            screenshots=self.base_path / self.SCREENSHOTS_DIR / folder_name,
            downloads=self.base_path / self.DOWNLOADS_DIR / folder_name
        )
        sandboxes.screenshots.mkdir(parents=True, exist_ok=True)
        sandboxes.downloads.mkdir(parents=True, exist_ok=True)

        logger.info(f"Created sandboxes for scenario folder {folder_name}")
        return sandboxes

    def save_screenshot(self, session: BrowserSession, folder: Path, label: str) -> Path:
        """
        Capture the current page into a scenario folder.

        Args:
            session: Browser session to capture
            folder: Screenshot sandbox of the scenario
            label: Description, also used to build the file name

        Returns:
            Path of the written PNG
        """
        file_name = f"{sanitize(label)}_{datetime.now().strftime(FOLDER_TIMESTAMP)}.png"
        destination = Path(folder) / file_name
        destination.parent.mkdir(parents=True, exist_ok=True)
        session.page.screenshot(path=str(destination), full_page=True)

        logger.info(f"Saved screenshot: {destination}")
        return destination


class DownloadWatcher:
    """
    Detects a file the browser downloads into a sandbox.

    Only files modified after the watcher was created count, so the
    watcher must be created before the action that triggers the download.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)
        self.marker = time.time()

    def wait_new_and_stamp(
        self,
        pattern: str = DEFAULT_DOWNLOAD_PATTERN,
        timeout: float = 50.0,
        poll: float = 0.25
    ) -> Path:
        """
        Wait for a new finished download and rename it with a timestamp.

        Returns:
            Path of the renamed file, ``<base>_YYYYmmdd_HHMMSS<ext>``

        Raises:
            StateInvalidError: If no new download shows up in time
        """
        matcher = re.compile(pattern)
        deadline = time.monotonic() + timeout

        while time.monotonic() < deadline:
            found = self._find_finished(matcher)
            if found is not None:
                return self._stamp(found)
            time.sleep(poll)

        raise StateInvalidError(f"No new download detected in {self.directory}")

    def _find_finished(self, matcher) -> Optional[Path]:
        for candidate in sorted(self.directory.iterdir()):
            if not candidate.is_file() or candidate.name.endswith(PARTIAL_DOWNLOAD_SUFFIXES):
                continue
            if not matcher.fullmatch(candidate.name):
                continue
            if candidate.stat().st_mtime < self.marker:
                continue
            try:
                wait_until_stable(candidate, timeout=2.0, poll=0.4)
            except FileNotStableError:
                continue
            return candidate
        return None

    def _stamp(self, path: Path) -> Path:
        stamped = path.with_name(f"{path.stem}_{datetime.now().strftime(DOWNLOAD_TIMESTAMP)}{path.suffix}")
        try:
            path.replace(stamped)
        except OSError as e:
            raise StateInvalidError(f"Could not rename download to {stamped.name}") from e
        logger.info(f"Download stored as {stamped}")
        return stamped
