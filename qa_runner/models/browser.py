"""Models describing browser sessions."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)


class BrowserKind(str, Enum):
    """Supported browser kinds."""
    CHROME = "chrome"
    EDGE = "edge"
    FIREFOX = "firefox"

    @classmethod
    def parse(cls, value: Optional[str]) -> "BrowserKind":
        """Parse a configured value, falling back to Chrome."""
        normalized = (value or "").strip().lower()
        for kind in cls:
            if kind.value == normalized:
                return kind
        if normalized:
            logger.warning(f"Unknown browser '{value}', falling back to {cls.CHROME.value}")
        return cls.CHROME

    @property
    def engine(self) -> str:
        """Playwright browser type attribute."""
        return "firefox" if self is BrowserKind.FIREFOX else "chromium"

    @property
    def channel(self) -> Optional[str]:
        return "msedge" if self is BrowserKind.EDGE else None

    @property
    def supports_cdp(self) -> bool:
        """Chromium-based kinds accept remote-debugging commands."""
        return self.engine == "chromium"


@dataclass
class BrowserSession:
    """A Playwright driver, browser, context and page owned by one thread."""

    kind: BrowserKind
    headless: bool
    playwright: Any
    browser: Any
    context: Any
    page: Any
    closed: bool = False

    @property
    def viewport_size(self) -> Optional[Dict[str, int]]:
        return self.page.viewport_size

    def new_cdp_session(self):
        """Open a remote-debugging session bound to the current page."""
        if not self.kind.supports_cdp:
            raise RuntimeError(f"{self.kind.value} does not expose remote-debugging commands")
        return self.context.new_cdp_session(self.page)

    def quit(self) -> None:
        """Close everything this session owns; calling it twice is harmless."""
        if self.closed:
            return
        self.closed = True
        for name, closer in (
            ("context", self.context.close),
            ("browser", self.browser.close),
            ("playwright", self.playwright.stop),
        ):
            try:
                closer()
            except Exception as e:
                logger.warning(f"Failed to close {name} of {self.kind.value} session: {e}")
