"""Browser manager owning one Playwright session per worker thread."""

import logging
import threading
from typing import Any, Callable, Dict, List, Optional

from playwright.sync_api import sync_playwright

from qa_runner.models.browser import BrowserKind, BrowserSession
from qa_runner.utils.config import Settings, get_settings

logger = logging.getLogger(__name__)

INSECURE_CERT_ARGS = ["--ignore-certificate-errors", "--allow-insecure-localhost"]
HEADLESS_ARGS = ["--no-sandbox", "--disable-dev-shm-usage", "--disable-gpu"]


class BrowserManager:
    """
    Creates and owns browser sessions, one per thread.

    Playwright's sync API is bound to the thread that started it, so each
    worker thread gets its own driver, browser, context and page.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        playwright_factory: Optional[Callable[[], Any]] = None
    ):
        self.settings = settings or get_settings()
        self._playwright_factory = playwright_factory or sync_playwright
        self._local = threading.local()

    def get_session(self) -> BrowserSession:
        """
        Get the current thread's session, creating it on first demand.

        Raises:
            Whatever Playwright raises when the browser cannot be launched
        """
        session = self.current_session()
        if session is None:
            session = self._create_session()
            self._local.session = session
        return session

    def current_session(self) -> Optional[BrowserSession]:
        return getattr(self._local, "session", None)

    def quit_session(self) -> None:
        """Close the current thread's session and empty its slot."""
        session = self.current_session()
        if session is None:
            return
        self._local.session = None
        session.quit()
        logger.info(f"Closed {session.kind.value} session")

    def _create_session(self) -> BrowserSession:
        kind = BrowserKind.parse(self.settings.BROWSER)
        headless = self.settings.headless_enabled
        width, height = self.settings.HEADLESS_WIDTH, self.settings.HEADLESS_HEIGHT

        playwright = self._playwright_factory().start()
        try:
            browser_type = getattr(playwright, kind.engine)
            browser = browser_type.launch(**self._launch_options(kind, headless))
            context = browser.new_context(**self._context_options(headless))
            page = context.new_page()
        except Exception:
            playwright.stop()
            raise

        session = BrowserSession(
            kind=kind,
            headless=headless,
            playwright=playwright,
            browser=browser,
            context=context,
            page=page
        )

        if headless:
            logger.info(f"Browser: {kind.value} | Mode: headless | Resolution: {width}x{height}")
            self._resize(session, width, height)
        else:
            logger.info(f"Browser: {kind.value} | Mode: graphical (maximized)")
            self._maximize(session)

        return session

    def _launch_options(self, kind: BrowserKind, headless: bool) -> Dict[str, Any]:
        args: List[str] = []
        if kind.supports_cdp:
            args.extend(INSECURE_CERT_ARGS)
            if headless:
                args.extend(HEADLESS_ARGS)
                args.append(f"--window-size={self.settings.HEADLESS_WIDTH},{self.settings.HEADLESS_HEIGHT}")
            else:
                args.append("--start-maximized")

        options: Dict[str, Any] = {"headless": headless, "args": args}
        if kind.channel:
            options["channel"] = kind.channel
        return options

    def _context_options(self, headless: bool) -> Dict[str, Any]:
        options: Dict[str, Any] = {
            "ignore_https_errors": True,
            "accept_downloads": True,
        }
        if headless:
            size = {"width": self.settings.HEADLESS_WIDTH, "height": self.settings.HEADLESS_HEIGHT}
            options["viewport"] = size
            options["screen"] = dict(size)
        else:
            options["no_viewport"] = True
        return options

    def _resize(self, session: BrowserSession, width: int, height: int) -> None:
        try:
            session.page.set_viewport_size({"width": width, "height": height})
            logger.info(f"Window size set to {width}x{height} in headless mode")
        except Exception as e:
            logger.warning(f"Could not resize the headless window: {e}")

    def _maximize(self, session: BrowserSession) -> None:
        if not session.kind.supports_cdp:
            logger.warning(f"{session.kind.value} cannot be maximized explicitly, relying on launch options")
            return
        try:
            cdp = session.new_cdp_session()
            window = cdp.send("Browser.getWindowForTarget")
            cdp.send("Browser.setWindowBounds", {
                "windowId": window["windowId"],
                "bounds": {"windowState": "maximized"}
            })
        except Exception as e:
            logger.warning(f"Could not maximize the browser window: {e}")
