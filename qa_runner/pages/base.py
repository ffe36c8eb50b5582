"""Base class for page façades."""

from qa_runner.models.browser import BrowserSession
from qa_runner.models.scenario import ScenarioContext


class BasePage:
    """
    Common wiring for screens registered with ``register_page``.

    Subclasses receive the scenario's browser session, its context and the
    page cache, so one screen can hand off to another through ``self.pages``.
    """

    def __init__(self, session: BrowserSession, context: ScenarioContext, pages):
        self.session = session
        self.context = context
        self.pages = pages

    @property
    def page(self):
        """The Playwright page driven by this façade."""
        return self.session.page

    def open(self, url: str) -> None:
        self.page.goto(url)
