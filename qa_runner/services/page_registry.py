"""
Page object registry and per-scenario cache.

Screens register a factory under a key (a string or an Enum member); a
PageCache builds each façade lazily, once per scenario, from the active
browser session and scenario context.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Optional, Union

from qa_runner.models.browser import BrowserSession
from qa_runner.models.scenario import ScenarioContext

logger = logging.getLogger(__name__)

PageKey = Union[str, Enum]
PageFactory = Callable[[BrowserSession, ScenarioContext, "PageCache"], Any]


def _normalize(key: PageKey) -> str:
    if isinstance(key, Enum):
        return str(key.value)
    return key


class PageRegistry:
    """Maps screen identities to the factories that build their façades."""

    def __init__(self):
        self._factories: Dict[str, PageFactory] = {}

    def register(self, key: PageKey, factory: PageFactory, replace: bool = False) -> None:
        name = _normalize(key)
        if name in self._factories and not replace:
            raise ValueError(f"Page '{name}' is already registered")
        self._factories[name] = factory
        logger.debug(f"Registered page '{name}'")

    def page(self, key: PageKey) -> Callable[[PageFactory], PageFactory]:
        """Decorator form of register(), usable on page classes."""
        def decorator(factory: PageFactory) -> PageFactory:
            self.register(key, factory)
            return factory
        return decorator

    def factory_for(self, key: PageKey) -> PageFactory:
        name = _normalize(key)
        try:
            return self._factories[name]
        except KeyError:
            raise KeyError(f"No page registered under '{name}'") from None

    def __contains__(self, key: PageKey) -> bool:
        return _normalize(key) in self._factories

    def keys(self):
        return list(self._factories)


class PageCache:
    """Façades built for one scenario; discarded when the scenario ends."""

    def __init__(
        self,
        session: BrowserSession,
        context: ScenarioContext,
        registry: Optional[PageRegistry] = None
    ):
        self.session = session
        self.context = context
        self.registry = registry or default_registry
        self._pages: Dict[str, Any] = {}

    def get(self, key: PageKey) -> Any:
        name = _normalize(key)
        page = self._pages.get(name)
        if page is None:
            page = self.registry.factory_for(name)(self.session, self.context, self)
            self._pages[name] = page
        return page

    __getitem__ = get

    def __len__(self) -> int:
        return len(self._pages)

    def clear(self) -> None:
        self._pages.clear()


default_registry = PageRegistry()


def register_page(key: PageKey) -> Callable[[PageFactory], PageFactory]:
    """Register a page class or factory in the default registry."""
    return default_registry.page(key)
