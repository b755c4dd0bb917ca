"""Thin page-automation layer: the only code that talks to the browser."""

from __future__ import annotations

import logging
from typing import Protocol

from bs4 import BeautifulSoup
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page, TimeoutError as PlaywrightTimeoutError, sync_playwright

from .config import BrowserConfig

LOGGER = logging.getLogger(__name__)


class NavigationError(RuntimeError):
    """Raised when a navigation or page interaction fails."""


class BrowserStartError(RuntimeError):
    """Raised when the browser cannot be launched."""


class PageElement(Protocol):
    def attribute(self, name: str) -> str: ...

    def text(self) -> str: ...

    def click(self) -> None: ...


class NavigablePage(Protocol):
    """Capability surface the crawl controller drives.

    Implementations fail fast: every method raises :class:`NavigationError`
    instead of retrying.
    """

    def navigate_to(self, url: str) -> None: ...

    def current_url(self) -> str: ...

    def current_markup(self) -> str: ...

    def find(self, selector: str) -> PageElement: ...

    def go_back(self) -> None: ...

    def wait_until_ready(self, selector: str, timeout: float) -> bool: ...


def count_listing_entries(markup: str, container_selector: str) -> int:
    """Return how many child elements the listing container holds in ``markup``."""

    soup = BeautifulSoup(markup, "html.parser")
    container = soup.select_one(container_selector)
    if container is None:
        return 0
    return len(container.find_all(recursive=False))


class PlaywrightElement:
    def __init__(self, page: Page, selector: str, timeout_ms: int) -> None:
        self._page = page
        self._selector = selector
        self._timeout_ms = timeout_ms

    def _locator(self):
        locator = self._page.locator(self._selector).first
        try:
            present = locator.count() > 0
        except PlaywrightError as exc:
            raise NavigationError(f"Invalid selector {self._selector!r}: {exc}") from exc
        if not present:
            raise NavigationError(f"No element matches {self._selector!r}")
        return locator

    def attribute(self, name: str) -> str:
        locator = self._locator()
        try:
            value = locator.get_attribute(name, timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to read {name!r} of {self._selector!r}: {exc}") from exc
        if value is None:
            raise NavigationError(f"Element {self._selector!r} has no {name!r} attribute")
        return value

    def text(self) -> str:
        locator = self._locator()
        try:
            return locator.inner_text(timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to read text of {self._selector!r}: {exc}") from exc

    def click(self) -> None:
        locator = self._locator()
        try:
            locator.click(timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to click {self._selector!r}: {exc}") from exc


class PlaywrightPage:
    """:class:`NavigablePage` backed by a Playwright sync ``Page``."""

    def __init__(self, page: Page, *, timeout: float = 30.0) -> None:
        self._page = page
        self._timeout_ms = int(timeout * 1000)

    def navigate_to(self, url: str) -> None:
        try:
            self._page.goto(url, wait_until="domcontentloaded", timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to navigate to {url}: {exc}") from exc

    def current_url(self) -> str:
        return self._page.url

    def current_markup(self) -> str:
        try:
            return self._page.content()
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to read page markup: {exc}") from exc

    def find(self, selector: str) -> PlaywrightElement:
        return PlaywrightElement(self._page, selector, self._timeout_ms)

    def go_back(self) -> None:
        try:
            self._page.go_back(wait_until="domcontentloaded", timeout=self._timeout_ms)
        except PlaywrightError as exc:
            raise NavigationError(f"Failed to navigate back: {exc}") from exc

    def wait_until_ready(self, selector: str, timeout: float) -> bool:
        try:
            self._page.wait_for_selector(selector, state="attached", timeout=int(timeout * 1000))
        except PlaywrightTimeoutError:
            LOGGER.debug("Timed out after %.1fs waiting for %s", timeout, selector)
            return False
        except PlaywrightError as exc:
            raise NavigationError(f"Failed waiting for {selector!r}: {exc}") from exc
        return True


class BrowserSession:
    """Launch headless Chromium and hand out a :class:`PlaywrightPage`."""

    def __init__(self, config: BrowserConfig | None = None) -> None:
        self._config = config or BrowserConfig()
        self._playwright_cm = None
        self._playwright = None
        self._browser = None
        self._context = None
        self.page: PlaywrightPage | None = None

    def __enter__(self) -> PlaywrightPage:
        try:
            self._playwright_cm = sync_playwright()
            self._playwright = self._playwright_cm.__enter__()
            self._browser = self._playwright.chromium.launch(
                headless=self._config.headless,
                args=self._config.launch_args(),
            )
            self._context = self._browser.new_context()
            if self._config.disable_images:
                self._context.route("**/*", _abort_images)
            raw_page = self._context.new_page()
        except PlaywrightError as exc:
            self.close()
            raise BrowserStartError(f"Failed to start browser: {exc}") from exc

        self.page = PlaywrightPage(raw_page, timeout=self._config.navigation_timeout)
        LOGGER.info("Browser started (headless=%s)", self._config.headless)
        return self.page

    def __exit__(self, exc_type, exc, tb) -> bool:
        self.close()
        return False

    def close(self) -> None:
        if self._context is not None:
            self._context.close()
        if self._browser is not None:
            self._browser.close()
        if self._playwright_cm is not None:
            self._playwright_cm.__exit__(None, None, None)

        self._context = None
        self._browser = None
        self._playwright = None
        self._playwright_cm = None
        self.page = None


def _abort_images(route) -> None:
    if route.request.resource_type == "image":
        route.abort()
    else:
        route.continue_()
