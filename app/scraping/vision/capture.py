"""
Headless browser capture of listing pages for vision extraction.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from app.scraping.errors import ExtractionError
from app.scraping.logging_utils import log_event

logger = logging.getLogger(__name__)

_COOKIE_BUTTON_SELECTORS = (
    "#onetrust-accept-btn-handler",
    "button[id*='accept']",
    "button:has-text('Accept')",
)


@dataclass(frozen=True)
class PageSnapshot:
    """
    Everything a vision extractor reads from one page load.
    """

    url: str
    screenshot_png: bytes
    text: str
    links: list[str] = field(default_factory=list)


class BasePageCapture(ABC):
    @abstractmethod
    def capture(self, url: str, *, timeout_ms: int) -> PageSnapshot:
        """
        Load ``url`` and return its screenshot, visible text and product links.
        """


class PlaywrightPageCapture(BasePageCapture):
    """
    Captures pages with a short-lived headless Chromium per call.
    """

    def __init__(
        self,
        *,
        user_agent: str,
        viewport_width: int = 1920,
        viewport_height: int = 1080,
        scroll_steps: int = 3,
    ) -> None:
        self._user_agent = user_agent
        self._viewport = {"width": viewport_width, "height": viewport_height}
        self._scroll_steps = scroll_steps

    def capture(self, url: str, *, timeout_ms: int) -> PageSnapshot:
        try:
            with sync_playwright() as playwright:
                browser = playwright.chromium.launch(headless=True)
                try:
                    context = browser.new_context(
                        user_agent=self._user_agent,
                        viewport=self._viewport,
                    )
                    page = context.new_page()
                    page.goto(url, wait_until="domcontentloaded", timeout=timeout_ms)
                    self._dismiss_cookie_banner(page)
                    for _ in range(self._scroll_steps):
                        page.mouse.wheel(0, self._viewport["height"])
                        page.wait_for_timeout(500)
                    page.evaluate("window.scrollTo(0, 0)")

                    screenshot = page.screenshot(full_page=False, type="png")
                    text = page.inner_text("body")
                    links = page.eval_on_selector_all(
                        "a[href]",
                        "elements => elements.map(element => element.href)",
                    )
                finally:
                    browser.close()
        except PlaywrightError as exc:
            raise ExtractionError(f"Browser capture failed for {url}: {exc}") from exc

        product_links = [link for link in links if isinstance(link, str) and link.startswith("http")]
        log_event(
            logger,
            logging.INFO,
            "page_captured",
            url=url,
            screenshot_bytes=len(screenshot),
            text_chars=len(text),
            links=len(product_links),
        )
        return PageSnapshot(url=url, screenshot_png=screenshot, text=text, links=product_links)

    @staticmethod
    def _dismiss_cookie_banner(page) -> None:
        for selector in _COOKIE_BUTTON_SELECTORS:
            try:
                button = page.locator(selector).first
                if button.is_visible(timeout=1000):
                    button.click(timeout=2000)
                    return
            except PlaywrightError:
                continue
