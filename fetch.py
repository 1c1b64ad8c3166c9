"""
ClassiCrawl Fetchers
Retrieve raw search result pages over HTTP or through a headless browser.
"""

import logging
import threading
import time
from typing import Optional

import requests
from playwright.sync_api import sync_playwright, Error as PlaywrightError

from config import HEADLESS, REQUEST_TIMEOUT, USER_AGENT
from errors import FetchError

logger = logging.getLogger(__name__)

CHUNK_SIZE = 8 * 1024


class FetchContext:
    """
    Deadline and cancellation signal for one or more fetches.

    The deadline starts counting when the context is created. Another
    thread may call cancel() to make in-flight and later fetches fail.
    """

    def __init__(self, timeout: Optional[float] = None,
                 cancel_event: Optional[threading.Event] = None):
        self.timeout = REQUEST_TIMEOUT if timeout is None else timeout
        self.deadline = time.monotonic() + self.timeout
        self.cancel_event = cancel_event or threading.Event()

    def cancel(self):
        self.cancel_event.set()

    @property
    def cancelled(self) -> bool:
        return self.cancel_event.is_set()

    def remaining(self) -> float:
        """Seconds left before the deadline (never negative)."""
        return max(0.0, self.deadline - time.monotonic())

    def check(self, url: str = ""):
        """Raise FetchError if the context was cancelled or its deadline passed."""
        if self.cancelled:
            raise FetchError("request cancelled", url)
        if self.remaining() <= 0:
            raise FetchError("deadline exceeded", url)


class HttpFetcher:
    """Fetch pages with a shared requests session."""

    def __init__(self, session: Optional[requests.Session] = None):
        # Reuse a session for keep-alive + connection pooling
        self.session = session or requests.Session()
        self.session.headers.setdefault("User-Agent", USER_AGENT)

    def fetch(self, url: str, ctx: Optional[FetchContext] = None) -> bytes:
        """
        Fetch a page body.

        The context is checked before the request and between body chunks.
        requests has no overall deadline, so the connect and read timeouts
        are each capped at the time left (and at REQUEST_TIMEOUT); a read
        already blocked on the socket only notices a cancel once it returns.

        Args:
            url: Page URL
            ctx: Optional deadline/cancellation context

        Returns:
            Raw response body

        Raises:
            FetchError: network failure, non-2xx response, cancellation or timeout
        """
        ctx = ctx or FetchContext()
        ctx.check(url)

        try:
            response = self.session.get(url, timeout=self._timeouts(ctx), stream=True)
        except requests.RequestException as e:
            raise FetchError(f"error sending request: {e}", url) from e

        try:
            if not response.ok:
                raise FetchError(
                    f"error fetching from url: {response.status_code} {response.reason}",
                    url,
                    response.status_code,
                )

            chunks = []
            for chunk in response.iter_content(chunk_size=CHUNK_SIZE):
                ctx.check(url)
                chunks.append(chunk)
        except requests.RequestException as e:
            raise FetchError(f"error reading response: {e}", url) from e
        finally:
            response.close()

        logger.debug(f"Fetched {url} ({sum(len(c) for c in chunks)} bytes)")
        return b"".join(chunks)

    @staticmethod
    def _timeouts(ctx: FetchContext):
        """(connect, read) timeouts for requests, bounded by the context deadline."""
        limit = min(REQUEST_TIMEOUT, ctx.remaining())
        return limit, limit

    def close(self):
        self.session.close()

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


class BrowserFetcher:
    """Fetch pages through headless Chromium (for sites that block plain requests)."""

    def __init__(self, playwright_instance=None, headless: bool = HEADLESS):
        """
        Args:
            playwright_instance: Optional shared Playwright instance
            headless: Run Chromium without a window
        """
        self._owns_playwright = playwright_instance is None
        self.playwright = playwright_instance
        self.headless = headless
        self.browser = None
        self.context = None
        self.page = None
        self._initialized = False

    def _initialize_browser(self):
        """Initialize Playwright browser."""
        if self._initialized:
            return

        logger.info("Initializing browser...")

        if self.playwright is None:
            self.playwright = sync_playwright().start()
            self._owns_playwright = True

        self.browser = self.playwright.chromium.launch(
            headless=self.headless,
            args=[
                "--disable-blink-features=AutomationControlled",
                "--disable-dev-shm-usage",
                "--no-sandbox",
            ],
        )

        self.context = self.browser.new_context(
            viewport={"width": 1920, "height": 1080},
            user_agent=USER_AGENT,
        )

        self.page = self.context.new_page()
        self._initialized = True
        logger.info("Browser initialized")

    def fetch(self, url: str, ctx: Optional[FetchContext] = None) -> bytes:
        """Load url in the browser and return the rendered markup."""
        ctx = ctx or FetchContext()
        ctx.check(url)

        if not self._initialized:
            self._initialize_browser()

        try:
            response = self.page.goto(
                url, wait_until="domcontentloaded",
                timeout=min(REQUEST_TIMEOUT, ctx.remaining()) * 1000,
            )
        except PlaywrightError as e:
            raise FetchError(f"error loading page: {e}", url) from e

        if response is None:
            raise FetchError("no response received", url)
        if not response.ok:
            raise FetchError(
                f"error fetching from url: {response.status} {response.status_text}",
                url,
                response.status,
            )

        ctx.check(url)
        return self.page.content().encode("utf-8")

    def close(self):
        """Close browser and clean up."""
        try:
            if self.context:
                self.context.close()
                self.context = None
            if self.browser:
                self.browser.close()
                self.browser = None
            if self._owns_playwright and self.playwright:
                self.playwright.stop()
                self.playwright = None
            self._initialized = False
            logger.info("Browser closed")
        except PlaywrightError as e:
            logger.error(f"Error closing browser: {e}")

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.close()


def create_fetcher(use_browser: bool = False):
    """Return the fetcher matching the configuration."""
    return BrowserFetcher() if use_browser else HttpFetcher()
