# session.py
import json
import logging
from typing import List, Optional, Set

from playwright.async_api import async_playwright, Browser, BrowserContext, Page

from .classifier import UrlClassifier
from .config import DiscoveryConfig
from .constants import BROWSER_ARGS, VIEWPORT
from .exceptions import BrowserError
from .interactions import VisitedElementSet
from .utils import absolutize, describe_error, extract_urls_from_json

logger = logging.getLogger(__name__)


class BrowserSession:
    """One Chromium browser, context and page for a single discovery attempt.

    Use as an async context manager; everything started in ``start`` is
    closed on exit, whether the attempt finished or failed.
    """

    def __init__(self, base_url: str, config: Optional[DiscoveryConfig] = None,
                 classifier: Optional[UrlClassifier] = None):
        self.base_url = base_url
        self.config = config or DiscoveryConfig()
        self.classifier = classifier or UrlClassifier(self.config.heuristics.classifier)
        self.playwright = None
        self.browser: Browser | None = None
        self.context: BrowserContext | None = None
        self.page: Page | None = None
        self.visited = VisitedElementSet()
        self.captured_urls: Set[str] = set()
        self.interactions: List[str] = []
        self.network_requests = 0

    async def __aenter__(self):
        try:
            await self.start()
        except BaseException:
            await self.close()
            raise
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.close()

    async def start(self):
        try:
            self.playwright = await async_playwright().start()
            self.browser = await self.playwright.chromium.launch(
                headless=self.config.headless,
                args=BROWSER_ARGS,
            )
            self.context = await self.browser.new_context(
                user_agent=self.config.user_agent,
                viewport=VIEWPORT,
                java_script_enabled=True,
            )
            self.page = await self.context.new_page()
        except Exception as e:
            raise BrowserError(f"Browser launch failed: {describe_error(e)}") from e

        self.page.on('request', self._on_request)
        self.page.on('response', self._on_response)
        self.page.on('framenavigated', self._on_frame_navigated)
        logger.debug(f"Browser session started for {self.base_url}")

    async def open(self, url: str) -> Page:
        try:
            await self.page.goto(url, wait_until='networkidle', timeout=self.config.interaction.network_timeout)
            # let lazy scripts initialize
            await self.page.wait_for_timeout(self.config.initial_settle_ms)
        except Exception as e:
            raise BrowserError(f"Navigation to {url} failed: {describe_error(e)}") from e
        return self.page

    async def close(self):
        for name in ('page', 'context', 'browser'):
            resource = getattr(self, name)
            if resource is None:
                continue
            try:
                await resource.close()
            except Exception as e:
                logger.debug(f"Closing {name} failed: {describe_error(e)}")
            setattr(self, name, None)

        if self.playwright is not None:
            try:
                await self.playwright.stop()
            except Exception as e:
                logger.debug(f"Stopping playwright failed: {describe_error(e)}")
            self.playwright = None

    def _capture(self, url: str, label: str):
        absolute = absolutize(url, self.base_url)
        if not absolute or absolute in self.captured_urls:
            return
        if not self.classifier.looks_like_article(absolute, self.base_url):
            return
        self.captured_urls.add(absolute)
        self.interactions.append(f"{label}: {absolute}")
        logger.debug(f"Captured {label.lower()}: {absolute}")

    def _on_request(self, request):
        self.network_requests += 1
        self._capture(request.url, 'Network request')

    async def _on_response(self, response):
        if response.status != 200:
            return
        self._capture(response.url, 'Response URL')

        if 'json' not in response.url:
            return
        try:
            text = await response.text()
            if not text.lstrip().startswith(('{', '[')):
                return
            data = json.loads(text)
        except Exception as e:
            logger.debug(f"Skipping JSON response {response.url}: {describe_error(e)}")
            return
        for candidate in extract_urls_from_json(data, self.config.heuristics.json_url_fields):
            absolute = absolutize(candidate, response.url)
            if absolute:
                self._capture(absolute, 'JSON URL')

    def _on_frame_navigated(self, frame):
        if self.page is not None and frame is self.page.main_frame:
            self._capture(frame.url, 'Frame navigation')
