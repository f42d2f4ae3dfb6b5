"""
Adaptive link discovery.

A quick HTTP probe decides whether a site renders its content client side.
Static sites are harvested over plain HTTP (page links, JSON-LD, feeds and
sitemaps); only when that yields too little, or the site is JS-heavy, is a
headless browser session opened to click, scroll, read frames and, if a login
wall is in the way, try the configured test credentials.
"""
import asyncio
import time
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable, List, Optional, Set

from .auth import AuthEngine
from .classifier import UrlClassifier
from .config import DiscoveryConfig
from .constants import DEFAULT_DESIRED_LINKS
from .exceptions import BrowserError
from .fetcher import HttpFetcher
from .frames import FrameHarvester
from .harvester import PageUrlHarvester, StaticHarvester
from .interactions import InteractionEngine
from .models import DiscoveryResult
from .prober import JsHeavinessProber
from .scroll import ScrollController
from .session import BrowserSession
from .utils import describe_error

logger = logging.getLogger(__name__)


@dataclass
class _Attempt:
    urls: Set[str] = field(default_factory=set)
    interactions: List[str] = field(default_factory=list)
    js_heavy: bool = False
    score: int = 0


class SmartLinkDiscoverer:
    def __init__(self, config: Optional[DiscoveryConfig] = None,
                 prober: Optional[JsHeavinessProber] = None,
                 static_harvester: Optional[StaticHarvester] = None,
                 session_factory: Optional[Callable[[str], BrowserSession]] = None,
                 interaction_engine: Optional[InteractionEngine] = None,
                 scroll_controller: Optional[ScrollController] = None,
                 frame_harvester: Optional[FrameHarvester] = None,
                 auth_engine: Optional[AuthEngine] = None,
                 page_harvester: Optional[PageUrlHarvester] = None):
        self.config = config or DiscoveryConfig()
        heuristics = self.config.heuristics

        self.classifier = UrlClassifier(heuristics.classifier)
        self.fetcher = HttpFetcher(self.config.user_agent, self.config.fetch_timeout)
        self.page_harvester = page_harvester or PageUrlHarvester(self.classifier, heuristics.jsonld_url_fields)

        self.prober = prober or JsHeavinessProber(self.fetcher, heuristics.probe, self.config.probe_timeout)
        self.static_harvester = static_harvester or StaticHarvester(self.config, self.fetcher, self.classifier)
        self.session_factory = session_factory or self._new_session
        self.interaction_engine = interaction_engine or InteractionEngine(
            self.config.interaction, self.page_harvester, self.classifier, heuristics.selectors)
        self.scroll_controller = scroll_controller or ScrollController(
            self.page_harvester, self.classifier, self.config.max_scroll_attempts, self.config.scroll_settle_ms)
        self.frame_harvester = frame_harvester or FrameHarvester(self.page_harvester, self.classifier)
        self.auth_engine = auth_engine or AuthEngine(self.config.auth, heuristics.login)

        self.semaphore = asyncio.Semaphore(self.config.max_concurrent_sessions)

    def _new_session(self, url: str) -> BrowserSession:
        return BrowserSession(url, self.config, self.classifier)

    async def discover(self, url: str, desired_link_count: int = DEFAULT_DESIRED_LINKS) -> DiscoveryResult:
        started = time.monotonic()
        max_attempts = max(1, self.config.max_attempts)
        best: Optional[_Attempt] = None
        retry_notes: List[str] = []

        for attempt in range(1, max_attempts + 1):
            try:
                outcome = await self._attempt(url, desired_link_count)
            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.warning(f"Discovery attempt {attempt}/{max_attempts} for {url} failed: {describe_error(e)}")
                outcome = _Attempt(interactions=[f"Attempt {attempt} failed: {describe_error(e)}"])

            if best is None or len(outcome.urls) > len(best.urls):
                if best is not None:
                    retry_notes.extend(best.interactions)
                best = outcome
            else:
                retry_notes.extend(outcome.interactions)

            if len(outcome.urls) >= self.config.min_success_urls:
                break
            if attempt < max_attempts:
                delay_ms = self.config.retry_backoff_ms * 2 ** (attempt - 1)
                retry_notes.append(f"Attempt {attempt} found {len(outcome.urls)} URLs, retrying in {delay_ms}ms")
                await asyncio.sleep(delay_ms / 1000)

        success = len(best.urls) >= self.config.min_success_urls
        duration_ms = int((time.monotonic() - started) * 1000)
        log = logger.info if success else logger.warning
        log(f"Discovery for {url}: {len(best.urls)} URLs, success={success}, {duration_ms}ms")

        return DiscoveryResult(
            urls=set(best.urls),
            interactions=best.interactions + retry_notes,
            success=success,
            duration_ms=duration_ms,
            js_heavy=best.js_heavy,
            score=best.score,
        )

    async def discover_many(self, urls: Iterable[str],
                            desired_link_count: int = DEFAULT_DESIRED_LINKS) -> List[DiscoveryResult]:
        return await asyncio.gather(*(self.discover(url, desired_link_count) for url in urls))

    async def _attempt(self, url: str, desired_link_count: int) -> _Attempt:
        probe = await asyncio.to_thread(self.prober.probe, url)
        attempt = _Attempt(js_heavy=probe.is_heavy, score=probe.score)

        if probe.is_heavy:
            logger.info(f"{url} looks JS-heavy (score {probe.score}), going straight to the browser")
            attempt.interactions.append(
                f"BrowserPath: JS-heavy site (score {probe.score}), launching browser session")
        else:
            cheap = await asyncio.to_thread(self.static_harvester.collect, url)
            attempt.urls.update(cheap.urls)
            attempt.interactions.append(f"CheapPath: static extraction found {len(cheap.urls)} URLs")
            attempt.interactions.extend(cheap.interactions)
            if len(cheap.urls) >= desired_link_count:
                logger.info(f"Cheap methods found {len(cheap.urls)} URLs for {url}, no browser needed")
                return attempt
            attempt.interactions.append(
                f"BrowserPath: escalating, cheap yield {len(cheap.urls)} < {desired_link_count}")

        try:
            attempt.urls.update(await self._browser_path(url, attempt.interactions))
        except BrowserError as e:
            # cheap URLs already found still count for this attempt
            attempt.interactions.append(f"BrowserPath failed: {e}")
            logger.warning(f"Browser session for {url} failed: {e}")
        return attempt

    async def _browser_path(self, url: str, trace: List[str]) -> Set[str]:
        urls: Set[str] = set()

        async with self.semaphore:
            async with self.session_factory(url) as session:
                page = await session.open(url)

                interaction = await self.interaction_engine.click_interactive_elements(page, url, session.visited)
                urls.update(interaction.urls)
                trace.extend(interaction.interactions)

                scroll = await self.scroll_controller.scroll_for_more(page, url)
                urls.update(scroll.urls)
                trace.extend(scroll.interactions)

                frames = await self.frame_harvester.harvest_frame_urls(page, url)
                urls.update(frames.urls)
                trace.extend(frames.interactions)

                if await self.auth_engine.has_login_wall(page):
                    auth = await self.auth_engine.handle_authentication(page)
                    trace.extend(auth.interactions)
                    if auth.success:
                        after_login = await self._harvest(page, url, trace)
                        urls.update(after_login)
                        trace.append(f"Post-login harvest: {len(after_login)} URLs")

                final = await self._harvest(page, url, trace)
                urls.update(final)
                trace.append(f"Final harvest: {len(final)} URLs")

                urls.update(session.captured_urls)
                trace.extend(session.interactions)

        logger.info(f"Browser session for {url} found {len(urls)} URLs")
        return urls

    async def _harvest(self, page, url: str, trace: List[str]) -> Set[str]:
        try:
            return await self.page_harvester.harvest(page, url)
        except Exception as e:
            trace.append(f"Harvest failed: {describe_error(e)}")
            logger.error(f"Page harvest failed for {url}: {describe_error(e)}")
            return set()

    def close(self):
        self.fetcher.close()
