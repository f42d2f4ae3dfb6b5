# interactions.py
import uuid
import itertools
import logging
from typing import Dict, Iterable, Optional, Set, Tuple

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .classifier import UrlClassifier
from .config import InteractionConfig, load_heuristics
from .constants import GO_BACK_TIMEOUT, READ_MORE_SETTLE_MS
from .harvester import PageUrlHarvester
from .models import InteractionResult, SelectorGroup
from .utils import absolutize, describe_error, throttle, wait_for_settle

logger = logging.getLogger(__name__)

STAMP_ELEMENT_JS = """
(el, [attr, key]) => {
    const existing = el.getAttribute(attr);
    if (existing) return existing;
    el.setAttribute(attr, key);
    return key;
}
"""


class VisitedElementSet:
    """Controls already clicked during one browser session.

    Identity is a key stamped onto the live DOM node, so the same node found
    again through another selector maps to the same key. Keys carry a
    per-session prefix and the set only ever grows.
    """

    ATTRIBUTE = 'data-discovery-key'

    def __init__(self):
        self.session_id = uuid.uuid4().hex[:8]
        self._keys: Set[str] = set()
        self._counter = itertools.count(1)

    async def key_for(self, element) -> Optional[str]:
        candidate = f"{self.session_id}-{next(self._counter)}"
        return await element.evaluate(STAMP_ELEMENT_JS, [self.ATTRIBUTE, candidate])

    def add(self, key: Optional[str]):
        if key is not None:
            self._keys.add(key)

    def __contains__(self, key) -> bool:
        return key is not None and key in self._keys

    def __len__(self) -> int:
        return len(self._keys)


class InteractionEngine:
    """Drives load-more, pagination, read-more and expandable controls on a live page."""

    def __init__(self, config: Optional[InteractionConfig] = None, harvester=None,
                 classifier: Optional[UrlClassifier] = None,
                 selectors: Optional[Iterable[SelectorGroup]] = None):
        self.config = config or InteractionConfig()
        self.classifier = classifier or UrlClassifier()
        self.harvester = harvester or PageUrlHarvester(self.classifier)
        groups = selectors if selectors is not None else load_heuristics().selectors
        self.selectors: Dict[str, SelectorGroup] = {group.name: group for group in groups}

    async def click_interactive_elements(self, page, base_url: str,
                                         visited: Optional[VisitedElementSet] = None) -> InteractionResult:
        visited = visited if visited is not None else VisitedElementSet()

        initial = await self._safe_harvest(page, base_url)
        result = InteractionResult(urls=set(initial))

        for phase in (self.handle_load_more_buttons, self.handle_pagination,
                      self.handle_read_more_buttons, self.handle_expandable):
            result.merge(await phase(page, base_url, visited))

        result.success = len(result.urls) > len(initial)
        logger.info(f"Interactions finished: {result.elements_interacted} elements, "
                    f"{len(result.urls)} URLs ({len(result.urls) - len(initial)} new)")
        return result

    async def handle_load_more_buttons(self, page, base_url: str, visited: VisitedElementSet) -> InteractionResult:
        result = InteractionResult()
        clicks = 0
        # controls whose last click revealed something may be clicked again
        repeatable: Set[str] = set()

        try:
            for _ in range(self.config.max_load_more_clicks):
                clicked = False
                new_urls: Set[str] = set()

                for selector in self._group('loadMore'):
                    try:
                        found = await self._next_clickable(page, selector, visited, require_enabled=True,
                                                           repeatable=repeatable)
                        if found is None:
                            continue
                        element, key = found
                        logger.debug(f"Clicking load more button: {selector}")

                        await element.scroll_into_view_if_needed(timeout=self.config.interaction_timeout)
                        await throttle(page, self.config.throttle_ms)
                        before = await self.harvester.harvest(page, base_url)

                        try:
                            await element.click(timeout=self.config.interaction_timeout)
                        finally:
                            visited.add(key)
                            repeatable.discard(key)
                        clicks += 1
                        clicked = True

                        await wait_for_settle(page, self.config.network_timeout, self.config.settle_ceiling_ms)
                        after = await self.harvester.harvest(page, base_url)
                        new_urls = self._new_urls(before, after, base_url)
                        if new_urls:
                            repeatable.add(key)
                        result.urls.update(new_urls)
                        result.interactions.append(f"Load more click {clicks}: found {len(new_urls)} new URLs")
                        break
                    except Exception as e:
                        logger.debug(f"Load more selector failed: {selector}: {describe_error(e)}")
                        if clicked:
                            break

                if not clicked:
                    result.interactions.append('No more load more buttons found')
                    break
                if not new_urls:
                    result.interactions.append('Load more: no new content loaded, stopping')
                    break
        except Exception as e:
            logger.error(f"Load more handling failed: {describe_error(e)}")
            result.interactions.append(f"Load more error: {describe_error(e)}")

        result.elements_interacted = clicks
        result.success = clicks > 0
        return result

    async def handle_pagination(self, page, base_url: str, visited: VisitedElementSet) -> InteractionResult:
        result = InteractionResult()
        hops = 0

        try:
            # every completed navigation spends one hop of the budget
            for _ in range(self.config.max_pagination_hops):
                navigated = False
                new_urls: Set[str] = set()

                for selector in self._group('pagination'):
                    try:
                        found = await self._next_clickable(page, selector, visited, require_enabled=True)
                        if found is None:
                            continue
                        element, key = found
                        logger.debug(f"Clicking pagination control: {selector}")

                        await element.scroll_into_view_if_needed(timeout=self.config.interaction_timeout)
                        await throttle(page, self.config.throttle_ms)
                        before = await self.harvester.harvest(page, base_url)

                        try:
                            async with page.expect_navigation(timeout=self.config.network_timeout):
                                await element.click(timeout=self.config.interaction_timeout)
                        finally:
                            visited.add(key)
                        navigated = True

                        after = await self.harvester.harvest(page, base_url)
                        new_urls = self._new_urls(before, after, base_url)
                        break
                    except Exception as e:
                        logger.debug(f"Failed to interact with pagination: {selector}: {describe_error(e)}")
                        if navigated:
                            break

                if not navigated:
                    break
                if not new_urls:
                    result.interactions.append(f"Pagination: no new URLs on {page.url}, stopping")
                    break
                hops += 1
                result.urls.update(new_urls)
                result.interactions.append(f"Pagination hop {hops}: found {len(new_urls)} new URLs on {page.url}")
        except Exception as e:
            logger.warning(f"Pagination interaction failed: {describe_error(e)}")
            result.interactions.append(f"Pagination error: {describe_error(e)}")

        result.elements_interacted = hops
        result.success = bool(result.urls)
        return result

    async def handle_read_more_buttons(self, page, base_url: str, visited: VisitedElementSet) -> InteractionResult:
        result = InteractionResult()
        clicks = 0
        limit = self.config.max_read_more_clicks

        for selector in self._group('readMore'):
            if clicks >= limit:
                break
            try:
                elements = await page.locator(selector).all()
            except Exception as e:
                logger.debug(f"Read more selector failed: {selector}: {describe_error(e)}")
                continue

            for element in elements:
                if clicks >= limit:
                    break
                try:
                    key = await visited.key_for(element)
                    if key in visited or not await element.is_visible():
                        continue
                    href = absolutize(await element.get_attribute('href'), page.url)
                    if href and href in result.urls:
                        visited.add(key)
                        continue

                    logger.debug(f"Clicking read more: {selector}")
                    original_url = page.url
                    await element.scroll_into_view_if_needed(timeout=self.config.interaction_timeout)
                    await throttle(page, self.config.throttle_ms)
                    before = await self.harvester.harvest(page, base_url)
                    try:
                        await element.click(timeout=self.config.interaction_timeout)
                    finally:
                        visited.add(key)
                    clicks += 1
                    await page.wait_for_timeout(READ_MORE_SETTLE_MS)

                    current_url = page.url
                    if current_url != original_url:
                        target = absolutize(current_url, base_url)
                        if target and self.classifier.looks_like_article(target, base_url):
                            result.urls.add(target)
                            result.interactions.append(f"Read more navigation: {target}")
                        await self._go_back(page)
                    else:
                        revealed = self._new_urls(before, await self.harvester.harvest(page, base_url), base_url)
                        result.urls.update(revealed)
                        if revealed:
                            result.interactions.append(f"Read more revealed {len(revealed)} new URLs")
                except Exception as e:
                    logger.debug(f"Read more click failed ({selector}): {describe_error(e)}")
                    result.interactions.append(f"Read more click failed: {describe_error(e)}")

        result.elements_interacted = clicks
        result.success = clicks > 0
        return result

    async def handle_expandable(self, page, base_url: str, visited: VisitedElementSet) -> InteractionResult:
        result = InteractionResult()
        clicks = 0
        limit = self.config.max_expand_clicks
        if limit <= 0:
            return result

        before = await self._safe_harvest(page, base_url)
        for selector in self._group('expandable'):
            if clicks >= limit:
                break
            try:
                elements = await page.locator(selector).all()
                for element in elements:
                    if clicks >= limit:
                        break
                    key = await visited.key_for(element)
                    if key in visited or not await element.is_visible():
                        continue
                    try:
                        await element.click(timeout=self.config.interaction_timeout)
                    finally:
                        visited.add(key)
                    clicks += 1
                    await throttle(page, self.config.throttle_ms)
            except Exception as e:
                logger.debug(f"Expandable selector failed: {selector}: {describe_error(e)}")

        if clicks:
            await wait_for_settle(page, self.config.network_timeout, self.config.settle_ceiling_ms)
            after = await self._safe_harvest(page, base_url)
            new_urls = self._new_urls(before, after, base_url)
            result.urls.update(new_urls)
            result.interactions.append(f"Expanded {clicks} sections: found {len(new_urls)} new URLs")

        result.elements_interacted = clicks
        result.success = clicks > 0
        return result

    def _group(self, name: str) -> SelectorGroup:
        return self.selectors.get(name) or SelectorGroup(name, ())

    async def _next_clickable(self, page, selector: str, visited: VisitedElementSet,
                              require_enabled: bool,
                              repeatable: Optional[Set[str]] = None) -> Optional[Tuple[object, str]]:
        for element in await page.locator(selector).all():
            key = await visited.key_for(element)
            if key in visited and not (repeatable and key in repeatable):
                continue
            if not await element.is_visible():
                continue
            if require_enabled and not await element.is_enabled():
                continue
            return element, key
        return None

    def _new_urls(self, before: Set[str], after: Set[str], base_url: str) -> Set[str]:
        return {url for url in set(after) - set(before) if self.classifier.looks_like_article(url, base_url)}

    async def _safe_harvest(self, page, base_url: str) -> Set[str]:
        try:
            return set(await self.harvester.harvest(page, base_url))
        except Exception as e:
            logger.debug(f"Harvest failed: {describe_error(e)}")
            return set()

    async def _go_back(self, page):
        try:
            await page.go_back(timeout=self.config.network_timeout)
            await page.wait_for_load_state('networkidle', timeout=GO_BACK_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.debug('Timed out settling after go_back, continuing')
