# scroll.py
import logging
from typing import Optional

from .classifier import UrlClassifier
from .constants import MAX_SCROLL_ATTEMPTS, SCROLL_SETTLE_MS
from .harvester import PageUrlHarvester
from .models import ScrollResult
from .utils import describe_error

logger = logging.getLogger(__name__)

SCROLL_HEIGHT_JS = "() => document.body ? document.body.scrollHeight : 0"
SCROLL_TO_BOTTOM_JS = "() => window.scrollTo(0, document.body ? document.body.scrollHeight : 0)"


class ScrollController:
    """Scrolls to the bottom repeatedly until the document stops growing."""

    def __init__(self, harvester=None, classifier: Optional[UrlClassifier] = None,
                 max_attempts: int = MAX_SCROLL_ATTEMPTS, settle_ms: int = SCROLL_SETTLE_MS):
        self.classifier = classifier or UrlClassifier()
        self.harvester = harvester or PageUrlHarvester(self.classifier)
        self.max_attempts = max_attempts
        self.settle_ms = settle_ms

    async def scroll_for_more(self, page, base_url: str) -> ScrollResult:
        result = ScrollResult()

        try:
            previous_height = await page.evaluate(SCROLL_HEIGHT_JS)
            while result.scroll_attempts < self.max_attempts:
                await page.evaluate(SCROLL_TO_BOTTOM_JS)
                await page.wait_for_timeout(self.settle_ms)

                current_height = await page.evaluate(SCROLL_HEIGHT_JS)
                result.scroll_attempts += 1
                result.interactions.append(f"Infinite scroll attempt #{result.scroll_attempts}")

                if current_height == previous_height:
                    logger.debug('No new content after scroll, stopping')
                    break
                previous_height = current_height

                harvested = await self.harvester.harvest(page, base_url)
                result.urls.update(u for u in harvested if self.classifier.looks_like_article(u, base_url))
        except Exception as e:
            logger.warning(f"Infinite scroll failed: {describe_error(e)}")
            result.interactions.append(f"Infinite scroll error: {describe_error(e)}")

        logger.info(f"Infinite scroll: {result.scroll_attempts} attempts, {len(result.urls)} URLs")
        return result
