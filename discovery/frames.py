# frames.py
import logging
from typing import Optional

from .classifier import UrlClassifier
from .harvester import PageUrlHarvester
from .models import FrameResult
from .utils import describe_error

logger = logging.getLogger(__name__)


class FrameHarvester:
    """Collects links from every embedded frame; one unreadable frame never stops the scan."""

    def __init__(self, harvester=None, classifier: Optional[UrlClassifier] = None):
        self.classifier = classifier or UrlClassifier()
        self.harvester = harvester or PageUrlHarvester(self.classifier)

    async def harvest_frame_urls(self, page, base_url: str) -> FrameResult:
        result = FrameResult()
        main_frame = page.main_frame

        for frame in page.frames:
            if frame is main_frame or frame.is_detached():
                continue

            frame_url = '<unknown>'
            try:
                frame_url = frame.url or '<about:blank>'
                result.interactions.append(f"Processing frame: {frame_url}")
                result.frames_scanned += 1

                for url in sorted(await self.harvester.harvest(frame, base_url)):
                    if not self.classifier.looks_like_article(url, base_url):
                        continue
                    if url not in result.urls:
                        result.urls.add(url)
                        result.interactions.append(f"Frame URL found: {url}")
            except Exception as e:
                result.frames_failed += 1
                result.interactions.append(f"Frame access failed ({frame_url}): {describe_error(e)}")
                logger.debug(f"Failed to access frame content {frame_url}: {describe_error(e)}")

        if result.frames_scanned:
            logger.info(f"Frame harvest: {result.frames_scanned} frames, {result.frames_failed} failed, "
                        f"{len(result.urls)} URLs")
        return result
