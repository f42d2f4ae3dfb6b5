# classifier.py
import re
import logging
from typing import List, Optional
from urllib.parse import urlparse

from .config import ClassifierRules, load_heuristics
from .utils import absolutize

logger = logging.getLogger(__name__)

DATE_SEGMENT = re.compile(r'/(19|20)\d{2}/(0?[1-9]|1[0-2])(/|$)')
SLUG_WORD = re.compile(r'[a-z0-9]+')
PAGINATION_PATH = re.compile(r'/page/\d+/?$')


class UrlClassifier:
    """Decides whether a URL looks like addressable content on the base site."""

    def __init__(self, rules: Optional[ClassifierRules] = None):
        self.rules = rules or load_heuristics().classifier

    def __call__(self, candidate: str, base_url: str) -> bool:
        return self.looks_like_article(candidate, base_url)

    def looks_like_article(self, candidate: str, base_url: str) -> bool:
        absolute = absolutize(candidate, base_url)
        if not absolute:
            return False

        parsed = urlparse(absolute)
        base_host = (urlparse(base_url).hostname or '').lower()
        if not base_host or (parsed.hostname or '').lower() != base_host:
            return False

        path = parsed.path.lower()
        if self._is_asset(path) or self._is_excluded(path):
            return False

        segments = [s for s in path.split('/') if s]
        if not segments:
            return False
        if len(segments) == 1 and segments[0].rsplit('.', 1)[0] in self.rules.nav_pages:
            return False
        if PAGINATION_PATH.search(path):
            return False

        if self._has_content_keyword(segments):
            return True
        if DATE_SEGMENT.search(path):
            return True
        if path.endswith(('.html', '.htm')):
            return True
        if self._is_slug(segments[-1]):
            return True
        return self._is_topical(segments)

    def _is_asset(self, path: str) -> bool:
        return path.endswith(self.rules.asset_extensions)

    def _is_excluded(self, path: str) -> bool:
        for prefix in self.rules.excluded_prefixes:
            if prefix.endswith('/'):
                if path.startswith(prefix):
                    return True
            elif path == prefix or path.startswith(prefix + '/'):
                return True
        return False

    def _has_content_keyword(self, segments: List[str]) -> bool:
        # the keyword has to be followed by something: /blog/ alone is a listing
        return any(seg in self.rules.content_keywords for seg in segments[:-1])

    def _is_slug(self, segment: str) -> bool:
        if '-' not in segment:
            return False
        words = SLUG_WORD.findall(segment.rsplit('.', 1)[0])
        return len(words) >= self.rules.min_slug_words and segment not in self.rules.nav_pages

    def _is_topical(self, segments: List[str]) -> bool:
        if len(segments) < self.rules.min_topical_depth:
            return False
        return any(
            re.search(r'(^|-)' + re.escape(keyword) + r'(-|$)', seg)
            for seg in segments
            for keyword in self.rules.topical_keywords
        )


def looks_like_article(candidate: str, base_url: str) -> bool:
    return UrlClassifier().looks_like_article(candidate, base_url)
