# prober.py
import logging
from typing import List, Optional

from bs4 import BeautifulSoup

from .config import ProbeRules, load_heuristics
from .constants import PROBE_TIMEOUT
from .fetcher import HttpFetcher
from .models import ProbeResult

logger = logging.getLogger(__name__)


class JsHeavinessProber:
    """Scores how much of a site's content depends on client-side rendering."""

    def __init__(self, fetcher: Optional[HttpFetcher] = None, rules: Optional[ProbeRules] = None,
                 timeout_ms: int = PROBE_TIMEOUT):
        self.fetcher = fetcher or HttpFetcher()
        self.rules = rules or load_heuristics().probe
        self.timeout_ms = timeout_ms

    def probe(self, url: str) -> ProbeResult:
        try:
            html = self.fetcher.fetch_text(url, timeout_ms=self.timeout_ms)
            result = self.score_html(html)
        except Exception as e:
            logger.warning(f"Quick probe failed for {url}, assuming JS-heavy: {e}")
            return ProbeResult(True, 100, (f"Probe failed - assuming JS-heavy: {e}",))

        logger.debug(f"Quick probe {url}: score={result.score} threshold={self.rules.threshold} "
                     f"indicators={list(result.indicators)}")
        return result

    def score_html(self, html: str) -> ProbeResult:
        rules = self.rules
        soup = BeautifulSoup(html, 'html.parser')
        html_lower = html.lower()
        script_text = ' '.join(s.get_text() for s in soup.find_all('script'))

        score = 0
        indicators: List[str] = []

        def hit(signal: str, message: str):
            nonlocal score
            score += rules.weight(signal)
            indicators.append(message)

        body = soup.body or soup
        for tag in body.find_all(['script', 'style', 'noscript', 'template']):
            tag.decompose()
        text = ' '.join(body.get_text(' ', strip=True).split())
        if len(text) < rules.min_text_chars:
            hit('low_text', f"Minimal visible text: {len(text)} chars")

        anchors = len(soup.find_all('a', href=True))
        if anchors < rules.min_anchors:
            hit('few_anchors', f"Few static links: {anchors}")

        if 'React' in script_text or 'data-reactroot' in html_lower or 'data-reactid' in html_lower:
            hit('react', 'React detected')

        if 'Vue' in script_text or 'data-v-' in html_lower or 'data-server-rendered' in html_lower:
            hit('vue', 'Vue.js detected')

        if 'Angular' in script_text or 'ng-version' in html_lower or 'ng-app' in html_lower:
            hit('angular', 'Angular detected')

        if '__NEXT_DATA__' in html or '_next/static' in html_lower:
            hit('nextjs', 'Next.js detected')

        if any(marker in script_text for marker in rules.fetch_markers):
            hit('dynamic_fetch', 'Dynamic data fetching detected')

        for name in rules.loading_classes:
            if soup.select_one(f'[class*="{name}"]') is not None:
                hit('loading_indicator', f"Loading indicator: {name}")
                break

        for link in soup.select('link[rel~="preload"]'):
            href = link.get('href') or ''
            if '_next/' in href or 'static/' in href:
                hit('spa_preload', 'SPA preload detected')
                break

        return ProbeResult(score >= rules.threshold, score, tuple(indicators))
