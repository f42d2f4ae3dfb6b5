"""
URL harvesting.

StaticHarvester works on raw HTML and feed documents fetched over plain HTTP
(the "cheap methods"). PageUrlHarvester reads the current state of a live
Playwright page or frame. Both filter every candidate through a UrlClassifier.
"""
import json
import logging
import xml.etree.ElementTree as ET
from datetime import datetime, timedelta, timezone
from email.utils import parsedate_to_datetime
from typing import Iterable, List, Optional, Set, Tuple
from urllib.parse import urljoin

from bs4 import BeautifulSoup

from .classifier import UrlClassifier
from .config import DiscoveryConfig
from .exceptions import NetworkError, ParseError
from .fetcher import HttpFetcher
from .models import StaticHarvest
from .utils import absolutize, extract_urls_from_json

logger = logging.getLogger(__name__)

LINK_SELECTOR = 'a[href], link[rel="canonical"], meta[property="og:url"]'
JSONLD_SELECTOR = 'script[type="application/ld+json"]'


def _local(tag) -> str:
    return tag.rsplit('}', 1)[-1] if isinstance(tag, str) else ''


def _child(element, name: str):
    for child in element:
        if _local(child.tag) == name:
            return child
    return None


def _child_text(element, name: str) -> Optional[str]:
    child = _child(element, name)
    if child is None or child.text is None:
        return None
    return child.text.strip() or None


def parse_feed_date(value: Optional[str]) -> Optional[datetime]:
    """RFC 822 (RSS) or ISO 8601 (Atom, sitemaps); None when unparseable."""
    if not value:
        return None
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value.replace('Z', '+00:00'))
    except ValueError:
        try:
            parsed = parsedate_to_datetime(value)
        except (TypeError, ValueError):
            return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


class StaticHarvester:
    """Static page and feed/sitemap harvesting without a browser."""

    def __init__(self, config: Optional[DiscoveryConfig] = None, fetcher: Optional[HttpFetcher] = None,
                 classifier: Optional[UrlClassifier] = None):
        self.config = config or DiscoveryConfig()
        self.fetcher = fetcher or HttpFetcher(self.config.user_agent, self.config.fetch_timeout)
        self.classifier = classifier or UrlClassifier(self.config.heuristics.classifier)

    def cheap_methods(self, url: str) -> List[str]:
        return sorted(self.collect(url).urls)

    def collect(self, url: str) -> StaticHarvest:
        result = StaticHarvest()

        try:
            html = self.fetcher.fetch_text(url)
            static_urls = self.extract_static_links(html, url)
            result.urls.update(static_urls)
            result.interactions.append(f"Static HTML: {len(static_urls)} URLs")
            logger.debug(f"Static scraping completed: {len(static_urls)} URLs")
        except NetworkError as e:
            result.interactions.append(f"Static HTML fetch failed: {e.reason}")
            logger.debug(f"Static scraping failed: {e}")

        try:
            feed_urls = self.probe_feeds_and_sitemaps(url, result.interactions)
            result.urls.update(feed_urls)
            logger.debug(f"Feed probing completed: {len(feed_urls)} URLs")
        except Exception as e:
            result.interactions.append(f"Feed probing failed: {e}")
            logger.error(f"Feed probing failed for {url}: {e}")

        return result

    def extract_static_links(self, html: str, base_url: str) -> Set[str]:
        soup = BeautifulSoup(html, 'html.parser')
        candidates: List[str] = []

        for element in soup.select(LINK_SELECTOR):
            candidates.append(element.get('href') or element.get('content'))
        for element in soup.select('[data-href], [data-url]'):
            candidates.append(element.get('data-href') or element.get('data-url'))

        for script in soup.select(JSONLD_SELECTOR):
            try:
                data = json.loads(script.string or script.get_text() or '')
            except ValueError:
                logger.debug('Ignoring malformed JSON-LD block')
                continue
            candidates.extend(extract_urls_from_json(data, self.config.heuristics.jsonld_url_fields))

        return self._keep(candidates, base_url)

    def probe_feeds_and_sitemaps(self, base_url: str, interactions: Optional[List[str]] = None) -> Set[str]:
        interactions = interactions if interactions is not None else []
        urls: Set[str] = set()

        for path in self.config.heuristics.feed_paths:
            feed_url = urljoin(base_url, path)
            try:
                content = self.fetcher.fetch_text(feed_url)
            except NetworkError as e:
                logger.debug(f"Feed {path} unavailable: {e.reason}")
                continue

            try:
                entries, children = self.parse_feed(content)
            except ParseError as e:
                interactions.append(f"Feed {path}: parse error")
                logger.debug(f"Failed to parse {feed_url}: {e}")
                continue

            for child in children[:self.config.max_nested_sitemaps]:
                try:
                    nested, _ = self.parse_feed(self.fetcher.fetch_text(child))
                except (NetworkError, ParseError) as e:
                    logger.debug(f"Nested sitemap {child} skipped: {e}")
                    continue
                entries.extend(nested)

            found = self._keep(entries, base_url)
            if found:
                interactions.append(f"Feed {path}: {len(found)} URLs")
            urls.update(found)

        return urls

    def parse_feed(self, content: str) -> Tuple[List[str], List[str]]:
        """Return (entry URLs, nested sitemap URLs) for an RSS, Atom or sitemap document."""
        try:
            root = ET.fromstring(content.strip().encode('utf-8'))
        except ET.ParseError as e:
            raise ParseError(str(e))

        kind = _local(root.tag)
        if kind == 'rss' or kind == 'RDF':
            items = [el for el in root.iter() if _local(el.tag) == 'item']
            return self._fresh(items, lambda el: _child_text(el, 'link'), ('pubDate', 'date')), []
        if kind == 'feed':
            entries = [el for el in root if _local(el.tag) == 'entry']
            return self._fresh(entries, self._atom_link, ('published', 'updated')), []
        if kind == 'urlset':
            locs = [el for el in root if _local(el.tag) == 'url']
            return self._fresh(locs, lambda el: _child_text(el, 'loc'), ('lastmod',)), []
        if kind == 'sitemapindex':
            sitemaps = [el for el in root if _local(el.tag) == 'sitemap']
            children = [loc for loc in (_child_text(el, 'loc') for el in sitemaps) if loc]
            return [], children
        raise ParseError(f"Unsupported feed root <{kind}>")

    @staticmethod
    def _atom_link(entry) -> Optional[str]:
        fallback = None
        for link in entry:
            if _local(link.tag) != 'link':
                continue
            href = link.get('href')
            if href and link.get('rel', 'alternate') == 'alternate':
                return href
            fallback = fallback or href
        return fallback

    def _fresh(self, elements, get_link, date_fields: Iterable[str]) -> List[str]:
        cutoff = None
        if self.config.fresh_only_days is not None:
            cutoff = datetime.now(timezone.utc) - timedelta(days=self.config.fresh_only_days)

        links = []
        for element in elements[:self.config.max_feed_items]:
            link = get_link(element)
            if not link:
                continue
            if cutoff is not None:
                published = None
                for name in date_fields:
                    published = parse_feed_date(_child_text(element, name))
                    if published is not None:
                        break
                if published is not None and published < cutoff:
                    continue
            links.append(link)
        return links

    def _keep(self, candidates: Iterable[Optional[str]], base_url: str) -> Set[str]:
        kept = set()
        for candidate in candidates:
            absolute = absolutize(candidate, base_url)
            if absolute and self.classifier.looks_like_article(absolute, base_url):
                kept.add(absolute)
        return kept


class PageUrlHarvester:
    """Harvests classifier-passing URLs from the current DOM of a page or frame."""

    def __init__(self, classifier: Optional[UrlClassifier] = None, jsonld_fields: Optional[Iterable[str]] = None):
        self.classifier = classifier or UrlClassifier()
        self.jsonld_fields = tuple(jsonld_fields or ('url', '@id', 'mainEntityOfPage'))

    async def harvest(self, page, base_url: str) -> Set[str]:
        hrefs = await page.eval_on_selector_all(
            LINK_SELECTOR,
            "els => els.map(e => e.getAttribute('href') || e.getAttribute('content'))",
        )
        candidates = list(hrefs or [])

        scripts = await page.eval_on_selector_all(JSONLD_SELECTOR, "els => els.map(e => e.textContent)")
        for content in scripts or []:
            try:
                candidates.extend(extract_urls_from_json(json.loads(content or ''), self.jsonld_fields))
            except ValueError:
                continue

        current = getattr(page, 'url', None)
        resolve_against = current if isinstance(current, str) and current.startswith('http') else base_url

        urls = set()
        for candidate in candidates:
            absolute = absolutize(candidate, resolve_against)
            if absolute and self.classifier.looks_like_article(absolute, base_url):
                urls.add(absolute)
        return urls
