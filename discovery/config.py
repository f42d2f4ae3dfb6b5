"""
Configuration for the discovery engine.

Numeric limits default to the values in constants.py. Selector groups, probe
weights and classifier keyword lists are data, loaded once from
heuristics.yaml (or the file named by DISCOVERY_HEURISTICS).
"""
import os
import logging
from dataclasses import dataclass, field, replace
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

import yaml

from .constants import *
from .models import SelectorGroup

logger = logging.getLogger(__name__)

HEURISTICS_PATH = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'heuristics.yaml')
SELECTOR_GROUPS = ('loadMore', 'readMore', 'pagination', 'expandable')


@dataclass(frozen=True)
class ProbeRules:
    threshold: int
    min_text_chars: int
    min_anchors: int
    weights: Tuple[Tuple[str, int], ...]
    loading_classes: Tuple[str, ...]
    fetch_markers: Tuple[str, ...]

    def weight(self, signal: str) -> int:
        return dict(self.weights).get(signal, 0)


@dataclass(frozen=True)
class ClassifierRules:
    content_keywords: Tuple[str, ...]
    topical_keywords: Tuple[str, ...]
    nav_pages: Tuple[str, ...]
    excluded_prefixes: Tuple[str, ...]
    asset_extensions: Tuple[str, ...]
    min_slug_words: int = 3
    min_topical_depth: int = 2


@dataclass(frozen=True)
class LoginSelectors:
    forms: Tuple[str, ...]
    username_inputs: Tuple[str, ...]
    password_inputs: Tuple[str, ...]
    submit_buttons: Tuple[str, ...]
    csrf_tokens: Tuple[str, ...]
    error_patterns: Tuple[str, ...]
    url_markers: Tuple[str, ...]


@dataclass(frozen=True)
class Heuristics:
    selectors: Tuple[SelectorGroup, ...]
    login: LoginSelectors
    probe: ProbeRules
    classifier: ClassifierRules
    feed_paths: Tuple[str, ...]
    json_url_fields: Tuple[str, ...]
    jsonld_url_fields: Tuple[str, ...]

    def group(self, name: str) -> SelectorGroup:
        for group in self.selectors:
            if group.name == name:
                return group
        raise KeyError(f"Unknown selector group: {name}")


def _tuple(data: Dict[str, Any], key: str) -> Tuple[str, ...]:
    return tuple(str(item) for item in data.get(key) or ())


def parse_heuristics(data: Dict[str, Any]) -> Heuristics:
    selectors = data.get('selectors') or {}
    missing = [name for name in SELECTOR_GROUPS if name not in selectors]
    if missing:
        raise ValueError(f"heuristics: missing selector groups {missing}")

    login = data.get('login') or {}
    probe = data.get('probe') or {}
    classifier = data.get('classifier') or {}
    network = data.get('network') or {}

    return Heuristics(
        selectors=tuple(SelectorGroup(name, _tuple(selectors, name)) for name in SELECTOR_GROUPS),
        login=LoginSelectors(
            forms=_tuple(login, 'forms'),
            username_inputs=_tuple(login, 'username_inputs'),
            password_inputs=_tuple(login, 'password_inputs'),
            submit_buttons=_tuple(login, 'submit_buttons'),
            csrf_tokens=_tuple(login, 'csrf_tokens'),
            error_patterns=_tuple(login, 'error_patterns'),
            url_markers=_tuple(login, 'url_markers'),
        ),
        probe=ProbeRules(
            threshold=int(probe.get('threshold', 50)),
            min_text_chars=int(probe.get('min_text_chars', 500)),
            min_anchors=int(probe.get('min_anchors', 5)),
            weights=tuple((str(k), int(v)) for k, v in (probe.get('weights') or {}).items()),
            loading_classes=_tuple(probe, 'loading_classes'),
            fetch_markers=_tuple(probe, 'fetch_markers'),
        ),
        classifier=ClassifierRules(
            content_keywords=tuple(k.lower() for k in _tuple(classifier, 'content_keywords')),
            topical_keywords=tuple(k.lower() for k in _tuple(classifier, 'topical_keywords')),
            nav_pages=tuple(k.lower() for k in _tuple(classifier, 'nav_pages')),
            excluded_prefixes=tuple(k.lower() for k in _tuple(classifier, 'excluded_prefixes')),
            asset_extensions=tuple(k.lower() for k in _tuple(classifier, 'asset_extensions')),
            min_slug_words=int(classifier.get('min_slug_words', 3)),
            min_topical_depth=int(classifier.get('min_topical_depth', 2)),
        ),
        feed_paths=_tuple(data.get('feeds') or {}, 'paths'),
        json_url_fields=_tuple(network, 'json_url_fields'),
        jsonld_url_fields=_tuple(network, 'jsonld_url_fields'),
    )


@lru_cache(maxsize=None)
def load_heuristics(path: Optional[str] = None) -> Heuristics:
    path = path or os.environ.get('DISCOVERY_HEURISTICS') or HEURISTICS_PATH
    logger.debug(f"Loading heuristics from {path}")
    with open(path, encoding='utf-8') as f:
        data = yaml.safe_load(f) or {}
    return parse_heuristics(data)


@dataclass(frozen=True)
class InteractionConfig:
    max_pagination_hops: int = MAX_PAGINATION_HOPS
    max_load_more_clicks: int = MAX_LOAD_MORE_CLICKS
    max_read_more_clicks: int = MAX_READ_MORE_CLICKS
    max_expand_clicks: int = MAX_EXPAND_CLICKS
    throttle_ms: int = THROTTLE_MS
    interaction_timeout: int = INTERACTION_TIMEOUT
    network_timeout: int = NETWORK_TIMEOUT
    settle_ceiling_ms: int = SETTLE_CEILING_MS
    backoff_ms: Optional[int] = None


@dataclass(frozen=True)
class AuthConfig:
    username: str = DEFAULT_USERNAME
    password: str = DEFAULT_PASSWORD
    max_attempts: int = 1
    network_timeout: int = NETWORK_TIMEOUT
    throttle_ms: int = THROTTLE_MS


def _env_int(name: str, default: int) -> int:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError:
        logger.warning(f"Ignoring non-integer {name}={value!r}")
        return default


@dataclass(frozen=True)
class DiscoveryConfig:
    interaction: InteractionConfig = field(default_factory=InteractionConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    max_attempts: int = MAX_ATTEMPTS
    backoff_ms: int = BACKOFF_MS
    min_success_urls: int = MIN_SUCCESS_URLS
    max_concurrent_sessions: int = MAX_HEADLESS_BROWSERS
    headless: bool = True
    user_agent: str = USER_AGENT
    probe_timeout: int = PROBE_TIMEOUT
    fetch_timeout: int = FETCH_TIMEOUT
    max_scroll_attempts: int = MAX_SCROLL_ATTEMPTS
    scroll_settle_ms: int = SCROLL_SETTLE_MS
    initial_settle_ms: int = INITIAL_SETTLE_MS
    fresh_only_days: Optional[int] = FRESH_ONLY_DAYS
    max_feed_items: int = MAX_FEED_ITEMS
    max_nested_sitemaps: int = MAX_NESTED_SITEMAPS
    heuristics: Heuristics = field(default_factory=load_heuristics)

    @property
    def retry_backoff_ms(self) -> int:
        if self.interaction.backoff_ms is not None:
            return self.interaction.backoff_ms
        return self.backoff_ms

    def strict(self) -> 'DiscoveryConfig':
        return replace(self, min_success_urls=STRICT_MIN_SUCCESS_URLS)

    @classmethod
    def from_env(cls, **overrides) -> 'DiscoveryConfig':
        auth = AuthConfig(
            username=os.environ.get('SMART_DISCOVERY_TEST_USER', DEFAULT_USERNAME),
            password=os.environ.get('SMART_DISCOVERY_TEST_PASS', DEFAULT_PASSWORD),
        )
        values = dict(
            auth=auth,
            max_attempts=_env_int('SMART_DISCOVERY_MAX_ATTEMPTS', MAX_ATTEMPTS),
            max_concurrent_sessions=_env_int('SMART_DISCOVERY_MAX_SESSIONS', MAX_HEADLESS_BROWSERS),
            headless=os.environ.get('SMART_DISCOVERY_HEADLESS', 'true').lower() not in ('0', 'false', 'no'),
        )
        values.update(overrides)
        return cls(**values)
