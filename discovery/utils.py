# utils.py
import asyncio
import logging
from typing import Any, List, Optional, Sequence
from urllib.parse import urldefrag, urljoin, urlparse

from playwright.async_api import Error as PlaywrightError

from .constants import MAX_JSON_DEPTH

logger = logging.getLogger(__name__)

_SKIPPED_SCHEMES = ('javascript:', 'mailto:', 'tel:', 'data:', 'about:', 'blob:')


def absolutize(href: Optional[str], base_url: str) -> Optional[str]:
    """Resolve href against base_url; None for empty, fragment-only or non-web links."""
    if not href or not isinstance(href, str):
        return None
    href = href.strip()
    if not href or href.startswith('#') or href.lower().startswith(_SKIPPED_SCHEMES):
        return None
    try:
        absolute, _ = urldefrag(urljoin(base_url, href))
        parsed = urlparse(absolute)
    except ValueError:
        return None
    if parsed.scheme not in ('http', 'https') or not parsed.hostname:
        return None
    return absolute


def hostname_of(url: str) -> str:
    try:
        return (urlparse(url).hostname or '').lower()
    except ValueError:
        return ''


def extract_urls_from_json(data: Any, fields: Sequence[str], max_depth: int = MAX_JSON_DEPTH) -> List[str]:
    """Collect string values stored under any of `fields`, at any nesting level up to max_depth."""
    urls: List[str] = []
    seen = set()
    stack = [(data, 0)]
    while stack:
        node, depth = stack.pop()
        if depth > max_depth or id(node) in seen:
            continue
        if isinstance(node, dict):
            seen.add(id(node))
            for key, value in node.items():
                if key in fields and isinstance(value, str):
                    urls.append(value)
                elif isinstance(value, (dict, list)):
                    stack.append((value, depth + 1))
        elif isinstance(node, list):
            seen.add(id(node))
            for item in reversed(node):
                if isinstance(item, (dict, list)):
                    stack.append((item, depth + 1))
    return urls


async def wait_for_settle(page, idle_timeout_ms: int, ceiling_ms: int):
    """Wait for network idle or a fixed ceiling, whichever comes first.

    The loser is cancelled and awaited so neither the idle waiter nor the
    timer outlives this call.
    """
    idle = asyncio.ensure_future(page.wait_for_load_state('networkidle', timeout=idle_timeout_ms))
    ceiling = asyncio.ensure_future(asyncio.sleep(ceiling_ms / 1000))
    try:
        done, pending = await asyncio.wait({idle, ceiling}, return_when=asyncio.FIRST_COMPLETED)
    except asyncio.CancelledError:
        idle.cancel()
        ceiling.cancel()
        await asyncio.gather(idle, ceiling, return_exceptions=True)
        raise
    for task in pending:
        task.cancel()
    await asyncio.gather(*pending, return_exceptions=True)
    if idle in done and not idle.cancelled():
        error = idle.exception()
        if error is not None:
            logger.debug(f"networkidle wait ended early: {error}")


async def throttle(page, ms: int):
    if ms > 0:
        await page.wait_for_timeout(ms)


def describe_error(error: BaseException) -> str:
    if isinstance(error, PlaywrightError):
        return error.message.splitlines()[0] if error.message else type(error).__name__
    return str(error) or type(error).__name__
