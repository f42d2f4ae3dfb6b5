"""
Shared fakes for Playwright pages, locators and elements.
"""
import sys
import os
from unittest.mock import Mock, MagicMock, AsyncMock

import pytest

# make the project root importable
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def make_element(key, visible=True, enabled=True, href=None, click=None):
    element = MagicMock()
    element.evaluate = AsyncMock(return_value=key)
    element.is_visible = AsyncMock(return_value=visible)
    element.is_enabled = AsyncMock(return_value=enabled)
    element.scroll_into_view_if_needed = AsyncMock()
    element.click = AsyncMock(side_effect=click)
    element.get_attribute = AsyncMock(return_value=href)
    return element


def make_locator(elements=()):
    elements = list(elements)
    locator = MagicMock()
    locator.all = AsyncMock(return_value=elements)
    locator.count = AsyncMock(return_value=len(elements))
    locator.is_visible = AsyncMock(return_value=bool(elements))
    locator.fill = AsyncMock()
    locator.click = AsyncMock()
    locator.get_attribute = AsyncMock(return_value=None)
    locator.first = locator
    return locator


def make_page(url, elements_by_selector=None):
    """Page whose locator(selector) returns the elements registered for that selector."""
    elements_by_selector = elements_by_selector or {}
    page = MagicMock()
    page.url = url
    page.locator = Mock(side_effect=lambda selector: make_locator(elements_by_selector.get(selector, ())))
    page.wait_for_timeout = AsyncMock()
    page.wait_for_load_state = AsyncMock()
    page.go_back = AsyncMock()
    page.evaluate = AsyncMock()
    page.eval_on_selector_all = AsyncMock(return_value=[])
    page.expect_navigation = MagicMock(return_value=MagicMock())
    return page


class SnapshotHarvester:
    """Returns the given URL snapshots in order, repeating the last one."""

    def __init__(self, *snapshots):
        self.snapshots = [set(s) for s in snapshots]
        self.calls = 0

    async def harvest(self, page, base_url):
        index = min(self.calls, len(self.snapshots) - 1)
        self.calls += 1
        return set(self.snapshots[index])


def article_urls(start, stop, host='https://blog.example.com'):
    return {f"{host}/posts/article-number-{i}" for i in range(start, stop)}


@pytest.fixture
def base_url():
    return 'https://blog.example.com/'
