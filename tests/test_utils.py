import asyncio
from unittest.mock import Mock

import pytest

from discovery.utils import absolutize, extract_urls_from_json, hostname_of, wait_for_settle


class TestAbsolutize:
    @pytest.mark.parametrize('href, expected', [
        ('/posts/a', 'https://example.com/posts/a'),
        ('b', 'https://example.com/blog/b'),
        ('https://other.org/x#top', 'https://other.org/x'),
        ('  /posts/a  ', 'https://example.com/posts/a'),
        ('#section', None),
        ('javascript:void(0)', None),
        ('MAILTO:someone@example.com', None),
        ('ftp://example.com/file', None),
        ('', None),
        (None, None),
    ])
    def test_cases(self, href, expected):
        assert absolutize(href, 'https://example.com/blog/') == expected

    def test_hostname_of(self):
        assert hostname_of('https://Example.COM:8443/path') == 'example.com'
        assert hostname_of('not a url') == ''


class TestExtractUrlsFromJson:
    def test_nested_fields(self):
        data = {'@graph': [{'@id': '/a', 'author': {'url': '/people/x'}}, {'headline': 'no url'}], 'url': '/root'}

        assert sorted(extract_urls_from_json(data, ('url', '@id'))) == ['/a', '/people/x', '/root']

    def test_cycles_terminate(self):
        node = {'url': '/self'}
        node['children'] = [node]

        assert extract_urls_from_json(node, ('url',)) == ['/self']

    def test_depth_limit(self):
        deep = {'url': '/bottom'}
        for _ in range(30):
            deep = {'child': deep}

        assert extract_urls_from_json(deep, ('url',), max_depth=10) == []
        assert extract_urls_from_json(deep, ('url',), max_depth=40) == ['/bottom']


class TestWaitForSettle:
    @pytest.mark.asyncio
    async def test_ceiling_wins_when_network_never_idles(self):
        started = asyncio.Event()
        cancelled = asyncio.Event()

        async def never_idle(state, timeout):
            started.set()
            try:
                await asyncio.sleep(3600)
            except asyncio.CancelledError:
                cancelled.set()
                raise

        page = Mock()
        page.wait_for_load_state = never_idle

        await asyncio.wait_for(wait_for_settle(page, 30000, 20), timeout=5)

        assert started.is_set()
        assert cancelled.is_set()

    @pytest.mark.asyncio
    async def test_idle_wins(self):
        async def idle(state, timeout):
            return None

        page = Mock()
        page.wait_for_load_state = idle

        await asyncio.wait_for(wait_for_settle(page, 30000, 60000), timeout=5)

    @pytest.mark.asyncio
    async def test_idle_timeout_is_not_raised(self):
        async def times_out(state, timeout):
            raise TimeoutError('Timeout 30000ms exceeded')

        page = Mock()
        page.wait_for_load_state = times_out

        await asyncio.wait_for(wait_for_settle(page, 30000, 60000), timeout=5)
