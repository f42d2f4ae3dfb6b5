from unittest.mock import AsyncMock, Mock

import pytest

from conftest import make_locator, make_page
from discovery.auth import AuthEngine, VisitedHostSet
from discovery.config import AuthConfig

LOGIN_URL = 'https://app.example.com/login'
LOGIN_FORM = {
    'form[action*="login"]',
    'input[type="email"]',
    'input[type="password"]',
    'button[type="submit"]',
}


def login_page(present, url=LOGIN_URL, land_on=None, tokens=None):
    """Fake page where only the selectors in `present` match, scoped or not."""
    page = make_page(url)
    page.fills = []
    tokens = tokens or {}

    def locator(selector):
        base = selector.split(' >> ')[0]
        loc = make_locator([Mock()] if base in present else [])
        loc.locator = Mock(side_effect=locator)
        loc.fill = AsyncMock(side_effect=lambda value, **kwargs: page.fills.append((base, value)))
        loc.get_attribute = AsyncMock(side_effect=lambda name: tokens.get(base) if name == 'content' else None)
        if base == 'button[type="submit"]' and land_on:
            loc.click = AsyncMock(side_effect=lambda **kwargs: setattr(page, 'url', land_on))
        return loc

    page.locator = Mock(side_effect=locator)
    return page


def auth_engine(visited=None, **config):
    config.setdefault('throttle_ms', 0)
    return AuthEngine(AuthConfig(username='alice', password='wrong', **config), visited_hosts=visited if visited is not None else VisitedHostSet())


class TestVisitedHostSet:
    def test_case_insensitive_and_add_only(self):
        hosts = VisitedHostSet()
        hosts.add('App.Example.com')
        hosts.add('')

        assert 'app.example.com' in hosts
        assert '' not in hosts
        assert len(hosts) == 1


class TestHandleAuthentication:
    @pytest.mark.asyncio
    async def test_wrong_credentials_then_host_is_not_retried(self):
        visited = VisitedHostSet()
        engine = auth_engine(visited)
        page = login_page(LOGIN_FORM)

        first = await engine.handle_authentication(page)

        assert not first.success
        assert first.error == f"Still on login page: {LOGIN_URL}"
        assert 'Login form detected: form[action*="login"] >> nth=0' in first.interactions
        assert page.fills == [('input[type="email"]', 'alice'), ('input[type="password"]', 'wrong')]
        assert 'app.example.com' in visited

        second = await engine.handle_authentication(page)

        assert not second.success
        assert second.interactions == ['Host already attempted']
        assert len(page.fills) == 2

    @pytest.mark.asyncio
    async def test_successful_login(self):
        page = login_page(LOGIN_FORM, land_on='https://app.example.com/dashboard')

        result = await auth_engine().handle_authentication(page)

        assert result.success
        assert result.error is None
        assert result.interactions[-1] == 'Login successful: https://app.example.com/dashboard'
        page.expect_navigation.assert_called_once()

    @pytest.mark.asyncio
    async def test_visible_error_message_fails_login(self):
        page = login_page(LOGIN_FORM | {'[class*="error"]'}, land_on='https://app.example.com/home')

        result = await auth_engine().handle_authentication(page)

        assert not result.success
        assert result.error == 'Login error indicator visible: [class*="error"]'

    @pytest.mark.asyncio
    async def test_immediate_retries_within_one_call(self):
        page = login_page(LOGIN_FORM)

        result = await auth_engine(max_attempts=2).handle_authentication(page)

        assert not result.success
        assert [i for i in result.interactions if i.startswith('Login attempt')] == [
            f"Login attempt 1 failed: Still on login page: {LOGIN_URL}",
            f"Login attempt 2 failed: Still on login page: {LOGIN_URL}",
        ]
        assert len(page.fills) == 4

    @pytest.mark.asyncio
    async def test_no_form_leaves_host_unmarked(self):
        visited = VisitedHostSet()

        result = await auth_engine(visited).handle_authentication(login_page({'input[type="password"]'}))

        assert not result.success
        assert result.interactions == ['No login form detected']
        assert len(visited) == 0


class TestDetection:
    @pytest.mark.asyncio
    async def test_csrf_token_read_from_meta(self):
        page = login_page(LOGIN_FORM | {'meta[name="csrf-token"]'}, tokens={'meta[name="csrf-token"]': 'tok-123'})

        form = await auth_engine().detect_login_form(page)

        assert form.csrf_token == 'tok-123'
        assert form.username_selector == 'input[type="email"]'
        assert form.submit_selector == 'button[type="submit"]'

    @pytest.mark.asyncio
    async def test_has_login_wall(self):
        engine = auth_engine()

        assert await engine.has_login_wall(login_page({'input[type="password"]'}))
        assert not await engine.has_login_wall(login_page(set()))
