# auth.py
import logging
from typing import Optional, Set

from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from .config import AuthConfig, LoginSelectors, load_heuristics
from .constants import INTERACTION_TIMEOUT, LOGIN_SETTLE_MS
from .exceptions import AuthError
from .models import AuthResult, LoginForm
from .utils import describe_error, hostname_of, throttle

logger = logging.getLogger(__name__)


class VisitedHostSet:
    """Hostnames that already had a login attempt in this process. Add-only."""

    def __init__(self):
        self._hosts: Set[str] = set()

    def add(self, host: str):
        if host:
            self._hosts.add(host.lower())

    def __contains__(self, host) -> bool:
        return bool(host) and host.lower() in self._hosts

    def __len__(self) -> int:
        return len(self._hosts)


VISITED_HOSTS = VisitedHostSet()


class AuthEngine:
    def __init__(self, config: Optional[AuthConfig] = None, selectors: Optional[LoginSelectors] = None,
                 visited_hosts: Optional[VisitedHostSet] = None):
        self.config = config or AuthConfig()
        self.selectors = selectors or load_heuristics().login
        self.visited_hosts = visited_hosts if visited_hosts is not None else VISITED_HOSTS

    async def has_login_wall(self, page) -> bool:
        for selector in self.selectors.password_inputs:
            try:
                if await page.locator(selector).count() > 0:
                    return True
            except Exception as e:
                logger.debug(f"Login wall check failed for {selector}: {describe_error(e)}")
        return False

    async def handle_authentication(self, page) -> AuthResult:
        host = hostname_of(page.url)
        if host in self.visited_hosts:
            logger.info(f"Skipping login for {host}: already attempted")
            return AuthResult(False, ['Host already attempted'], error='Host already attempted')

        result = AuthResult(False)
        try:
            form = await self.detect_login_form(page)
        except Exception as e:
            result.error = describe_error(e)
            result.interactions.append(f"Login form detection failed: {result.error}")
            return result

        if form is None:
            result.interactions.append('No login form detected')
            return result

        # one login per host per process, whatever the outcome
        self.visited_hosts.add(host)
        result.interactions.append(f"Login form detected: {form.form_selector}")
        if form.csrf_token:
            result.interactions.append('CSRF token present')

        for attempt in range(1, max(1, self.config.max_attempts) + 1):
            try:
                await self.attempt_login(page, form)
            except Exception as e:
                result.error = describe_error(e)
                result.interactions.append(f"Login attempt {attempt} failed: {result.error}")
                logger.warning(f"Login attempt {attempt} on {host} failed: {result.error}")
                continue
            result.success = True
            result.error = None
            result.interactions.append(f"Login successful: {page.url}")
            logger.info(f"Login successful on {host}")
            break

        return result

    async def detect_login_form(self, page) -> Optional[LoginForm]:
        login = self.selectors
        for form_selector in login.forms:
            try:
                count = await page.locator(form_selector).count()
            except Exception as e:
                logger.debug(f"Login form selector failed: {form_selector}: {describe_error(e)}")
                continue

            for index in range(count):
                scoped = f"{form_selector} >> nth={index}"
                form = page.locator(scoped)
                if not await form.is_visible():
                    continue

                username = await self._first_visible(form, login.username_inputs)
                password = await self._first_visible(form, login.password_inputs)
                submit = await self._first_visible(form, login.submit_buttons)
                if username and password and submit:
                    logger.debug(f"Login form found: {scoped}")
                    return LoginForm(scoped, username, password, submit, await self._csrf_token(page, form))
        return None

    async def attempt_login(self, page, form: LoginForm):
        container = page.locator(form.form_selector)

        await container.locator(form.username_selector).first.fill(self.config.username, timeout=INTERACTION_TIMEOUT)
        await throttle(page, self.config.throttle_ms)
        await container.locator(form.password_selector).first.fill(self.config.password, timeout=INTERACTION_TIMEOUT)
        await throttle(page, self.config.throttle_ms)

        try:
            async with page.expect_navigation(timeout=self.config.network_timeout):
                await container.locator(form.submit_selector).first.click(timeout=INTERACTION_TIMEOUT)
        except PlaywrightTimeoutError:
            logger.debug('No navigation after login submit, verifying in place')

        await page.wait_for_timeout(LOGIN_SETTLE_MS)
        await self._verify_login(page)

    async def _verify_login(self, page):
        url = (page.url or '').lower()
        for marker in self.selectors.url_markers:
            if marker.lower() in url:
                raise AuthError(f"Still on login page: {page.url}")

        for pattern in self.selectors.error_patterns:
            try:
                indicator = page.locator(pattern).first
                visible = await indicator.count() > 0 and await indicator.is_visible()
            except PlaywrightTimeoutError:
                continue
            if visible:
                raise AuthError(f"Login error indicator visible: {pattern}")

    async def _first_visible(self, form, selectors) -> Optional[str]:
        for selector in selectors:
            try:
                candidate = form.locator(selector).first
                if await candidate.count() > 0 and await candidate.is_visible():
                    return selector
            except Exception as e:
                logger.debug(f"Login field selector failed: {selector}: {describe_error(e)}")
        return None

    async def _csrf_token(self, page, form) -> Optional[str]:
        for selector in self.selectors.csrf_tokens:
            scope = page if selector.startswith('meta') else form
            try:
                token = scope.locator(selector).first
                if await token.count() == 0:
                    continue
                value = await token.get_attribute('value') or await token.get_attribute('content')
            except Exception as e:
                logger.debug(f"CSRF selector failed: {selector}: {describe_error(e)}")
                continue
            if value:
                return value
        return None
