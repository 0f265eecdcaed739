"""
Element lookup with layered selector fallbacks, text probes and UI login.

The frontend has changed markup several times, so every control is looked
up through a list of selectors tried in order.
"""

import logging
from typing import Dict, Optional, Sequence

from playwright.sync_api import Locator, Page
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from ..exceptions import AuthenticationError, BrowserProbeError, WaitTimeoutError
from ..waiting import wait_until

logger = logging.getLogger(__name__)

EMAIL_SELECTORS = ('input[type="email"]', 'input[name="email"]', '#email')
PASSWORD_SELECTORS = ('input[type="password"]', 'input[name="password"]', '#password')
SUBMIT_SELECTORS = (
    'button[type="submit"]:has-text("Sign In")',
    'button[type="submit"]',
    'button:has-text("Sign in")',
    'button:has-text("Login")',
)

LOGIN_API_PATH = '/api/auth/login'


def first_present(page: Page, selectors: Sequence[str]) -> Optional[Locator]:
    """First visible match among ``selectors``, or None."""
    for selector in selectors:
        locator = page.locator(selector)
        if locator.count() > 0 and locator.first.is_visible():
            logger.debug(f"Matched selector {selector}")
            return locator.first
    return None


def require_present(page: Page, selectors: Sequence[str], what: str, timeout: int = 10000) -> Locator:
    """Wait for any of ``selectors`` to be visible and return the first match.

    Raises:
        BrowserProbeError: If none shows up in time
    """
    try:
        page.wait_for_selector(', '.join(selectors), state='visible', timeout=timeout)
    except PlaywrightTimeoutError:
        raise BrowserProbeError(f"No {what} found (tried {', '.join(selectors)})")

    locator = first_present(page, selectors)
    if locator is None:
        raise BrowserProbeError(f"No visible {what} found")
    return locator


def page_text_flags(page: Page, expectations: Dict[str, Sequence[str]]) -> Dict[str, bool]:
    """For each name, whether any of its texts occurs in the page body."""
    body = page.inner_text('body')
    return {name: any(text in body for text in texts) for name, texts in expectations.items()}


def wait_for_any_text(page: Page, texts: Sequence[str], timeout: int = 10000) -> str:
    """Wait until one of ``texts`` is rendered and return the first one present.

    Raises:
        WaitTimeoutError: If none appears within ``timeout`` milliseconds
    """
    try:
        page.wait_for_function(
            "texts => !!document.body && texts.some(t => document.body.innerText.includes(t))",
            arg=list(texts),
            timeout=timeout,
        )
    except PlaywrightTimeoutError:
        raise WaitTimeoutError(f"any of {list(texts)}", timeout / 1000)

    # The text can vanish between the wait and the read
    body = page.inner_text('body')
    found = next((text for text in texts if text in body), None)
    if found is None:
        raise WaitTimeoutError(f"any of {list(texts)}", timeout / 1000)
    return found


def read_local_storage(page: Page, key: str) -> Optional[str]:
    return page.evaluate("key => window.localStorage.getItem(key)", key)


def login_via_ui(page: Page, frontend_url: str, email: str, password: str,
                 login_path: str = '/auth', timeout: int = 15000) -> str:
    """Log in through the form and return the token the app stored.

    Waits on the login API response and then on localStorage instead of
    sleeping after the click.
    """
    page.goto(f"{frontend_url.rstrip('/')}{login_path}", wait_until='domcontentloaded')

    require_present(page, EMAIL_SELECTORS, "email input", timeout).fill(email)
    require_present(page, PASSWORD_SELECTORS, "password input", timeout).fill(password)
    submit = require_present(page, SUBMIT_SELECTORS, "submit button", timeout)

    try:
        with page.expect_response(
            lambda r: LOGIN_API_PATH in r.url and r.request.method == 'POST',
            timeout=timeout,
        ) as response_info:
            submit.click()
    except PlaywrightTimeoutError:
        raise AuthenticationError("Login form submitted but no login API call was observed")

    response = response_info.value
    if not response.ok:
        raise AuthenticationError(f"UI login failed with HTTP {response.status}")

    token = wait_until(
        lambda: read_local_storage(page, 'auth_token'),
        timeout=timeout / 1000,
        interval=0.25,
        max_interval=1.0,
        description="auth_token in localStorage",
    )
    logger.info(f"Logged in through the UI as {email}")
    return token
