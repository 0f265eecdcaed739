"""
Playwright browser session shared by the UI checks.
"""

import json
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from playwright.sync_api import Browser, BrowserContext, Page, Playwright, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from ..config import BrowserConfig

logger = logging.getLogger(__name__)

AUTH_INIT_SCRIPT = """
(() => {{
  window.localStorage.setItem('auth_token', {token});
  window.localStorage.setItem('auth_user', {user});
  window.localStorage.setItem('auth_initialized', 'true');
}})();
"""


class BrowserSession:
    """Chromium session with console-error capture and failure screenshots.

    Usage::

        with BrowserSession(config.browser) as session:
            session.page.goto(url)
    """

    def __init__(self, config: BrowserConfig, headless: Optional[bool] = None):
        self.config = config
        self.headless = config.headless if headless is None else headless
        self.artifacts_dir = Path(config.artifacts_dir)
        self.console_errors: List[str] = []
        self._playwright: Optional[Playwright] = None
        self.browser: Optional[Browser] = None
        self.context: Optional[BrowserContext] = None
        self.page: Optional[Page] = None

    def __enter__(self) -> "BrowserSession":
        if self.page is None:
            self.start()
        return self

    def start(self) -> "BrowserSession":
        """Launch Chromium and open the first page.

        Whatever was started is torn down again if a later step fails.
        """
        self._playwright = sync_playwright().start()
        try:
            self.browser = self._playwright.chromium.launch(headless=self.headless, slow_mo=self.config.slow_mo)
            self.context = self.browser.new_context(
                viewport={'width': self.config.viewport_width, 'height': self.config.viewport_height}
            )
            self.context.set_default_timeout(self.config.navigation_timeout)
            self.page = self.new_page()
        except Exception:
            self.close()
            raise
        logger.info(f"Browser started (headless={self.headless})")
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        if exc_type is not None and self.page is not None:
            try:
                self.screenshot("error")
            except PlaywrightError as e:
                logger.warning(f"Could not capture error screenshot: {e}")
        self.close()

    def new_page(self) -> Page:
        page = self.context.new_page()
        page.on("console", self._on_console)
        page.on("pageerror", lambda error: self.console_errors.append(str(error)))
        return page

    def _on_console(self, message):
        if message.type == "error":
            self.console_errors.append(message.text)

    def inject_auth(self, token: str, user: Optional[Dict[str, Any]] = None):
        """Seed localStorage auth before any page script runs."""
        script = AUTH_INIT_SCRIPT.format(token=json.dumps(token), user=json.dumps(json.dumps(user or {})))
        self.context.add_init_script(script)

    def screenshot(self, name: str, full_page: bool = True) -> Path:
        self.artifacts_dir.mkdir(parents=True, exist_ok=True)
        stamp = datetime.now().strftime('%Y%m%d_%H%M%S')
        path = self.artifacts_dir / f"{name}_{stamp}.png"
        self.page.screenshot(path=str(path), full_page=full_page)
        logger.info(f"Screenshot saved to {path}")
        return path

    def clear_console_errors(self):
        self.console_errors.clear()

    def close(self):
        if self.context:
            self.context.close()
        if self.browser:
            self.browser.close()
        if self._playwright:
            self._playwright.stop()
        self.context = self.browser = self.page = None
        self._playwright = None
