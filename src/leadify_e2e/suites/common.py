"""Helpers shared by the check suites."""

import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from ..browser.session import BrowserSession
from ..clients.api_client import AuthSession, CRMApiClient
from ..clients.supabase_client import SupabaseVerifier
from ..config import SuiteConfig
from ..exceptions import SkipCheck
from ..reporting import TestReport

logger = logging.getLogger(__name__)


def skip_unless(condition: Any, reason: str):
    """Raise ``SkipCheck`` when a prerequisite is missing."""
    if not condition:
        raise SkipCheck(reason)


def login_check(report: TestReport, client: CRMApiClient, config: SuiteConfig,
                name: str = "Login") -> Optional[AuthSession]:
    """Log in with the test user; records PASS, FAIL or SKIP and returns the session."""
    creds = config.credentials
    if not creds.has_test_user:
        report.skipped(name, "TEST_USER_EMAIL / TEST_USER_PASSWORD not set")
        return None
    result = report.check(name, lambda: client.login(creds.test_email, creds.test_password))
    return result.value if result.ok else None


def first_agent_check(report: TestReport, client: CRMApiClient,
                      name: str = "Fetch agents") -> Optional[Dict[str, Any]]:
    """Record a check that lists agents and return the first one."""
    def fetch():
        agents = client.list_agents()
        if not agents:
            return False, "No agents found; create an agent first"
        agent = agents[0]
        return agent, f"{len(agents)} agent(s), using {agent.get('name') or agent.get('id')}"

    result = report.check(name, fetch)
    return result.value if result.ok else None


def build_verifier(config: SuiteConfig) -> Optional[SupabaseVerifier]:
    if not config.supabase.is_configured:
        logger.info("Supabase is not configured; database checks will be skipped")
        return None
    return SupabaseVerifier(config.supabase)


@contextmanager
def browser_check(report: TestReport, config: SuiteConfig, session: Optional[BrowserSession] = None,
                  name: str = "Launch browser") -> Iterator[Optional[BrowserSession]]:
    """Yield a running browser session.

    A session passed in is used as is and left open. Otherwise Chromium is
    launched under a check; when that fails the FAIL is recorded and ``None``
    is yielded so the suite can finish its report.
    """
    if session is not None:
        yield session
        return

    browser = BrowserSession(config.browser)
    launch = report.check(name, lambda: (browser.start() is browser, f"Chromium (headless={browser.headless})"))
    if not launch.ok:
        yield None
        return
    with browser:
        yield browser
