"""
Admin UI pages: log in as an admin and confirm each page renders its content.
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from playwright.sync_api import Page

from ..browser.probing import login_via_ui, page_text_flags, read_local_storage, wait_for_any_text
from ..browser.session import BrowserSession
from ..config import SuiteConfig
from ..reporting import TestReport
from .common import browser_check

logger = logging.getLogger(__name__)

ACCESS_DENIED = 'Access Denied'


@dataclass(frozen=True)
class AdminPageProbe:
    """Texts expected on one admin page.

    The page passes when every flag in ``require_all`` and at least one flag
    in ``require_any`` (if given) is present, and access was not denied.
    """
    name: str
    path: str
    expectations: Dict[str, Tuple[str, ...]]
    require_all: Tuple[str, ...] = ()
    require_any: Tuple[str, ...] = ()

    @property
    def all_texts(self) -> Tuple[str, ...]:
        texts = [text for group in self.expectations.values() for text in group]
        return tuple(texts) + (ACCESS_DENIED,)

    def evaluate(self, flags: Dict[str, bool]) -> Tuple[bool, str]:
        if flags.get('denied'):
            return False, "Access Denied shown"
        missing = [name for name in self.require_all if not flags.get(name)]
        if missing:
            return False, f"missing {', '.join(missing)}"
        if self.require_any and not any(flags.get(name) for name in self.require_any):
            return False, f"none of {', '.join(self.require_any)} present"
        present = [name for name, ok in flags.items() if ok and name != 'denied']
        return True, f"found {', '.join(present)}"


ADMIN_PAGES: Sequence[AdminPageProbe] = (
    AdminPageProbe(
        name="AI Analytics",
        path='/admin/ai-analytics',
        expectations={
            'title': ('AI Analytics',),
            'metrics': ('Total Tokens', 'Total Cost'),
            'tabs': ('Organizations', 'Performance'),
        },
        require_all=('title', 'metrics'),
    ),
    AdminPageProbe(
        name="Issues",
        path='/admin/issues',
        expectations={'title': ('Issue', 'Bug'), 'filters': ('Status', 'Severity')},
        require_any=('title', 'filters'),
    ),
    AdminPageProbe(
        name="Feature Requests",
        path='/admin/feature-requests',
        expectations={'title': ('Feature Request',), 'filters': ('Status', 'Priority')},
        require_any=('title', 'filters'),
    ),
    AdminPageProbe(
        name="Organizations",
        path='/admin/organizations',
        expectations={'title': ('Organizations',), 'details': ('Members', 'Agents', 'Created')},
        require_any=('title',),
    ),
    AdminPageProbe(
        name="Users",
        path='/admin/users',
        expectations={'title': ('Users', 'User Management'), 'stats': ('Total Users', 'Active')},
        require_any=('title', 'stats'),
    ),
)


def probe_admin_page(page: Page, frontend_url: str, probe: AdminPageProbe,
                     timeout: int = 15000) -> Tuple[bool, str]:
    """Open one admin page, wait for its content and evaluate the expected texts."""
    page.goto(f"{frontend_url.rstrip('/')}{probe.path}", wait_until='domcontentloaded')
    wait_for_any_text(page, probe.all_texts, timeout)

    expectations = dict(probe.expectations)
    expectations['denied'] = (ACCESS_DENIED,)
    return probe.evaluate(page_text_flags(page, expectations))


def run_admin_pages(config: SuiteConfig, session: Optional[BrowserSession] = None,
                    pages: Sequence[AdminPageProbe] = ADMIN_PAGES) -> TestReport:
    report = TestReport("Admin Pages")
    creds = config.credentials
    frontend = config.api.frontend_url

    if not creds.has_admin:
        report.skipped("Admin login", "ADMIN_EMAIL / ADMIN_PASSWORD not set")
        return report.finish()

    with browser_check(report, config, session) as session:
        if session is None:
            return report.finish()
        page = session.page

        report.section("Authentication")
        login = report.check("Admin login",
                             lambda: login_via_ui(page, frontend, creds.admin_email, creds.admin_password))
        if not login.ok:
            session.screenshot("admin_login_failed")
            return report.finish()

        report.check("Auth state stored", lambda: (
            bool(read_local_storage(page, 'auth_user')), "auth_user present in localStorage"))

        report.section("Pages")
        for probe in pages:
            result = report.check(f"{probe.name} page", lambda probe=probe: probe_admin_page(page, frontend, probe))
            session.screenshot(f"admin_{probe.path.strip('/').replace('/', '_')}")
            if not result.ok:
                logger.info(f"{probe.name} page failed: {result.detail}")

        report.section("Navigation")

        def navigation():
            off_route = []
            for probe in pages:
                page.goto(f"{frontend.rstrip('/')}{probe.path}", wait_until='domcontentloaded')
                if probe.path not in page.url:
                    off_route.append(f"{probe.path} -> {page.url}")
            return not off_route, "; ".join(off_route) or "all admin routes reachable"

        report.check("Admin navigation", navigation)

        report.section("Console")
        errors = list(session.console_errors)
        if errors:
            report.failed("No JavaScript errors", f"{len(errors)} error(s): " + " | ".join(e[:100] for e in errors[:3]))
        else:
            report.passed("No JavaScript errors")
    return report.finish()
