"""
Human handoff round trip.

AI replies, a handoff is requested, the AI is blocked while a human owns the
conversation, the conversation is transferred back and the AI replies again.
State changes are confirmed by polling the ``conversations`` row.
"""

import logging
from typing import Any, Dict, Optional

from playwright.sync_api import Page, expect
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .common import browser_check, build_verifier, first_agent_check, login_check, skip_unless
from ..browser.probing import login_via_ui, require_present
from ..browser.session import BrowserSession
from ..clients.api_client import CRMApiClient
from ..clients.supabase_client import SupabaseVerifier
from ..config import SuiteConfig
from ..conversations.templates import HANDOFF_FOLLOWUP_MESSAGE, HANDOFF_OPENING_MESSAGE
from ..exceptions import SkipCheck
from ..ids import conversation_tag, new_id
from ..reporting import TestReport
from ..waiting import wait_from_config

logger = logging.getLogger(__name__)

ACTING_ROLES = ('agent', 'admin')


def _in_human_mode(row: Optional[Dict[str, Any]]) -> bool:
    return bool(row) and (row.get('handoff') is True or row.get('mode') == 'human')


def _in_ai_mode(row: Optional[Dict[str, Any]]) -> bool:
    return bool(row) and row.get('handoff') is False and row.get('mode') == 'ai'


def run_handoff_flow(config: SuiteConfig, client: Optional[CRMApiClient] = None,
                     verifier: Optional[SupabaseVerifier] = None) -> TestReport:
    if client is None:
        with CRMApiClient(config.api) as client:
            return run_handoff_flow(config, client, verifier)

    verifier = verifier if verifier is not None else build_verifier(config)
    report = TestReport("Human Handoff")

    report.section("Setup")
    session = login_check(report, client, config)
    if not session:
        return report.finish()
    agent = first_agent_check(report, client)
    if not agent:
        return report.finish()

    state: Dict[str, Any] = {}

    def create_conversation():
        if verifier:
            row = verifier.insert_row('conversations', {
                'id': new_id(),
                'agent_id': agent['id'],
                'user_id': session.user_id,
                'source': 'web',
                'status': 'active',
                'handoff': False,
                'mode': 'ai',
            })
        else:
            row = client.create_conversation(agent['id'], source='web')
        state['conversation_id'] = row.get('id')
        return bool(state['conversation_id']), f"conversation {state['conversation_id']}"

    created = report.check("Create conversation", create_conversation)
    if not created.ok:
        return report.finish()
    conversation_id = state['conversation_id']

    def conversation_row(predicate, description):
        skip_unless(verifier, "Supabase not configured")

        def poll():
            row = verifier.get_row('conversations', conversation_id)
            return row if predicate(row) else None

        return wait_from_config(
            poll,
            config.wait,
            description=description,
        )

    report.section("AI mode")

    def ai_replies():
        reply = client.send_chat(HANDOFF_OPENING_MESSAGE, agent['id'], conversation_id)
        return (not reply.is_human_mode and bool(reply.response)), f"AI replied ({len(reply.response or '')} chars)"

    report.check("AI responds before handoff", ai_replies)

    report.section("Handoff")

    def request_handoff():
        reason = f"E2E handoff check {conversation_tag()}"
        handoff = client.request_handoff(conversation_id, reason, priority='high')
        assigned = (handoff.get('assignedTo') or {}).get('name')
        state['handoff_id'] = handoff.get('id')
        return bool(handoff.get('id')), f"handoff {handoff.get('id')}" + (f", assigned to {assigned}" if assigned else "")

    requested = report.check("Request handoff", request_handoff)

    report.check("Conversation switched to human mode",
                 lambda: (True, f"mode={conversation_row(_in_human_mode, 'handoff mode').get('mode')}"))

    def ai_blocked():
        skip_unless(requested.ok, "handoff was not created")
        reply = client.send_chat(HANDOFF_FOLLOWUP_MESSAGE, agent['id'], conversation_id)
        return reply.is_human_mode, "isHumanMode" if reply.is_human_mode else "AI still answering"

    report.check("AI blocked during handoff", ai_blocked)

    def handoff_listed():
        skip_unless(requested.ok, "handoff was not created")
        handoffs = client.list_handoffs()
        ids = {h.get('conversation_id') or h.get('conversationId') for h in handoffs}
        return conversation_id in ids, f"{len(handoffs)} open handoff(s)"

    report.check("Handoff listed", handoff_listed)

    report.section("Transfer back to AI")

    def acting_user():
        if verifier:
            members = verifier.list_organization_members(agent.get('organization_id'), roles=ACTING_ROLES)
            if members:
                return members[0]['user_id']
        return session.user_id

    def transfer():
        skip_unless(requested.ok, "handoff was not created")
        user_id = acting_user()
        client.transfer_to_ai(conversation_id, "E2E transfer check", acting_user_id=user_id)
        return True, f"transferred by {user_id}"

    transferred = report.check("Transfer to AI", transfer)

    report.check("Conversation back in AI mode",
                 lambda: bool(conversation_row(_in_ai_mode, 'AI mode')))

    def ai_resumes():
        skip_unless(transferred.ok, "transfer did not succeed")
        reply = client.send_chat("Thanks, are you still there?", agent['id'], conversation_id)
        return (not reply.is_human_mode and bool(reply.response)), "AI replied after transfer"

    report.check("AI responds after transfer", ai_resumes)

    report.section("Cleanup")

    def cleanup():
        skip_unless(verifier, "conversation created through the API is kept")
        return verifier.delete_row('conversations', conversation_id)

    report.check("Delete test conversation", cleanup)
    return report.finish()


HANDOFF_CARD_SELECTORS = ('.space-y-4 > div:has(button:has-text("Transfer to AI"))',
                          '[data-testid="handoff-card"]')
TRANSFER_BUTTON = 'button:has-text("Transfer to AI")'
TOAST_SELECTORS = ('.sonner-toast', '[data-sonner-toast]', '[role="status"]')


def transfer_first_handoff(page: Page, timeout: int = 15000) -> str:
    """Click "Transfer to AI" on the first handoff card and wait for it to leave the queue."""
    cards = page.locator(HANDOFF_CARD_SELECTORS[0])
    card = require_present(page, HANDOFF_CARD_SELECTORS, "handoff card", timeout)
    before = cards.count()
    card_text = card.inner_text()[:80]

    card.locator(TRANSFER_BUTTON).first.click()

    expect(cards).to_have_count(before - 1, timeout=timeout)
    return card_text


def run_transfer_ui(config: SuiteConfig, session: Optional[BrowserSession] = None) -> TestReport:
    """Transfer a queued handoff back to the AI from the human-handoff page."""
    report = TestReport("Transfer to AI (UI)")
    creds = config.credentials
    frontend = config.api.frontend_url.rstrip('/')

    if not creds.has_test_user:
        report.skipped("UI login", "TEST_USER_EMAIL / TEST_USER_PASSWORD not set")
        return report.finish()

    with browser_check(report, config, session) as session:
        if session is None:
            return report.finish()
        page = session.page

        login = report.check("UI login", lambda: login_via_ui(page, frontend, creds.test_email,
                                                               creds.test_password, login_path='/login'))
        if not login.ok:
            return report.finish()

        def open_queue():
            page.wait_for_url("**/dashboard", timeout=15000)
            page.goto(f"{frontend}/human-handoff", wait_until='domcontentloaded')
            return '/human-handoff' in page.url, page.url

        report.check("Open human handoff page", open_queue)

        def transfer():
            if page.locator(TRANSFER_BUTTON).count() == 0:
                try:
                    page.wait_for_selector(TRANSFER_BUTTON, timeout=5000)
                except PlaywrightTimeoutError:
                    raise SkipCheck("no conversations waiting in the handoff queue")
            card_text = transfer_first_handoff(page)
            return True, f"transferred: {card_text!r}"

        transferred = report.check("Transfer first handoff to AI", transfer)

        def toast():
            skip_unless(transferred.ok, "no transfer happened")
            require_present(page, TOAST_SELECTORS, "confirmation toast", 5000)
            return True

        report.check("Confirmation toast shown", toast)
        session.screenshot("transfer_to_ai")

    return report.finish()
