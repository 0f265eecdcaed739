"""
Driving the public chat widget.
"""

import logging
from typing import Any, Dict, Iterable, Optional

from playwright.sync_api import Page
from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError

from .probing import require_present
from ..conversations.generator import PlannedConversation, SimulationStats
from ..exceptions import ApiRequestError, E2EError, WaitTimeoutError

logger = logging.getLogger(__name__)

CHAT_INPUT_SELECTORS = (
    'textarea[placeholder="Type your message..."]',
    'textarea[placeholder*="message" i]',
    'input[placeholder*="message" i]',
    'textarea',
)

CHAT_API_PATH = '/api/chat'


def send_chat_message(page: Page, text: str, timeout: int = 30000) -> Dict[str, Any]:
    """Type a message, press Enter and return the decoded ``/api/chat`` response."""
    chat_input = require_present(page, CHAT_INPUT_SELECTORS, "chat input")
    chat_input.fill(text)

    try:
        with page.expect_response(
            lambda r: CHAT_API_PATH in r.url and r.request.method == 'POST',
            timeout=timeout,
        ) as response_info:
            chat_input.press('Enter')
    except PlaywrightTimeoutError:
        raise WaitTimeoutError(f"chat response to {text!r}", timeout / 1000)

    response = response_info.value
    if not response.ok:
        raise ApiRequestError(f"Chat UI request failed with HTTP {response.status}", status_code=response.status)
    try:
        return response.json()
    except PlaywrightError:
        return {}


def run_browser_conversation(page: Page, frontend_url: str, planned: PlannedConversation,
                             timeout: int = 30000) -> Optional[str]:
    """Open the agent's chat page and send every template message."""
    page.goto(f"{frontend_url.rstrip('/')}/chat/{planned.agent_id}", wait_until='domcontentloaded')

    conversation_id = None
    for message in planned.template.messages:
        payload = send_chat_message(page, message, timeout)
        conversation_id = payload.get('conversationId') or conversation_id
    return conversation_id


class BrowserConversationSimulator:
    """Replays planned conversations through the chat UI, one page at a time."""

    def __init__(self, session, frontend_url: str, timeout: int = 30000):
        self.session = session
        self.frontend_url = frontend_url
        self.timeout = timeout

    def run(self, plan: Iterable[PlannedConversation]) -> SimulationStats:
        stats = SimulationStats()
        for planned in plan:
            try:
                conversation_id = run_browser_conversation(self.session.page, self.frontend_url,
                                                           planned, self.timeout)
            except (E2EError, PlaywrightError) as e:
                logger.warning(f"Browser conversation {planned.label} failed: {e}")
                stats.record_failure(planned, str(e))
                continue
            stats.messages_sent += len(planned.template)
            stats.record_success(planned, conversation_id)
        return stats
