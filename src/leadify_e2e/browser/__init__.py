"""Playwright-based UI probing."""

from .session import BrowserSession
from .probing import first_present, login_via_ui, page_text_flags, require_present, wait_for_any_text
from .chat_ui import BrowserConversationSimulator, send_chat_message
