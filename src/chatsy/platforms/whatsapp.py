"""WhatsApp Web adapter."""

import re

from chatsy.platforms.base import PlatformAdapter
from chatsy.platforms.page import HostPage


class WhatsAppAdapter(PlatformAdapter):
    platform = "whatsapp"
    url_contact_pattern = re.compile(r"chat/([^/?#]+)")
    generic_titles = frozenset({"WhatsApp", "WhatsApp Web"})

    message_selectors = (
        ".message-in",
        ".message-out",
        '[data-testid^="conversation-turn-"]',
    )
    text_selectors = (
        ".selectable-text",
        ".message-text",
        ".copyable-text",
    )
    time_selectors = (
        '[data-testid="msg-meta"] time',
        "time",
        ".message-time",
        ".timestamp",
        '[data-testid="msg-meta"]',
    )
    typing_selectors = (
        '[data-testid="conversation-typing"]',
        '[data-testid*="typing"]',
        ".typing-indicator",
        ".typing",
    )
    contact_selectors = (
        '[data-testid="conversation-title"]',
        ".conversation-title",
        '[data-testid="chat-subtitle"]',
    )
    input_selectors = (
        '[contenteditable="true"][data-testid="conversation-compose-box-input"]',
        '[contenteditable="true"]',
    )
    content_indicators = (
        '[data-testid="chat-list"]',
        '[data-testid="conversation-title"]',
        ".chat-list",
        ".conversation-list",
    )
    outgoing_selectors = (
        ".message-out",
        '[data-testid*="outgoing"]',
    )

    @classmethod
    def matches_host(cls, page: HostPage) -> bool:
        return page.hostname == "web.whatsapp.com"
