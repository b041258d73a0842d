"""Telegram Web adapter."""

import re

from chatsy.platforms.base import PlatformAdapter
from chatsy.platforms.page import HostPage


class TelegramAdapter(PlatformAdapter):
    platform = "telegram"
    # /c/<peer> paths and #<peer> fragments (web.telegram.org/k/#@name)
    url_contact_pattern = re.compile(r"(?:/c/|#)([^/?#]+)")
    generic_titles = frozenset({"Telegram", "Telegram Web"})

    message_selectors = (
        ".message",
        ".bubble",
        "[data-message-id]",
    )
    text_selectors = (
        ".message-text",
        ".text-content",
        ".message-content",
        ".text",
    )
    time_selectors = (
        "time",
        ".time",
        ".message-time",
        ".timestamp",
        "[data-time]",
    )
    typing_selectors = (
        ".typing-indicator",
        ".typing",
        "[data-typing]",
    )
    contact_selectors = (
        ".chat-title",
        ".peer-title",
        ".chat-name",
    )
    input_selectors = (
        ".input-message-input",
        '[contenteditable="true"]',
        "textarea",
    )
    content_indicators = (
        ".chat-list",
        ".message-list",
        ".chat-item",
        ".message",
        "div[data-peer-id]",
    )
    outgoing_selectors = (
        ".outgoing",
        ".sent",
        ".my-message",
        ".is-out",
    )

    @classmethod
    def matches_host(cls, page: HostPage) -> bool:
        return page.hostname == "web.telegram.org"
