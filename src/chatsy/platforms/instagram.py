"""Instagram Direct adapter."""

import re

from bs4 import Tag

from chatsy.platforms.base import PlatformAdapter
from chatsy.platforms.models import Direction
from chatsy.platforms.page import HostPage


class InstagramAdapter(PlatformAdapter):
    platform = "instagram"
    url_contact_pattern = re.compile(r"direct/t/([^/?#]+)")
    generic_titles = frozenset({"Instagram", "Direct", "Instagram • Direct", "Inbox • Direct"})

    message_selectors = (
        '[data-testid="direct-message"]',
        ".direct-message",
        ".ig-dm",
        '[data-testid="message"]',
    )
    text_selectors = (
        ".message-text",
        ".ig-dm-text",
        ".text",
    )
    time_selectors = (
        "time",
        ".timestamp",
        ".message-time",
        '[data-testid="timestamp"]',
    )
    typing_selectors = (
        ".typing-indicator",
        '[data-testid="typing"]',
        ".typing",
    )
    contact_selectors = (
        '[data-testid="thread-header"]',
        ".thread-header",
        '[data-testid="recipient"]',
        ".recipient-name",
    )
    input_selectors = (
        'textarea[placeholder*="Message"]',
        'textarea[aria-label*="Message"]',
        '[contenteditable="true"][role="textbox"]',
        "textarea",
        'input[type="text"]',
    )
    content_indicators = (
        '[data-testid="direct-message"]',
        ".direct-message",
        ".ig-dm",
    )
    outgoing_selectors = (
        ".outgoing",
        ".sent",
    )

    @classmethod
    def matches_host(cls, page: HostPage) -> bool:
        host = page.hostname
        if host != "instagram.com" and not host.endswith(".instagram.com"):
            return False
        path = page.pathname
        return path.startswith("/direct/") or path.startswith("/messages/")

    def message_direction(self, node: Tag) -> Direction:
        if super().message_direction(node) == "out":
            return "out"
        # Sent bubbles are right-aligned
        style = str(node.get("style", "")).replace(" ", "").lower()
        if "text-align:right" in style or "margin-left:auto" in style:
            return "out"
        return "in"
