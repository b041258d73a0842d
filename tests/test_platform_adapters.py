"""Tests for platform adapters: extraction, contact ids, typing, insertion."""

from datetime import datetime, timedelta, timezone
from unittest.mock import patch

import pytest
from bs4 import BeautifulSoup
from helpers import LogRecorder, incoming, outgoing, whatsapp_page

from chatsy.infra.hashing import hash_contact
from chatsy.platforms.base import parse_time_text
from chatsy.platforms.instagram import InstagramAdapter
from chatsy.platforms.page import HostPage
from chatsy.platforms.telegram import TelegramAdapter
from chatsy.platforms.whatsapp import WhatsAppAdapter

NOW = datetime(2025, 3, 14, 12, 0, 0, tzinfo=timezone.utc)


def _node(html: str):
    return BeautifulSoup(html, "html.parser").find()


class TestParseTimeText:
    @pytest.mark.parametrize("label", ["now", "Just now", "  just   now "])
    def test_now(self, label):
        assert parse_time_text(label, NOW) == NOW

    @pytest.mark.parametrize(
        "label, delta",
        [
            ("5 min", timedelta(minutes=5)),
            ("2h", timedelta(hours=2)),
            ("3 hours", timedelta(hours=3)),
            ("10 minutes ago", timedelta(minutes=10)),
            ("1d", timedelta(days=1)),
        ],
    )
    def test_relative(self, label, delta):
        assert parse_time_text(label, NOW) == NOW - delta

    def test_absolute_24h(self):
        assert parse_time_text("10:30", NOW) == NOW.replace(hour=10, minute=30)

    def test_absolute_am_pm(self):
        assert parse_time_text("9:05 AM", NOW) == NOW.replace(hour=9, minute=5)
        assert parse_time_text("12:15 am", NOW) == NOW.replace(hour=0, minute=15)
        assert parse_time_text("12:00 PM", NOW) == NOW.replace(hour=12, minute=0)

    def test_future_time_means_yesterday(self):
        assert parse_time_text("11:45 PM", NOW) == NOW.replace(hour=23, minute=45) - timedelta(days=1)

    @pytest.mark.parametrize("label", ["", "yesterday", "25:00", "13:00 PM", "5 parsecs"])
    def test_unparseable(self, label):
        assert parse_time_text(label, NOW) is None


class TestWhatsAppDetectMessage:
    def test_incoming_message(self):
        page = whatsapp_page(contact="Ana")
        adapter = WhatsAppAdapter(page, clock=lambda: NOW)

        message = adapter.detect_message(_node(incoming("Hey, lunch today?", "11:58")))

        assert message is not None
        assert message.text == "Hey, lunch today?"
        assert message.direction == "in"
        assert message.platform == "whatsapp"
        assert message.timestamp == NOW.replace(hour=11, minute=58)
        assert message.contact_id == hash_contact("whatsapp", "Ana")

    def test_outgoing_message(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)

        message = adapter.detect_message(_node(outgoing("Sure!")))

        assert message.direction == "out"

    def test_iso_datetime_attribute_wins(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)
        node = _node(
            '<div class="message-in"><span class="selectable-text">hi</span>'
            '<time datetime="2025-03-13T08:00:00Z">11:58</time></div>'
        )

        message = adapter.detect_message(node)

        assert message.timestamp == datetime(2025, 3, 13, 8, 0, tzinfo=timezone.utc)

    def test_missing_time_uses_now(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)
        node = _node('<div class="message-in"><span class="selectable-text">hi</span></div>')

        assert adapter.detect_message(node).timestamp == NOW

    def test_non_message_node_returns_none(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)

        assert adapter.detect_message(_node('<div class="banner">Updates</div>')) is None

    def test_empty_text_returns_none(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)

        assert adapter.detect_message(_node('<div class="message-in"></div>')) is None

    def test_no_contact_returns_none(self):
        page = HostPage.from_html("https://web.whatsapp.com/", "<html><title>WhatsApp</title><body></body></html>")
        adapter = WhatsAppAdapter(page, clock=lambda: NOW)

        assert adapter.detect_message(_node(incoming("hello"))) is None


class TestCurrentContactId:
    def test_url_segment_first(self):
        page = whatsapp_page(contact="Ana", url="https://web.whatsapp.com/chat/slug-123?x=1")

        assert WhatsAppAdapter(page).current_contact_id() == hash_contact("whatsapp", "slug-123")

    def test_title_when_not_generic(self):
        page = HostPage.from_html(
            "https://web.whatsapp.com/",
            "<html><head><title>Bruno</title></head><body></body></html>",
        )

        assert WhatsAppAdapter(page).current_contact_id() == hash_contact("whatsapp", "Bruno")

    def test_generic_title_falls_through_to_header(self):
        page = whatsapp_page(contact="Carla")

        assert WhatsAppAdapter(page).current_contact_id() == hash_contact("whatsapp", "Carla")

    def test_explicit_page_title_overrides_document(self):
        page = whatsapp_page(contact="Carla")
        page.navigate("https://web.whatsapp.com/", title="Dora")

        assert WhatsAppAdapter(page).current_contact_id() == hash_contact("whatsapp", "Dora")

    def test_none_when_nothing_found(self):
        page = HostPage.from_html("https://web.whatsapp.com/", "<html><title>WhatsApp Web</title></html>")

        assert WhatsAppAdapter(page).current_contact_id() is None

    def test_raw_identifier_never_returned(self):
        page = whatsapp_page(contact="Carla")

        assert "Carla" not in WhatsAppAdapter(page).current_contact_id()


class TestDetectTyping:
    def test_typing_class(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)

        typing = adapter.detect_typing(_node('<span class="typing">typing…</span>'))

        assert typing is not None
        assert typing.timestamp == NOW

    def test_typing_text(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)

        assert adapter.detect_typing(_node("<span>Ana is typing...</span>")) is not None

    def test_message_mentioning_typing_is_not_indicator(self):
        page = whatsapp_page(messages=incoming("stop typing"))
        adapter = WhatsAppAdapter(page, clock=lambda: NOW)
        text_span = page.select_one(".message-in .selectable-text")

        assert adapter.detect_typing(text_span) is None
        assert adapter.detect_typing(page.select_one(".message-in")) is None

    def test_unrelated_node(self):
        adapter = WhatsAppAdapter(whatsapp_page(), clock=lambda: NOW)

        assert adapter.detect_typing(_node("<span>online</span>")) is None


class TestInsertText:
    def test_writes_into_compose_box(self):
        page = whatsapp_page()
        adapter = WhatsAppAdapter(page)

        assert adapter.insert_text("On my way") is True

        box = page.select_one('[data-testid="conversation-compose-box-input"]')
        assert box.get_text() == "On my way"
        assert page.writes == [(box, "On my way")]

    def test_skips_hidden_inputs(self):
        page = HostPage.from_html(
            "https://web.whatsapp.com/",
            '<div style="display: none"><div contenteditable="true" id="a"></div></div>'
            '<div contenteditable="true" id="b"></div>',
        )

        assert WhatsAppAdapter(page).insert_text("ok") is True
        assert page.writes[0][0]["id"] == "b"

    def test_no_input_returns_false(self):
        page = HostPage.from_html("https://web.whatsapp.com/", "<div></div>")

        assert WhatsAppAdapter(page).insert_text("ok") is False
        assert page.writes == []

    def test_insert_logs_no_text(self):
        recorder = LogRecorder()
        with patch("chatsy.platforms.base.logger", recorder):
            WhatsAppAdapter(whatsapp_page()).insert_text("secret plans")

        assert "secret plans" not in recorder.get_all_logged_content()
        assert recorder.calls


class TestInstagramAdapter:
    def test_message_and_direction_by_alignment(self):
        page = HostPage.from_html(
            "https://www.instagram.com/direct/t/thread42/",
            '<div class="thread"></div><textarea placeholder="Message..."></textarea>',
        )
        adapter = InstagramAdapter(page, clock=lambda: NOW)

        inbound = adapter.detect_message(_node('<div class="direct-message"><span class="text">yo</span></div>'))
        outbound = adapter.detect_message(
            _node('<div class="direct-message" style="margin-left: auto"><span class="text">hey</span></div>')
        )

        assert inbound.direction == "in"
        assert inbound.contact_id == hash_contact("instagram", "thread42")
        assert outbound.direction == "out"

    def test_insert_into_textarea(self):
        page = HostPage.from_html(
            "https://www.instagram.com/direct/t/thread42/",
            '<textarea placeholder="Message..."></textarea>',
        )

        assert InstagramAdapter(page).insert_text("hello") is True
        assert page.select_one("textarea").get_text() == "hello"


class TestTelegramAdapter:
    def test_message_with_peer_fragment(self):
        page = HostPage.from_html("https://web.telegram.org/k/#@friend", "<div class='chat-list'></div>")
        adapter = TelegramAdapter(page, clock=lambda: NOW)

        message = adapter.detect_message(
            _node('<div class="message is-out"><div class="message-text">done</div><span class="time">11:00</span></div>')
        )

        assert message.text == "done"
        assert message.direction == "out"
        assert message.timestamp == NOW.replace(hour=11, minute=0)
        assert message.contact_id == hash_contact("telegram", "@friend")

    def test_insert_into_message_box(self):
        page = HostPage.from_html(
            "https://web.telegram.org/k/#@friend",
            '<div class="input-message-input" contenteditable="true"></div>',
        )

        assert TelegramAdapter(page).insert_text("ok") is True
