"""Tests for the HuggingFace and Gemini providers."""

from unittest.mock import MagicMock

import pytest
import requests
from helpers import mock_response

from chatsy.contacts.models import StyleProfile
from chatsy.settings import GEMINI_URL, HUGGINGFACE_URL
from chatsy.suggestions.models import SuggestionRequest
from chatsy.suggestions.prompts import build_flat_prompt
from chatsy.suggestions.providers import GeminiProvider, HuggingFaceProvider, ProviderError

REQUEST = SuggestionRequest(message="are you free?", context_window=(), style=StyleProfile(), contact_id="c1")


def _session(*responses):
    session = MagicMock()
    session.post.side_effect = list(responses)
    return session


class TestHuggingFace:
    def test_request_shape_and_text(self):
        session = _session(mock_response(200, [{"generated_text": "Sure, after 5"}]))
        provider = HuggingFaceProvider("hf_key", session=session)

        assert provider.generate(REQUEST) == "Sure, after 5"

        args, kwargs = session.post.call_args
        assert args[0] == HUGGINGFACE_URL
        assert kwargs["headers"]["Authorization"] == "Bearer hf_key"
        assert kwargs["json"]["inputs"] == build_flat_prompt(REQUEST)
        assert kwargs["json"]["parameters"]["max_length"] == 100
        assert kwargs["timeout"] == 10

    def test_echoed_prompt_stripped(self):
        prompt = build_flat_prompt(REQUEST)
        session = _session(mock_response(200, [{"generated_text": prompt + " yes!"}]))

        assert HuggingFaceProvider("k", session=session).generate(REQUEST) == " yes!"

    def test_server_error_is_retryable(self):
        provider = HuggingFaceProvider("k", session=_session(mock_response(503)))

        with pytest.raises(ProviderError) as exc_info:
            provider.generate(REQUEST)

        assert exc_info.value.retryable is True
        assert exc_info.value.status == 503

    def test_client_error_not_retryable(self):
        provider = HuggingFaceProvider("k", session=_session(mock_response(401)))

        with pytest.raises(ProviderError) as exc_info:
            provider.generate(REQUEST)

        assert exc_info.value.retryable is False

    def test_network_error_is_retryable(self):
        provider = HuggingFaceProvider("k", session=_session(requests.ConnectionError("down")))

        with pytest.raises(ProviderError) as exc_info:
            provider.generate(REQUEST)

        assert exc_info.value.retryable is True

    def test_malformed_json(self):
        provider = HuggingFaceProvider("k", session=_session(mock_response(200, json_error=ValueError("bad"))))

        with pytest.raises(ProviderError, match="malformed json"):
            provider.generate(REQUEST)

    def test_unexpected_shape(self):
        provider = HuggingFaceProvider("k", session=_session(mock_response(200, {"error": "loading"})))

        with pytest.raises(ProviderError, match="unexpected response shape"):
            provider.generate(REQUEST)

    def test_unconfigured(self):
        session = _session()
        provider = HuggingFaceProvider(None, session=session)

        assert provider.configured is False
        with pytest.raises(ProviderError):
            provider.generate(REQUEST)
        session.post.assert_not_called()


class TestGemini:
    def test_request_shape_and_text(self):
        body = {"candidates": [{"content": {"parts": [{"text": "Yes, I am"}]}}]}
        session = _session(mock_response(200, body))
        provider = GeminiProvider("g_key", session=session)

        assert provider.generate(REQUEST) == "Yes, I am"

        args, kwargs = session.post.call_args
        assert args[0] == GEMINI_URL
        assert kwargs["params"] == {"key": "g_key"}
        assert "g_key" not in str(kwargs["headers"])
        assert kwargs["json"]["contents"][-1]["role"] == "user"
        assert kwargs["json"]["generationConfig"]["maxOutputTokens"] == 100

    def test_empty_candidates(self):
        provider = GeminiProvider("k", session=_session(mock_response(200, {"candidates": []})))

        with pytest.raises(ProviderError):
            provider.generate(REQUEST)
