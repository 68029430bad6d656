"""Unit tests for provider adapters."""
import json
import httpx
import pytest
from emailflow.services.adapters.messaging.ghl import GHLAdapter
from emailflow.services.adapters.messaging.mock import MockMessagingAdapter
from emailflow.services.adapters.ai.openai_adapter import OpenAIAdapter, build_system_prompt, parse_variant
from emailflow.services.adapters.ai.mock import MockAIAdapter


def _ghl(handler):
    return GHLAdapter(
        access_token="tok",
        location_id="loc-1",
        base_url="https://ghl.test",
        transport=httpx.MockTransport(handler)
    )


class TestGHLAdapter:
    """Tests for GHLAdapter."""

    def test_send_email_request(self):
        """Send posts an Email conversation message with auth headers."""
        seen = {}

        def handler(request):
            seen["method"] = request.method
            seen["path"] = request.url.path
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"messageId": "m-1", "conversationId": "c-1"})

        result = _ghl(handler).send_email("contact-1", "Hi", "<p>Hi</p>", "Hi")

        assert result == {"success": True, "message_id": "m-1", "error": None}
        assert seen["method"] == "POST"
        assert seen["path"] == "/conversations/messages"
        assert seen["headers"]["Authorization"] == "Bearer tok"
        assert seen["headers"]["Version"] == "2021-07-28"
        assert seen["headers"]["Location-Id"] == "loc-1"
        assert seen["body"] == {"type": "Email", "contactId": "contact-1", "subject": "Hi", "html": "<p>Hi</p>", "text": "Hi"}

    def test_send_email_id_fallback(self):
        result = _ghl(lambda r: httpx.Response(201, json={"id": "m-2"})).send_email("c", "s", "<p>b</p>")
        assert result["message_id"] == "m-2"

    def test_send_email_without_message_id_fails(self):
        result = _ghl(lambda r: httpx.Response(200, json={})).send_email("c", "s", "<p>b</p>")
        assert result["success"] is False
        assert result["error"] == "GHL did not return a message ID"

    def test_send_email_http_error(self):
        result = _ghl(lambda r: httpx.Response(422, json={"message": "Contact has no email"})).send_email("c", "s", "b")
        assert result == {"success": False, "message_id": None, "error": "Contact has no email"}

    def test_send_email_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        result = _ghl(handler).send_email("c", "s", "b")
        assert result["success"] is False
        assert "refused" in result["error"]

    def test_fetch_contacts(self):
        seen = {}

        def handler(request):
            seen["params"] = dict(request.url.params)
            return httpx.Response(200, json={"contacts": [{"id": "g-1"}], "meta": {"nextPage": 3}})

        result = _ghl(handler).fetch_contacts(page=2, limit=50)
        assert result == {"contacts": [{"id": "g-1"}], "has_more": True}
        assert seen["params"] == {"locationId": "loc-1", "page": "2", "limit": "50"}

    def test_fetch_contacts_last_page(self):
        result = _ghl(lambda r: httpx.Response(200, json={"contacts": [], "meta": {"nextPage": None}})).fetch_contacts()
        assert result["has_more"] is False

    def test_fetch_contacts_raises_on_error(self):
        with pytest.raises(httpx.HTTPStatusError):
            _ghl(lambda r: httpx.Response(401, json={})).fetch_contacts()

    def test_test_connection(self):
        assert _ghl(lambda r: httpx.Response(200, json={})).test_connection() is True
        assert _ghl(lambda r: httpx.Response(401, json={})).test_connection() is False

    def test_test_connection_requires_location(self):
        adapter = GHLAdapter(access_token="tok", location_id=None)
        assert adapter.test_connection() is False


class TestOpenAIAdapter:
    """Tests for OpenAIAdapter."""

    def _adapter(self, content, seen=None):
        def handler(request):
            if seen is not None:
                seen["path"] = request.url.path
                seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"choices": [{"message": {"content": content}}]})

        return OpenAIAdapter(
            api_key="sk-test",
            model="gpt-4o",
            base_url="https://openai.test/v1",
            transport=httpx.MockTransport(handler)
        )

    def test_generate_variant(self):
        seen = {}
        content = json.dumps({"subject": "New", "body_html": "<p>New</p>", "body_text": "New", "key_angle": "curiosity"})

        result = self._adapter(content, seen).generate_variant("Old", "<p>Old</p>", params={"tone": "bold"})

        assert result == {"subject": "New", "body_html": "<p>New</p>", "body_text": "New", "key_angle": "curiosity"}
        assert seen["path"] == "/v1/chat/completions"
        assert seen["body"]["model"] == "gpt-4o"
        assert seen["body"]["response_format"] == {"type": "json_object"}
        assert "bold" in seen["body"]["messages"][0]["content"]

    def test_generate_variant_malformed(self):
        assert self._adapter("not json").generate_variant("Old", "<p>Old</p>") is None
        assert self._adapter(json.dumps({"subject": "only subject"})).generate_variant("Old", "b") is None
        assert self._adapter("").generate_variant("Old", "b") is None

    def test_parameters(self):
        adapter = OpenAIAdapter(api_key="sk", model="gpt-4o-mini", temperature=0.5, max_tokens=300)
        assert adapter.parameters == {"model": "gpt-4o-mini", "temperature": 0.5, "max_tokens": 300}

    def test_call_without_key(self):
        with pytest.raises(ValueError):
            OpenAIAdapter(api_key="")._call_api([])


class TestPromptHelpers:
    """Tests for prompt building and output parsing."""

    def test_system_prompt_uses_profile(self):
        prompt = build_system_prompt(
            {"avatar_name": "Sam", "avatar_company_name": "Acme", "icp_pain_points": "No leads"},
            {"tone": "friendly"}
        )
        assert "Sam, Acme" in prompt
        assert "No leads" in prompt
        assert "friendly tone" in prompt

    def test_parse_variant_strips_subject(self):
        parsed = parse_variant(json.dumps({"subject": "  Hi ", "body_html": "<p>x</p>"}))
        assert parsed["subject"] == "Hi"
        assert parsed["body_text"] is None

    def test_parse_variant_rejects_non_object(self):
        assert parse_variant(json.dumps(["subject", "body"])) is None


class TestMockAdapters:
    """Tests for the mock adapters."""

    def test_mock_messaging_pages(self):
        adapter = MockMessagingAdapter(contact_pages=[[{"id": "1"}], [{"id": "2"}]])
        assert adapter.fetch_contacts(page=1) == {"contacts": [{"id": "1"}], "has_more": True}
        assert adapter.fetch_contacts(page=2) == {"contacts": [{"id": "2"}], "has_more": False}
        assert adapter.fetch_contacts(page=3) == {"contacts": [], "has_more": False}

    def test_mock_messaging_records_sends(self):
        adapter = MockMessagingAdapter()
        result = adapter.send_email("c-1", "Subject", "<p>Body</p>")
        assert result["success"] is True
        assert result["message_id"].startswith("mock-")
        assert adapter.get_sent_emails()[0]["contact_id"] == "c-1"
        adapter.clear_sent_emails()
        assert adapter.get_sent_emails() == []

    def test_mock_ai_queue(self):
        adapter = MockAIAdapter(responses=[None])
        assert adapter.generate_variant("s", "b") is None
        assert adapter.generate_variant("s", "b")["subject"] == "s (variant 2)"
