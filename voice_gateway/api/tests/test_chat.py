"""Tests for the /chat endpoint."""

import pytest

from voice_gateway.api.settings import MAX_JSON_BYTES

from .conftest import TEST_PERSONA


@pytest.mark.component
class TestChatForwarding:
    """Messages reach the backend prefixed by the persona, in order."""

    def test_single_text_message(self, client, backend):
        response = client.post("/chat", json={"messages": [{"role": "user", "text": "Oi"}]})

        assert response.status_code == 200
        assert response.json() == {"text": backend.reply}
        (call,) = backend.calls_to("chat")
        assert call["forwarded"] == [
            {"role": "system", "content": TEST_PERSONA},
            {"role": "user", "content": "Oi"},
        ]

    def test_forwards_n_plus_one_messages_in_order(self, client, backend):
        messages = [
            {"role": "user", "content": "primeira"},
            {"role": "assistant", "content": "segunda"},
            {"role": "user", "content": "terceira"},
            {"role": "user", "content": "terceira"},
        ]

        response = client.post("/chat", json={"messages": messages})

        assert response.status_code == 200
        forwarded = backend.calls_to("chat")[0]["forwarded"]
        assert len(forwarded) == len(messages) + 1
        assert forwarded[0]["role"] == "system"
        assert forwarded[1:] == messages

    def test_missing_role_defaults_to_user(self, client, backend):
        client.post("/chat", json={"messages": [{"content": "sem papel"}]})

        forwarded = backend.calls_to("chat")[0]["forwarded"]
        assert forwarded[1] == {"role": "user", "content": "sem papel"}

    @pytest.mark.parametrize("role", ["", None])
    def test_empty_role_defaults_to_user(self, client, backend, role):
        response = client.post("/chat", json={"messages": [{"role": role, "text": "Oi"}]})

        assert response.status_code == 200
        forwarded = backend.calls_to("chat")[0]["forwarded"]
        assert forwarded[1] == {"role": "user", "content": "Oi"}

    @pytest.mark.parametrize(
        "message,expected",
        [({"content": 5}, "5"), ({"text": 2.5}, "2.5"), ({"text": False}, "False")],
    )
    def test_non_string_content_is_forwarded_as_text(
        self, client, backend, message, expected
    ):
        response = client.post("/chat", json={"messages": [message]})

        assert response.status_code == 200
        forwarded = backend.calls_to("chat")[0]["forwarded"]
        assert forwarded[1] == {"role": "user", "content": expected}

    def test_message_without_content_forwards_empty_string(self, client, backend):
        client.post("/chat", json={"messages": [{"role": "user"}]})

        forwarded = backend.calls_to("chat")[0]["forwarded"]
        assert forwarded[1] == {"role": "user", "content": ""}

    def test_text_takes_precedence_over_content(self, client, backend):
        client.post(
            "/chat",
            json={"messages": [{"text": "do campo text", "content": "do campo content"}]},
        )

        forwarded = backend.calls_to("chat")[0]["forwarded"]
        assert forwarded[1]["content"] == "do campo text"

    def test_non_list_messages_forward_only_persona(self, client, backend):
        response = client.post("/chat", json={"messages": "not a list"})

        assert response.status_code == 200
        assert backend.calls_to("chat")[0]["forwarded"] == [
            {"role": "system", "content": TEST_PERSONA},
        ]

    def test_empty_body_is_accepted(self, client, backend):
        response = client.post("/chat")

        assert response.status_code == 200
        assert len(backend.calls_to("chat")) == 1

    def test_uses_configured_temperature(self, client, backend):
        client.post("/chat", json={"messages": []})

        assert backend.calls_to("chat")[0]["temperature"] == 0.5


@pytest.mark.component
class TestChatFailures:
    """Failures are classified into generic error bodies."""

    def test_backend_failure_returns_chat_failed(self, client, backend):
        backend.fail("chat")

        response = client.post("/chat", json={"messages": [{"text": "Oi"}]})

        assert response.status_code == 500
        assert response.json() == {"error": "chat_failed"}

    def test_unexpected_handler_error_returns_chat_failed(self, client, backend):
        backend.fail("chat", RuntimeError("socket closed"))

        response = client.post("/chat", json={"messages": []})

        assert response.status_code == 500
        assert response.json() == {"error": "chat_failed"}

    def test_unknown_role_is_a_chat_failure(self, client, backend):
        response = client.post("/chat", json={"messages": [{"role": "robot", "text": "x"}]})

        assert response.status_code == 500
        assert response.json() == {"error": "chat_failed"}
        assert backend.calls_to("chat") == []

    def test_malformed_json_falls_through_to_internal_error(self, lenient_client, backend):
        response = lenient_client.post(
            "/chat",
            content=b"{not json",
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 500
        assert response.json() == {"error": "internal_error"}
        assert backend.calls == []

    def test_body_over_limit_is_rejected(self, client, backend):
        oversized = b'{"messages": [{"text": "' + b"a" * MAX_JSON_BYTES + b'"}]}'

        response = client.post(
            "/chat",
            content=oversized,
            headers={"Content-Type": "application/json"},
        )

        assert response.status_code == 413
        assert response.json() == {"error": "payload_too_large"}
        assert backend.calls == []

    def test_response_carries_correlation_id(self, client):
        response = client.post("/chat", json={"messages": []})

        assert len(response.headers["X-Correlation-ID"]) == 12
