"""
Tests for the OpenAI JSON-mode client wrapper.

Tests cover:
- JSON extraction from fenced or chatty content
- Token-truncation recovery (doubling max_tokens up to the ceiling)
- Transient upstream errors retried, client errors not retried
- Request parameters for reasoning models
"""

from types import SimpleNamespace

import httpx
import openai
import pytest

from app.core.retry import RetryPolicy
from app.services.ai_client import (
    AIClient,
    MalformedResponseError,
    TransientUpstreamError,
    TruncationError,
    is_reasoning_model,
    parse_json_content,
)


def completion(content: str, finish_reason: str = "stop"):
    return SimpleNamespace(
        choices=[SimpleNamespace(finish_reason=finish_reason, message=SimpleNamespace(content=content))]
    )


class ScriptedCompletions:
    """Returns (or raises) the scripted outcomes in order and records kwargs."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.calls = []

    def create(self, **kwargs):
        self.calls.append(kwargs)
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


def make_client(outcomes, max_attempts=3, initial_max_tokens=4096, ceiling=16384):
    completions = ScriptedCompletions(outcomes)
    stub = SimpleNamespace(chat=SimpleNamespace(completions=completions))
    client = AIClient(
        client=stub,
        model="test-model",
        initial_max_tokens=initial_max_tokens,
        max_tokens_ceiling=ceiling,
        retry_policy=RetryPolicy(max_attempts=max_attempts, base_delay=0),
        temperature=0.0,
        sleep=lambda s: None,
    )
    return client, completions


REQUEST = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")


class TestParseJsonContent:
    """Tests for parse_json_content"""

    def test_plain_object(self):
        assert parse_json_content('{"a": 1}') == {"a": 1}

    def test_fenced_object(self):
        assert parse_json_content('```json\n{"a": 1}\n```') == {"a": 1}

    def test_object_inside_prose(self):
        assert parse_json_content('Here you go: {"a": [1, 2]} hope that helps') == {"a": [1, 2]}

    def test_empty_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            parse_json_content("   ")

    def test_array_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            parse_json_content("[1, 2, 3]")

    def test_garbage_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            parse_json_content("I cannot help with that")


class TestCompleteJson:
    """Tests for AIClient.complete_json"""

    def test_success_uses_json_mode(self):
        client, completions = make_client([completion('{"ok": true}')])

        assert client.complete_json("system", "user") == {"ok": True}
        call = completions.calls[0]
        assert call["model"] == "test-model"
        assert call["response_format"] == {"type": "json_object"}
        assert call["max_tokens"] == 4096
        assert call["messages"][0] == {"role": "system", "content": "system"}

    def test_truncation_doubles_budget(self):
        client, completions = make_client([
            completion('{"partial": ', finish_reason="length"),
            completion('{"complete": true}'),
        ])

        assert client.complete_json("system", "user") == {"complete": True}
        assert [c["max_tokens"] for c in completions.calls] == [4096, 8192]

    def test_truncation_stops_at_ceiling(self):
        client, completions = make_client(
            [completion("{", finish_reason="length")] * 5,
            max_attempts=5,
            initial_max_tokens=4096,
            ceiling=8192,
        )

        with pytest.raises(TruncationError) as exc_info:
            client.complete_json("system", "user")

        assert [c["max_tokens"] for c in completions.calls] == [4096, 8192]
        assert exc_info.value.max_tokens == 8192

    def test_transient_errors_are_retried(self):
        client, completions = make_client([
            openai.APITimeoutError(request=REQUEST),
            openai.APIConnectionError(request=REQUEST),
            completion('{"ok": 1}'),
        ])

        assert client.complete_json("system", "user") == {"ok": 1}
        assert len(completions.calls) == 3

    def test_transient_errors_exhaust_budget(self):
        client, completions = make_client([openai.APITimeoutError(request=REQUEST)] * 3)

        with pytest.raises(TransientUpstreamError):
            client.complete_json("system", "user")
        assert len(completions.calls) == 3

    def test_server_error_is_transient(self):
        server_error = openai.InternalServerError(
            "upstream exploded", response=httpx.Response(502, request=REQUEST), body=None
        )
        client, completions = make_client([server_error, completion('{"ok": 1}')])

        assert client.complete_json("system", "user") == {"ok": 1}

    def test_bad_request_is_not_retried(self):
        bad_request = openai.BadRequestError(
            "context too long", response=httpx.Response(400, request=REQUEST), body=None
        )
        client, completions = make_client([bad_request, completion('{"ok": 1}')])

        with pytest.raises(openai.BadRequestError):
            client.complete_json("system", "user")
        assert len(completions.calls) == 1

    def test_malformed_content_is_not_retried_here(self):
        client, completions = make_client([completion("no json here"), completion('{"ok": 1}')])

        with pytest.raises(MalformedResponseError):
            client.complete_json("system", "user")
        assert len(completions.calls) == 1


class TestReasoningModels:
    """Tests for reasoning-model request parameters"""

    def test_model_detection(self):
        assert is_reasoning_model("o3-mini")
        assert is_reasoning_model("o1")
        assert is_reasoning_model("openai/o4-mini")
        assert is_reasoning_model("gpt-5")
        assert not is_reasoning_model("gpt-4o")
        assert not is_reasoning_model("gpt-4o-mini")

    def test_reasoning_model_uses_completion_token_budget(self):
        client, completions = make_client([completion('{"ok": true}')])

        assert client.complete_json("system", "user", model="o3-mini") == {"ok": True}
        call = completions.calls[0]
        assert call["model"] == "o3-mini"
        assert call["max_completion_tokens"] == 4096
        assert "max_tokens" not in call
        assert "temperature" not in call

    def test_chat_model_keeps_temperature(self):
        client, completions = make_client([completion('{"ok": true}')])

        client.complete_json("system", "user", model="gpt-4o")

        assert completions.calls[0]["temperature"] == 0.0
        assert "max_completion_tokens" not in completions.calls[0]

    def test_reasoning_truncation_doubles_completion_budget(self):
        client, completions = make_client([
            completion("{", finish_reason="length"),
            completion('{"complete": true}'),
        ])

        assert client.complete_json("system", "user", model="o1") == {"complete": True}
        assert [c["max_completion_tokens"] for c in completions.calls] == [4096, 8192]
