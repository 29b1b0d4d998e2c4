"""
Thin JSON-mode wrapper around the OpenAI chat completions API.

Every Analyzer call goes through AIClient.complete_json(), which owns the
three upstream failure modes:

- transient (timeouts, connection errors, 429, 5xx): retried with backoff
- truncation (finish_reason == "length"): retried with a doubled max_tokens
  budget until the ceiling is reached
- malformed (non-JSON content): raised as MalformedResponseError; the
  structured call sites in the Analyzer decide how often to retry those
"""

import json
import logging
import re
import time
from typing import Any, Callable, Dict, Optional
import openai
from openai import OpenAI
from app.core.config import settings
from app.core.retry import RetryPolicy, retry_call

logger = logging.getLogger(__name__)

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$", re.IGNORECASE)

# Reasoning models reject `temperature` and take `max_completion_tokens`
REASONING_MODEL_PREFIXES = ("o1", "o3", "o4", "gpt-5")


class AIClientError(Exception):
    """Base class for Analyzer upstream errors"""
    pass


class TransientUpstreamError(AIClientError):
    """Network, timeout, rate-limit or 5xx failure from the LLM API"""
    pass


class MalformedResponseError(AIClientError):
    """The LLM returned content that is not the JSON shape we asked for"""
    pass


class TruncationError(AIClientError):
    """The completion hit its output-token ceiling"""

    def __init__(self, message: str, max_tokens: int):
        super().__init__(message)
        self.max_tokens = max_tokens


def _translate_openai_error(exc: Exception) -> Exception:
    if isinstance(exc, (openai.APITimeoutError, openai.APIConnectionError, openai.RateLimitError)):
        return TransientUpstreamError(str(exc))
    if isinstance(exc, openai.APIStatusError) and exc.status_code >= 500:
        return TransientUpstreamError(str(exc))
    return exc


def is_reasoning_model(model: str) -> bool:
    name = (model or "").lower().rsplit("/", 1)[-1]
    return name.startswith(REASONING_MODEL_PREFIXES)


def parse_json_content(content: Optional[str]) -> Dict[str, Any]:
    """
    Parse a JSON object out of a completion.

    Tolerates markdown code fences and leading/trailing prose around the
    object. Anything else is a MalformedResponseError.
    """
    if not content or not content.strip():
        raise MalformedResponseError("Empty response from model")

    text = _FENCE_RE.sub("", content.strip())
    try:
        data = json.loads(text)
    except json.JSONDecodeError:
        start, end = text.find("{"), text.rfind("}")
        if start == -1 or end <= start:
            raise MalformedResponseError(f"No JSON object in response: {text[:200]!r}")
        try:
            data = json.loads(text[start:end + 1])
        except json.JSONDecodeError as e:
            raise MalformedResponseError(f"Invalid JSON in response: {e}")

    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected a JSON object, got {type(data).__name__}")
    return data


class AIClient:
    """
    JSON-mode chat completion with transient and truncation recovery.

    Args:
        client: Preconfigured OpenAI client (tests pass a stub)
        model: Default model name
        initial_max_tokens: Output budget of the first attempt
        max_tokens_ceiling: Largest budget truncation recovery may request
        retry_policy: Attempt ceiling and backoff for transient/truncation errors
        sleep: Injected for tests
    """

    def __init__(
        self,
        client: Optional[Any] = None,
        model: Optional[str] = None,
        initial_max_tokens: Optional[int] = None,
        max_tokens_ceiling: Optional[int] = None,
        retry_policy: Optional[RetryPolicy] = None,
        temperature: Optional[float] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client or OpenAI(
            api_key=settings.OPENAI_API_KEY,
            base_url=settings.OPENAI_BASE_URL,
            timeout=settings.OPENAI_TIMEOUT_SECONDS,
            max_retries=0,  # retries are owned by retry_call below
        )
        self.model = model or settings.OPENAI_MODEL
        self.initial_max_tokens = initial_max_tokens or settings.AI_INITIAL_MAX_TOKENS
        self.max_tokens_ceiling = max_tokens_ceiling or settings.AI_MAX_TOKENS_CEILING
        self.retry_policy = retry_policy or RetryPolicy(
            max_attempts=settings.AI_MAX_ATTEMPTS,
            base_delay=settings.AI_RETRY_DELAY_SECONDS,
        )
        self.temperature = settings.OPENAI_TEMPERATURE if temperature is None else temperature
        self._sleep = sleep

    def complete_json(
        self,
        system_prompt: str,
        user_prompt: str,
        model: Optional[str] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict[str, Any]:
        """
        Run one JSON-mode completion and return the parsed object.

        Raises:
            TransientUpstreamError: upstream still failing after the retry budget
            TruncationError: output still truncated at the token ceiling
            MalformedResponseError: content was not a JSON object
        """
        model = model or self.model
        budget = {"max_tokens": max_tokens or self.initial_max_tokens}

        reasoning = is_reasoning_model(model)

        def attempt(n: int) -> Dict[str, Any]:
            request = {
                "model": model,
                "messages": [
                    {"role": "system", "content": system_prompt},
                    {"role": "user", "content": user_prompt},
                ],
                "response_format": {"type": "json_object"},
            }
            if reasoning:
                request["max_completion_tokens"] = budget["max_tokens"]
            else:
                request["temperature"] = self.temperature
                request["max_tokens"] = budget["max_tokens"]
            try:
                response = self.client.chat.completions.create(**request)
            except openai.OpenAIError as e:
                raise _translate_openai_error(e) from e

            choice = response.choices[0]
            if choice.finish_reason == "length":
                raise TruncationError(
                    f"Completion truncated at max_tokens={budget['max_tokens']}",
                    max_tokens=budget["max_tokens"],
                )
            return parse_json_content(choice.message.content)

        def retryable(exc: BaseException) -> bool:
            if isinstance(exc, TransientUpstreamError):
                return True
            if isinstance(exc, TruncationError):
                return budget["max_tokens"] < self.max_tokens_ceiling
            return False

        def grow_budget(exc: BaseException, n: int) -> None:
            if isinstance(exc, TruncationError):
                budget["max_tokens"] = min(budget["max_tokens"] * 2, self.max_tokens_ceiling)
                logger.info(f"Raising max_tokens to {budget['max_tokens']} after truncation")

        return retry_call(
            attempt,
            self.retry_policy,
            retry_if=retryable,
            on_retry=grow_budget,
            sleep=self._sleep,
            description=f"OpenAI completion ({model})",
        )
