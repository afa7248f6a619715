"""Claude API gateway with backoff retries and primary/fallback key failover."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

import anthropic
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential,
    wait_random,
)

from latex_tailor.clients.failures import classify_failure, describe_failure
from latex_tailor.errors import ProviderError, ProviderFailure
from latex_tailor.utils.response_parser import ResponseParseError, extract_json

logger = logging.getLogger(__name__)

PRIMARY = "primary"
FALLBACK = "fallback"


@dataclass
class LLMResponse:
    """Response from the LLM including usage metadata."""

    text: str
    input_tokens: int
    output_tokens: int
    key_slot: str = PRIMARY


@dataclass
class _CallState:
    slot: str = PRIMARY
    switched: bool = False


def _is_retryable(exc: BaseException) -> bool:
    return isinstance(exc, ProviderError) and exc.failure.retryable


def _response_text(message: anthropic.types.Message) -> str:
    """Join the text blocks of a message. A message with no text is a fatal provider failure."""
    texts = [
        block.text for block in (message.content or []) if isinstance(getattr(block, "text", None), str)
    ]
    if not texts:
        raise ProviderError(ProviderFailure.FATAL, "Provider response contained no text content")
    return "".join(texts)


class ProviderGateway:
    """Single point of contact with the text-generation provider.

    One ``invoke`` call makes at most ``max_attempts`` attempts. Quota and
    overload failures are retried with exponential backoff; fatal failures
    (bad credential, malformed request, anything unrecognised) are raised
    at once. A quota failure, or an overload failure from the second attempt
    on, switches to the fallback key and retries immediately without
    spending an attempt. Only one switch happens per call.
    """

    def __init__(
        self,
        primary_key: str,
        fallback_key: str | None = None,
        *,
        timeout: float | None = None,
        max_attempts: int = 3,
        backoff_multiplier: float = 2.0,
        backoff_max: float = 60.0,
        jitter: float = 0.0,
        client_factory: Callable[[str], anthropic.AsyncAnthropic] | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        if not primary_key:
            raise ValueError("primary_key is required")
        self._keys: dict[str, str] = {PRIMARY: primary_key}
        if fallback_key:
            self._keys[FALLBACK] = fallback_key
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.backoff_multiplier = backoff_multiplier
        self.backoff_max = backoff_max
        self.jitter = jitter
        self._client_factory = client_factory or self._default_client
        self._sleep = sleep or asyncio.sleep
        self._clients: dict[str, anthropic.AsyncAnthropic] = {}
        self._token_log: list[tuple[str, int, int]] = []  # (model, input_tokens, output_tokens)

    @property
    def has_fallback(self) -> bool:
        return FALLBACK in self._keys

    def _default_client(self, api_key: str) -> anthropic.AsyncAnthropic:
        kwargs: dict = {"api_key": api_key, "max_retries": 0}
        if self.timeout is not None:
            kwargs["timeout"] = self.timeout
        return anthropic.AsyncAnthropic(**kwargs)

    def _client(self, slot: str) -> anthropic.AsyncAnthropic:
        if slot not in self._clients:
            self._clients[slot] = self._client_factory(self._keys[slot])
        return self._clients[slot]

    def _wait_strategy(self):
        wait = wait_exponential(multiplier=self.backoff_multiplier, max=self.backoff_max)
        if self.jitter > 0:
            wait = wait + wait_random(0, self.jitter)
        return wait

    def _should_switch(self, failure: ProviderFailure, attempt: int, state: _CallState) -> bool:
        if state.switched or not self.has_fallback:
            return False
        if failure is ProviderFailure.QUOTA_EXCEEDED:
            return True
        return failure is ProviderFailure.OVERLOADED and attempt >= 2

    @staticmethod
    def _log_retry(retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.warning(
            "Provider attempt %d failed (%s); retrying in %.1fs",
            retry_state.attempt_number,
            exc.failure.value if isinstance(exc, ProviderError) else exc,
            retry_state.next_action.sleep if retry_state.next_action else 0.0,
        )

    async def _call_api(self, slot: str, kwargs: dict) -> anthropic.types.Message:
        logger.debug("LLM call: model=%s key=%s", kwargs["model"], slot)
        return await self._client(slot).messages.create(**kwargs)

    async def _attempt(self, kwargs: dict, attempt: int, state: _CallState) -> anthropic.types.Message:
        """One counted attempt, including at most one immediate key switch."""
        try:
            return await self._call_api(state.slot, kwargs)
        except Exception as exc:
            failure = classify_failure(exc)
            if not self._should_switch(failure, attempt, state):
                raise ProviderError(failure, describe_failure(exc), attempts=attempt) from exc
            logger.warning(
                "Provider %s on %s key; switching to fallback key", failure.value, state.slot
            )
            state.slot = FALLBACK
            state.switched = True

        try:
            return await self._call_api(state.slot, kwargs)
        except Exception as exc:
            raise ProviderError(
                classify_failure(exc), describe_failure(exc), attempts=attempt
            ) from exc

    async def invoke(
        self,
        prompt: str,
        *,
        model: str,
        system: str = "",
        temperature: float = 0.0,
        max_tokens: int = 8192,
    ) -> LLMResponse:
        """Send a prompt and return the text response with usage."""
        kwargs: dict = {
            "model": model,
            "max_tokens": max_tokens,
            "temperature": temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system:
            kwargs["system"] = system

        state = _CallState()
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.max_attempts),
            wait=self._wait_strategy(),
            retry=retry_if_exception(_is_retryable),
            before_sleep=self._log_retry,
            sleep=self._sleep,
            reraise=True,
        )
        try:
            async for attempt in retrying:
                with attempt:
                    message = await self._attempt(kwargs, attempt.retry_state.attempt_number, state)
        except ProviderError as exc:
            logger.error(
                "LLM call failed after %d attempt(s): %s", exc.attempts, exc.detail, exc_info=True
            )
            raise

        input_tokens = message.usage.input_tokens
        output_tokens = message.usage.output_tokens
        logger.debug("LLM response: %d input, %d output tokens", input_tokens, output_tokens)
        self._token_log.append((model, input_tokens, output_tokens))
        try:
            text = _response_text(message)
        except ProviderError:
            logger.error("LLM response from %s key had no text content", state.slot)
            raise
        return LLMResponse(
            text=text,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            key_slot=state.slot,
        )

    async def invoke_json(self, prompt: str, **kwargs) -> dict:
        """Call ``invoke`` and parse the response as a JSON object.

        Raises ResponseParseError (a ValueError) when the text holds no JSON
        object; callers translate it into their own error.
        """
        response = await self.invoke(prompt, **kwargs)
        data = extract_json(response.text)
        if not isinstance(data, dict):
            raise ResponseParseError("Response JSON is not an object", response.text)
        return data

    def get_token_summary(self) -> dict:
        """Return accumulated token usage and reset the log."""
        summary = {
            "input": sum(t[1] for t in self._token_log),
            "output": sum(t[2] for t in self._token_log),
            "calls": list(self._token_log),
        }
        self._token_log.clear()
        return summary
