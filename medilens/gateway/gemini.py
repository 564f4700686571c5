"""Resilient client for Google Gemini ``generateContent``.

One logical request-response exchange per call:
  1. Builds the request body from content parts + a fixed generation config
  2. Retries transport failures after a short fixed delay
  3. Retries 429 / 503 with exponential backoff, then raises CapacityExceededError
  4. Fails immediately on any other non-success status
  5. Returns the text of the first candidate, or raises EmptyResponseError

Attempts are sequential. The client holds no per-call state, so one instance
can serve concurrent requests; each call keeps its own RetryState.

Usage:
    async with GeminiClient(api_key="...") as client:
        text = await client.generate_text([ContentPart.from_text("Hello")])
"""

from __future__ import annotations

import asyncio
import logging
import re
import time
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import replace
from typing import Any

import httpx

from medilens.core.metrics import GEMINI_ATTEMPTS, GEMINI_BACKOFF_SECONDS
from medilens.gateway.errors import (
    CapacityExceededError,
    EmptyResponseError,
    GenerationError,
    NotConfiguredError,
    OverloadedError,
    RateLimitedError,
    RemoteError,
    TransientNetworkError,
)
from medilens.gateway.types import (
    ContentPart,
    GenerationConfig,
    GenerationRequest,
    GenerationResult,
    RetryPolicy,
    RetryState,
)

logger = logging.getLogger(__name__)

DEFAULT_MODEL = "gemini-2.5-flash"
DEFAULT_API_BASE = "https://generativelanguage.googleapis.com/v1beta"

_RETRY_INFO_TYPE = "type.googleapis.com/google.rpc.RetryInfo"
_DURATION_PATTERN = re.compile(r"^\s*(\d+(?:\.\d+)?)s\s*$")

SleepFunc = Callable[[float], Awaitable[Any]]


class GeminiClient:
    """Explicitly constructed, explicitly closed Gemini API client."""

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_MODEL,
        *,
        api_base: str = DEFAULT_API_BASE,
        timeout: float = 60.0,
        retry_policy: RetryPolicy | None = None,
        generation_config: GenerationConfig | None = None,
        http_client: httpx.AsyncClient | None = None,
        sleep: SleepFunc | None = None,
    ):
        """
        Args:
            api_key: Google AI API key. An empty key defers failure to the first call.
            model: Model name used in the endpoint path.
            api_base: Base URL of the Generative Language API.
            timeout: Per-attempt HTTP timeout in seconds.
            retry_policy: Attempt ceiling and backoff parameters.
            generation_config: Defaults for temperature / token ceiling.
            http_client: Shared httpx client; created (and owned) when omitted.
            sleep: Awaitable delay function, ``asyncio.sleep`` by default.
        """
        self.api_key = api_key
        self.model = model
        self.api_base = api_base.rstrip("/")
        self.timeout = timeout
        self.retry_policy = retry_policy or RetryPolicy()
        self.generation_config = generation_config or GenerationConfig()
        self._owns_http = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=timeout)
        self._sleep = sleep or asyncio.sleep

    @classmethod
    def from_settings(cls, settings, **kwargs) -> GeminiClient:
        """Build a client from the application Settings object."""
        return cls(
            api_key=settings.gemini_api_key,
            model=settings.gemini_model,
            api_base=settings.gemini_api_base,
            timeout=settings.gemini_timeout_seconds,
            retry_policy=RetryPolicy(
                max_attempts=settings.gemini_max_attempts,
                base_delay=settings.gemini_base_retry_delay,
                max_delay=settings.gemini_max_retry_delay,
                network_retry_delay=settings.gemini_network_retry_delay,
                jitter_ratio=settings.gemini_retry_jitter,
            ),
            generation_config=GenerationConfig(
                temperature=settings.gemini_temperature,
                max_output_tokens=settings.gemini_max_output_tokens,
            ),
            **kwargs,
        )

    @property
    def url(self) -> str:
        return f"{self.api_base}/models/{self.model}:generateContent"

    async def aclose(self) -> None:
        if self._owns_http:
            await self._http.aclose()

    async def __aenter__(self) -> GeminiClient:
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def build_request(self, parts: Sequence[ContentPart], structured: bool = False) -> GenerationRequest:
        config = replace(self.generation_config, response_is_structured=structured)
        return GenerationRequest(parts=tuple(parts), config=config)

    async def generate_text(
        self,
        parts: Sequence[ContentPart],
        *,
        structured: bool = False,
        max_attempts: int | None = None,
    ) -> str:
        """Return the first candidate's text. See ``generate``."""
        result = await self.generate(parts, structured=structured, max_attempts=max_attempts)
        return result.text

    async def generate(
        self,
        parts: Sequence[ContentPart],
        *,
        structured: bool = False,
        max_attempts: int | None = None,
    ) -> GenerationResult:
        """Send one generation request, retrying transient failures.

        Raises:
            NotConfiguredError: No API key.
            TransientNetworkError: Transport failed on every attempt.
            CapacityExceededError: 429/503 on every attempt.
            RemoteError: Any other non-success response.
            EmptyResponseError: Success response without candidate text.
        """
        if not self.api_key:
            raise NotConfiguredError("GEMINI_API_KEY is not configured")
        if not parts:
            raise ValueError("At least one content part is required")

        payload = self.build_request(parts, structured=structured).to_payload()
        state = RetryState(max_attempts=max(1, max_attempts or self.retry_policy.max_attempts))

        for attempt in range(state.max_attempts):
            state.attempt = attempt
            start = time.monotonic()

            try:
                resp = await self._http.post(
                    self.url,
                    json=payload,
                    headers={"Content-Type": "application/json", "x-goog-api-key": self.api_key},
                    timeout=self.timeout,
                )
            except httpx.TransportError as e:
                GEMINI_ATTEMPTS.labels(outcome="network").inc()
                if state.is_final_attempt:
                    raise TransientNetworkError(f"Network error calling Gemini: {e}") from e
                state.delay = self.retry_policy.network_retry_delay
                logger.warning(
                    "Gemini network error (attempt %d/%d): %s; retrying in %.1fs",
                    attempt + 1,
                    state.max_attempts,
                    e,
                    state.delay,
                )
                await self._wait(state.delay)
                continue

            latency_ms = int((time.monotonic() - start) * 1000)

            if resp.status_code in (429, 503):
                error = self._capacity_error(resp)
                GEMINI_ATTEMPTS.labels(outcome=error.kind.value).inc()
                if state.is_final_attempt:
                    raise CapacityExceededError(
                        "The AI service is currently at capacity. Please try again in a few minutes.",
                        status_code=resp.status_code,
                        attempts=state.max_attempts,
                    ) from error
                state.delay = self.retry_policy.backoff(attempt, retry_after=error.retry_after)
                logger.info(
                    "Gemini %s (HTTP %d, attempt %d/%d); backing off %.1fs",
                    error.kind.value,
                    resp.status_code,
                    attempt + 1,
                    state.max_attempts,
                    state.delay,
                )
                await self._wait(state.delay)
                continue

            if resp.is_error:
                GEMINI_ATTEMPTS.labels(outcome="remote_error").inc()
                message = _error_message(resp)
                logger.error("Gemini API error (HTTP %d): %s", resp.status_code, message)
                raise RemoteError(f"Gemini API error ({resp.status_code}): {message}", status_code=resp.status_code)

            try:
                data = resp.json()
            except ValueError as e:
                GEMINI_ATTEMPTS.labels(outcome="remote_error").inc()
                raise RemoteError("Malformed response from Gemini", status_code=resp.status_code) from e

            try:
                result = self._parse_success(data, attempts=attempt + 1, latency_ms=latency_ms)
            except EmptyResponseError:
                GEMINI_ATTEMPTS.labels(outcome="empty").inc()
                raise
            GEMINI_ATTEMPTS.labels(outcome="success").inc()
            return result

        # Unreachable: the final attempt either returns or raises
        raise GenerationError("Service unavailable after maximum retries. Please try again in a moment.")

    async def _wait(self, delay: float) -> None:
        GEMINI_BACKOFF_SECONDS.observe(delay)
        await self._sleep(delay)

    @staticmethod
    def _capacity_error(resp: httpx.Response) -> RateLimitedError | OverloadedError:
        message = _error_message(resp)
        retry_after = _retry_after(resp)
        if resp.status_code == 429:
            return RateLimitedError(message, retry_after=retry_after)
        return OverloadedError(message, retry_after=retry_after)

    def _parse_success(self, data: Any, attempts: int, latency_ms: int) -> GenerationResult:
        if not isinstance(data, dict):
            raise RemoteError("Malformed response from Gemini")

        candidates = data.get("candidates") or []
        if not candidates:
            feedback = data.get("promptFeedback") or {}
            block_reason = feedback.get("blockReason", "") if isinstance(feedback, dict) else ""
            if block_reason:
                raise EmptyResponseError(
                    f"[CENSORED_BY_VENDOR] Prompt blocked: {block_reason}",
                    finish_reason=f"BLOCKED_{block_reason}",
                )
            raise EmptyResponseError()

        candidate = candidates[0] if isinstance(candidates, list) else None
        if not isinstance(candidate, dict):
            raise RemoteError("Malformed response from Gemini")
        finish_reason = candidate.get("finishReason", "")
        if finish_reason == "SAFETY":
            raise EmptyResponseError("[CENSORED_BY_VENDOR] Gemini safety filter triggered", finish_reason=finish_reason)

        content = candidate.get("content") or {}
        if not isinstance(content, dict):
            raise RemoteError("Malformed response from Gemini")
        parts = content.get("parts") or []
        if not isinstance(parts, list):
            raise RemoteError("Malformed response from Gemini")
        text = "".join(
            part["text"] for part in parts if isinstance(part, dict) and "text" in part and not part.get("thought")
        )
        if not text.strip():
            raise EmptyResponseError(finish_reason=finish_reason)

        if finish_reason == "MAX_TOKENS":
            logger.warning("Gemini output hit maxOutputTokens; response is likely truncated (%d chars)", len(text))

        usage = data.get("usageMetadata")
        if not isinstance(usage, dict):
            usage = {}
        input_tokens = usage.get("promptTokenCount", 0)
        output_tokens = usage.get("candidatesTokenCount", 0)
        return GenerationResult(
            text=text,
            model=data.get("modelVersion", self.model),
            attempts=attempts,
            finish_reason=finish_reason,
            input_tokens=input_tokens,
            output_tokens=output_tokens,
            total_tokens=usage.get("totalTokenCount", input_tokens + output_tokens),
            latency_ms=latency_ms,
        )


def _error_body(resp: httpx.Response) -> dict:
    try:
        data = resp.json()
    except ValueError:
        return {}
    error = data.get("error") if isinstance(data, dict) else None
    return error if isinstance(error, dict) else {}


def _error_message(resp: httpx.Response) -> str:
    """Upstream ``error.message``, falling back to the raw body."""
    message = _error_body(resp).get("message")
    if message:
        return str(message)
    return resp.text[:500] or f"HTTP {resp.status_code}"


def _retry_after(resp: httpx.Response) -> float | None:
    """Server-suggested delay from a RetryInfo detail or Retry-After header."""
    for detail in _error_body(resp).get("details") or []:
        if isinstance(detail, dict) and detail.get("@type") == _RETRY_INFO_TYPE:
            match = _DURATION_PATTERN.match(str(detail.get("retryDelay", "")))
            if match:
                return float(match.group(1))

    header = resp.headers.get("retry-after", "")
    try:
        return float(header) if header else None
    except ValueError:
        return None
