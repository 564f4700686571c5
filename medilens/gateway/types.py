"""Core types and DTOs for the generation gateway."""

from __future__ import annotations

import base64
import random
from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Request side
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ContentPart:
    """One part of a generation request: plain text or an inline binary blob."""

    text: str | None = None
    data: bytes | None = None
    mime_type: str | None = None

    def __post_init__(self) -> None:
        if (self.text is None) == (self.data is None):
            raise ValueError("ContentPart needs exactly one of text or data")
        if self.data is not None and not self.mime_type:
            raise ValueError("Inline data parts need a mime_type")

    @classmethod
    def from_text(cls, text: str) -> ContentPart:
        return cls(text=text)

    @classmethod
    def inline(cls, data: bytes, mime_type: str) -> ContentPart:
        return cls(data=data, mime_type=mime_type)

    @property
    def is_inline(self) -> bool:
        return self.data is not None

    def to_payload(self) -> dict[str, Any]:
        if self.data is not None:
            return {
                "inline_data": {
                    "mime_type": self.mime_type,
                    "data": base64.b64encode(self.data).decode("ascii"),
                }
            }
        return {"text": self.text}


@dataclass(frozen=True)
class GenerationConfig:
    """Sampling options sent as ``generationConfig``."""

    temperature: float = 0.1
    max_output_tokens: int = 8192
    response_is_structured: bool = False

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "temperature": self.temperature,
            "maxOutputTokens": self.max_output_tokens,
        }
        if self.response_is_structured:
            payload["responseMimeType"] = "application/json"
        return payload


@dataclass(frozen=True)
class GenerationRequest:
    """Ordered content parts plus config; built once per call."""

    parts: tuple[ContentPart, ...]
    config: GenerationConfig = field(default_factory=GenerationConfig)

    def to_payload(self) -> dict[str, Any]:
        return {
            "contents": [
                {
                    "role": "user",
                    "parts": [part.to_payload() for part in self.parts],
                }
            ],
            "generationConfig": self.config.to_payload(),
        }


# ---------------------------------------------------------------------------
# Retry bookkeeping
# ---------------------------------------------------------------------------


@dataclass
class RetryState:
    """Per-call retry bookkeeping. Never shared between calls."""

    attempt: int = 0  # 0-based
    max_attempts: int = 3
    delay: float = 0.0

    @property
    def is_final_attempt(self) -> bool:
        return self.attempt >= self.max_attempts - 1


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff parameters for rate-limit / overload responses.

    Formula: min(base * 2^attempt + jitter, max_delay)
    Jitter: random(0, base * jitter_ratio)
    """

    max_attempts: int = 3
    base_delay: float = 3.0
    max_delay: float = 30.0
    network_retry_delay: float = 1.0
    jitter_ratio: float = 0.0

    def backoff(self, attempt: int, retry_after: float | None = None) -> float:
        exponential = self.base_delay * (2**attempt)
        jitter = random.uniform(0, self.base_delay * self.jitter_ratio) if self.jitter_ratio else 0.0
        delay = exponential + jitter
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, self.max_delay)


# ---------------------------------------------------------------------------
# Response side
# ---------------------------------------------------------------------------


@dataclass
class GenerationResult:
    """Text of the first usable candidate plus call metadata."""

    text: str
    model: str = ""
    attempts: int = 1
    finish_reason: str = ""
    input_tokens: int = 0
    output_tokens: int = 0
    total_tokens: int = 0
    latency_ms: int = 0
