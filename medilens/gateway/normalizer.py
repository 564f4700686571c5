"""Response normalizer: turns raw model text into structured data.

Generative models do not reliably emit clean JSON. The normalizer tolerates:
  - Markdown code fences and a stray leading ``json`` tag
  - Byte-order marks and stray control characters
  - Prose before/after the JSON value
  - Output truncated mid-structure (e.g. maxOutputTokens reached)

Strategy, stopping at the first success:
  1. Strip wrapper noise
  2. Direct parse
  3. Truncation repair (drop a half-written element, close open strings and brackets)
  4. Outermost ``{``/``[`` span, then steps 2-3 on that span only

Only objects and arrays count as a result. ``None`` is the failure sentinel;
callers decide how to surface it. Nothing here raises, and everything except
``parse_model_response`` (which logs and records the outcome metric) is pure.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, TypeVar

from pydantic import TypeAdapter, ValidationError

from medilens.core.metrics import NORMALIZER_OUTCOMES

logger = logging.getLogger(__name__)

T = TypeVar("T")

DEFAULT_PREVIEW_CHARS = 500

_FENCE_PATTERN = re.compile(r"```(?:json)?[ \t]*", re.IGNORECASE)
# Whitespace control characters are legal between tokens and are kept
_CONTROL_CHARS = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f]")
_LANGUAGE_TAG = re.compile(r"^json\s*(?=[\[{])", re.IGNORECASE)

_CLOSERS = {"{": "}", "[": "]"}


def strip_wrapper_noise(raw: str) -> str:
    """Remove code fences, control characters and stray prefix tokens."""
    text = raw.strip().lstrip("\ufeff")
    text = _FENCE_PATTERN.sub("", text)
    text = _CONTROL_CHARS.sub("", text)
    text = text.strip()
    return _LANGUAGE_TAG.sub("", text)


def _scan(text: str) -> tuple[list[str], bool, int, int]:
    """Track bracket nesting outside string literals.

    Returns (open-bracket stack, ends inside a string, index of the last
    structural comma, index of the last structural closer).
    """
    stack: list[str] = []
    in_string = False
    escaped = False
    last_comma = -1
    last_closer = -1

    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue

        if ch == '"':
            in_string = True
        elif ch in "{[":
            stack.append(ch)
        elif ch in "}]":
            if stack and _CLOSERS[stack[-1]] == ch:
                stack.pop()
            last_closer = i
        elif ch == ",":
            last_comma = i

    return stack, in_string, last_comma, last_closer


def _close(text: str, stack: list[str]) -> str:
    return text + "".join(_CLOSERS[opener] for opener in reversed(stack))


def recover_truncated_json(text: str) -> list[str]:
    """Build repair candidates for JSON cut off mid-structure.

    Returns an empty list when nesting is already balanced. Otherwise there
    are up to two candidates:
      - closed: any open string closed, then every open bracket closed
      - trimmed: the dangling element after the last comma dropped, then
        brackets closed (only when that comma comes after the last closer)

    A cut inside a string means the last element is half-written, so trimmed
    goes first. Otherwise closed goes first and ``[1, 2, 3`` keeps its 3.
    """
    stack, in_string, last_comma, last_closer = _scan(text)
    if not stack:
        return []

    closed = _close(text + '"' if in_string else text, stack)
    if last_comma <= last_closer:
        return [closed]

    # A structural comma is never inside a string, so only brackets need closing
    trimmed = text[:last_comma]
    trimmed = _close(trimmed, _scan(trimmed)[0])
    if in_string:
        return [trimmed, closed]
    return [closed, trimmed]


def extract_json_span(text: str) -> str | None:
    """Outermost-bracket heuristic: first ``{``/``[`` to its last matching closer.

    When the closer never appears (truncated output) the span runs to the end
    of the text so truncation repair can still be applied to it.
    """
    starts = [i for i in (text.find("{"), text.find("[")) if i != -1]
    if not starts:
        return None
    start = min(starts)
    end = text.rfind(_CLOSERS[text[start]])
    if end > start:
        return text[start : end + 1]
    return text[start:]


_FAILED = object()


def _loads(text: str) -> Any:
    try:
        value = json.loads(text, strict=False)
    except (json.JSONDecodeError, RecursionError):
        return _FAILED
    # Bare scalars and null are not structured output
    if not isinstance(value, (dict, list)):
        return _FAILED
    return value


def _parse_or_repair(text: str) -> tuple[Any, bool]:
    """Steps 2-3. Returns (value or _FAILED, whether repair was needed)."""
    value = _loads(text)
    if value is not _FAILED:
        return value, False
    for candidate in recover_truncated_json(text):
        value = _loads(candidate)
        if value is not _FAILED:
            return value, True
    return _FAILED, False


def _normalize(raw: str | None) -> tuple[Any | None, str]:
    """Steps 1-5. Returns (value or None, stage that produced it)."""
    if not raw or not isinstance(raw, str):
        return None, "failed"

    text = strip_wrapper_noise(raw)

    value, repaired = _parse_or_repair(text)
    if value is not _FAILED:
        return value, "repaired" if repaired else "direct"

    span = extract_json_span(text)
    if span is not None and span != text:
        value, repaired = _parse_or_repair(span)
        if value is not _FAILED:
            return value, "span_repaired" if repaired else "span"

    return None, "failed"


def clean_json_response(raw: str | None) -> Any | None:
    """Parse model output into a JSON object or array, or ``None`` if unrecoverable."""
    return _normalize(raw)[0]


def preview(text: str | None, limit: int = DEFAULT_PREVIEW_CHARS) -> str:
    """Bounded preview of raw model output for logs."""
    if not text:
        return ""
    if len(text) <= limit:
        return text
    return f"{text[:limit]}... [{len(text) - limit} more chars]"


def parse_model_response(raw: str | None, shape: type[T] | Any, preview_chars: int = DEFAULT_PREVIEW_CHARS) -> T | None:
    """Normalize ``raw`` and validate it against ``shape``.

    ``shape`` is anything pydantic's TypeAdapter accepts (a model class,
    ``list[Model]``, ...). Unparseable text and schema mismatches both yield
    ``None``.
    """
    value, stage = _normalize(raw)
    NORMALIZER_OUTCOMES.labels(stage=stage).inc()
    if value is None:
        logger.warning("Unparseable model response: %s", preview(raw, preview_chars))
        return None

    try:
        return TypeAdapter(shape).validate_python(value)
    except ValidationError as e:
        logger.warning(
            "Model response did not match %s (%d errors): %s",
            getattr(shape, "__name__", str(shape)),
            e.error_count(),
            preview(raw, preview_chars),
        )
        return None
