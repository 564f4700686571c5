"""Failure taxonomy for the generation gateway."""

from __future__ import annotations

from enum import Enum


class ErrorKind(str, Enum):
    NOT_CONFIGURED = "not_configured"
    TRANSIENT_NETWORK = "transient_network"
    RATE_LIMITED = "rate_limited"
    OVERLOADED = "overloaded"
    CAPACITY_EXCEEDED = "capacity_exceeded"
    REMOTE_ERROR = "remote_error"
    EMPTY_RESPONSE = "empty_response"


class GenerationError(Exception):
    """Base class for every failure the gateway surfaces to callers."""

    kind: ErrorKind = ErrorKind.REMOTE_ERROR
    retryable: bool = False

    def __init__(self, message: str, status_code: int = 0):
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class NotConfiguredError(GenerationError):
    """No API credential; raised before any I/O."""

    kind = ErrorKind.NOT_CONFIGURED


class TransientNetworkError(GenerationError):
    kind = ErrorKind.TRANSIENT_NETWORK
    retryable = True


class RateLimitedError(GenerationError):
    kind = ErrorKind.RATE_LIMITED
    retryable = True

    def __init__(self, message: str, status_code: int = 429, retry_after: float | None = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class OverloadedError(GenerationError):
    kind = ErrorKind.OVERLOADED
    retryable = True

    def __init__(self, message: str, status_code: int = 503, retry_after: float | None = None):
        super().__init__(message, status_code)
        self.retry_after = retry_after


class CapacityExceededError(GenerationError):
    """Rate-limit/overload responses outlasted every attempt."""

    kind = ErrorKind.CAPACITY_EXCEEDED

    def __init__(self, message: str, status_code: int = 429, attempts: int = 0):
        super().__init__(message, status_code)
        self.attempts = attempts


class RemoteError(GenerationError):
    """Non-retryable upstream failure; carries the upstream message."""

    kind = ErrorKind.REMOTE_ERROR


class EmptyResponseError(GenerationError):
    kind = ErrorKind.EMPTY_RESPONSE

    def __init__(self, message: str = "Empty response from AI", finish_reason: str = ""):
        super().__init__(message)
        self.finish_reason = finish_reason
