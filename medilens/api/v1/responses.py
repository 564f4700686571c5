"""Helpers producing the ``{success, data, error, isQuotaError}`` envelope."""

import logging
from typing import Any

from fastapi.responses import JSONResponse

from medilens.gateway.errors import CapacityExceededError, GenerationError
from medilens.schemas.analysis import ApiResponse

logger = logging.getLogger(__name__)

CAPACITY_MESSAGE = "The AI service is currently at capacity. Please wait a few minutes and try again."


def success(data: Any) -> dict:
    # Nulls inside ``data`` are meaningful (e.g. an unreadable doctor name), so only the error fields are dropped
    return ApiResponse(success=True, data=data).model_dump(
        mode="json", by_alias=True, exclude={"error", "is_quota_error"}
    )


def failure(status_code: int, error: str, is_quota_error: bool | None = None) -> JSONResponse:
    body = ApiResponse(success=False, error=error, is_quota_error=is_quota_error)
    return JSONResponse(status_code=status_code, content=body.model_dump(by_alias=True, exclude_none=True))


def generation_failure(exc: GenerationError) -> JSONResponse:
    """429 with ``isQuotaError`` once retries are exhausted, 500 for everything else."""
    if isinstance(exc, CapacityExceededError):
        logger.warning("Generation capacity exceeded after %d attempts", exc.attempts)
        return failure(429, CAPACITY_MESSAGE, is_quota_error=True)
    logger.error("Generation failed (%s): %s", exc.kind.value, exc)
    return failure(500, str(exc), is_quota_error=False)
