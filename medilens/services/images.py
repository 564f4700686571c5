"""Load uploaded images for the generation API.

The frontend sends either a ``data:`` URL (freshly uploaded file) or an
http(s) URL (image already in object storage).
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
from dataclasses import dataclass

import httpx

from medilens.core.config import settings
from medilens.core.exceptions import AppError, BadRequestError
from medilens.gateway.types import ContentPart

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "image/jpeg"

_DATA_URL_PATTERN = re.compile(r"^data:(?P<mime>[\w.+-]+/[\w.+-]+)?(?P<params>(?:;[^,;]+)*?)(?P<b64>;base64)?,(?P<data>.*)$", re.DOTALL)


class InvalidImageError(BadRequestError):
    pass


class ImageFetchError(AppError):
    status_code = 500


@dataclass(frozen=True)
class ImageInput:
    data: bytes
    mime_type: str = DEFAULT_MIME_TYPE

    def to_part(self) -> ContentPart:
        return ContentPart.inline(self.data, self.mime_type)


def decode_data_url(image_url: str, max_bytes: int | None = None) -> ImageInput:
    """Decode a base64 ``data:`` URL."""
    match = _DATA_URL_PATTERN.match(image_url.strip())
    if not match or not match.group("b64"):
        raise InvalidImageError("Image data URL must be base64 encoded")

    try:
        data = base64.b64decode(match.group("data"), validate=False)
    except (binascii.Error, ValueError):
        raise InvalidImageError("Image data URL is not valid base64")

    _check_size(data, max_bytes)
    return ImageInput(data=data, mime_type=match.group("mime") or DEFAULT_MIME_TYPE)


async def fetch_image(
    image_url: str,
    http_client: httpx.AsyncClient | None = None,
    max_bytes: int | None = None,
) -> ImageInput:
    """Download an image over http(s)."""
    try:
        if http_client is not None:
            resp = await http_client.get(image_url, follow_redirects=True)
        else:
            async with httpx.AsyncClient(timeout=settings.image_fetch_timeout_seconds) as client:
                resp = await client.get(image_url, follow_redirects=True)
    except httpx.HTTPError as e:
        logger.warning("Image fetch failed for %s: %s", image_url[:200], e)
        raise ImageFetchError(f"Image fetch failed: {e}")

    if resp.is_error:
        raise ImageFetchError(f"Image fetch failed: {resp.status_code} {resp.reason_phrase}")

    _check_size(resp.content, max_bytes)
    mime_type = resp.headers.get("content-type", "").split(";")[0].strip() or DEFAULT_MIME_TYPE
    return ImageInput(data=resp.content, mime_type=mime_type)


async def load_image(image_url: str, http_client: httpx.AsyncClient | None = None) -> ImageInput:
    """Resolve ``image_url`` (data URL or http(s) URL) into bytes + MIME type."""
    max_bytes = settings.max_image_bytes
    url = image_url.strip()
    if url.startswith("data:"):
        return decode_data_url(url, max_bytes=max_bytes)
    if url.startswith(("http://", "https://")):
        return await fetch_image(url, http_client=http_client, max_bytes=max_bytes)
    raise InvalidImageError("Image URL must be a data: URL or an http(s) URL")


def _check_size(data: bytes, max_bytes: int | None) -> None:
    if not data:
        raise InvalidImageError("Image is empty")
    if max_bytes is not None and len(data) > max_bytes:
        raise InvalidImageError(f"Image exceeds the {max_bytes // (1024 * 1024)} MB limit")
