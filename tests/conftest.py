import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock

import httpx
import jwt
import pytest
from httpx import ASGITransport, AsyncClient

from medilens.core.config import settings

# Override settings for tests
settings.jwt_secret_key = "test-secret-key-that-is-at-least-32-bytes-long"
settings.app_env = "development"
settings.gemini_api_key = "test-key"

from medilens.core.dependencies import get_analyzer  # noqa: E402
from medilens.core.rate_limit import limiter  # noqa: E402
from medilens.db.postgres import get_db  # noqa: E402
from medilens.gateway.gemini import GeminiClient  # noqa: E402
from medilens.gateway.types import RetryPolicy  # noqa: E402
from medilens.main import app  # noqa: E402
from medilens.services.analyzer import PrescriptionAnalyzer  # noqa: E402

limiter.enabled = False


class ScriptedGemini:
    """httpx.MockTransport handler that replays canned responses in order."""

    def __init__(self, *responses):
        self.responses = list(responses)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        item = self.responses.pop(0)
        if isinstance(item, Exception):
            raise item
        return item


def _gemini_response(text="Hello world", finish_reason="STOP", thought=None):
    parts = [{"text": text}]
    if thought:
        parts.insert(0, {"text": thought, "thought": True})
    return httpx.Response(
        200,
        json={
            "candidates": [{"content": {"parts": parts, "role": "model"}, "finishReason": finish_reason}],
            "usageMetadata": {"promptTokenCount": 12, "candidatesTokenCount": 34, "totalTokenCount": 46},
            "modelVersion": "gemini-2.5-flash",
        },
    )


@pytest.fixture
def gemini_response():
    return _gemini_response


@pytest.fixture
def make_gemini():
    """Build (client, script, sleep) with a scripted transport and a recording sleep."""

    def _make(*responses, max_attempts=3):
        script = ScriptedGemini(*responses)
        sleep = AsyncMock()
        client = GeminiClient(
            "test-key",
            http_client=httpx.AsyncClient(transport=httpx.MockTransport(script)),
            retry_policy=RetryPolicy(max_attempts=max_attempts),
            sleep=sleep,
        )
        return client, script, sleep

    return _make


@pytest.fixture
def use_gemini(make_gemini):
    """Route the API's analyzer through a scripted Gemini client."""

    def _use(*responses, max_attempts=3):
        client, script, sleep = make_gemini(*responses, max_attempts=max_attempts)
        app.dependency_overrides[get_analyzer] = lambda: PrescriptionAnalyzer(client)
        return script, sleep

    return _use


@pytest.fixture
def db_session() -> MagicMock:
    session = MagicMock()
    session.flush = AsyncMock()
    session.execute = AsyncMock()

    async def override_get_db() -> AsyncGenerator[MagicMock, None]:
        yield session

    app.dependency_overrides[get_db] = override_get_db
    return session


@pytest.fixture
async def client() -> AsyncGenerator[AsyncClient, None]:
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def user_id() -> uuid.UUID:
    return uuid.uuid4()


def make_token(sub, audience="authenticated", expires_in=3600, secret=None) -> str:
    payload = {"aud": audience, "exp": datetime.now(timezone.utc) + timedelta(seconds=expires_in)}
    if sub is not None:
        payload["sub"] = str(sub)
    return jwt.encode(payload, secret or settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


@pytest.fixture
def auth_headers(user_id) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def token_factory():
    return make_token
