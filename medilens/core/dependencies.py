from uuid import UUID

import jwt
from fastapi import Depends, Header, Request

from medilens.core.config import settings
from medilens.core.exceptions import UnauthorizedError
from medilens.gateway.gemini import GeminiClient
from medilens.services.analyzer import PrescriptionAnalyzer


def decode_token(token: str) -> dict:
    """Decode and validate an identity-provider JWT. Raises jwt.PyJWTError on failure."""
    return jwt.decode(
        token,
        settings.jwt_secret_key,
        algorithms=[settings.jwt_algorithm],
        audience=settings.jwt_audience,
    )


async def get_current_user_id(
    authorization: str | None = Header(None, description="Bearer <token>"),
) -> UUID:
    if not authorization or not authorization.startswith("Bearer "):
        raise UnauthorizedError("Not authenticated")

    token = authorization[7:]
    try:
        payload = decode_token(token)
    except jwt.PyJWTError:
        raise UnauthorizedError("Invalid or expired token")

    user_id = payload.get("sub")
    if not user_id:
        raise UnauthorizedError("Invalid token payload")
    try:
        return UUID(user_id)
    except ValueError:
        raise UnauthorizedError("Invalid token payload")


def get_gemini_client(request: Request) -> GeminiClient:
    """The app-scoped client created in the lifespan handler."""
    return request.app.state.gemini_client


def get_analyzer(client: GeminiClient = Depends(get_gemini_client)) -> PrescriptionAnalyzer:
    return PrescriptionAnalyzer(client)
