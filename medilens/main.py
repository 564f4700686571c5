import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from medilens.api.v1.router import api_v1_router
from medilens.core.config import settings, validate_settings_for_production
from medilens.core.exceptions import AppError, app_error_handler
from medilens.core.logging import setup_logging
from medilens.core.metrics import PrometheusMiddleware, metrics_response
from medilens.core.middleware import RequestLoggingMiddleware
from medilens.core.rate_limit import limiter
from medilens.core.sentry import init_sentry
from medilens.db.postgres import engine
from medilens.gateway.gemini import GeminiClient

# Configure logging before anything else
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Startup
    validate_settings_for_production()
    init_sentry()
    app.state.gemini_client = GeminiClient.from_settings(settings)
    logger.info("Starting MediLens (model=%s)...", settings.gemini_model)

    yield

    # Shutdown
    await app.state.gemini_client.aclose()
    await engine.dispose()
    logger.info("MediLens shut down")


app = FastAPI(
    title="MediLens",
    description="Prescription and lab report analysis backed by Gemini",
    version="1.0.0",
    lifespan=lifespan,
    docs_url="/api/docs" if settings.app_debug else None,
    redoc_url="/api/redoc" if settings.app_debug else None,
)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    tb = traceback.format_exception(type(exc), exc, exc.__traceback__)
    logger.error("Unhandled %s on %s %s:\n%s", type(exc).__name__, request.method, request.url.path, "".join(tb))
    return JSONResponse(status_code=500, content={"success": False, "error": "Internal error"})


app.add_exception_handler(AppError, app_error_handler)

# Rate limiter
app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

# Request logging + metrics middleware
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(PrometheusMiddleware)

# CORS: allowed_origins is comma-separated
_origins = [o.strip() for o in settings.allowed_origins.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# API routes
app.include_router(api_v1_router)


@app.get("/api/v1/health")
async def health():
    return {
        "status": "ok",
        "model": settings.gemini_model,
        "gemini_configured": bool(settings.gemini_api_key),
    }


@app.get("/metrics", include_in_schema=False)
async def metrics():
    return metrics_response()
