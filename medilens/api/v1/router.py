from fastapi import APIRouter

from medilens.api.v1.analyze import router as analyze_router
from medilens.api.v1.health_report import router as health_report_router
from medilens.api.v1.history import router as history_router

api_v1_router = APIRouter(prefix="/api/v1")
api_v1_router.include_router(analyze_router)
api_v1_router.include_router(health_report_router)
api_v1_router.include_router(history_router)
