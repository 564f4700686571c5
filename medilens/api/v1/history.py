"""Saved prescription analyses for the signed-in user."""

from uuid import UUID

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from medilens.core.dependencies import get_current_user_id
from medilens.db.postgres import get_db
from medilens.schemas.history import HistoryResponse, SaveAnalysisRequest, SaveAnalysisResponse
from medilens.services.history import list_history, save_analysis

router = APIRouter(prefix="/history", tags=["history"])


@router.post("", response_model=SaveAnalysisResponse, response_model_by_alias=True, status_code=201)
async def save_prescription_analysis(
    body: SaveAnalysisRequest,
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    prescription = await save_analysis(db, user_id, body)
    return SaveAnalysisResponse(prescription_id=prescription.id)


@router.get("", response_model=HistoryResponse, response_model_by_alias=True)
async def get_history(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user_id: UUID = Depends(get_current_user_id),
):
    items = await list_history(db, user_id, limit=limit, offset=offset)
    return HistoryResponse(data=items)
