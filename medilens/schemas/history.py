from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import Field

from medilens.schemas.analysis import AuthenticityResult, CamelModel, DrugInteraction, ExtractedData


class SaveAnalysisRequest(CamelModel):
    image_url: str = Field(min_length=1)
    ocr_text: str
    extracted_data: ExtractedData
    authenticity: AuthenticityResult
    interactions: list[DrugInteraction] = Field(default_factory=list)


class SaveAnalysisResponse(CamelModel):
    success: bool = True
    prescription_id: UUID


class HistoryItem(CamelModel):
    id: UUID
    image_url: str
    ocr_text: str | None = None
    created_at: datetime
    extracted_data: ExtractedData | None = None
    authenticity: AuthenticityResult | None = None
    interactions: list[DrugInteraction] = Field(default_factory=list)


class HistoryResponse(CamelModel):
    success: bool = True
    data: list[HistoryItem]
