"""Persist completed prescription analyses and read them back."""

from __future__ import annotations

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from medilens.models.prescription import (
    AuthenticityRecord,
    DrugInteractionRecord,
    ExtractedDataRecord,
    MedicineRecord,
    Prescription,
)
from medilens.schemas.analysis import AuthenticityResult, DrugInteraction, ExtractedData, Medicine
from medilens.schemas.history import HistoryItem, SaveAnalysisRequest

logger = logging.getLogger(__name__)


def build_prescription(user_id: UUID, payload: SaveAnalysisRequest) -> Prescription:
    """Map a completed analysis onto a new ORM object graph (not yet added to a session)."""
    extracted = payload.extracted_data
    prescription = Prescription(
        user_id=user_id,
        image_url=payload.image_url,
        ocr_text=payload.ocr_text,
    )
    prescription.extracted_data = ExtractedDataRecord(
        doctor=extracted.doctor,
        hospital=extracted.hospital,
        prescription_date=extracted.date,
        medicines=[MedicineRecord(name=m.name, dose=m.dose, frequency=m.frequency) for m in extracted.medicines],
    )
    prescription.authenticity_result = AuthenticityRecord(
        authenticity=payload.authenticity.authenticity,
        reasons=list(payload.authenticity.reasons),
    )
    prescription.drug_interactions = [
        DrugInteractionRecord(
            drug_a=i.drug_a,
            drug_b=i.drug_b,
            severity=i.severity,
            description=i.description,
        )
        for i in payload.interactions
    ]
    return prescription


async def save_analysis(db: AsyncSession, user_id: UUID, payload: SaveAnalysisRequest) -> Prescription:
    prescription = build_prescription(user_id, payload)
    db.add(prescription)
    await db.flush()
    logger.info(
        "Saved prescription %s for user %s (%d medicines, %d interactions)",
        prescription.id,
        user_id,
        len(payload.extracted_data.medicines),
        len(payload.interactions),
    )
    return prescription


def to_history_item(prescription: Prescription) -> HistoryItem:
    extracted = None
    if prescription.extracted_data is not None:
        record = prescription.extracted_data
        extracted = ExtractedData(
            doctor=record.doctor,
            hospital=record.hospital,
            date=record.prescription_date,
            medicines=[Medicine(name=m.name, dose=m.dose, frequency=m.frequency) for m in record.medicines],
        )

    authenticity = None
    if prescription.authenticity_result is not None:
        authenticity = AuthenticityResult(
            authenticity=prescription.authenticity_result.authenticity,
            reasons=prescription.authenticity_result.reasons or [],
        )

    return HistoryItem(
        id=prescription.id,
        image_url=prescription.image_url,
        ocr_text=prescription.ocr_text,
        created_at=prescription.created_at,
        extracted_data=extracted,
        authenticity=authenticity,
        interactions=[
            DrugInteraction(drug_a=i.drug_a, drug_b=i.drug_b, severity=i.severity, description=i.description or "")
            for i in prescription.drug_interactions
        ],
    )


async def list_history(db: AsyncSession, user_id: UUID, limit: int = 50, offset: int = 0) -> list[HistoryItem]:
    """The user's analyses, newest first."""
    result = await db.execute(
        select(Prescription)
        .where(Prescription.user_id == user_id)
        .options(
            selectinload(Prescription.extracted_data).selectinload(ExtractedDataRecord.medicines),
            selectinload(Prescription.authenticity_result),
            selectinload(Prescription.drug_interactions),
        )
        .order_by(Prescription.created_at.desc())
        .offset(offset)
        .limit(limit)
    )
    return [to_history_item(p) for p in result.scalars().all()]
