"""Prescription and lab-report analysis on top of the generation gateway.

Every operation follows the same path:
  prompt template (+ optional image) -> GeminiClient -> raw text
  -> normalizer.parse_model_response(raw, Shape) -> typed value

Gateway failures (GenerationError subclasses) propagate unchanged so the API
layer can map capacity errors to 429. A response that cannot be turned into
the expected shape raises UnparseableResponseError.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from medilens.core.config import settings
from medilens.gateway.gemini import GeminiClient
from medilens.gateway.normalizer import parse_model_response
from medilens.gateway.types import ContentPart
from medilens.prompts.templates import (
    AUTHENTICITY_PROMPT,
    EXTRACT_PROMPT,
    INTERACTIONS_PROMPT,
    LAB_REPORT_PROMPT,
    OCR_PROMPT,
    render_medicine_lines,
)
from medilens.schemas.analysis import (
    AuthenticityResult,
    DrugInteraction,
    ExtractedData,
    LabReportAnalysis,
)
from medilens.services.images import ImageInput

logger = logging.getLogger(__name__)


class UnparseableResponseError(Exception):
    """The model answered, but not with data of the expected shape."""

    def __init__(self, label: str):
        super().__init__(f"Failed to parse {label} result")
        self.label = label


class PrescriptionAnalyzer:
    """One reusable caller parameterised by prompt and response shape."""

    def __init__(self, client: GeminiClient, preview_chars: int | None = None):
        self.client = client
        self.preview_chars = preview_chars or settings.raw_preview_chars

    async def _structured(
        self,
        label: str,
        parts: list[ContentPart],
        shape: Any,
        structured: bool = False,
    ) -> Any:
        raw = await self.client.generate_text(parts, structured=structured)
        parsed = parse_model_response(raw, shape, preview_chars=self.preview_chars)
        if parsed is None:
            logger.error("Could not parse %s response (%d chars)", label, len(raw))
            raise UnparseableResponseError(label)
        return parsed

    async def perform_ocr(self, image: ImageInput) -> str:
        """Raw text transcription of a prescription image."""
        return await self.client.generate_text([ContentPart.from_text(OCR_PROMPT), image.to_part()])

    async def extract_medicines(self, ocr_text: str) -> ExtractedData:
        prompt = EXTRACT_PROMPT.format(ocr_text=ocr_text)
        return await self._structured("extraction", [ContentPart.from_text(prompt)], ExtractedData)

    async def check_authenticity(self, ocr_text: str, extracted: ExtractedData) -> AuthenticityResult:
        prompt = AUTHENTICITY_PROMPT.format(
            ocr_text=ocr_text,
            extracted_json=json.dumps(extracted.model_dump(), indent=2, ensure_ascii=False),
        )
        return await self._structured("authenticity", [ContentPart.from_text(prompt)], AuthenticityResult)

    async def check_interactions(self, extracted: ExtractedData) -> list[DrugInteraction]:
        """Pairwise interaction check. Fewer than two medicines needs no model call."""
        if len(extracted.medicines) < 2:
            return []
        prompt = INTERACTIONS_PROMPT.format(medicine_lines=render_medicine_lines(extracted.medicines))
        return await self._structured("interactions", [ContentPart.from_text(prompt)], list[DrugInteraction])

    async def analyze_lab_report(self, image: ImageInput) -> LabReportAnalysis:
        parts = [ContentPart.from_text(LAB_REPORT_PROMPT), image.to_part()]
        return await self._structured("lab report", parts, LabReportAnalysis, structured=True)
