"""Prescription analysis: OCR, extraction, authenticity and interaction checks.

The frontend drives the pipeline one action at a time, passing each step's
output into the next request.
"""

import logging

from fastapi import APIRouter, Depends, Request

from medilens.api.v1.responses import failure, generation_failure, success
from medilens.core.config import settings
from medilens.core.dependencies import get_analyzer
from medilens.core.exceptions import BadRequestError
from medilens.core.rate_limit import limiter
from medilens.gateway.errors import GenerationError
from medilens.schemas.analysis import AnalyzeRequest
from medilens.services.analyzer import PrescriptionAnalyzer, UnparseableResponseError
from medilens.services.images import load_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["analyze"])

MIN_OCR_TEXT_LENGTH = 10


async def _run_action(body: AnalyzeRequest, analyzer: PrescriptionAnalyzer):
    if body.action == "ocr":
        if not body.image_url:
            raise BadRequestError("Image URL required")
        image = await load_image(body.image_url)
        return await analyzer.perform_ocr(image)

    if body.action == "extract":
        if not body.ocr_text or len(body.ocr_text) < MIN_OCR_TEXT_LENGTH:
            raise BadRequestError("Valid OCR text required")
        return await analyzer.extract_medicines(body.ocr_text)

    if body.action == "authenticity":
        if not body.ocr_text or body.extracted_data is None:
            raise BadRequestError("OCR text and extracted data required")
        return await analyzer.check_authenticity(body.ocr_text, body.extracted_data)

    if body.action == "interactions":
        if body.extracted_data is None:
            return []
        return await analyzer.check_interactions(body.extracted_data)

    raise BadRequestError("Invalid action")


@router.post("/analyze")
@limiter.limit(settings.analyze_rate_limit)
async def analyze(
    request: Request,
    body: AnalyzeRequest,
    analyzer: PrescriptionAnalyzer = Depends(get_analyzer),
):
    try:
        result = await _run_action(body, analyzer)
    except GenerationError as e:
        return generation_failure(e)
    except UnparseableResponseError as e:
        return failure(500, str(e), is_quota_error=False)

    logger.info("Analyze action %s completed", body.action)
    return success(result)
