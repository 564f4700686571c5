"""Lab report analysis: one structured call covering extraction, abnormalities and diet."""

import logging

from fastapi import APIRouter, Depends, Request

from medilens.api.v1.responses import failure, generation_failure, success
from medilens.core.config import settings
from medilens.core.dependencies import get_analyzer
from medilens.core.exceptions import BadRequestError
from medilens.core.rate_limit import limiter
from medilens.gateway.errors import GenerationError
from medilens.schemas.analysis import HealthReportRequest
from medilens.services.analyzer import PrescriptionAnalyzer, UnparseableResponseError
from medilens.services.images import load_image

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health-report"])


@router.post("/analyze-health-report")
@limiter.limit(settings.analyze_rate_limit)
async def analyze_health_report(
    request: Request,
    body: HealthReportRequest,
    analyzer: PrescriptionAnalyzer = Depends(get_analyzer),
):
    if body.action != "analyze-lab-report":
        raise BadRequestError("Invalid action")
    if not body.image_url:
        raise BadRequestError("Image URL required")

    image = await load_image(body.image_url)
    try:
        report = await analyzer.analyze_lab_report(image)
    except GenerationError as e:
        return generation_failure(e)
    except UnparseableResponseError:
        return failure(500, "Failed to parse AI response. Please try again.", is_quota_error=False)

    logger.info(
        "Lab report analysed: %d results, %d abnormalities",
        len(report.analysis.extracted_data.test_results),
        len(report.analysis.abnormalities),
    )
    return success(report)
