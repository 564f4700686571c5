"""Typed shapes for model output and the analysis API.

Model output is validated once, at the normalizer boundary, against these
models. Wire names are camelCase (the frontend's contract); Python code uses
snake_case.
"""

from __future__ import annotations

from typing import Annotated, Any, Literal, TypeVar

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def _lower(value: Any) -> Any:
    return value.strip().lower() if isinstance(value, str) else value


T = TypeVar("T")
Lowercase = Annotated[T, BeforeValidator(_lower)]


# ---------------------------------------------------------------------------
# Prescriptions
# ---------------------------------------------------------------------------


class Medicine(CamelModel):
    name: str
    dose: str | None = None
    frequency: str | None = None


class ExtractedData(CamelModel):
    doctor: str | None = None
    hospital: str | None = None
    date: str | None = None
    medicines: list[Medicine] = Field(default_factory=list)


class AuthenticityResult(CamelModel):
    authenticity: Lowercase[Literal["genuine", "suspicious", "fake"]]
    reasons: list[str] = Field(default_factory=list)


class DrugInteraction(BaseModel):
    drug_a: str
    drug_b: str
    severity: Lowercase[Literal["none", "mild", "moderate", "severe"]]
    description: str = ""


# ---------------------------------------------------------------------------
# Lab reports
# ---------------------------------------------------------------------------


class LabTestResult(CamelModel):
    test_name: str
    value: str | float | None = None
    normal_range: str | None = None
    unit: str | None = None
    status: Lowercase[str] = "normal"  # normal | low | high | abnormal


class LabExtractedData(CamelModel):
    patient_name: str | None = None
    test_date: str | None = None
    lab_name: str | None = None
    doctor_name: str | None = None
    test_results: list[LabTestResult] = Field(default_factory=list)


class AbnormalityAnalysis(CamelModel):
    test_name: str
    abnormality: str
    severity: Lowercase[Literal["mild", "moderate", "severe"]] = "mild"
    possible_causes: list[str] = Field(default_factory=list)


class DietRecommendation(CamelModel):
    category: str
    foods: list[str] = Field(default_factory=list)
    serving_frequency: str | None = None
    dietary_tip: str | None = None
    benefits: str | None = None
    reason_for_abnormality: str | None = None


class HealthReportAnalysis(CamelModel):
    extracted_data: LabExtractedData
    abnormalities: list[AbnormalityAnalysis] = Field(default_factory=list)
    diet_recommendations: list[DietRecommendation] = Field(default_factory=list)
    overall_health_assessment: str = ""


class LabReportAnalysis(CamelModel):
    raw_text: str = ""
    analysis: HealthReportAnalysis


# ---------------------------------------------------------------------------
# API envelopes
# ---------------------------------------------------------------------------


class AnalyzeRequest(CamelModel):
    # Unknown actions are answered with a 400 envelope rather than a 422
    action: str
    image_url: str | None = None
    ocr_text: str | None = None
    extracted_data: ExtractedData | None = None


class HealthReportRequest(CamelModel):
    action: str
    image_url: str | None = None


class ApiResponse(CamelModel):
    success: bool
    data: Any = None
    error: str | None = None
    is_quota_error: bool | None = None
