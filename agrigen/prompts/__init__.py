from __future__ import annotations

from typing import Optional

from ..schemas.models import (
    AnnualPlanRequest,
    ContextBundle,
    CropDiagnosisRequest,
    WeatherAdvisoryRequest,
)
from .annual_plan import build_annual_plan_prompt, build_context_query
from .crop_diagnosis import build_crop_diagnosis_prompt
from .weather_advisory import build_weather_advisory_prompt


__all__ = ["build_context_query", "compose_prompt"]


def compose_prompt(
    request,
    context: Optional[ContextBundle] = None,
    *,
    max_sources: int = 5,
    excerpt_chars: int = 200,
) -> str:
    """Render the single instruction sent to the model. Pure, no I/O."""
    if isinstance(request, AnnualPlanRequest):
        return build_annual_plan_prompt(
            request, context, max_sources=max_sources, excerpt_chars=excerpt_chars
        )
    if isinstance(request, CropDiagnosisRequest):
        return build_crop_diagnosis_prompt(request)
    if isinstance(request, WeatherAdvisoryRequest):
        return build_weather_advisory_prompt(request)
    raise TypeError(f"unsupported request type: {type(request).__name__}")
