from __future__ import annotations

from typing import Optional

from ..schemas.models import AnnualPlanRequest, ContextBundle


NO_CONTEXT_SUMMARY = "No specific information available"

ANNUAL_PLAN_SYSTEM_PROMPT = (
    "You are an expert agricultural advisor with deep knowledge of farming "
    "practices, crop management, and seasonal planning. \n\n"
    "You will receive information about a farmer's location, farm specifications, "
    "and research data about their region. Your task is to create a comprehensive, "
    "month-by-month annual farming plan."
)

ANNUAL_PLAN_CONSIDERATIONS = (
    "Local climate and weather patterns",
    "Optimal planting and harvesting times for the specified crops",
    "Soil preparation and fertilization schedules",
    "Irrigation management based on seasonal rainfall",
    "Pest and disease prevention strategies",
    "Market timing for better prices",
    "Resource optimization based on available resources",
)


def build_context_query(request: AnnualPlanRequest) -> str:
    crops = ", ".join(request.primaryCrops)
    return (
        f"Agricultural information for {request.location}: weather patterns, soil "
        "conditions, climate data, best farming practices, seasonal rainfall, "
        f"temperature ranges, and crop suitability for {crops}"
    )


def format_source_lines(
    context: Optional[ContextBundle], *, max_sources: int, excerpt_chars: int
) -> str:
    if context is None:
        return ""
    lines = []
    for idx, source in enumerate(context.sources[:max_sources], start=1):
        lines.append(f"{idx}. {source.title}: {source.excerpt[:excerpt_chars]}...")
    return "\n".join(lines)


def build_annual_plan_prompt(
    request: AnnualPlanRequest,
    context: Optional[ContextBundle],
    *,
    max_sources: int = 5,
    excerpt_chars: int = 200,
) -> str:
    crops = ", ".join(request.primaryCrops)
    summary = context.summary if context and context.summary else NO_CONTEXT_SUMMARY
    findings = format_source_lines(
        context, max_sources=max_sources, excerpt_chars=excerpt_chars
    )
    considerations = "\n".join(
        f"{idx}. {item}" for idx, item in enumerate(ANNUAL_PLAN_CONSIDERATIONS, start=1)
    )
    return f"""{ANNUAL_PLAN_SYSTEM_PROMPT}

CONTEXT INFORMATION:
- Location: {request.location}
- Farm Size: {request.farmSize}
- Soil Type: {request.soilType}
- Primary Crops: {crops}
- Experience Level: {request.experienceLevel or "Not specified"}
- Available Resources: {request.availableResources or "Not specified"}
- Farming Goals: {request.farmingGoals or "General sustainable farming"}
- Water Availability: {request.waterAvailability or "Not specified"}
- Farming Type: {request.farmingType or "Traditional"}

LOCATION RESEARCH DATA:
{summary}

KEY FINDINGS FROM RESEARCH:
{findings}

Create a detailed annual farming plan with activities for each month, one entry for every calendar month from January to December. Consider:
{considerations}

Provide practical, actionable tasks that are specific to the location and crops mentioned."""
