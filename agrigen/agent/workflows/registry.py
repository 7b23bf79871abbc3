from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from ...application.services.generation_invoker import MediaAttachment
from ...schemas.definitions import (
    ANNUAL_PLAN_SCHEMA,
    CROP_DIAGNOSIS_SCHEMA,
    WEATHER_ADVISORY_SCHEMA,
    SchemaNode,
)


def _no_values(_request) -> Dict[str, Any]:
    return {}


def _no_media(_request) -> Optional[MediaAttachment]:
    return None


@dataclass(frozen=True)
class GenerationSpec:
    kind: str
    description: str
    schema: SchemaNode
    needs_context: bool
    missing_message: str
    field_defaults: Callable[[Any], Mapping[str, Any]] = _no_values
    extras: Callable[[Any], Mapping[str, Any]] = _no_values
    media: Callable[[Any], Optional[MediaAttachment]] = _no_media


def _plan_farm_info(request) -> Dict[str, Any]:
    return {
        "farmInfo": {
            "location": request.location,
            "farmSize": request.farmSize,
            "soilType": request.soilType,
            "primaryCrops": list(request.primaryCrops),
        }
    }


def _diagnosis_defaults(request) -> Dict[str, Any]:
    return {"detectedCrop_en": request.cropType}


def _diagnosis_extras(request) -> Dict[str, Any]:
    return {"notes": request.notes or ""}


def _diagnosis_media(request) -> MediaAttachment:
    return MediaAttachment(data=request.image, mime_type=request.mimeType)


def _advisory_extras(request) -> Dict[str, Any]:
    return {"location": request.location or "Unknown"}


ANNUAL_PLAN = "annual_plan"
CROP_DIAGNOSIS = "crop_diagnosis"
WEATHER_ADVISORY = "weather_advisory"

_SPECS = (
    GenerationSpec(
        kind=ANNUAL_PLAN,
        description="Month-by-month farming plan grounded in location research.",
        schema=ANNUAL_PLAN_SCHEMA,
        needs_context=True,
        missing_message=(
            "Please provide all required fields: location, farm size, soil type, "
            "and at least one crop."
        ),
        field_defaults=_plan_farm_info,
    ),
    GenerationSpec(
        kind=CROP_DIAGNOSIS,
        description="Bilingual health diagnosis of a crop photo.",
        schema=CROP_DIAGNOSIS_SCHEMA,
        needs_context=False,
        missing_message="Please upload a crop photo and select the crop type.",
        field_defaults=_diagnosis_defaults,
        extras=_diagnosis_extras,
        media=_diagnosis_media,
    ),
    GenerationSpec(
        kind=WEATHER_ADVISORY,
        description="Bilingual weather-based farming advisory.",
        schema=WEATHER_ADVISORY_SCHEMA,
        needs_context=False,
        missing_message="Weather data is required",
        extras=_advisory_extras,
    ),
)
_SPEC_INDEX: Dict[str, GenerationSpec] = {spec.kind: spec for spec in _SPECS}


def list_generation_specs() -> List[GenerationSpec]:
    return list(_SPECS)


def get_generation_spec(kind: str) -> GenerationSpec:
    spec = _SPEC_INDEX.get(kind)
    if spec is None:
        raise ValueError(f"unknown request kind: {kind}")
    return spec
