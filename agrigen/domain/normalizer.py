"""
Turn raw model text into a typed generation result.

This is the only place where untyped model JSON is touched. Everything that
leaves ``normalize`` is one of the frozen result models from
``agrigen.schemas.models``.
"""

from __future__ import annotations

import json
import logging
import math
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional

from pydantic import ValidationError

from ..observability.logging_utils import log_event, summarize_text
from ..schemas.definitions import (
    CALENDAR_MONTHS,
    KIND_ARRAY,
    KIND_ENUM,
    KIND_NUMBER,
    KIND_OBJECT,
    KIND_STRING,
    SchemaNode,
)
from ..schemas.models import RESULT_MODELS, GenerationResult
from .errors import PipelineError, PipelineErrorKind, PipelineStage


FALLBACK_TEXT = {
    "en": "Not available",
    "ur": "معلومات دستیاب نہیں",
}
LANGUAGE_SUFFIXES = ("en", "ur")

_CODE_FENCE_RE = re.compile(r"^```(?:json)?\s*(.*?)\s*```$", re.S | re.I)


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict)):
        return len(value) == 0
    return False


def _parse_failure(message: str, raw_text: str) -> PipelineError:
    log_event(
        "normalize_parse_failed",
        level=logging.WARNING,
        reason=message,
        raw=summarize_text(raw_text, limit=2000),
    )
    return PipelineError(
        PipelineStage.VALIDATION,
        PipelineErrorKind.RESPONSE_PARSE_FAILURE,
        "Generation failed. Please try again.",
        details=message,
    )


def parse_model_json(raw_text: str) -> Dict[str, Any]:
    text = (raw_text or "").strip()
    fenced = _CODE_FENCE_RE.match(text)
    if fenced:
        text = fenced.group(1)
    if not text:
        raise _parse_failure("empty model output", raw_text)
    try:
        payload = json.loads(text)
    except json.JSONDecodeError as exc:
        raise _parse_failure(f"invalid JSON: {exc}", raw_text) from exc
    if not isinstance(payload, dict):
        raise _parse_failure(
            f"expected a JSON object, got {type(payload).__name__}", raw_text
        )
    return payload


# --- schema walk -----------------------------------------------------------


def _coerce_number(value: Any) -> float:
    if isinstance(value, bool):
        return 0
    if isinstance(value, (int, float)):
        number = float(value)
    elif isinstance(value, str):
        try:
            number = float(value.strip().rstrip("%"))
        except ValueError:
            return 0
    else:
        return 0
    if math.isnan(number) or math.isinf(number):
        return 0
    return number


def _fallback_for(node: SchemaNode, language: str, counterpart: Any) -> Any:
    """Localized placeholder for one missing side of a bilingual pair."""
    text = FALLBACK_TEXT[language]
    if node.kind == KIND_ARRAY:
        if not isinstance(counterpart, list) or not counterpart:
            return []
        item = node.items
        if item.kind == KIND_OBJECT:
            return [
                {
                    name: text if child.kind == KIND_STRING else child.default_value()
                    for name, child in item.properties
                }
            ]
        return [text]
    if node.kind == KIND_STRING:
        return text
    return node.default_value()


def _repair_bilingual(node: SchemaNode, raw: Dict[str, Any]) -> Dict[str, Any]:
    data = dict(raw)
    for base in node.bilingual:
        en_key, ur_key = f"{base}_en", f"{base}_ur"
        en_value, ur_value = data.get(en_key), data.get(ur_key)
        if _is_blank(en_value) and not _is_blank(data.get(base)):
            en_value = data[base]
            data[en_key] = en_value
        if _is_blank(en_value) and _is_blank(ur_value):
            continue
        if _is_blank(ur_value):
            data[ur_key] = _fallback_for(node.child(ur_key), "ur", en_value)
        elif _is_blank(en_value):
            data[en_key] = _fallback_for(node.child(en_key), "en", ur_value)
    return data


def conform(value: Any, node: SchemaNode) -> Any:
    """Return ``value`` reshaped to ``node``, filling defaults where absent."""
    if value is None:
        return node.default_value()
    if node.kind == KIND_OBJECT:
        if not isinstance(value, Mapping):
            return node.default_value()
        raw = _repair_bilingual(node, dict(value))
        out: Dict[str, Any] = {}
        for name, child in node.properties:
            child_value = raw.get(name)
            if _is_blank(child_value) and (child.kind == KIND_STRING or child.has_default):
                child_value = None
            out[name] = conform(child_value, child)
        for base in node.bilingual:
            en_value = out.get(f"{base}_en")
            out[base] = en_value if not _is_blank(en_value) else out.get(f"{base}_ur")
        return out
    if node.kind == KIND_ARRAY:
        if not isinstance(value, list):
            return node.default_value()
        items = node.items
        if items.kind == KIND_OBJECT:
            return [conform(item, items) for item in value if isinstance(item, Mapping)]
        return [conform(item, items) for item in value if item is not None]
    if node.kind == KIND_NUMBER:
        return _coerce_number(value)
    if node.kind == KIND_ENUM:
        # Unknown enum values are kept verbatim; display code ranks them lowest.
        text = str(value).strip()
        return text or node.default_value()
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return str(value).strip()


def count_supplied_fields(payload: Mapping[str, Any], schema: SchemaNode) -> int:
    names = schema.property_names + schema.bilingual
    return sum(1 for name in names if not _is_blank(payload.get(name)))


# --- per-kind finishing ----------------------------------------------------


def month_index(value: Any) -> Optional[int]:
    if value is None:
        return None
    text = str(value).strip().lower()
    if text.isdigit():
        number = int(text)
        return number - 1 if 1 <= number <= 12 else None
    for index, name in enumerate(CALENDAR_MONTHS):
        if len(text) >= 3 and name.lower().startswith(text[:3]):
            return index
    return None


def align_calendar_months(entries: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Exactly one entry per calendar month, January first.

    Entries for the same month are merged; entries whose month cannot be
    recognised are dropped.
    """
    buckets: Dict[int, Dict[str, Any]] = {}
    dropped = []
    for entry in entries:
        index = month_index(entry.get("month"))
        if index is None:
            dropped.append(entry.get("month"))
            continue
        bucket = buckets.setdefault(
            index, {"month": CALENDAR_MONTHS[index], "activities": []}
        )
        bucket["activities"].extend(entry.get("activities") or [])
    if dropped:
        log_event("normalize_months_dropped", months=dropped)
    return [
        buckets.get(index, {"month": name, "activities": []})
        for index, name in enumerate(CALENDAR_MONTHS)
    ]


def clamp_confidence(value: Any) -> float:
    number = _coerce_number(value)
    return float(min(100.0, max(0.0, number)))


def _finish_annual_plan(data: Dict[str, Any], extras: Mapping[str, Any]) -> None:
    data["annualPlan"] = align_calendar_months(data.get("annualPlan") or [])


def _finish_crop_diagnosis(data: Dict[str, Any], extras: Mapping[str, Any]) -> None:
    confidence = clamp_confidence(data.get("diseaseConfidence"))
    data["diseaseConfidence"] = confidence
    data["analysis"] = {
        "confidence": confidence,
        "uploadedAt": extras["generatedAt"],
        "notes": extras.get("notes") or "",
    }


def _finish_weather_advisory(data: Dict[str, Any], extras: Mapping[str, Any]) -> None:
    data["location"] = extras.get("location") or "Unknown"


_FINISHERS: Dict[str, Callable[[Dict[str, Any], Mapping[str, Any]], None]] = {
    "annual_plan": _finish_annual_plan,
    "crop_diagnosis": _finish_crop_diagnosis,
    "weather_advisory": _finish_weather_advisory,
}


def normalize(
    raw_text: str,
    schema: SchemaNode,
    *,
    kind: str,
    generated_at: datetime,
    field_defaults: Optional[Mapping[str, Any]] = None,
    extras: Optional[Mapping[str, Any]] = None,
    min_model_fields: int = 1,
) -> GenerationResult:
    """
    Parse, repair and decode one model response.

    Args:
        field_defaults: request-derived values used for top-level fields the
            model left blank (e.g. the declared crop type).
        extras: request metadata copied onto the result (notes, location).
        min_model_fields: minimum number of top-level schema fields the model
            must have supplied; below it the response is rejected instead of
            being padded entirely with placeholders.

    Raises:
        PipelineError: stage ``validation`` when the text is not a usable
            JSON object or the repaired payload still fails to decode.
    """
    payload = parse_model_json(raw_text)
    supplied = count_supplied_fields(payload, schema)
    if supplied < min_model_fields:
        raise _parse_failure(
            f"model supplied {supplied} of {len(schema.property_names)} fields",
            raw_text,
        )
    for key, value in (field_defaults or {}).items():
        if _is_blank(payload.get(key)):
            payload[key] = value

    data = conform(payload, schema)
    finishing_extras = {**(extras or {}), "generatedAt": generated_at}
    finisher = _FINISHERS.get(kind)
    if finisher is not None:
        finisher(data, finishing_extras)
    data["generatedAt"] = generated_at

    model_cls = RESULT_MODELS[kind]
    try:
        return model_cls.model_validate(data)
    except ValidationError as exc:
        raise _parse_failure(f"result decode failed: {exc}", raw_text) from exc
