from __future__ import annotations

from typing import Any


_NORMALIZER_EXPORTS = {
    "FALLBACK_TEXT",
    "align_calendar_months",
    "clamp_confidence",
    "normalize",
    "parse_model_json",
}
_ORDERING_EXPORTS = {
    "activities_by_priority",
    "priority_rank",
    "severity_rank",
}

__all__ = sorted(_NORMALIZER_EXPORTS | _ORDERING_EXPORTS)


def __getattr__(name: str) -> Any:
    if name in _NORMALIZER_EXPORTS:
        from . import normalizer as _normalizer

        return getattr(_normalizer, name)
    if name in _ORDERING_EXPORTS:
        from . import ordering as _ordering

        return getattr(_ordering, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
