"""
Structured generative content pipeline for farm planning, crop diagnosis and
weather advisories.
"""

from __future__ import annotations

from typing import Any


__version__ = "1.0.0"

_PIPELINE_EXPORTS = {
    "GenerationPipeline",
    "PipelineOutcome",
    "build_pipeline",
}

__all__ = sorted(_PIPELINE_EXPORTS | {"__version__"})


def __getattr__(name: str) -> Any:
    if name in _PIPELINE_EXPORTS:
        from .agent import pipeline as _pipeline

        return getattr(_pipeline, name)
    raise AttributeError(f"module {__name__!r} has no attribute {name!r}")
