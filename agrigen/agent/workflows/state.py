"""
LangGraph state for one generation request.
"""

from datetime import datetime
from typing import Any, List, Optional, Tuple, TypedDict

from ...application.services.generation_invoker import ProviderAttempt
from ...domain.errors import PipelineError
from ...infra.retry import Deadline
from ...schemas.models import ContextBundle


class GenerationState(TypedDict, total=False):
    """State shared across generation pipeline nodes."""

    request: Any
    kind: str
    deadline: Deadline
    trace: List[str]
    context: Optional[ContextBundle]
    prompt: str
    raw_text: str
    provider: str
    attempts: Tuple[ProviderAttempt, ...]
    result: Any
    generated_at: datetime
    error: Optional[PipelineError]


def add_trace(state: GenerationState, message: str) -> List[str]:
    """Return the trace with ``message`` appended."""
    trace = list(state.get("trace") or [])
    trace.append(message)
    return trace
