from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional, Tuple

from ..application.services.context_retriever import TavilyContextRetriever
from ..application.services.generation_invoker import GenerationInvoker, ProviderAttempt
from ..domain.errors import PipelineError, PipelineStage
from ..infra.config import AppSettings
from ..infra.retry import Deadline
from ..observability.logging_utils import (
    get_trace_id,
    log_event,
    new_trace_id,
    pipeline_log_context,
    reset_trace_id,
    set_trace_id,
)
from ..schemas.models import ContextBundle, GenerationRequest, GenerationResult
from .workflows.generation_graph import build_generation_graph


STATUS_COMPLETED = "completed"
STATUS_FAILED = "failed"


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _describe_attempt(attempt: ProviderAttempt) -> str:
    outcome = "ok" if attempt.ok else attempt.error_kind
    return f"{attempt.provider}:{outcome}:{attempt.elapsed_ms}ms"


@dataclass(frozen=True)
class PipelineOutcome:
    """Terminal state of one request: a full result bundle or one error."""

    status: str
    kind: Optional[str] = None
    result: Optional[GenerationResult] = None
    context: Optional[ContextBundle] = None
    generated_at: Optional[datetime] = None
    provider: Optional[str] = None
    error: Optional[PipelineError] = None
    trace: Tuple[str, ...] = ()
    attempts: Tuple[ProviderAttempt, ...] = ()

    @property
    def completed(self) -> bool:
        return self.status == STATUS_COMPLETED

    @property
    def failed_stage(self) -> Optional[PipelineStage]:
        return self.error.stage if self.error else None


class GenerationPipeline:
    """
    Runs one generation request through the LangGraph workflow.

    The settings object and both outbound collaborators are injected once at
    process start; no state is kept between ``run`` calls.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        retriever,
        invoker,
        now: Callable[[], datetime] = utc_now,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._settings = settings
        self._graph = build_generation_graph(
            settings, retriever=retriever, invoker=invoker, now=now, sleep=sleep
        )

    def run(self, request: GenerationRequest) -> PipelineOutcome:
        token = set_trace_id(new_trace_id()) if get_trace_id() == "unknown" else None
        try:
            with pipeline_log_context(kind=getattr(request, "kind", None)):
                log_event("pipeline_received")
                state = self._graph.invoke(
                    {
                        "request": request,
                        "trace": [],
                        "deadline": Deadline(self._settings.request_timeout_seconds),
                    }
                )
                outcome = self._to_outcome(state)
                log_event(
                    "pipeline_finished",
                    status=outcome.status,
                    provider=outcome.provider,
                    attempts=[_describe_attempt(item) for item in outcome.attempts],
                    trace=list(outcome.trace),
                )
            return outcome
        finally:
            if token is not None:
                reset_trace_id(token)

    @staticmethod
    def _to_outcome(state) -> PipelineOutcome:
        trace = tuple(state.get("trace") or ())
        kind = state.get("kind") or getattr(state.get("request"), "kind", None)
        error = state.get("error")
        if error is not None:
            return PipelineOutcome(status=STATUS_FAILED, kind=kind, error=error, trace=trace)
        return PipelineOutcome(
            status=STATUS_COMPLETED,
            kind=kind,
            result=state["result"],
            context=state.get("context"),
            generated_at=state["generated_at"],
            provider=state.get("provider"),
            trace=trace,
            attempts=tuple(state.get("attempts") or ()),
        )


def build_pipeline(settings: AppSettings) -> GenerationPipeline:
    return GenerationPipeline(
        settings,
        retriever=TavilyContextRetriever(settings),
        invoker=GenerationInvoker(settings),
    )
