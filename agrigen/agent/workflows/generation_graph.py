"""
LangGraph workflow shared by every generation request kind.

validate -> [retrieve] -> compose -> invoke -> normalize, with a jump to END
as soon as any node records an error.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from langgraph.graph import END, StateGraph

from ...domain.errors import (
    MissingParametersError,
    PipelineError,
    PipelineErrorKind,
    PipelineStage,
)
from ...domain.normalizer import normalize
from ...infra.config import AppSettings
from ...infra.retry import call_with_retry
from ...observability.logging_utils import log_event, pipeline_log_context, summarize_text
from ...observability.otel import (
    build_span_attributes,
    record_exception,
    start_span,
    summarize_state,
)
from ...prompts import build_context_query, compose_prompt
from .registry import get_generation_spec
from .state import GenerationState, add_trace


WORKFLOW_NAME = "generation"


def _fail(state: GenerationState, node: str, exc: PipelineError) -> GenerationState:
    log_event("pipeline_stage_failed", level=logging.WARNING, **exc.to_log_fields())
    return {"error": exc, "trace": add_trace(state, f"{node}_failed={exc.kind.value}")}


def _deadline_error(stage: PipelineStage, kind: PipelineErrorKind) -> PipelineError:
    return PipelineError(
        stage,
        kind,
        "The request took too long. Please try again.",
        details="request deadline exhausted before stage start",
    )


def _trace_node(node_name: str, func):
    def _inner(state: GenerationState) -> GenerationState:
        attrs = {"workflow.name": WORKFLOW_NAME, "node.name": node_name}
        attrs.update(build_span_attributes("node.input", summarize_state(state)))
        with pipeline_log_context(stage=node_name), start_span(
            f"workflow.{WORKFLOW_NAME}.{node_name}", attributes=attrs
        ) as span:
            try:
                result = func(state)
            except Exception as exc:
                record_exception(span, exc)
                raise
            if result.get("error") is not None:
                record_exception(span, result["error"])
            for key, value in build_span_attributes(
                "node.output", summarize_state(result)
            ).items():
                span.set_attribute(key, value)
            return result

    return _inner


def _route_or_end(next_node: str):
    def _route(state: GenerationState) -> str:
        return END if state.get("error") else next_node

    return _route


def build_generation_graph(
    settings: AppSettings,
    *,
    retriever,
    invoker,
    now: Callable[[], datetime],
    sleep: Callable[[float], None],
):
    """
    Construct the compiled generation workflow.

    ``retriever`` and ``invoker`` are the only collaborators that leave the
    process; both are reached strictly after ``validate`` succeeds. Their
    credentials are checked in ``validate`` too, so a missing key fails the
    request before any outbound call.
    """

    def _validate_node(state: GenerationState) -> GenerationState:
        request = state["request"]
        spec = get_generation_spec(request.kind)
        missing = request.missing_required_fields()
        if missing:
            return _fail(
                state, "validate", MissingParametersError(missing, spec.missing_message)
            )
        try:
            invoker.check_configured()
            if spec.needs_context:
                retriever.check_configured()
        except PipelineError as exc:
            return _fail(state, "validate", exc)
        return {"kind": spec.kind, "trace": add_trace(state, f"validated kind={spec.kind}")}

    def _retrieve_node(state: GenerationState) -> GenerationState:
        request = state["request"]
        query = build_context_query(request)
        deadline = state["deadline"]
        if deadline.expired:
            return _fail(
                state,
                "retrieve",
                _deadline_error(
                    PipelineStage.RETRIEVAL, PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE
                ),
            )
        try:
            context = call_with_retry(
                lambda: retriever.retrieve(
                    query,
                    max_results=settings.context_max_results,
                    depth=settings.context_search_depth,
                    timeout=deadline.remaining(),
                ),
                stage=PipelineStage.RETRIEVAL.value,
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay_seconds,
                deadline=deadline,
                sleep=sleep,
            )
        except PipelineError as exc:
            return _fail(state, "retrieve", exc)
        return {
            "context": context,
            "trace": add_trace(state, f"retrieved sources={len(context.sources)}"),
        }

    def _compose_node(state: GenerationState) -> GenerationState:
        try:
            prompt = compose_prompt(
                state["request"],
                state.get("context"),
                max_sources=settings.prompt_max_sources,
                excerpt_chars=settings.prompt_excerpt_chars,
            )
        except (TypeError, ValueError, AttributeError) as exc:
            return _fail(
                state,
                "compose",
                PipelineError(
                    PipelineStage.COMPOSITION,
                    PipelineErrorKind.PROMPT_COMPOSITION_FAILURE,
                    "Failed to prepare the request. Please try again.",
                    details=str(exc),
                ),
            )
        log_event("prompt_composed", prompt=summarize_text(prompt))
        return {"prompt": prompt, "trace": add_trace(state, f"composed chars={len(prompt)}")}

    def _invoke_node(state: GenerationState) -> GenerationState:
        spec = get_generation_spec(state["kind"])
        media = spec.media(state["request"])
        deadline = state["deadline"]
        if deadline.expired:
            return _fail(
                state,
                "invoke",
                _deadline_error(
                    PipelineStage.INVOCATION, PipelineErrorKind.INVOCATION_BACKEND_ERROR
                ),
            )
        try:
            invocation = call_with_retry(
                lambda: invoker.invoke(
                    state["prompt"],
                    spec.schema,
                    media,
                    schema_name=spec.kind,
                    timeout=deadline.remaining(),
                ),
                stage=PipelineStage.INVOCATION.value,
                max_attempts=settings.retry_max_attempts,
                base_delay=settings.retry_base_delay_seconds,
                deadline=deadline,
                sleep=sleep,
            )
        except PipelineError as exc:
            return _fail(state, "invoke", exc)
        return {
            "raw_text": invocation.text,
            "provider": invocation.provider,
            "attempts": invocation.attempts,
            "trace": add_trace(state, f"invoked provider={invocation.provider}"),
        }

    def _normalize_node(state: GenerationState) -> GenerationState:
        request = state["request"]
        spec = get_generation_spec(state["kind"])
        generated_at = now()
        try:
            result = normalize(
                state["raw_text"],
                spec.schema,
                kind=spec.kind,
                generated_at=generated_at,
                field_defaults=spec.field_defaults(request),
                extras=spec.extras(request),
                min_model_fields=settings.min_model_fields,
            )
        except PipelineError as exc:
            return _fail(state, "normalize", exc)
        return {
            "result": result,
            "generated_at": generated_at,
            "trace": add_trace(state, "normalized"),
        }

    def _route_after_validate(state: GenerationState) -> str:
        if state.get("error"):
            return END
        spec = get_generation_spec(state["kind"])
        return "retrieve" if spec.needs_context else "compose"

    graph = StateGraph(GenerationState)
    graph.add_node("validate", _trace_node("validate", _validate_node))
    graph.add_node("retrieve", _trace_node("retrieve", _retrieve_node))
    graph.add_node("compose", _trace_node("compose", _compose_node))
    graph.add_node("invoke", _trace_node("invoke", _invoke_node))
    graph.add_node("normalize", _trace_node("normalize", _normalize_node))

    graph.set_entry_point("validate")
    graph.add_conditional_edges("validate", _route_after_validate)
    graph.add_conditional_edges("retrieve", _route_or_end("compose"))
    graph.add_conditional_edges("compose", _route_or_end("invoke"))
    graph.add_conditional_edges("invoke", _route_or_end("normalize"))
    graph.add_edge("normalize", END)
    return graph.compile()
