from __future__ import annotations

import json
import os
from contextlib import contextmanager
from typing import Dict, Optional

from opentelemetry import trace
from opentelemetry.exporter.otlp.proto.http.trace_exporter import OTLPSpanExporter
from opentelemetry.sdk.resources import Resource
from opentelemetry.sdk.trace import TracerProvider
from opentelemetry.sdk.trace.export import BatchSpanProcessor
from opentelemetry.trace import Status, StatusCode


SERVICE_NAME = "agrigen"

_OTEL_INITIALIZED = False
_OTEL_ATTR_MAX_LEN = int(os.getenv("OTEL_ATTR_MAX_LEN", "2000"))


def _parse_pairs(raw: Optional[str]) -> Dict[str, str]:
    """Parse ``k1=v1,k2=v2`` as used by OTEL_* header and resource variables."""
    if not raw:
        return {}
    pairs: Dict[str, str] = {}
    for item in raw.split(","):
        key, sep, value = item.strip().partition("=")
        if sep and key.strip() and value.strip():
            pairs[key.strip()] = value.strip()
    return pairs


def _summarize_payload(value: object, limit: Optional[int] = None) -> tuple[str, int, bool]:
    if value is None:
        text = ""
    elif isinstance(value, str):
        text = value
    else:
        text = json.dumps(value, ensure_ascii=False, default=str)
    size = len(text)
    max_len = _OTEL_ATTR_MAX_LEN if limit is None else limit
    if max_len and size > max_len:
        return text[:max_len] + "...", size, True
    return text, size, False


def build_span_attributes(
    prefix: str, payload: object, limit: Optional[int] = None
) -> Dict[str, object]:
    text, size, truncated = _summarize_payload(payload, limit=limit)
    return {
        prefix: text,
        f"{prefix}.size": size,
        f"{prefix}.truncated": truncated,
    }


def summarize_state(state: object) -> object:
    """Small, JSON-friendly view of a generation state for span attributes."""
    if not isinstance(state, dict):
        return state
    summary: Dict[str, object] = {"keys": sorted(state.keys())}
    for key in ("kind", "provider"):
        if state.get(key):
            summary[key] = state[key]
    trace_steps = state.get("trace")
    if isinstance(trace_steps, list):
        summary["trace_count"] = len(trace_steps)
    error = state.get("error")
    if error is not None:
        summary["error"] = getattr(getattr(error, "kind", None), "value", str(error))
    context = state.get("context")
    if context is not None:
        summary["context_sources"] = len(getattr(context, "sources", ()))
    return summary


@contextmanager
def start_span(name: str, attributes: Optional[Dict[str, object]] = None):
    tracer = trace.get_tracer(os.getenv("OTEL_SERVICE_NAME") or SERVICE_NAME)
    with tracer.start_as_current_span(name) as span:
        for key, value in (attributes or {}).items():
            if value is not None:
                span.set_attribute(key, value)
        yield span


def record_exception(span, exc: BaseException) -> None:
    span.record_exception(exc)
    span.set_status(Status(StatusCode.ERROR, str(exc)))


def _resolve_traces_endpoint() -> Optional[str]:
    override = os.getenv("OTEL_EXPORTER_OTLP_TRACES_ENDPOINT")
    if override:
        return override.strip()
    base = (os.getenv("OTEL_EXPORTER_OTLP_ENDPOINT") or "").strip()
    if not base:
        return None
    if "/v1/" in base:
        return base
    return base.rstrip("/") + "/v1/traces"


def init_otel(service_name: Optional[str] = None) -> bool:
    """Install an OTLP/HTTP span exporter when an endpoint is configured.

    Without an endpoint the API's default no-op tracer stays in place and
    ``start_span`` costs next to nothing.
    """
    global _OTEL_INITIALIZED
    if _OTEL_INITIALIZED:
        return True
    exporter_name = (os.getenv("OTEL_TRACES_EXPORTER") or "otlp").strip().lower()
    if exporter_name in {"none", "off", "false", "0"}:
        return False
    endpoint = _resolve_traces_endpoint()
    if not endpoint:
        return False

    service = service_name or os.getenv("OTEL_SERVICE_NAME") or SERVICE_NAME
    resource = Resource.create(
        {"service.name": service, **_parse_pairs(os.getenv("OTEL_RESOURCE_ATTRIBUTES"))}
    )
    provider = TracerProvider(resource=resource)
    provider.add_span_processor(
        BatchSpanProcessor(
            OTLPSpanExporter(
                endpoint=endpoint,
                headers=_parse_pairs(os.getenv("OTEL_EXPORTER_OTLP_HEADERS")),
            )
        )
    )
    trace.set_tracer_provider(provider)
    _OTEL_INITIALIZED = True
    return True
