from __future__ import annotations

import json
import logging
from contextlib import contextmanager
from contextvars import ContextVar
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Any, Dict, Iterator, Optional
from uuid import uuid4


_TRACE_ID_CTX: ContextVar[str] = ContextVar("trace_id", default="unknown")
# request kind and workflow stage stamped on every event of one pipeline run
_PIPELINE_FIELDS_CTX: ContextVar[Dict[str, str]] = ContextVar("pipeline_fields", default={})
_LOGGER = logging.getLogger("agrigen.pipeline")
_INITIALIZED = False


def init_logging(*, log_path: Optional[str] = None, level: int = logging.INFO) -> None:
    global _INITIALIZED
    if _INITIALIZED:
        return
    handlers = []
    if log_path:
        path = Path(log_path)
        path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                path, maxBytes=5 * 1024 * 1024, backupCount=3, encoding="utf-8"
            )
        )
    else:
        handlers.append(logging.StreamHandler())
    logging.basicConfig(
        level=level,
        format="%(asctime)s %(levelname)s %(name)s %(message)s",
        handlers=handlers,
    )
    _LOGGER.setLevel(level)
    _INITIALIZED = True


def new_trace_id() -> str:
    return uuid4().hex


def set_trace_id(trace_id: str):
    return _TRACE_ID_CTX.set(trace_id)


def reset_trace_id(token) -> None:
    _TRACE_ID_CTX.reset(token)


def get_trace_id() -> str:
    value = _TRACE_ID_CTX.get()
    return value or "unknown"


@contextmanager
def pipeline_log_context(**fields: Optional[str]) -> Iterator[None]:
    """Stamp ``fields`` (typically ``kind`` and ``stage``) onto nested log events."""
    merged = dict(_PIPELINE_FIELDS_CTX.get())
    merged.update({key: value for key, value in fields.items() if value is not None})
    token = _PIPELINE_FIELDS_CTX.set(merged)
    try:
        yield
    finally:
        _PIPELINE_FIELDS_CTX.reset(token)


def summarize_text(text: str, limit: int = 400) -> str:
    if not text:
        return ""
    text = str(text)
    if len(text) <= limit:
        return text
    return f"{text[:limit]}..."


def _build_payload(event: str, fields: Dict[str, Any]) -> str:
    payload = {
        "event": event,
        "trace_id": get_trace_id(),
        **_PIPELINE_FIELDS_CTX.get(),
        **fields,
    }
    return json.dumps(payload, ensure_ascii=False, default=str)


def log_event(event: str, *, level: int = logging.INFO, **fields: Any) -> None:
    _LOGGER.log(level, _build_payload(event, fields))
