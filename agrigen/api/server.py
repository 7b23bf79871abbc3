from __future__ import annotations

import base64
import binascii
import logging
from contextlib import asynccontextmanager
from functools import lru_cache
from typing import Any, Dict, Optional, Tuple

from fastapi import FastAPI, Request
from fastapi.concurrency import run_in_threadpool
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import TypeAdapter, ValidationError
from starlette.datastructures import UploadFile

from ..agent.pipeline import GenerationPipeline, PipelineOutcome, build_pipeline
from ..agent.workflows.registry import (
    ANNUAL_PLAN,
    CROP_DIAGNOSIS,
    WEATHER_ADVISORY,
    list_generation_specs,
)
from ..application.services.speech import SpeechError, UrduSpeechService
from ..domain.errors import PipelineError, PipelineErrorKind
from ..infra.config import get_settings
from ..observability.logging_utils import (
    init_logging,
    log_event,
    new_trace_id,
    reset_trace_id,
    set_trace_id,
)
from ..observability.otel import init_otel
from ..schemas.models import ContextBundle, GenerationRequest


INVALID_BODY_MESSAGE = "Invalid request body"
UNEXPECTED_ERROR_MESSAGE = "Failed to process request"

_STATUS_BY_KIND = {
    PipelineErrorKind.PARAM_VALIDATION: 400,
    PipelineErrorKind.INVOCATION_QUOTA_EXCEEDED: 429,
}

_FORM_CONTENT_TYPES = ("multipart/form-data", "application/x-www-form-urlencoded")
_LIST_FIELDS = {"primaryCrops", "primary_crops"}
_REQUEST_ADAPTER = TypeAdapter(GenerationRequest)


@lru_cache(maxsize=1)
def get_pipeline() -> GenerationPipeline:
    return build_pipeline(get_settings())


@lru_cache(maxsize=1)
def get_speech_service() -> UrduSpeechService:
    return UrduSpeechService(get_settings())


@asynccontextmanager
async def lifespan(_: FastAPI):
    settings = get_settings()
    init_logging(log_path=settings.log_path)
    otel_enabled = init_otel()
    log_event(
        "api_started",
        env=settings.app_env,
        providers=settings.generation_providers,
        otel=otel_enabled,
    )
    yield


app = FastAPI(title="Farm Content Generation API", lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"],
)


class BadRequestBody(Exception):
    def __init__(self, details: str):
        self.details = details
        super().__init__(details)


@app.middleware("http")
async def _trace_requests(request: Request, call_next):
    token = set_trace_id(request.headers.get("x-trace-id") or new_trace_id())
    try:
        log_event("http_request", method=request.method, path=request.url.path)
        response = await call_next(request)
        log_event("http_response", path=request.url.path, status=response.status_code)
        return response
    finally:
        reset_trace_id(token)


def _error_response(status_code: int, message: str, details: Optional[str] = None, **extra: Any):
    content: Dict[str, Any] = {"error": message, **extra}
    if details and get_settings().is_development:
        content["details"] = details
    return JSONResponse(status_code=status_code, content=content)


@app.exception_handler(PipelineError)
async def _pipeline_error_handler(_: Request, exc: PipelineError):
    return _error_response(_STATUS_BY_KIND.get(exc.kind, 500), exc.message, exc.details)


@app.exception_handler(BadRequestBody)
async def _bad_body_handler(_: Request, exc: BadRequestBody):
    return _error_response(400, INVALID_BODY_MESSAGE, exc.details)


@app.exception_handler(SpeechError)
async def _speech_error_handler(_: Request, exc: SpeechError):
    extra = {"fallback": True} if exc.fallback else {}
    return _error_response(exc.status_code, exc.message, exc.details, **extra)


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception):
    logging.getLogger("agrigen.api").exception("Unhandled error at %s", request.url.path)
    log_event("http_unhandled_error", level=logging.ERROR, path=request.url.path, error=str(exc))
    return _error_response(500, UNEXPECTED_ERROR_MESSAGE, f"{type(exc).__name__}: {exc}")


async def _read_payload(request: Request) -> Dict[str, Any]:
    content_type = request.headers.get("content-type", "")
    if content_type.startswith(_FORM_CONTENT_TYPES):
        form = await request.form()
        payload: Dict[str, Any] = {}
        for key in form.keys():
            values = form.getlist(key)
            payload[key] = values if key in _LIST_FIELDS else values[-1]
        return payload
    try:
        payload = await request.json()
    except ValueError as exc:
        raise BadRequestBody(f"body is not valid JSON: {exc}") from exc
    if not isinstance(payload, dict):
        raise BadRequestBody("body must be a JSON object")
    return payload


def _parse_request(kind: str, payload: Dict[str, Any]):
    try:
        return _REQUEST_ADAPTER.validate_python({**payload, "kind": kind})
    except ValidationError as exc:
        raise BadRequestBody(str(exc)) from exc


def _decode_image(value: Any) -> Tuple[Optional[bytes], Optional[str]]:
    """Accept raw base64 or a ``data:<mime>;base64,`` URL from JSON clients."""
    if not isinstance(value, str) or not value.strip():
        return None, None
    mime_type = None
    encoded = value.strip()
    if encoded.startswith("data:") and "," in encoded:
        header, encoded = encoded.split(",", 1)
        mime_type = header[5:].split(";", 1)[0] or None
    try:
        return base64.b64decode(encoded, validate=True), mime_type
    except (binascii.Error, ValueError) as exc:
        raise BadRequestBody(f"image is not valid base64: {exc}") from exc


async def _diagnosis_payload(request: Request) -> Dict[str, Any]:
    payload = await _read_payload(request)
    photo = payload.pop("photo", None) or payload.pop("image", None)
    if isinstance(photo, UploadFile):
        payload["image"] = await photo.read() or None
        if photo.content_type:
            payload["mimeType"] = photo.content_type
    else:
        image, mime_type = _decode_image(photo)
        payload["image"] = image
        if mime_type and not payload.get("mimeType"):
            payload["mimeType"] = mime_type
    return payload


def context_payload(bundle: ContextBundle) -> Dict[str, Any]:
    return {
        "summary": bundle.summary,
        "sources": [
            {"title": source.title, "content": source.excerpt, "url": source.url}
            for source in bundle.sources
        ],
    }


def render_success(outcome: PipelineOutcome) -> Dict[str, Any]:
    data = outcome.result.model_dump(mode="json", exclude={"kind"})
    if outcome.context is not None:
        rendered = context_payload(outcome.context)
        data["context"] = rendered
        if outcome.kind == ANNUAL_PLAN:
            data["tavilyContext"] = rendered
    return {"success": True, "data": data}


async def _run(request_model) -> Dict[str, Any]:
    outcome = await run_in_threadpool(get_pipeline().run, request_model)
    if not outcome.completed:
        raise outcome.error
    return render_success(outcome)


@app.get("/health")
async def health():
    settings = get_settings()
    return {
        "status": "ok",
        "providers": settings.generation_providers,
        "kinds": {spec.kind: spec.description for spec in list_generation_specs()},
    }


@app.post("/api/annual-plan/generate")
async def generate_annual_plan(request: Request):
    payload = await _read_payload(request)
    return await _run(_parse_request(ANNUAL_PLAN, payload))


@app.post("/api/crop-analysis")
async def analyze_crop(request: Request):
    payload = await _diagnosis_payload(request)
    return await _run(_parse_request(CROP_DIAGNOSIS, payload))


@app.post("/api/weather/gemini-tips")
async def weather_tips(request: Request):
    payload = await _read_payload(request)
    return await _run(_parse_request(WEATHER_ADVISORY, payload))


@app.post("/api/text-to-speech")
async def text_to_speech(request: Request):
    payload = await _read_payload(request)
    text = payload.get("text")
    service = get_speech_service()
    result = await run_in_threadpool(service.speak, text if isinstance(text, str) else None)
    return {
        "success": True,
        "audio": result.audio,
        "contentType": result.content_type,
        "translatedText": result.translated_text,
        "translationProvider": result.translation_provider,
    }
