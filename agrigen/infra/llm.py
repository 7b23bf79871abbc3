from __future__ import annotations

import re
from typing import Any, Callable, Dict, Optional

from langchain_core.language_models import BaseChatModel
from langchain_core.runnables import Runnable
from langchain_google_genai import ChatGoogleGenerativeAI
from langchain_openai import ChatOpenAI

from ..domain.errors import PipelineError, PipelineErrorKind, PipelineStage
from .config import AppSettings


GEMINI_CONFIG_MESSAGE = "Gemini API configuration error. Please contact administrator."
OPENAI_CONFIG_MESSAGE = "OpenAI API configuration error. Please contact administrator."

_SCHEMA_NAME_RE = re.compile(r"[^a-zA-Z0-9_-]+")
_GEMINI_UNSUPPORTED_KEYS = frozenset({"minItems", "maxItems"})


def _gemini_schema(schema: Any) -> Any:
    if isinstance(schema, dict):
        return {
            key: _gemini_schema(value)
            for key, value in schema.items()
            if key not in _GEMINI_UNSUPPORTED_KEYS
        }
    if isinstance(schema, list):
        return [_gemini_schema(item) for item in schema]
    return schema


def _config_error(message: str, provider: str, details: str) -> PipelineError:
    return PipelineError(
        PipelineStage.INVOCATION,
        PipelineErrorKind.INVOCATION_CONFIG_ERROR,
        message,
        details=details,
        provider=provider,
    )


_PROVIDER_CREDENTIALS = {
    "gemini": ("gemini_api_key", GEMINI_CONFIG_MESSAGE, "GEMINI_API_KEY is not configured"),
    "openai": ("openai_api_key", OPENAI_CONFIG_MESSAGE, "OPENAI_API_KEY is not configured"),
}


def ensure_provider_configured(settings: AppSettings, provider: str) -> None:
    """Raise the provider's config error when it is unsupported or has no API key."""
    name = (provider or "").lower()
    get_model_builder(name)
    attr, message, details = _PROVIDER_CREDENTIALS[name]
    if not getattr(settings, attr):
        raise _config_error(message, name, details)


def build_gemini_model(
    settings: AppSettings,
    json_schema: Dict[str, Any],
    *,
    schema_name: str = "generation",
    timeout: Optional[float] = None,
) -> BaseChatModel:
    ensure_provider_configured(settings, "gemini")
    return ChatGoogleGenerativeAI(
        model=settings.gemini_model,
        google_api_key=settings.gemini_api_key,
        temperature=settings.generation_temperature,
        response_mime_type="application/json",
        response_schema=_gemini_schema(json_schema),
        timeout=timeout or settings.request_timeout_seconds,
        max_retries=0,
    )


def build_openai_model(
    settings: AppSettings,
    json_schema: Dict[str, Any],
    *,
    schema_name: str = "generation",
    timeout: Optional[float] = None,
) -> Runnable:
    ensure_provider_configured(settings, "openai")
    kwargs = {
        "api_key": settings.openai_api_key,
        "temperature": settings.generation_temperature,
        "model": settings.openai_model,
        "timeout": timeout or settings.request_timeout_seconds,
        "max_retries": 0,
    }
    if settings.openai_api_base:
        kwargs["base_url"] = settings.openai_api_base
    return ChatOpenAI(**kwargs).bind(
        response_format={
            "type": "json_schema",
            "json_schema": {
                "name": _SCHEMA_NAME_RE.sub("_", schema_name) or "generation",
                "schema": json_schema,
                "strict": False,
            },
        }
    )


ModelBuilder = Callable[..., Runnable]

MODEL_BUILDERS: Dict[str, ModelBuilder] = {
    "gemini": build_gemini_model,
    "openai": build_openai_model,
}


def get_model_builder(provider: str) -> ModelBuilder:
    builder = MODEL_BUILDERS.get((provider or "").lower())
    if builder is None:
        raise _config_error(
            "Generation provider configuration error. Please contact administrator.",
            provider,
            f"unsupported generation provider: {provider}",
        )
    return builder
