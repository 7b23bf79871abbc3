from __future__ import annotations

import base64
import logging
import time
from dataclasses import dataclass
from typing import Callable, List, Optional, Sequence, Tuple

from langchain_core.messages import HumanMessage

from ...domain.errors import PipelineError, PipelineErrorKind, PipelineStage
from ...infra.config import AppSettings
from ...infra.llm import ensure_provider_configured, get_model_builder
from ...observability.logging_utils import log_event, summarize_text
from ...schemas.definitions import SchemaNode


GENERATION_FAILED_MESSAGE = "Failed to generate content. Please try again."
QUOTA_MESSAGE = "API quota exceeded. Please try again later."
INVALID_KEY_MESSAGE = "Invalid API key configuration"

_CONFIG_MARKERS = ("api key", "api_key", "permission denied", "unauthorized")
_QUOTA_MARKERS = ("quota", "rate limit", "resource_exhausted", "resourceexhausted", "too many requests")


@dataclass(frozen=True)
class MediaAttachment:
    data: bytes
    mime_type: str

    def to_data_url(self) -> str:
        encoded = base64.b64encode(self.data).decode("ascii")
        return f"data:{self.mime_type};base64,{encoded}"


@dataclass(frozen=True)
class ProviderAttempt:
    provider: str
    ok: bool
    elapsed_ms: int
    error_kind: Optional[str] = None


@dataclass(frozen=True)
class InvocationResult:
    text: str
    provider: str
    attempts: Tuple[ProviderAttempt, ...] = ()


def _status_code(exc: BaseException) -> Optional[int]:
    for attr in ("status_code", "code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    value = getattr(response, "status_code", None)
    return value if isinstance(value, int) else None


def classify_provider_error(exc: BaseException, provider: str) -> PipelineError:
    status = _status_code(exc)
    text = str(exc).lower()
    if status in (401, 403) or any(marker in text for marker in _CONFIG_MARKERS):
        kind, message = PipelineErrorKind.INVOCATION_CONFIG_ERROR, INVALID_KEY_MESSAGE
    elif status == 429 or any(marker in text for marker in _QUOTA_MARKERS):
        kind, message = PipelineErrorKind.INVOCATION_QUOTA_EXCEEDED, QUOTA_MESSAGE
    else:
        kind, message = PipelineErrorKind.INVOCATION_BACKEND_ERROR, GENERATION_FAILED_MESSAGE
    return PipelineError(
        PipelineStage.INVOCATION,
        kind,
        message,
        details=f"{type(exc).__name__}: {exc}",
        provider=provider,
    )


def extract_llm_text(result: object) -> str:
    content = getattr(result, "content", result)
    if isinstance(content, list):
        parts = []
        for item in content:
            if isinstance(item, dict):
                parts.append(str(item.get("text") or ""))
            else:
                parts.append(str(item))
        return "".join(parts).strip()
    if content is None:
        return ""
    return str(content).strip()


def build_messages(prompt: str, media: Optional[MediaAttachment] = None) -> List[HumanMessage]:
    if media is None:
        return [HumanMessage(content=prompt)]
    return [
        HumanMessage(
            content=[
                {"type": "text", "text": prompt},
                {"type": "image_url", "image_url": {"url": media.to_data_url()}},
            ]
        )
    ]


class GenerationInvoker:
    """
    Sends one prompt to the configured model providers in order.

    A provider is only skipped in favour of the next one when it fails with a
    retryable error (quota or backend). Configuration errors stop the chain.
    """

    def __init__(
        self,
        settings: AppSettings,
        *,
        providers: Optional[Sequence[str]] = None,
        builder_lookup: Callable[[str], Callable] = get_model_builder,
        credential_check: Callable[[AppSettings, str], None] = ensure_provider_configured,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._settings = settings
        self._providers = list(providers or settings.generation_providers)
        if not self._providers:
            raise ValueError("at least one generation provider is required")
        self._builder_lookup = builder_lookup
        self._credential_check = credential_check
        self._clock = clock

    @property
    def providers(self) -> List[str]:
        return list(self._providers)

    def check_configured(self) -> None:
        """Raise the first provider config error without contacting any provider.

        Every listed provider must be usable: a config error stops the chain,
        so an unkeyed fallback would fail the request once it is reached.
        """
        for provider in self._providers:
            self._credential_check(self._settings, provider)

    def invoke(
        self,
        prompt: str,
        schema: SchemaNode,
        media: Optional[MediaAttachment] = None,
        *,
        schema_name: str = "generation",
        timeout: Optional[float] = None,
    ) -> InvocationResult:
        json_schema = schema.to_json_schema()
        messages = build_messages(prompt, media)
        attempts: List[ProviderAttempt] = []
        last_error: Optional[PipelineError] = None
        for provider in self._providers:
            started = self._clock()
            try:
                text = self._invoke_provider(
                    provider, messages, json_schema, schema_name, timeout
                )
            except PipelineError as exc:
                elapsed = int((self._clock() - started) * 1000)
                attempts.append(ProviderAttempt(provider, False, elapsed, exc.kind.value))
                log_event(
                    "generation_attempt_failed",
                    level=logging.WARNING,
                    elapsed_ms=elapsed,
                    **exc.to_log_fields(),
                )
                last_error = exc
                if not exc.retryable:
                    raise
                continue
            elapsed = int((self._clock() - started) * 1000)
            attempts.append(ProviderAttempt(provider, True, elapsed))
            log_event(
                "generation_attempt_ok",
                provider=provider,
                elapsed_ms=elapsed,
                raw_summary=summarize_text(text),
            )
            return InvocationResult(text=text, provider=provider, attempts=tuple(attempts))
        raise last_error

    def _invoke_provider(self, provider, messages, json_schema, schema_name, timeout) -> str:
        builder = self._builder_lookup(provider)
        model = builder(
            self._settings, json_schema, schema_name=schema_name, timeout=timeout
        )
        try:
            result = model.invoke(messages)
        except PipelineError:
            raise
        except Exception as exc:
            raise classify_provider_error(exc, provider) from exc
        text = extract_llm_text(result)
        if not text:
            raise PipelineError(
                PipelineStage.INVOCATION,
                PipelineErrorKind.INVOCATION_BACKEND_ERROR,
                GENERATION_FAILED_MESSAGE,
                details="provider returned empty content",
                provider=provider,
            )
        return text
