from __future__ import annotations

from typing import Any, Dict, Optional

import httpx

from ...domain.errors import PipelineError, PipelineErrorKind, PipelineStage
from ...infra.config import AppSettings
from ...observability.logging_utils import log_event, summarize_text
from ...prompts.annual_plan import NO_CONTEXT_SUMMARY
from ...schemas.models import ContextBundle, ContextSource


TAVILY_CONFIG_MESSAGE = "Tavily API configuration error. Please contact administrator."
RETRIEVAL_FAILED_MESSAGE = (
    "Could not fetch location data right now. Please try again."
)


def _retrieval_error(message: str, details: str, *, kind=None) -> PipelineError:
    return PipelineError(
        PipelineStage.RETRIEVAL,
        kind or PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE,
        message,
        details=details,
        provider="tavily",
    )


def parse_search_payload(payload: Any) -> ContextBundle:
    if not isinstance(payload, dict):
        raise _retrieval_error(RETRIEVAL_FAILED_MESSAGE, "search payload is not an object")
    results = payload.get("results") or []
    if not isinstance(results, list):
        raise _retrieval_error(RETRIEVAL_FAILED_MESSAGE, "search results is not a list")
    sources = []
    for item in results:
        if not isinstance(item, dict):
            continue
        sources.append(
            ContextSource(
                title=str(item.get("title") or ""),
                excerpt=str(item.get("content") or ""),
                url=str(item.get("url") or ""),
            )
        )
    summary = str(payload.get("answer") or "").strip() or NO_CONTEXT_SUMMARY
    return ContextBundle(summary=summary, sources=tuple(sources))


class TavilyContextRetriever:
    """Fetches location-specific agronomy background from the Tavily search API."""

    def __init__(self, settings: AppSettings, *, transport: Optional[httpx.BaseTransport] = None):
        self._settings = settings
        self._transport = transport

    def check_configured(self) -> None:
        if not self._settings.tavily_api_key:
            raise _retrieval_error(
                TAVILY_CONFIG_MESSAGE,
                "TAVILY_API_KEY is not configured",
                kind=PipelineErrorKind.INVOCATION_CONFIG_ERROR,
            )

    def retrieve(
        self,
        query: str,
        *,
        max_results: int,
        depth: str,
        timeout: Optional[float] = None,
    ) -> ContextBundle:
        self.check_configured()
        cfg = self._settings
        body: Dict[str, Any] = {
            "query": query,
            "max_results": max_results,
            "search_depth": depth,
            "include_answer": True,
        }
        headers = {
            "Accept": "application/json",
            "Authorization": f"Bearer {cfg.tavily_api_key}",
        }
        log_event("context_search", query=summarize_text(query), depth=depth)
        try:
            with httpx.Client(
                timeout=timeout or cfg.request_timeout_seconds,
                transport=self._transport,
            ) as client:
                response = client.post(cfg.tavily_api_url, json=body, headers=headers)
                response.raise_for_status()
                payload = response.json()
        except httpx.TimeoutException as exc:
            raise _retrieval_error(RETRIEVAL_FAILED_MESSAGE, f"timeout: {exc}") from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            message = TAVILY_CONFIG_MESSAGE if status in (401, 403) else RETRIEVAL_FAILED_MESSAGE
            raise _retrieval_error(message, f"status {status}") from exc
        except (httpx.HTTPError, ValueError) as exc:
            raise _retrieval_error(RETRIEVAL_FAILED_MESSAGE, str(exc)) from exc

        bundle = parse_search_payload(payload)
        log_event(
            "context_search_done",
            sources=len(bundle.sources),
            summary=summarize_text(bundle.summary, limit=200),
        )
        return bundle
