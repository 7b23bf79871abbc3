from __future__ import annotations

from enum import Enum
from typing import Any, Dict, Optional


class PipelineStage(str, Enum):
    RETRIEVAL = "retrieval"
    COMPOSITION = "composition"
    INVOCATION = "invocation"
    VALIDATION = "validation"


class PipelineErrorKind(str, Enum):
    PARAM_VALIDATION = "param_validation"
    CONTEXT_RETRIEVAL_FAILURE = "context_retrieval_failure"
    PROMPT_COMPOSITION_FAILURE = "prompt_composition_failure"
    INVOCATION_CONFIG_ERROR = "invocation_config_error"
    INVOCATION_QUOTA_EXCEEDED = "invocation_quota_exceeded"
    INVOCATION_BACKEND_ERROR = "invocation_backend_error"
    RESPONSE_PARSE_FAILURE = "response_parse_failure"


RETRYABLE_KINDS = frozenset(
    {
        PipelineErrorKind.CONTEXT_RETRIEVAL_FAILURE,
        PipelineErrorKind.INVOCATION_QUOTA_EXCEEDED,
        PipelineErrorKind.INVOCATION_BACKEND_ERROR,
    }
)


class PipelineError(Exception):
    """Single failure object produced by any pipeline stage.

    ``message`` is safe to show to end users; ``details`` carries internal
    diagnostics (provider error text, raw model output summaries) and is only
    meant for server-side logs.
    """

    def __init__(
        self,
        stage: PipelineStage,
        kind: PipelineErrorKind,
        message: str,
        *,
        retryable: Optional[bool] = None,
        details: Optional[str] = None,
        provider: Optional[str] = None,
    ) -> None:
        self.stage = PipelineStage(stage)
        self.kind = PipelineErrorKind(kind)
        self.message = message
        self.retryable = self.kind in RETRYABLE_KINDS if retryable is None else retryable
        self.details = details
        self.provider = provider
        super().__init__(message)

    def __repr__(self) -> str:
        return (
            f"PipelineError(stage={self.stage.value!r}, kind={self.kind.value!r}, "
            f"message={self.message!r}, retryable={self.retryable!r})"
        )

    def to_log_fields(self) -> Dict[str, Any]:
        return {
            "error_stage": self.stage.value,
            "error_kind": self.kind.value,
            "message": self.message,
            "retryable": self.retryable,
            "details": self.details,
            "provider": self.provider,
        }


class MissingParametersError(PipelineError):
    """Raised when mandatory request fields are empty or absent."""

    def __init__(self, missing_fields, message: Optional[str] = None):
        self.missing_fields = list(missing_fields)
        super().__init__(
            PipelineStage.VALIDATION,
            PipelineErrorKind.PARAM_VALIDATION,
            message
            or "Please provide all required fields: " + ", ".join(self.missing_fields) + ".",
            retryable=False,
        )
