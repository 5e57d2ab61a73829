"""
Error taxonomy for the insight_flow pipeline.

Defines hierarchical exceptions with standardized attributes so stage
fallbacks, logging and the HTTP layer can treat failures uniformly.

Each error class implements:
- code: String identifier for the error type
- message: Human-readable description
- context: Dict containing additional contextual information
- retry_hint: Boolean indicating if retry might succeed

Pipeline policy by category:
- StageValidationError: fatal for the flow, the flow halts
- ProviderError: recovered by the stage fallback
- ParseError: structured result discarded, raw input used
- TracingError: always swallowed and logged
"""
from __future__ import annotations

from typing import Any


class InsightFlowError(Exception):
    """Base exception for all insight_flow errors."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "UNKNOWN_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        super().__init__(message)
        self.code = code
        self.message = message
        self.context = dict(context) if context else {}
        self.retry_hint = retry_hint

    def to_dict(self) -> dict[str, Any]:
        """Serialize to structured dict."""
        return {
            "code": self.code,
            "message": self.message,
            "context": dict(self.context),
            "retry_hint": self.retry_hint,
        }


class StageValidationError(InsightFlowError):
    """Stage input did not match the stage's declared schema."""

    def __init__(
        self,
        message: str,
        *,
        stage: str = "unknown",
        code: str = "STAGE_VALIDATION_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        ctx = dict(context) if context else {}
        ctx["stage"] = stage
        super().__init__(message, code=code, context=ctx, retry_hint=retry_hint)


class ProviderError(InsightFlowError):
    """External provider failure (completion, embedding, vector store)."""

    def __init__(
        self,
        message: str,
        *,
        provider: str = "unknown",
        code: str = "PROVIDER_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = True,
    ) -> None:
        ctx = dict(context) if context else {}
        ctx["provider"] = provider
        super().__init__(message, code=code, context=ctx, retry_hint=retry_hint)


class ParseError(InsightFlowError):
    """LLM-structured response was not valid structured data."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "PARSE_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        super().__init__(message, code=code, context=context, retry_hint=retry_hint)


class TracingError(InsightFlowError):
    """Span or session management failure in the tracing backend."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "TRACING_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        super().__init__(message, code=code, context=context, retry_hint=retry_hint)


class ConfigurationError(InsightFlowError):
    """Missing or invalid configuration."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "CONFIGURATION_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        super().__init__(message, code=code, context=context, retry_hint=retry_hint)


class SchemaError(InsightFlowError):
    """Data shape rejected by a store or contract (e.g. non-primitive metadata)."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "SCHEMA_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        super().__init__(message, code=code, context=context, retry_hint=retry_hint)


class IngestionError(InsightFlowError):
    """Bulk ingestion failure."""

    def __init__(
        self,
        message: str,
        *,
        code: str = "INGESTION_ERROR",
        context: dict[str, Any] | None = None,
        retry_hint: bool = False,
    ) -> None:
        super().__init__(message, code=code, context=context, retry_hint=retry_hint)
