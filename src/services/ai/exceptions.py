"""Domain exceptions for provider calls and response orchestration.

These exceptions give callers a fixed taxonomy for deterministic error
handling across provider clients, the OCR pipeline and the orchestrator.
Provider clients translate SDK errors into one of these types at their
boundary so nothing provider-specific escapes. Each exception carries a
stable `error_code` property for logging and user-facing messages.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING


if TYPE_CHECKING:
    from services.ai.models import ProviderAttempt


# eq=False keeps exceptions hashable
@dataclass(slots=True, eq=False)
class AIProviderError(Exception):
    """Base class for provider and orchestration domain errors."""

    message: str
    error_code: str

    def __str__(self) -> str:  # pragma: no cover - trivial
        return f"{self.error_code}: {self.message}"


class InvalidResponseShape(AIProviderError):
    def __init__(
        self, message: str = "Received an empty or non-JSON response from the API"
    ) -> None:
        super().__init__(message=message, error_code="invalid_response_shape")


class ContentBlocked(AIProviderError):
    def __init__(
        self, message: str = "The request was blocked due to safety settings"
    ) -> None:
        super().__init__(message=message, error_code="content_blocked")


class IncompleteGeneration(AIProviderError):
    def __init__(
        self,
        message: str = "The model stopped before producing output",
        finish_reason: str | None = None,
    ) -> None:
        super().__init__(message=message, error_code="incomplete_generation")
        self.finish_reason = finish_reason


class ProviderUnavailable(AIProviderError):
    def __init__(
        self,
        message: str = "The provider could not be reached",
        status_code: int | None = None,
    ) -> None:
        super().__init__(message=message, error_code="provider_unavailable")
        self.status_code = status_code


class QuotaExceeded(AIProviderError):
    def __init__(self, message: str = "Provider quota or rate limit exceeded") -> None:
        super().__init__(message=message, error_code="quota_exceeded")


class OperationFailed(AIProviderError):
    """Unclassified failure wrapped with the name of the operation."""

    def __init__(self, operation: str, cause: BaseException) -> None:
        super().__init__(
            message=f"The {operation} failed: {cause}", error_code="operation_failed"
        )
        self.operation = operation


class AllProvidersExhausted(AIProviderError):
    def __init__(self, attempts: list[ProviderAttempt] | None = None) -> None:
        tried = ", ".join(a.provider for a in attempts or []) or "none"
        super().__init__(
            message=f"All reasoning providers failed (tried: {tried})",
            error_code="all_providers_exhausted",
        )
        self.attempts = list(attempts or [])


# Errors that indicate the request itself is unsuitable; never retried
NON_RETRYABLE_ERRORS: tuple[type[AIProviderError], ...] = (
    ContentBlocked,
    InvalidResponseShape,
)
