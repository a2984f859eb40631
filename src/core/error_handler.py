"""Centralized error descriptions and logging for the chat core.

This module provides:
- Structured logging with correlation IDs per user action
- Redaction of credentials from structured log fields
- Plain-language failure messages for conversation entries
- Idempotent logging setup (JSON in production, text otherwise)
"""

import logging
import sys
import uuid
from contextvars import ContextVar
from typing import Any

from core.config import get_settings
from core.exceptions import ConfigurationError, ConversationNotFoundError
from services.ai.exceptions import (
    AIProviderError,
    AllProvidersExhausted,
    ContentBlocked,
    IncompleteGeneration,
    InvalidResponseShape,
    OperationFailed,
    ProviderUnavailable,
    QuotaExceeded,
)
from services.images.normalize import DecodeError, EncodeError, ImageValidationError


# Context variable for correlation ID tracking across async calls
_correlation_id_var: ContextVar[str | None] = ContextVar("correlation_id", default=None)

logger = logging.getLogger(__name__)

# Keys whose values never reach log output
SENSITIVE_KEYS: set[str] = {
    "api_key",
    "key",
    "token",
    "secret",
    "authorization",
    "bearer",
    "x-api-key",
    "gemini_api_key",
    "deepseek_api_key",
    "openrouter_api_key",
}

# Plain-language messages shown in the conversation on failure
ERROR_TYPE_MESSAGES: dict[type[Exception], str] = {
    AllProvidersExhausted: (
        "none of the language services could answer right now. "
        "Please try again in a moment."
    ),
    ContentBlocked: (
        "the request was blocked by the provider's safety settings. "
        "Please rephrase it or check the attached images."
    ),
    InvalidResponseShape: "the assistant returned a reply that could not be read.",
    IncompleteGeneration: "the assistant stopped before finishing its reply.",
    ProviderUnavailable: (
        "the service could not be reached, possibly because of a network "
        "issue or an overly large request. Please try again, perhaps with "
        "fewer or smaller images."
    ),
    QuotaExceeded: "the service quota was exceeded. Please wait and try again.",
    DecodeError: "one of the images could not be read. It may be corrupt.",
    EncodeError: "one of the images could not be prepared for upload.",
    ConfigurationError: "the assistant is not configured with any API keys.",
    ConversationNotFoundError: "that conversation no longer exists.",
}


def is_sensitive_key(key: str) -> bool:
    return key.lower() in SENSITIVE_KEYS


def get_correlation_id() -> str:
    """Get or create a correlation ID for action tracing."""
    correlation_id: str | None = _correlation_id_var.get()
    if correlation_id is None or correlation_id == "":
        new_id = str(uuid.uuid4())
        _correlation_id_var.set(new_id)
        return new_id
    return correlation_id


def set_correlation_id(correlation_id: str | None) -> None:
    """Set the correlation ID for the current context."""
    _correlation_id_var.set(correlation_id)


def describe_failure(exc: BaseException) -> str:
    """Return a plain-language explanation of a failed action."""
    for error_type, message in ERROR_TYPE_MESSAGES.items():
        if isinstance(exc, error_type):
            return message
    if isinstance(exc, OperationFailed):
        return exc.message
    if isinstance(exc, AIProviderError | ImageValidationError):
        return str(exc)
    return "an unknown error occurred."


class StructuredLogger:
    """Structured logger that includes correlation IDs and sanitized data."""

    def __init__(self, logger_name: str):
        self.logger = logging.getLogger(logger_name)

    def _log_with_context(
        self,
        level: int,
        message: str,
        extra_data: dict[str, Any] | None = None,
    ) -> None:
        """Log with correlation ID and structured data."""
        correlation_id = get_correlation_id()
        sanitized_data = self._sanitize_data(extra_data or {})

        log_data = {
            "correlation_id": correlation_id,
            "message": message,
            **sanitized_data,
        }

        settings = get_settings()
        if settings.ENVIRONMENT == "production":
            # The JSON formatter serializes `structured_data` from `extra`
            self.logger.log(
                level,
                message,
                extra={"structured_data": log_data},
            )
        else:
            fields = " ".join(f"{k}={v}" for k, v in sanitized_data.items())
            text = f"[{correlation_id}] {message}"
            if fields:
                text = f"{text} {fields}"
            self.logger.log(level, text)

    def _sanitize_data(self, data: dict[str, Any]) -> dict[str, Any]:
        """Remove or mask sensitive data from log entries."""
        sanitized: dict[str, Any] = {}
        for key, value in data.items():
            if is_sensitive_key(key):
                sanitized[key] = "[REDACTED]"
            else:
                sanitized[key] = self._sanitize_value(value)
        return sanitized

    def _sanitize_value(self, value: Any) -> Any:
        """Sanitize a single value which may be a dict, list, or primitive."""
        if isinstance(value, dict):
            return self._sanitize_data(value)
        if isinstance(value, list):
            return [self._sanitize_value(item) for item in value]
        return value

    def info(self, message: str, **kwargs: Any) -> None:
        """Log info level message."""
        self._log_with_context(logging.INFO, message, kwargs)

    def warning(self, message: str, **kwargs: Any) -> None:
        """Log warning level message."""
        self._log_with_context(logging.WARNING, message, kwargs)

    def error(self, message: str, **kwargs: Any) -> None:
        """Log error level message."""
        self._log_with_context(logging.ERROR, message, kwargs)


def setup_logging() -> None:
    """Configure application logging with an idempotent root handler."""
    settings = get_settings()

    log_level = logging.DEBUG if settings.ENVIRONMENT == "development" else logging.INFO
    root_logger = logging.getLogger()

    # Make setup idempotent - avoid duplicate handlers
    if root_logger.handlers:
        return

    formatter: logging.Formatter
    if settings.ENVIRONMENT == "production":
        from pythonjsonlogger.json import JsonFormatter

        formatter = JsonFormatter(
            "%(asctime)s %(levelname)s %(name)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level"},
        )
    else:
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(formatter)
    handler.setLevel(log_level)

    root_logger.setLevel(log_level)
    root_logger.addHandler(handler)

    # SDK transport loggers echo full request lines at DEBUG
    for noisy in ("httpx", "httpcore", "google_genai", "openai"):
        logging.getLogger(noisy).setLevel(logging.WARNING)
