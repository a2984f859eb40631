"""Centralized factory for provider clients and AI models.

This module is the single place where settings turn into live clients:

    from services.ai.model_factory import (
        get_multimodal_client,
        get_reasoning_clients,
        get_text_model,
        validate_provider_credentials,
    )

    validate_provider_credentials()   # fail fast at startup
    gemini = get_multimodal_client()  # GeminiClient
    chain = get_reasoning_clients()   # ordered fallback list
    model = get_text_model()          # pydantic-ai Model for small tasks
"""

from __future__ import annotations

import logging
from typing import cast

from pydantic_ai.models import Model
from pydantic_ai.models.google import GoogleModel
from pydantic_ai.providers.google import GoogleProvider

from core.config import Settings, get_settings
from core.exceptions import ConfigurationError
from services.ai.providers.gemini import GeminiClient
from services.ai.providers.openai_compat import OpenAICompatibleClient


logger = logging.getLogger(__name__)

DEEPSEEK_PROVIDER = "deepseek"
OPENROUTER_PROVIDER = "openrouter"


def _validate_gemini_credentials(settings: Settings | None = None) -> bool:
    """Validate that Gemini API key is configured."""
    settings = settings or get_settings()
    if not settings.GEMINI_API_KEY:
        logger.warning("Gemini API key not configured")
        return False
    return True


def validate_provider_credentials(settings: Settings | None = None) -> None:
    """Fail at startup when no provider at all has credentials."""
    settings = settings or get_settings()
    if not settings.has_any_provider_credentials():
        raise ConfigurationError(
            "No valid AI provider configured. Set GEMINI_API_KEY, "
            "DEEPSEEK_API_KEY, or OPENROUTER_API_KEY."
        )


def get_multimodal_client(settings: Settings | None = None) -> GeminiClient | None:
    """Get the multimodal client, or None when Gemini has no credentials."""
    settings = settings or get_settings()
    if not _validate_gemini_credentials(settings):
        return None
    logger.info(f"Using Gemini multimodal model: {settings.CHAT_MODEL}")
    return GeminiClient(
        settings.GEMINI_API_KEY,
        chat_model=settings.CHAT_MODEL,
        ocr_model=settings.OCR_MODEL,
        image_model=settings.IMAGE_MODEL,
        image_edit_model=settings.IMAGE_EDIT_MODEL,
        base_url=settings.GEMINI_BASE_URL,
    )


def get_reasoning_clients(
    settings: Settings | None = None,
) -> list[OpenAICompatibleClient]:
    """Get the ordered reasoning fallback chain: DeepSeek, then OpenRouter."""
    settings = settings or get_settings()
    clients: list[OpenAICompatibleClient] = []

    if settings.DEEPSEEK_API_KEY:
        logger.info(f"Using DeepSeek reasoning model: {settings.DEEPSEEK_MODEL}")
        clients.append(
            OpenAICompatibleClient(
                DEEPSEEK_PROVIDER,
                model=settings.DEEPSEEK_MODEL,
                api_key=settings.DEEPSEEK_API_KEY,
                base_url=settings.DEEPSEEK_API_URL,
                max_retries=settings.PROVIDER_MAX_RETRIES,
                history_window=settings.HISTORY_WINDOW,
            )
        )

    if settings.OPENROUTER_API_KEY:
        logger.info(f"Using OpenRouter reasoning model: {settings.OPENROUTER_MODEL}")
        clients.append(
            OpenAICompatibleClient(
                OPENROUTER_PROVIDER,
                model=settings.OPENROUTER_MODEL,
                api_key=settings.OPENROUTER_API_KEY,
                base_url=settings.OPENROUTER_API_URL,
                default_headers={
                    "HTTP-Referer": settings.OPENROUTER_REFERER,
                    "X-Title": settings.OPENROUTER_TITLE,
                },
                max_retries=settings.PROVIDER_MAX_RETRIES,
                history_window=settings.HISTORY_WINDOW,
            )
        )

    return clients


def get_text_model() -> Model:
    """Get the Gemini-backed pydantic-ai model for fast text tasks such as titles."""
    settings = get_settings()
    if not _validate_gemini_credentials(settings):
        raise ConfigurationError("Title generation requires GEMINI_API_KEY.")

    logger.info(f"Using Gemini text model: {settings.TEXT_MODEL}")
    provider = GoogleProvider(api_key=settings.GEMINI_API_KEY)
    return cast(Model, GoogleModel(settings.TEXT_MODEL, provider=provider))
