"""Application settings for provider credentials, models, and logging."""

import os
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=(".env"), env_file_encoding="utf-8")

    # App
    APP_NAME: str = "Artifact Chat"
    ENVIRONMENT: str = "development"  # development | production | test

    # Multimodal provider (Gemini). GEMINI_BASE_URL overrides the API endpoint.
    GEMINI_API_KEY: str | None = None
    GEMINI_BASE_URL: str | None = None

    # Reasoning providers (OpenAI-compatible chat completions)
    DEEPSEEK_API_KEY: str | None = None
    DEEPSEEK_API_URL: str = "https://api.deepseek.com"
    OPENROUTER_API_KEY: str | None = None
    OPENROUTER_API_URL: str = "https://openrouter.ai/api/v1"
    OPENROUTER_REFERER: str = "https://amharic-ocr-chat.local"
    OPENROUTER_TITLE: str = "Amharic OCR Chat"

    # Models
    CHAT_MODEL: str = "gemini-2.5-flash"
    ARTIFACT_MODEL: str = "gemini-2.5-flash"
    OCR_MODEL: str = "gemini-2.5-flash"
    TEXT_MODEL: str = "gemini-2.5-flash"
    IMAGE_MODEL: str = "imagen-4.0-generate-001"
    IMAGE_EDIT_MODEL: str = "gemini-2.5-flash-image-preview"
    DEEPSEEK_MODEL: str = "deepseek-chat"
    OPENROUTER_MODEL: str = "deepseek/deepseek-chat"

    # SDK-level retries per provider call; fallback handles the rest
    PROVIDER_MAX_RETRIES: int = 0

    # Number of prior turns sent to reasoning providers
    HISTORY_WINDOW: int = 15

    # Remote proofreading pass before the offline Ethiopic correction table
    OCR_REMOTE_CORRECTION: bool = False

    @field_validator("DEEPSEEK_API_URL", "OPENROUTER_API_URL", mode="before")
    @classmethod
    def strip_completions_path(cls, v: object) -> object:
        """Accept either a base URL or a full chat-completions URL."""
        if isinstance(v, str):
            s = v.strip().rstrip("/")
            suffix = "/chat/completions"
            if s.endswith(suffix):
                s = s[: -len(suffix)]
            return s
        return v

    @field_validator("GEMINI_BASE_URL", mode="before")
    @classmethod
    def blank_to_none(cls, v: object) -> object:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    def has_any_provider_credentials(self) -> bool:
        return any(
            (self.GEMINI_API_KEY, self.DEEPSEEK_API_KEY, self.OPENROUTER_API_KEY)
        )


@lru_cache
def get_settings() -> Settings:
    env = os.getenv("ENVIRONMENT", "development").lower()
    if env not in {"development", "production", "test"}:
        raise ValueError("ENVIRONMENT must be 'development', 'production', or 'test'")

    if env == "production":
        env_file = ".env.prod"
    elif env == "development":
        env_file = ".env.dev"
    else:
        # test environment - no env file needed, use defaults
        env_file = ""

    # pydantic-settings accepts a runtime-only `_env_file` kwarg that mypy's
    # stub does not know about.
    return Settings(_env_file=env_file or None)  # type: ignore[call-arg]
