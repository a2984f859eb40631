"""Shared test fixtures for pytest.

ENVIRONMENT is forced to ``test`` before any application module is imported
so cached settings never read a developer's ``.env.dev`` file, and provider
keys from the shell are dropped so no test can reach a real service.
"""

import io
import os
from collections.abc import Callable
from unittest.mock import AsyncMock, MagicMock

import pytest
from PIL import Image


os.environ["ENVIRONMENT"] = "test"
for _key in ("GEMINI_API_KEY", "DEEPSEEK_API_KEY", "OPENROUTER_API_KEY"):
    os.environ.pop(_key, None)

from core.config import get_settings
from schemas.chat import EncodedImage, GenerationRequest, GenerationResult


def create_test_image(
    width: int = 800, height: int = 600, mode: str = "RGB", format: str = "JPEG"
) -> bytes:
    """Create a test image in memory."""
    img = Image.new(mode, (width, height), color="white")
    output = io.BytesIO()
    img.save(output, format=format)
    return output.getvalue()


def make_reasoning_provider(
    name: str, reply: str = "Reasoned reply", error: BaseException | None = None
) -> MagicMock:
    """Reasoning provider double that keeps the previous artifact like the real ones."""
    provider = MagicMock()
    provider.name = name

    async def _generate(request: GenerationRequest) -> GenerationResult:
        if error is not None:
            raise error
        return GenerationResult(
            chat_response=reply,
            artifact_content=request.previous_artifact,
            provider=name,
        )

    provider.generate = AsyncMock(side_effect=_generate)
    return provider


def make_multimodal_provider(
    chat_response: str = "Multimodal reply",
    artifact_content: str | None = None,
) -> MagicMock:
    """Multimodal provider double; artifact defaults to the previous one."""
    provider = MagicMock()
    provider.name = "gemini"

    async def _generate(request: GenerationRequest) -> GenerationResult:
        return GenerationResult(
            chat_response=chat_response,
            artifact_content=(
                artifact_content
                if artifact_content is not None
                else request.previous_artifact
            ),
            provider="gemini",
        )

    provider.generate = AsyncMock(side_effect=_generate)
    provider.generate_image = AsyncMock()
    provider.edit_image = AsyncMock()
    provider.extract_text = AsyncMock()
    provider.complete = AsyncMock()
    return provider


@pytest.fixture(autouse=True)
def _clear_settings_cache():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def jpeg_image() -> EncodedImage:
    return EncodedImage(mime_type="image/jpeg", data=create_test_image(64, 48))


@pytest.fixture
def reasoning_factory() -> Callable[..., MagicMock]:
    return make_reasoning_provider


@pytest.fixture
def multimodal_factory() -> Callable[..., MagicMock]:
    return make_multimodal_provider
