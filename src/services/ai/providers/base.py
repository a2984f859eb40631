"""Capability interfaces implemented by the provider clients.

The orchestrator only depends on these protocols, so every provider can be
swapped for a test double without touching orchestration code.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

from schemas.chat import (
    EncodedImage,
    GenerationRequest,
    GenerationResult,
    ImageEditResult,
)
from services.ai.models import ExtractionResponse


class ReasoningProvider(Protocol):
    """Text-only provider used for conversational turns."""

    name: str

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Answer a text-only turn; the previous artifact is returned unchanged."""
        ...


class MultimodalProvider(Protocol):
    """Designated provider for images, artifacts, and OCR."""

    name: str

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Answer a turn with the two-field chat/artifact contract."""
        ...

    async def generate_image(self, prompt: str) -> EncodedImage:
        """Create a new image from a text prompt."""
        ...

    async def edit_image(self, prompt: str, image: EncodedImage) -> ImageEditResult:
        """Edit an image following the prompt."""
        ...

    async def extract_text(
        self, images: Sequence[EncodedImage], prompt: str
    ) -> ExtractionResponse:
        """Transcribe all images in one batched call."""
        ...

    async def complete(
        self, prompt: str, text: str, *, temperature: float = 0.0
    ) -> str:
        """Plain text-in/text-out call."""
        ...


class TextRefiner(Protocol):
    """Optional remote pass used to polish OCR text before local correction."""

    async def refine(self, text: str) -> str: ...
