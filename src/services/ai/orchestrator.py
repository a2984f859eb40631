"""Response orchestration: provider routing, fallback, and result merging.

Routing rules for one user turn:

* A turn with images goes to the multimodal provider only; no fallback.
* A text-only turn walks the reasoning providers in order, one at a time,
  moving on after transient failures. Content and shape errors stop the
  walk immediately.
* When the prompt looks like it asks for an artifact, a second independent
  multimodal call produces the artifact while the reasoning provider's text
  stays the chat reply. If that call fails the reasoning reply stands alone.
"""

from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from typing import TypeVar

from core.config import Settings, get_settings
from schemas.chat import (
    EncodedImage,
    GenerationRequest,
    GenerationResult,
    ImageEditResult,
)
from services.ai.exceptions import (
    NON_RETRYABLE_ERRORS,
    AIProviderError,
    AllProvidersExhausted,
    OperationFailed,
)
from services.ai.model_factory import (
    get_multimodal_client,
    get_reasoning_clients,
    validate_provider_credentials,
)
from services.ai.models import TurnState, TurnTrace
from services.ai.ocr_pipeline import OcrPipeline
from services.ai.providers.base import MultimodalProvider, ReasoningProvider
from services.ai.script_correction import ProviderTextRefiner, ScriptCorrector
from services.chat_title_generator import fallback_title, generate_conversation_title


logger = logging.getLogger(__name__)

T = TypeVar("T")

TitleGenerator = Callable[[str, EncodedImage | None], Awaitable[str]]

# Case-insensitive substrings that suggest the user wants an artifact
ARTIFACT_KEYWORDS: tuple[str, ...] = (
    "create",
    "generate",
    "write",
    "code",
    "component",
    "ይፍጠሩ",
    "ይጻፉ",
)


def needs_artifact(prompt: str) -> bool:
    """Coarse keyword check for artifact-producing requests."""
    lowered = prompt.lower()
    return any(keyword in lowered for keyword in ARTIFACT_KEYWORDS)


@dataclass
class OrchestratorConfig:
    """Providers and collaborators wired into a ResponseOrchestrator."""

    multimodal: MultimodalProvider | None = None
    reasoning_providers: list[ReasoningProvider] = field(default_factory=list)
    title_generator: TitleGenerator | None = None
    ocr_pipeline: OcrPipeline | None = None
    artifact_model: str = ""


class ResponseOrchestrator:
    """Routes user actions to providers and reconciles their results."""

    def __init__(self, config: OrchestratorConfig) -> None:
        self.config = config
        self.multimodal = config.multimodal
        self.reasoning_providers = list(config.reasoning_providers)
        if config.ocr_pipeline is None and config.multimodal is not None:
            self.ocr_pipeline: OcrPipeline | None = OcrPipeline(config.multimodal)
        else:
            self.ocr_pipeline = config.ocr_pipeline

    def _require_multimodal(self, operation: str) -> MultimodalProvider:
        if self.multimodal is None:
            raise OperationFailed(
                operation, RuntimeError("no multimodal provider is configured")
            )
        return self.multimodal

    async def generate(self, request: GenerationRequest) -> GenerationResult:
        """Answer one user turn, returning chat text and the artifact."""
        trace = TurnTrace()
        trace.advance(TurnState.ROUTING)

        if request.has_images or not self.reasoning_providers:
            return await self._generate_multimodal(request, trace)

        result = await self._generate_with_fallback(request, trace)

        if self.multimodal is not None and needs_artifact(request.prompt):
            trace.advance(TurnState.ARTIFACT_CALL)
            artifact = await self._generate_artifact(request)
            if artifact is not None:
                result = GenerationResult(
                    chat_response=result.chat_response,
                    artifact_content=artifact,
                    provider=result.provider,
                )

        trace.advance(TurnState.RESOLVED)
        logger.info(
            "Turn resolved by %s after %d attempt(s)",
            result.provider,
            len(trace.attempts),
        )
        return result

    async def _generate_multimodal(
        self, request: GenerationRequest, trace: TurnTrace
    ) -> GenerationResult:
        try:
            multimodal = self._require_multimodal("chat response")
        except OperationFailed:
            trace.advance(TurnState.FAILED)
            raise

        trace.advance(TurnState.PROVIDER_CALL)
        try:
            result = await self._guarded("chat response", multimodal.generate(request))
        except AIProviderError as e:
            trace.record_failure(multimodal.name, e)
            trace.advance(TurnState.FAILED)
            raise
        trace.record_success(multimodal.name)
        trace.advance(TurnState.RESOLVED)
        return result

    async def _generate_with_fallback(
        self, request: GenerationRequest, trace: TurnTrace
    ) -> GenerationResult:
        for index, provider in enumerate(self.reasoning_providers):
            trace.advance(
                TurnState.PROVIDER_CALL if index == 0 else TurnState.FALLBACK_CALL
            )
            try:
                result = await self._guarded(
                    f"{provider.name} chat", provider.generate(request)
                )
            except NON_RETRYABLE_ERRORS as e:
                trace.record_failure(provider.name, e)
                trace.advance(TurnState.FAILED)
                raise
            except AIProviderError as e:
                trace.record_failure(provider.name, e)
                logger.warning("Provider %s failed, trying next: %s", provider.name, e)
                continue
            trace.record_success(provider.name)
            return result

        trace.advance(TurnState.FAILED)
        logger.error("All reasoning providers failed for this turn")
        raise AllProvidersExhausted(trace.attempts)

    async def _generate_artifact(self, request: GenerationRequest) -> str | None:
        """Secondary multimodal call; returns None when it fails."""
        multimodal = self._require_multimodal("artifact generation")
        artifact_request = GenerationRequest(
            prompt=request.prompt,
            previous_artifact=request.previous_artifact,
            system_instruction=request.system_instruction,
            model=self.config.artifact_model,
        )
        try:
            artifact_result = await multimodal.generate(artifact_request)
        except Exception as e:
            logger.warning("Artifact generation failed; keeping previous artifact: %s", e)
            return None
        return artifact_result.artifact_content

    async def _guarded(self, operation: str, call: Awaitable[T]) -> T:
        try:
            return await call
        except AIProviderError:
            raise
        except Exception as e:
            logger.error(f"Unclassified failure during {operation}: {e}", exc_info=True)
            raise OperationFailed(operation, e) from e

    async def generate_image(self, prompt: str) -> EncodedImage:
        multimodal = self._require_multimodal("image generation")
        return await self._guarded("image generation", multimodal.generate_image(prompt))

    async def edit_image(self, prompt: str, image: EncodedImage) -> ImageEditResult:
        multimodal = self._require_multimodal("image editing")
        return await self._guarded("image editing", multimodal.edit_image(prompt, image))

    async def perform_ocr(self, images: Sequence[EncodedImage]) -> str:
        if self.ocr_pipeline is None:
            raise OperationFailed(
                "OCR operation", RuntimeError("no multimodal provider is configured")
            )
        return await self._guarded("OCR operation", self.ocr_pipeline.run(images))

    async def generate_title(self, prompt: str, image: EncodedImage | None = None) -> str:
        """Best-effort title; falls back to the first words of the prompt."""
        generator = self.config.title_generator
        if generator is not None:
            try:
                title = await generator(prompt, image)
                if title.strip():
                    return title
            except Exception as e:
                logger.warning("Title generation failed, using prompt words: %s", e)
        return fallback_title(prompt)


def create_orchestrator(settings: Settings | None = None) -> ResponseOrchestrator:
    """Build the orchestrator from settings; fails when no provider is usable."""
    settings = settings or get_settings()
    validate_provider_credentials(settings)

    multimodal = get_multimodal_client(settings)
    ocr_pipeline: OcrPipeline | None = None
    if multimodal is not None:
        refiner = ProviderTextRefiner(multimodal) if settings.OCR_REMOTE_CORRECTION else None
        ocr_pipeline = OcrPipeline(multimodal, corrector=ScriptCorrector(refiner))

    return ResponseOrchestrator(
        OrchestratorConfig(
            multimodal=multimodal,
            reasoning_providers=list(get_reasoning_clients(settings)),
            title_generator=generate_conversation_title if multimodal else None,
            ocr_pipeline=ocr_pipeline,
            artifact_model=settings.ARTIFACT_MODEL,
        )
    )
