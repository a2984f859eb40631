"""Init file for AI services."""

from .exceptions import AIProviderError, AllProvidersExhausted
from .ocr_pipeline import NO_TEXT_FOUND, OcrPipeline
from .orchestrator import (
    OrchestratorConfig,
    ResponseOrchestrator,
    create_orchestrator,
    needs_artifact,
)


__all__ = [
    "AIProviderError",
    "AllProvidersExhausted",
    "NO_TEXT_FOUND",
    "OcrPipeline",
    "OrchestratorConfig",
    "ResponseOrchestrator",
    "create_orchestrator",
    "needs_artifact",
]
