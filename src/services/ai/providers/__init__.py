"""Provider clients for the multimodal and reasoning services."""

from .base import MultimodalProvider, ReasoningProvider, TextRefiner
from .gemini import GeminiClient
from .openai_compat import OpenAICompatibleClient


__all__ = [
    "GeminiClient",
    "MultimodalProvider",
    "OpenAICompatibleClient",
    "ReasoningProvider",
    "TextRefiner",
]
