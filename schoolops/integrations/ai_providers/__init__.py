"""AI provider clients."""

from .base import AIProvider, AIProviderError, AIResponse
from .claude import ClaudeProvider
from .gemini import GeminiProvider
from .openai_compatible import DeepSeekProvider, KimiProvider, OpenAICompatibleProvider

__all__ = [
    "AIProvider",
    "AIProviderError",
    "AIResponse",
    "ClaudeProvider",
    "GeminiProvider",
    "DeepSeekProvider",
    "KimiProvider",
    "OpenAICompatibleProvider",
]
