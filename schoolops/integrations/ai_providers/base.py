"""Common contract for AI providers."""

import json
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Optional

import structlog

logger = structlog.get_logger()


@dataclass
class AIResponse:
    """Text completion with token usage."""

    text: str
    usage: dict[str, Optional[int]] = field(default_factory=dict)


class AIProviderError(Exception):
    """Raised when a provider call fails (network, HTTP status, malformed output)."""

    def __init__(self, provider: str, message: str):
        self.provider = provider
        super().__init__(f"{provider}: {message}")


def extract_json(text: str) -> str:
    """Extract a JSON object from a response that may contain other text."""
    start = text.find("{")
    end = text.rfind("}") + 1

    if start != -1 and end > start:
        return text[start:end]

    raise ValueError("No JSON found in response")


class AIProvider(ABC):
    """
    An AI backend that can answer prompts.

    Implementations raise AIProviderError for every failure of the remote
    call; they never retry.
    """

    name: str = ""
    display_name: str = ""

    def __init__(self, api_key: str, model: str, max_tokens: int = 4096, temperature: float = 0.7):
        self.api_key = api_key
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature

    @abstractmethod
    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        response_format: str = "text",
    ) -> AIResponse:
        """Generate a single completion."""

    @abstractmethod
    def generate_content_stream(
        self,
        messages: list[dict[str, str]],
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        """Stream text deltas for a conversation."""

    async def generate_structured_content(
        self,
        prompt: str,
        schema: dict[str, Any],
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> dict[str, Any]:
        """Ask for JSON matching `schema` and parse it."""
        structured_prompt = (
            f"{prompt}\n\nRespond ONLY with a JSON object matching this JSON schema:\n"
            f"{json.dumps(schema)}"
        )
        response = await self.generate_content(
            structured_prompt,
            system_instruction=system_instruction,
            max_tokens=max_tokens,
            temperature=temperature,
            response_format="json",
        )
        try:
            return json.loads(extract_json(response.text))
        except (json.JSONDecodeError, ValueError) as e:
            logger.warning("Unparseable structured response", provider=self.name, error=str(e))
            raise AIProviderError(self.name, f"Invalid JSON in response: {e}") from e
