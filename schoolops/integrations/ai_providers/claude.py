"""Anthropic Claude provider."""

from typing import AsyncIterator, Optional

import structlog
from anthropic import AsyncAnthropic, APIError

from .base import AIProvider, AIProviderError, AIResponse

logger = structlog.get_logger()


class ClaudeProvider(AIProvider):
    """Claude via the official async SDK."""

    name = "claude"
    display_name = "Anthropic Claude"

    def __init__(self, api_key: str, model: str, max_tokens: int = 4096, temperature: float = 0.7):
        super().__init__(api_key, model, max_tokens, temperature)
        self.client = AsyncAnthropic(api_key=api_key)

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        response_format: str = "text",
    ) -> AIResponse:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": [{"role": "user", "content": prompt}],
        }
        if system_instruction:
            kwargs["system"] = system_instruction

        try:
            response = await self.client.messages.create(**kwargs)
        except APIError as e:
            logger.error("Claude API error", error=str(e))
            raise AIProviderError(self.name, str(e)) from e

        text = "".join(block.text for block in response.content if getattr(block, "type", "text") == "text")
        return AIResponse(
            text=text,
            usage={
                "prompt_tokens": response.usage.input_tokens,
                "completion_tokens": response.usage.output_tokens,
                "total_tokens": response.usage.input_tokens + response.usage.output_tokens,
            },
        )

    async def generate_content_stream(
        self,
        messages: list[dict[str, str]],
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        kwargs = {
            "model": self.model,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "messages": [m for m in messages if m["role"] in ("user", "assistant")],
        }
        if system_instruction:
            kwargs["system"] = system_instruction

        try:
            async with self.client.messages.stream(**kwargs) as stream:
                async for text in stream.text_stream:
                    if text:
                        yield text
        except APIError as e:
            logger.error("Claude streaming error", error=str(e))
            raise AIProviderError(self.name, str(e)) from e
