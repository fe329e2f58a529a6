"""Providers speaking the OpenAI chat-completions protocol (DeepSeek, Kimi)."""

import json
from typing import Any, AsyncIterator, Optional

import httpx
import structlog

from .base import AIProvider, AIProviderError, AIResponse

logger = structlog.get_logger()


class OpenAICompatibleProvider(AIProvider):
    """Chat completions over plain httpx."""

    timeout = httpx.Timeout(60.0, connect=10.0)

    def __init__(
        self,
        api_key: str,
        model: str,
        base_url: str,
        max_tokens: int = 4096,
        temperature: float = 0.7,
    ):
        super().__init__(api_key, model, max_tokens, temperature)
        self.base_url = base_url.rstrip("/")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _payload(
        self,
        messages: list[dict[str, str]],
        system_instruction: Optional[str],
        max_tokens: Optional[int],
        temperature: Optional[float],
        stream: bool = False,
    ) -> dict[str, Any]:
        chat = []
        if system_instruction:
            chat.append({"role": "system", "content": system_instruction})
        chat.extend(messages)
        return {
            "model": self.model,
            "messages": chat,
            "max_tokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
            "stream": stream,
        }

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        response_format: str = "text",
    ) -> AIResponse:
        payload = self._payload(
            [{"role": "user", "content": prompt}], system_instruction, max_tokens, temperature
        )
        if response_format == "json":
            payload["response_format"] = {"type": "json_object"}

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error(
                "AI provider HTTP error",
                provider=self.name,
                status_code=e.response.status_code,
            )
            raise AIProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("AI provider request failed", provider=self.name, error=str(e))
            raise AIProviderError(self.name, str(e)) from e

        try:
            text = data["choices"][0]["message"]["content"] or ""
        except (KeyError, IndexError, TypeError) as e:
            raise AIProviderError(self.name, "Malformed completion response") from e

        usage = data.get("usage") or {}
        return AIResponse(
            text=text,
            usage={
                "prompt_tokens": usage.get("prompt_tokens"),
                "completion_tokens": usage.get("completion_tokens"),
                "total_tokens": usage.get("total_tokens"),
            },
        )

    async def generate_content_stream(
        self,
        messages: list[dict[str, str]],
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        payload = self._payload(messages, system_instruction, max_tokens, temperature, stream=True)

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST",
                    f"{self.base_url}/chat/completions",
                    headers=self._headers(),
                    json=payload,
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        data = line[len("data:"):].strip()
                        if data == "[DONE]":
                            break
                        try:
                            chunk = json.loads(data)
                        except json.JSONDecodeError:
                            continue
                        choices = chunk.get("choices") or []
                        delta = (choices[0].get("delta") or {}).get("content") if choices else None
                        if delta:
                            yield delta
        except httpx.HTTPError as e:
            logger.error("AI provider stream failed", provider=self.name, error=str(e))
            raise AIProviderError(self.name, str(e)) from e


class DeepSeekProvider(OpenAICompatibleProvider):
    name = "deepseek"
    display_name = "DeepSeek"


class KimiProvider(OpenAICompatibleProvider):
    name = "kimi"
    display_name = "Moonshot Kimi"
