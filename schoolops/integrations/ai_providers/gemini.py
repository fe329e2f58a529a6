"""Google Gemini provider over the generativelanguage REST API."""

import json
from typing import Any, AsyncIterator, Optional

import httpx
import structlog

from .base import AIProvider, AIProviderError, AIResponse

logger = structlog.get_logger()

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com/v1beta"


class GeminiProvider(AIProvider):
    """Gemini via httpx; the API key travels as a query parameter."""

    name = "gemini"
    display_name = "Google Gemini"

    timeout = httpx.Timeout(60.0, connect=10.0)

    def _body(
        self,
        contents: list[dict[str, Any]],
        system_instruction: Optional[str],
        max_tokens: Optional[int],
        temperature: Optional[float],
        response_format: str = "text",
    ) -> dict[str, Any]:
        generation_config: dict[str, Any] = {
            "maxOutputTokens": max_tokens or self.max_tokens,
            "temperature": self.temperature if temperature is None else temperature,
        }
        if response_format == "json":
            generation_config["responseMimeType"] = "application/json"

        body: dict[str, Any] = {"contents": contents, "generationConfig": generation_config}
        if system_instruction:
            body["systemInstruction"] = {"parts": [{"text": system_instruction}]}
        return body

    @staticmethod
    def _to_contents(messages: list[dict[str, str]]) -> list[dict[str, Any]]:
        return [
            {
                "role": "model" if m["role"] == "assistant" else "user",
                "parts": [{"text": m["content"]}],
            }
            for m in messages
            if m["role"] in ("user", "assistant")
        ]

    @staticmethod
    def _candidate_text(data: dict[str, Any]) -> str:
        candidates = data.get("candidates") or []
        if not candidates:
            return ""
        parts = (candidates[0].get("content") or {}).get("parts") or []
        return "".join(part.get("text", "") for part in parts)

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
        response_format: str = "text",
    ) -> AIResponse:
        body = self._body(
            [{"role": "user", "parts": [{"text": prompt}]}],
            system_instruction,
            max_tokens,
            temperature,
            response_format,
        )
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{GEMINI_BASE_URL}/models/{self.model}:generateContent",
                    params={"key": self.api_key},
                    json=body,
                )
                response.raise_for_status()
                data = response.json()
        except httpx.HTTPStatusError as e:
            logger.error("Gemini HTTP error", status_code=e.response.status_code)
            raise AIProviderError(self.name, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            logger.error("Gemini request failed", error=str(e))
            raise AIProviderError(self.name, str(e)) from e

        usage = data.get("usageMetadata") or {}
        return AIResponse(
            text=self._candidate_text(data),
            usage={
                "prompt_tokens": usage.get("promptTokenCount"),
                "completion_tokens": usage.get("candidatesTokenCount"),
                "total_tokens": usage.get("totalTokenCount"),
            },
        )

    async def generate_content_stream(
        self,
        messages: list[dict[str, str]],
        system_instruction: Optional[str] = None,
        max_tokens: Optional[int] = None,
        temperature: Optional[float] = None,
    ) -> AsyncIterator[str]:
        body = self._body(self._to_contents(messages), system_instruction, max_tokens, temperature)
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                async with client.stream(
                    "POST",
                    f"{GEMINI_BASE_URL}/models/{self.model}:streamGenerateContent",
                    params={"key": self.api_key, "alt": "sse"},
                    json=body,
                ) as response:
                    response.raise_for_status()
                    async for line in response.aiter_lines():
                        if not line.startswith("data:"):
                            continue
                        try:
                            chunk = json.loads(line[len("data:"):].strip())
                        except json.JSONDecodeError:
                            continue
                        text = self._candidate_text(chunk)
                        if text:
                            yield text
        except httpx.HTTPError as e:
            logger.error("Gemini stream failed", error=str(e))
            raise AIProviderError(self.name, str(e)) from e
