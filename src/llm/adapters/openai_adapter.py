# src/llm/adapters/openai_adapter.py — v2
"""OpenAI-compatible chat-completions adapter implementing BaseLLMClient.

Uses the official openai SDK. LLM_BASE_URL points it at any compatible
gateway (the default deployment routes through one).
"""

from __future__ import annotations

import time
from typing import Any

from deepthink.llm.base_client import BaseLLMClient
from deepthink.llm.errors import classify_upstream_error
from deepthink.llm.models import LLMResponse, Message


class OpenAIAdapter(BaseLLMClient):
    """OpenAI-compatible chat-completions adapter."""

    def __init__(
        self,
        model: str = "gpt-4o-mini",
        api_key: str = "",
        base_url: str | None = None,
        **kwargs: Any,
    ):
        self._model = model
        self._api_key = api_key
        self._base_url = base_url or None
        self.__client = None

    @property
    def _client(self):
        """Lazy-init client (only on first API call)."""
        if self.__client is None:
            import openai

            self.__client = openai.AsyncOpenAI(
                api_key=self._api_key, base_url=self._base_url
            )
        return self.__client

    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ) -> LLMResponse:
        oai_messages: list[dict[str, Any]] = []
        if system:
            oai_messages.append({"role": "system", "content": system})
        for m in messages:
            oai_messages.append({"role": m.role, "content": m.content})

        t0 = time.monotonic()
        try:
            resp = await self._client.chat.completions.create(
                model=self._model,
                messages=oai_messages,
                max_tokens=max_tokens,
                temperature=temperature,
            )
        except Exception as e:
            raise classify_upstream_error(e) from e
        latency = int((time.monotonic() - t0) * 1000)

        choice = resp.choices[0]
        usage = resp.usage
        return LLMResponse(
            content=choice.message.content or "",
            input_tokens=usage.prompt_tokens if usage else 0,
            output_tokens=usage.completion_tokens if usage else 0,
            model=self._model,
            provider="openai",
            latency_ms=latency,
            raw_response=resp,
        )

    @property
    def provider_name(self) -> str:
        return "openai"

    @property
    def model_name(self) -> str:
        return self._model
