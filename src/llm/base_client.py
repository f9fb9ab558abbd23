# src/llm/base_client.py — v2
"""Abstract completion-service interface.

Adapters translate provider SDK failures into llm.errors.UpstreamError
subclasses; callers never see provider-specific exceptions.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from deepthink.llm.models import LLMResponse, Message


class BaseLLMClient(ABC):
    """Unified interface for all completion providers."""

    @abstractmethod
    async def complete(
        self,
        messages: list[Message],
        system: str | None = None,
        max_tokens: int = 1024,
        temperature: float = 0.4,
    ) -> LLMResponse:
        """Text completion.

        Raises:
            UpstreamError: On any non-2xx response or transport failure.
        """

    @property
    @abstractmethod
    def provider_name(self) -> str:
        """Provider identifier (openai, anthropic)."""

    @property
    @abstractmethod
    def model_name(self) -> str:
        """Model identifier sent to the provider."""
