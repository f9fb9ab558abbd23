# src/llm/client_factory.py — v4
"""Factory: instantiate the completion client from provider name.

Called once at startup; the client (and its credential) is process-wide,
read-only and shared by all concurrent runs.
"""

from __future__ import annotations

import importlib
import logging

from deepthink.config.settings import Settings
from deepthink.llm.base_client import BaseLLMClient

logger = logging.getLogger(__name__)

# Registry of provider name → adapter class path (lazy import).
_PROVIDER_REGISTRY: dict[str, str] = {
    "openai": "deepthink.llm.adapters.openai_adapter.OpenAIAdapter",
    "anthropic": "deepthink.llm.adapters.anthropic_adapter.AnthropicAdapter",
}


class UnsupportedProviderError(ValueError):
    """Raised when a provider is not registered."""


def create_llm_client(
    provider: str,
    model: str,
    settings: Settings | None = None,
    **kwargs: object,
) -> BaseLLMClient:
    """Instantiate the correct adapter from provider name.

    Args:
        provider: Provider identifier (openai, anthropic).
        model: Model name.
        settings: Application settings (for endpoint and API key).
        **kwargs: Additional provider-specific arguments.

    Returns:
        Configured BaseLLMClient instance.

    Raises:
        UnsupportedProviderError: If provider is not registered.
    """
    if provider not in _PROVIDER_REGISTRY:
        raise UnsupportedProviderError(
            f"Unsupported LLM provider: {provider!r}. "
            f"Available: {', '.join(sorted(_PROVIDER_REGISTRY))}"
        )

    adapter_cls = _import_class(_PROVIDER_REGISTRY[provider])

    init_kwargs = dict(kwargs)
    init_kwargs["model"] = model
    if settings is not None:
        init_kwargs.setdefault("api_key", settings.llm_api_key)
        init_kwargs.setdefault("base_url", settings.llm_base_url or None)

    logger.debug("Creating LLM client: provider=%s, model=%s", provider, model)
    return adapter_cls(**init_kwargs)


def create_default_client(settings: Settings) -> BaseLLMClient:
    """Instantiate the client configured by LLM_PROVIDER / LLM_MODEL."""
    return create_llm_client(settings.llm_provider, settings.llm_model, settings)


def _import_class(class_path: str) -> type:
    """Dynamically import a class from its fully qualified path."""
    module_path, class_name = class_path.rsplit(".", 1)
    module = importlib.import_module(module_path)
    return getattr(module, class_name)
