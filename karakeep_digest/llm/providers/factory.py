"""Provider factory and registry for hot-swappable text-generation backends."""

from __future__ import annotations

import logging

import httpx

from ...config import LoggingConfig, ProviderConfig, get_api_key, resolve_provider_name
from .anthropic import AnthropicProvider
from .base import TextProvider
from .gemini import GeminiProvider
from .ollama import OllamaProvider


ProviderBuilder = type[TextProvider]

_PROVIDER_REGISTRY: dict[str, ProviderBuilder] = {
    "anthropic": AnthropicProvider,
    "claude": AnthropicProvider,
    "ollama": OllamaProvider,
    "gemini": GeminiProvider,
}


def available_providers() -> list[str]:
    """Return the set of registered provider names."""
    return sorted(_PROVIDER_REGISTRY.keys())


def create_provider(
    provider_cfg: ProviderConfig,
    log_cfg: LoggingConfig,
    llm_logger: logging.Logger | None = None,
    transport: httpx.AsyncBaseTransport | None = None,
) -> TextProvider:
    """Build a provider instance from runtime config.

    Raises:
        ConfigurationError: If "auto" cannot resolve to a provider
        ValueError: If the provider name is not registered
    """
    name = resolve_provider_name(provider_cfg)
    builder = _PROVIDER_REGISTRY.get(name)
    if builder is None:
        supported = ", ".join(available_providers())
        raise ValueError(f"Unsupported provider: {provider_cfg.name}. Supported: {supported}")
    key_cfg = ProviderConfig(
        name=builder.name,
        api_key=provider_cfg.api_key,
        api_key_env=provider_cfg.api_key_env,
    )
    api_key = get_api_key(key_cfg) if builder.name != "ollama" else None
    return builder(provider_cfg, api_key, log_cfg, llm_logger, transport)
