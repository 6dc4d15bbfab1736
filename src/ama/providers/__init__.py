"""Provider adapters and provider selection."""

from __future__ import annotations

from types import MappingProxyType
from typing import TYPE_CHECKING, Any

from ama.errors import ConfigurationError
from ama.providers.anthropic import AnthropicAdapter
from ama.providers.base import ProviderAdapter
from ama.providers.models import (
    ANTHROPIC_MODELS,
    OPENAI_MODELS,
    ModelSpec,
    ProviderId,
    ProviderSettings,
    WireResponse,
)
from ama.providers.openai import OpenAIAdapter

if TYPE_CHECKING:
    from collections.abc import Callable, Mapping

    from ama.config import Config

_ADAPTERS: Mapping[ProviderId, type[ProviderAdapter]] = MappingProxyType(
    {
        ProviderId.OPENAI: OpenAIAdapter,
        ProviderId.ANTHROPIC: AnthropicAdapter,
    }
)

_MODELS: Mapping[ProviderId, Mapping[str, ModelSpec]] = MappingProxyType(
    {
        ProviderId.OPENAI: OPENAI_MODELS,
        ProviderId.ANTHROPIC: ANTHROPIC_MODELS,
    }
)

_FALLBACK_MAX_TOKENS: Mapping[ProviderId, int] = MappingProxyType(
    {
        ProviderId.OPENAI: 16384,
        ProviderId.ANTHROPIC: 8192,
    }
)


def parse_provider_id(value: ProviderId | str) -> ProviderId:
    """Return the ``ProviderId`` for a stored provider id string.

    Raises:
        ConfigurationError: When *value* names no supported provider.
    """
    if isinstance(value, ProviderId):
        return value
    try:
        return ProviderId(value)
    except ValueError:
        raise ConfigurationError(
            f"Unknown provider: {value!r}",
            hint=f"Supported providers: {', '.join(p.value for p in ProviderId)}",
        ) from None


def provider_for_model(model: str | None) -> ProviderId | None:
    """Return the provider that serves *model*, if any."""
    if not model:
        return None
    for provider_id, models in _MODELS.items():
        if model in models:
            return provider_id
    return None


def provider_settings(provider_id: ProviderId | str, config: Config) -> ProviderSettings:
    """Build the immutable settings for one provider from *config*."""
    pid = parse_provider_id(provider_id)
    return ProviderSettings(
        id=pid,
        default_api_key=config.api_key_for(pid.value),
        default_model=config.model_for(pid.value),
        models=_MODELS[pid],
        fallback_max_tokens=_FALLBACK_MAX_TOKENS[pid],
        temperature=config.temperature,
    )


def create_adapter(
    provider_id: ProviderId | str,
    config: Config,
    *,
    client_factory: Callable[[str], Any] | None = None,
) -> ProviderAdapter:
    """Instantiate the adapter for *provider_id*.

    Args:
        provider_id: A ``ProviderId`` or its stored string value.
        config: Platform configuration (keys, models, retry, timeouts).
        client_factory: Optional SDK client builder, mainly for tests.
    """
    pid = parse_provider_id(provider_id)
    adapter_cls = _ADAPTERS[pid]
    return adapter_cls(
        provider_settings(pid, config),
        client_factory=client_factory,
        retry=config.retry,
        timeout_s=config.request_timeout_s,
    )


__all__ = [
    "AnthropicAdapter",
    "OpenAIAdapter",
    "ProviderAdapter",
    "ProviderId",
    "ProviderSettings",
    "WireResponse",
    "create_adapter",
    "parse_provider_id",
    "provider_for_model",
    "provider_settings",
]
