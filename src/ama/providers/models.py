"""Domain models for the provider transport layer."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping


class ProviderId(str, Enum):
    """Closed set of supported LLM providers (values are the stored ids)."""

    OPENAI = "OpenAI"
    ANTHROPIC = "Anthropic"


@dataclass(frozen=True)
class ModelSpec:
    """Per-model request limits."""

    max_tokens: int


@dataclass(frozen=True)
class ProviderSettings:
    """Immutable per-provider constants handed to an adapter."""

    id: ProviderId
    default_api_key: str | None
    default_model: str
    models: Mapping[str, ModelSpec]
    fallback_max_tokens: int
    temperature: float = 0.7

    def max_tokens_for(self, model: str) -> int:
        spec = self.models.get(model)
        return spec.max_tokens if spec is not None else self.fallback_max_tokens


OPENAI_MODELS: Mapping[str, ModelSpec] = MappingProxyType(
    {
        "gpt-4o": ModelSpec(max_tokens=16384),
        "gpt-4o-mini": ModelSpec(max_tokens=16384),
    }
)

ANTHROPIC_MODELS: Mapping[str, ModelSpec] = MappingProxyType(
    {
        "claude-3-5-sonnet-latest": ModelSpec(max_tokens=8192),
        "claude-3-5-haiku-latest": ModelSpec(max_tokens=8192),
    }
)


@dataclass(frozen=True)
class WireResponse:
    """Decoded provider response, or the error that replaced it.

    ``payload`` is the provider's JSON body as a plain dict. When the call
    failed, ``error`` holds a user-presentable message and ``payload`` is empty.
    """

    payload: dict[str, Any] = field(default_factory=dict)
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None
