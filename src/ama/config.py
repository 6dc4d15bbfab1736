"""Configuration: frozen Config resolved from arguments, environment, and .env."""

from __future__ import annotations

from dataclasses import dataclass, field
import os
from typing import Literal

from dotenv import load_dotenv

from ama.errors import ConfigurationError
from ama.retry import RetryPolicy

load_dotenv()

ProviderName = Literal["OpenAI", "Anthropic"]

_PROVIDER_NAMES: tuple[ProviderName, ...] = ("OpenAI", "Anthropic")

# Platform default API keys; the first variable that is set wins.
_API_KEY_ENV_VARS: dict[ProviderName, tuple[str, ...]] = {
    "OpenAI": ("OPENAI_API_KEY", "OPEN_AI_API_KEY"),
    "Anthropic": ("ANTHROPIC_API_KEY",),
}

_DEFAULT_OPENAI_MODEL = "gpt-4o"
_DEFAULT_ANTHROPIC_MODEL = "claude-3-5-sonnet-latest"


def _env(*names: str) -> str | None:
    for name in names:
        value = os.environ.get(name)
        if value:
            return value
    return None


def _split_blocklist(raw: str | None) -> tuple[str, ...]:
    if not raw:
        return ()
    return tuple(part.strip() for part in raw.split(",") if part.strip())


@dataclass(frozen=True)
class Config:
    """Immutable platform configuration for answering turns.

    Every field left as *None* is resolved from the environment. The API keys
    here are the platform defaults; a user-supplied key from the history
    store always takes precedence.

    Example:
        config = Config(default_provider="Anthropic")
        # anthropic_api_key is resolved from ANTHROPIC_API_KEY
    """

    #: Auto-resolved from ``OPENAI_API_KEY`` or ``OPEN_AI_API_KEY`` when *None*.
    openai_api_key: str | None = None
    #: Auto-resolved from ``ANTHROPIC_API_KEY`` when *None*.
    anthropic_api_key: str | None = None
    openai_model: str | None = None
    anthropic_model: str | None = None
    default_provider: ProviderName | None = None
    google_pse_search_engine_id: str | None = None
    google_pse_api_key: str | None = None
    #: Domains (substrings of result links) never shown to the model.
    search_blocklist: tuple[str, ...] | None = None
    #: Messages a store built with ``from_config`` retains.
    max_history_length: int = 20
    max_tool_rounds: int = 10
    temperature: float = 0.7
    request_timeout_s: float = 60.0
    retry: RetryPolicy = field(default_factory=RetryPolicy)

    def __post_init__(self) -> None:
        """Resolve unset fields from the environment and validate."""
        resolved: dict[str, object] = {
            "openai_api_key": self.openai_api_key or _env(*_API_KEY_ENV_VARS["OpenAI"]),
            "anthropic_api_key": self.anthropic_api_key
            or _env(*_API_KEY_ENV_VARS["Anthropic"]),
            "openai_model": self.openai_model
            or _env("OPEN_AI_MODEL", "OPENAI_MODEL")
            or _DEFAULT_OPENAI_MODEL,
            "anthropic_model": self.anthropic_model
            or _env("ANTHROPIC_MODEL")
            or _DEFAULT_ANTHROPIC_MODEL,
            "default_provider": self.default_provider
            or _env("DEFAULT_LLM_SERVICE_ID")
            or "OpenAI",
            "google_pse_search_engine_id": self.google_pse_search_engine_id
            or _env("GOOGLE_PSE_SEARCH_ENGINE_ID"),
            "google_pse_api_key": self.google_pse_api_key
            or _env("GOOGLE_PSE_API_KEY"),
            "search_blocklist": (
                tuple(self.search_blocklist)
                if self.search_blocklist is not None
                else _split_blocklist(_env("CUSTOM_SEARCH_ENGINE_BLOCKLIST"))
            ),
        }
        for name, value in resolved.items():
            object.__setattr__(self, name, value)

        if self.default_provider not in _PROVIDER_NAMES:
            raise ConfigurationError(
                f"Unknown provider: {self.default_provider!r}",
                hint="Supported providers: 'OpenAI', 'Anthropic'",
            )
        if self.max_history_length < 2:
            raise ConfigurationError(
                f"max_history_length must be ≥ 2, got {self.max_history_length}",
                hint="At least one user message and its answer must fit.",
            )
        if self.max_tool_rounds < 0:
            raise ConfigurationError(
                f"max_tool_rounds must be ≥ 0, got {self.max_tool_rounds}",
                hint="This bounds consecutive tool-call responses in one turn.",
            )
        if not 0.0 <= self.temperature <= 2.0:
            raise ConfigurationError(
                f"temperature must be within [0, 2], got {self.temperature}",
            )
        if self.request_timeout_s <= 0:
            raise ConfigurationError(
                f"request_timeout_s must be > 0, got {self.request_timeout_s}",
            )

    def api_key_for(self, provider: ProviderName) -> str | None:
        """Return the platform default API key for *provider*."""
        if provider == "Anthropic":
            return self.anthropic_api_key
        return self.openai_api_key

    def model_for(self, provider: ProviderName) -> str:
        """Return the platform default model for *provider*."""
        model = self.anthropic_model if provider == "Anthropic" else self.openai_model
        return model or ""

    def __str__(self) -> str:
        """Return a redacted, developer-friendly representation."""
        return (
            f"Config(default_provider={self.default_provider!r}, "
            f"openai_model={self.openai_model!r}, "
            f"anthropic_model={self.anthropic_model!r}, "
            f"openai_api_key={'[REDACTED]' if self.openai_api_key else None}, "
            f"anthropic_api_key={'[REDACTED]' if self.anthropic_api_key else None}, "
            f"google_pse_api_key={'[REDACTED]' if self.google_pse_api_key else None})"
        )

    __repr__ = __str__
