"""ama: a voice-assistant answer engine over OpenAI and Anthropic.

Public API:
    - answer(): Answer one user query against a stored conversation
    - Config: Configuration dataclass
    - Message: Provider-independent conversation message
    - InMemoryHistoryStore / JSONHistoryStore: Reference history stores
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from ama.config import Config
from ama.errors import (
    AmaError,
    APIError,
    ConfigurationError,
    DeserializationError,
    InternalError,
    ProviderTransportError,
    RateLimitError,
    ToolExecutionError,
    UnknownToolError,
)
from ama.messages import (
    FunctionCallRequestContent,
    FunctionCallResultContent,
    Message,
    TextContent,
)
from ama.orchestrator import Orchestrator, TurnState
from ama.persistence import HistoryStore, InMemoryHistoryStore, JSONHistoryStore
from ama.providers import (
    ProviderId,
    create_adapter,
    parse_provider_id,
    provider_for_model,
)
from ama.retry import RetryPolicy
from ama.tools import ToolRegistry, default_registry

if TYPE_CHECKING:
    from collections.abc import Callable
    from typing import Any

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("ama-assistant")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("ama").addHandler(logging.NullHandler())

logger = logging.getLogger(__name__)


async def select_provider(store: HistoryStore, config: Config) -> ProviderId:
    """Pick the provider for a user.

    Order: the user's stored provider id, then the provider serving the
    user's model, then the platform default.
    """
    stored = await store.get_llm_provider_id()
    if stored:
        return parse_provider_id(stored)
    by_model = provider_for_model(await store.get_llm_model())
    if by_model is not None:
        return by_model
    return parse_provider_id(config.default_provider or ProviderId.OPENAI)


async def answer(
    store: HistoryStore,
    query: str,
    *,
    config: Config | None = None,
    locale: str | None = None,
    tools: ToolRegistry | None = None,
    client_factory: Callable[[str], Any] | None = None,
) -> str:
    """Answer *query* for the user behind *store*.

    Args:
        store: The user's settings and conversation history.
        query: The user's question.
        config: Platform configuration. Defaults to ``Config()`` (environment).
        locale: Optional device locale mentioned in the system prompt.
        tools: Tool registry. Defaults to the built-in tools.
        client_factory: Optional SDK client builder, mainly for tests.

    Returns:
        The answer text (or a user-presentable error text).

    Example:
        store = InMemoryHistoryStore.from_config(Config())
        text = await answer(store, "What is the weather in London?")
        print(text)
    """
    cfg = config or Config()
    provider_id = await select_provider(store, cfg)
    adapter = create_adapter(provider_id, cfg, client_factory=client_factory)
    orchestrator = Orchestrator(
        adapter,
        tools if tools is not None else default_registry(cfg),
        max_tool_rounds=cfg.max_tool_rounds,
    )
    logger.debug("Answering with provider %s", provider_id.value)
    try:
        return await orchestrator.answer(store, query, locale=locale)
    finally:
        await adapter.aclose()


__all__ = [
    "APIError",
    "AmaError",
    "Config",
    "ConfigurationError",
    "DeserializationError",
    "FunctionCallRequestContent",
    "FunctionCallResultContent",
    "HistoryStore",
    "InMemoryHistoryStore",
    "InternalError",
    "JSONHistoryStore",
    "Message",
    "Orchestrator",
    "ProviderId",
    "ProviderTransportError",
    "RateLimitError",
    "RetryPolicy",
    "TextContent",
    "ToolExecutionError",
    "ToolRegistry",
    "TurnState",
    "UnknownToolError",
    "__version__",
    "answer",
    "select_provider",
]
