"""Turn orchestration: one user query in, one answer text out.

A turn is an explicit, bounded state machine:

    BUILD_REQUEST -> AWAIT_PROVIDER -> (RESOLVE_TOOLS -> AWAIT_PROVIDER)* -> DONE

The user message is persisted while the first request is built. Each tool
round persists the assistant tool-call message together with its results
only after every tool has run. The final assistant message is persisted when
the provider answers with text.

Follow-up requests within a turn always carry the turn's own messages, even
when the store truncated them away mid-turn.
"""

from __future__ import annotations

from enum import Enum
import logging
from typing import TYPE_CHECKING

from ama.errors import ConfigurationError, InternalError
from ama.messages import Message

if TYPE_CHECKING:
    from ama.persistence import HistoryStore
    from ama.providers.base import ProviderAdapter
    from ama.providers.models import WireResponse
    from ama.tools.base import ToolRegistry

logger = logging.getLogger(__name__)

DEFAULT_MAX_TOOL_ROUNDS = 10

TOOL_ROUNDS_EXHAUSTED_TEXT = (
    "Sorry, I could not complete your request because it needed too many tool calls."
)


class TurnState(Enum):
    """Phases of a single turn."""

    BUILD_REQUEST = "build_request"
    AWAIT_PROVIDER = "await_provider"
    RESOLVE_TOOLS = "resolve_tools"
    DONE = "done"


class Orchestrator:
    """Runs turns against one provider adapter with one tool registry."""

    def __init__(
        self,
        adapter: ProviderAdapter,
        tools: ToolRegistry,
        *,
        max_tool_rounds: int = DEFAULT_MAX_TOOL_ROUNDS,
    ) -> None:
        if max_tool_rounds < 0:
            raise ConfigurationError(
                f"max_tool_rounds must be ≥ 0, got {max_tool_rounds}",
            )
        self.adapter = adapter
        self.tools = tools
        self.max_tool_rounds = max_tool_rounds

    async def resolve_credentials(self, store: HistoryStore) -> tuple[str, str]:
        """Return the effective ``(api_key, model)`` for this turn.

        The user's key wins over the platform default. The user's model is
        used only when this provider knows it.

        Raises:
            ConfigurationError: When neither the user nor the platform has a key.
        """
        settings = self.adapter.settings
        provider = settings.id.value

        api_key = await store.get_api_key()
        if not api_key:
            api_key = settings.default_api_key
            if not api_key:
                raise ConfigurationError(
                    f"No API key available for {provider}",
                    hint=f"Set a user key or the platform default key for {provider}.",
                )
            logger.warning("No user API key set; using the default %s key", provider)

        user_model = await store.get_llm_model()
        if user_model and user_model in settings.models:
            model = user_model
        else:
            if user_model:
                logger.info(
                    "Model %r is not served by %s; using %s",
                    user_model,
                    provider,
                    settings.default_model,
                )
            model = settings.default_model
        logger.debug("Effective provider=%s model=%s", provider, model)
        return api_key, model

    async def answer(
        self, store: HistoryStore, query: str, *, locale: str | None = None
    ) -> str:
        """Answer *query* in the context of the stored conversation.

        Returns:
            The assistant's answer, or a user-presentable error text when the
            provider call failed or the tool-round budget ran out.

        Raises:
            ConfigurationError: When no API key is available.
            UnknownToolError: When the model requests a tool not registered.
        """
        adapter = self.adapter
        state = TurnState.BUILD_REQUEST
        rounds = 0
        history: list[Message] = []
        turn: list[Message] = []
        wire: list[dict] = []
        api_key = model = ""
        response: WireResponse | None = None

        while state is not TurnState.DONE:
            if state is TurnState.BUILD_REQUEST:
                history = await store.get_message_history()
                api_key, model = await self.resolve_credentials(store)
                turn = [Message("user", query)]
                wire = await adapter.build_wire_messages(
                    store, history, turn[0], locale=locale
                )
                state = TurnState.AWAIT_PROVIDER

            elif state is TurnState.AWAIT_PROVIDER:
                response = await adapter.send_turn(
                    api_key, model, wire, tools=self.tools, locale=locale
                )
                if adapter.is_tool_call_response(response):
                    state = TurnState.RESOLVE_TOOLS
                else:
                    state = TurnState.DONE

            elif state is TurnState.RESOLVE_TOOLS:
                if response is None:
                    raise InternalError("Tool round started without a provider response")
                if rounds >= self.max_tool_rounds:
                    logger.error(
                        "Tool round limit (%d) reached; abandoning turn",
                        self.max_tool_rounds,
                    )
                    return TOOL_ROUNDS_EXHAUSTED_TEXT
                rounds += 1
                assistant_message, results = await adapter.resolve_tool_calls(
                    response, self.tools
                )
                for message in (assistant_message, *results):
                    turn.append(message)
                    await store.add_message_to_history(message)
                logger.debug("Tool round %d resolved %d call(s)", rounds, len(results))
                wire = await adapter.build_wire_messages(
                    store, _continuation(history, turn), locale=locale
                )
                state = TurnState.AWAIT_PROVIDER

        if response is None:
            raise InternalError("Turn finished without a provider response")
        if not response.ok:
            return adapter.extract_final_text(response)

        final = adapter.final_message(response)
        await store.add_message_to_history(final)
        return final.text


def _continuation(history: list[Message], turn: list[Message]) -> list[Message]:
    """The context for a follow-up request within a running turn.

    The store may have truncated its history mid-turn. When any of the
    turn's own messages were evicted, the request carries the whole turn
    instead of the truncated history.
    """
    if history[-len(turn):] == turn:
        return list(history)
    logger.debug("History was truncated mid-turn; continuing from the turn's messages")
    return list(turn)
