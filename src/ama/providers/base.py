"""Provider adapter contract.

An adapter is the wire-protocol half of a turn: it keeps the stored history
acceptable to its provider, converts generic messages to wire messages,
performs the HTTP call through the provider SDK, and turns tool-call
responses back into generic messages.

Tail sanitization and tool resolution are identical for every provider and
live here; head rules, wire shapes and response parsing are per adapter.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from ama.errors import ProviderTransportError, ToolExecutionError
from ama.messages import FunctionCallResultContent, Message
from ama.providers._errors import wrap_provider_error
from ama.providers.models import WireResponse
from ama.retry import RetryPolicy, retry_async
from ama.tools.base import is_tool_error

if TYPE_CHECKING:
    from collections.abc import Callable, Sequence

    from ama.messages import FunctionCallRequestContent
    from ama.persistence import HistoryStore
    from ama.providers.models import ProviderId, ProviderSettings
    from ama.tools.base import Tool, ToolRegistry

logger = logging.getLogger(__name__)


class ProviderAdapter(ABC):
    """Translation and transport layer for one LLM provider."""

    #: Lowercase provider name used in error metadata.
    provider_name: ClassVar[str]

    def __init__(
        self,
        settings: ProviderSettings,
        *,
        client_factory: Callable[[str], Any] | None = None,
        retry: RetryPolicy | None = None,
        timeout_s: float = 60.0,
    ) -> None:
        """Bind the adapter to one provider's settings.

        Args:
            settings: Provider constants (default key/model, model limits).
            client_factory: Builds an SDK client for an API key. Defaults to
                the official async SDK client.
            retry: Retry policy for provider calls.
            timeout_s: Request timeout passed to the default SDK client.
        """
        self.settings = settings
        self._client_factory = client_factory
        self._retry = retry or RetryPolicy()
        self._timeout_s = timeout_s
        self._clients: dict[str, Any] = {}

    @property
    def id(self) -> ProviderId:
        return self.settings.id

    # --- History validity -------------------------------------------------

    def sanitize_aborted_tail(self, history: list[Message]) -> int:
        """Strip trailing entries left behind by an aborted turn.

        Removes, repeatedly, a trailing tool result without an assistant
        reply, an assistant tool-call request without results, and a user
        message without an assistant reply. Idempotent.

        Returns:
            Number of messages removed.
        """
        removed = 0
        while history:
            last = history[-1]
            if last.role == "tool" or last.has_function_call_results:
                reason = "unanswered tool result"
            elif last.has_function_call_requests:
                reason = "unresolved tool call"
            elif last.role == "user":
                reason = "unanswered user message"
            else:
                break
            history.pop()
            removed += 1
            logger.debug("Removed trailing message from history (%s)", reason)
        return removed

    @abstractmethod
    def sanitize_head(self, history: list[Message]) -> int:
        """Strip leading entries this provider rejects as a conversation opener.

        Returns:
            Number of messages removed.
        """

    # --- Request assembly -------------------------------------------------

    async def build_wire_messages(
        self,
        store: HistoryStore,
        history: list[Message],
        next_message: Message | None = None,
        *,
        locale: str | None = None,
    ) -> list[dict[str, Any]]:
        """Convert the history (plus an optional new message) to wire messages.

        A new message starts a turn: the tail is sanitized first, and the
        message is recorded in the store. Without one, the existing history
        is continued as-is (tool results are awaiting the model).
        """
        if next_message is not None:
            self.sanitize_aborted_tail(history)
        self.sanitize_head(history)

        messages = list(history)
        if next_message is not None:
            messages.append(next_message)
            await store.add_message_to_history(next_message)
            # Truncation in the store may have orphaned the head.
            self.sanitize_head(history)

        wire = self.wire_prefix(locale) + self.to_wire_messages(messages)
        logger.debug(
            "Built %d %s wire messages from %d history entries",
            len(wire),
            self.id.value,
            len(messages),
        )
        return wire

    def wire_prefix(self, locale: str | None) -> list[dict[str, Any]]:
        """Wire messages placed before the history (e.g. a system message)."""
        _ = locale
        return []

    @abstractmethod
    def to_wire_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        """Convert generic messages to this provider's wire messages."""

    @abstractmethod
    def from_wire_message(self, wire: dict[str, Any]) -> Message:
        """Parse one wire message back into a generic message."""

    @abstractmethod
    def tool_declarations(self, tools: ToolRegistry) -> list[dict[str, Any]]:
        """Translate registry descriptors into provider tool declarations."""

    @abstractmethod
    def build_request(
        self,
        model: str,
        wire_messages: list[dict[str, Any]],
        *,
        tools: ToolRegistry | None,
        locale: str | None,
    ) -> dict[str, Any]:
        """Return the request body (SDK keyword arguments)."""

    # --- Transport --------------------------------------------------------

    @abstractmethod
    def _default_client(self, api_key: str) -> Any:
        """Create the official async SDK client for *api_key*."""

    @abstractmethod
    async def _create(self, client: Any, request: dict[str, Any]) -> Any:
        """Issue the request with *client* and return the raw response."""

    def _get_client(self, api_key: str) -> Any:
        """Return a cached client for *api_key*, creating it on first use."""
        client = self._clients.get(api_key)
        if client is None:
            factory = self._client_factory or self._default_client
            client = factory(api_key)
            self._clients[api_key] = client
        return client

    async def send_turn(
        self,
        api_key: str,
        model: str,
        wire_messages: list[dict[str, Any]],
        *,
        tools: ToolRegistry | None = None,
        locale: str | None = None,
    ) -> WireResponse:
        """Send one request; failures come back as ``WireResponse.error``."""
        request = self.build_request(model, wire_messages, tools=tools, locale=locale)
        client = self._get_client(api_key)
        logger.debug(
            "Sending request to %s (model=%s, messages=%d, tools=%d)",
            self.id.value,
            model,
            len(wire_messages),
            len(request.get("tools") or ()),
        )

        async def _call() -> dict[str, Any]:
            try:
                return _to_payload(await self._create(client, request))
            except asyncio.CancelledError:
                raise
            except Exception as e:
                raise wrap_provider_error(
                    e,
                    provider=self.provider_name,
                    phase="generate",
                    message=f"{self.id.value} request failed",
                ) from e

        try:
            payload = await retry_async(_call, policy=self._retry)
        except ProviderTransportError as e:
            logger.error("Failed to get answer from %s: %s", self.id.value, e)
            return WireResponse(error=str(e))
        return WireResponse(payload=payload)

    async def aclose(self) -> None:
        """Close cached SDK clients."""
        clients = list(self._clients.values())
        self._clients.clear()
        for client in clients:
            close = getattr(client, "close", None)
            if callable(close):
                try:
                    await close()
                except asyncio.CancelledError:
                    raise
                except Exception as exc:
                    logger.warning("%s client cleanup failed: %s", self.id.value, exc)

    # --- Response handling ------------------------------------------------

    @abstractmethod
    def is_tool_call_response(self, response: WireResponse) -> bool:
        """Whether the model asked for tool calls instead of answering."""

    @abstractmethod
    def tool_call_message(self, response: WireResponse) -> Message:
        """The assistant message (requests and any text) to persist."""

    @abstractmethod
    def _final_text(self, payload: dict[str, Any]) -> str:
        """Extract the answer text from a successful payload."""

    def extract_final_text(self, response: WireResponse) -> str:
        """Answer text, or the error message when the call failed."""
        if response.error is not None:
            return response.error
        return self._final_text(response.payload)

    def final_message(self, response: WireResponse) -> Message:
        """The assistant message to persist for a final answer."""
        return Message("assistant", self.extract_final_text(response))

    async def resolve_tool_calls(
        self, response: WireResponse, tools: ToolRegistry
    ) -> tuple[Message, list[Message]]:
        """Run every requested tool concurrently.

        All tool names are looked up before anything runs, so an unknown tool
        aborts the round with no side effects.

        Returns:
            The assistant tool-call message and one ``tool`` message per
            request, in request order, each correlated by request ``id``.

        Raises:
            UnknownToolError: When a request names a tool not in *tools*.
        """
        assistant_message = self.tool_call_message(response)
        calls = [
            (request, tools.get(request.function_name))
            for request in assistant_message.function_call_requests
        ]
        results = await asyncio.gather(
            *(self._run_tool(tool, request) for request, tool in calls)
        )
        return assistant_message, list(results)

    async def _run_tool(self, tool: Tool, request: FunctionCallRequestContent) -> Message:
        logger.debug("Calling tool %s (id=%s)", tool.name, request.id)
        payload = await tool.execute(request.function_arguments)
        if is_tool_error(payload):
            content = payload["error"]
        else:
            try:
                filtered = tool.filter_response(payload)
            except ToolExecutionError as e:
                filtered = str(e)
            except Exception as e:
                logger.exception("Filtering %s output raised %s", tool.name, type(e).__name__)
                filtered = f"{tool.name} failed: {type(e).__name__}"
            content = (
                filtered
                if isinstance(filtered, str)
                else json.dumps(filtered, ensure_ascii=False)
            )
        return Message("tool", [FunctionCallResultContent(request.id, content)])


def _to_payload(raw: Any) -> dict[str, Any]:
    """Decode an SDK response object into its JSON body."""
    if isinstance(raw, dict):
        return raw
    model_dump = getattr(raw, "model_dump", None)
    if callable(model_dump):
        payload = model_dump()
        if isinstance(payload, dict):
            return payload
    raise ProviderTransportError(
        f"Undecodable provider response of type {type(raw).__name__}",
        retryable=False,
        phase="decode",
    )

