"""Anthropic Messages adapter."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, ClassVar

from ama.errors import ConfigurationError
from ama.messages import (
    FunctionCallRequestContent,
    FunctionCallResultContent,
    Message,
    TextContent,
)
from ama.prompts import build_system_prompt
from ama.providers._utils import to_flat_input_schema
from ama.providers.base import ProviderAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ama.providers.models import WireResponse
    from ama.tools.base import ToolRegistry

logger = logging.getLogger(__name__)

_TOOL_USE = "tool_use"


class AnthropicAdapter(ProviderAdapter):
    """Adapter for ``POST /v1/messages``.

    The system prompt travels in the ``system`` request parameter, tool
    results are ``tool_result`` blocks inside user messages, and adjacent
    messages with the same wire role are merged to keep strict alternation.
    """

    provider_name: ClassVar[str] = "anthropic"

    def _default_client(self, api_key: str) -> Any:
        try:
            from anthropic import AsyncAnthropic
        except ImportError as e:
            raise ConfigurationError(
                "anthropic package not installed", hint="pip install anthropic"
            ) from e
        return AsyncAnthropic(api_key=api_key, max_retries=0, timeout=self._timeout_s)

    async def _create(self, client: Any, request: dict[str, Any]) -> Any:
        return await client.messages.create(**request)

    def sanitize_head(self, history: list[Message]) -> int:
        """Drop entries until the history opens with a plain user message."""
        removed = 0
        while history and not _is_plain_user_message(history[0]):
            history.pop(0)
            removed += 1
        if removed:
            logger.debug("Removed %d message(s) preceding the first user message", removed)
        return removed

    def to_wire_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        wire: list[dict[str, Any]] = []
        for message in messages:
            role = "assistant" if message.role == "assistant" else "user"
            blocks: list[dict[str, Any]] = []
            for item in message.content:
                if isinstance(item, TextContent):
                    # Empty text blocks are rejected by the API.
                    if item.text:
                        blocks.append({"type": "text", "text": item.text})
                elif isinstance(item, FunctionCallRequestContent):
                    blocks.append(
                        {
                            "type": _TOOL_USE,
                            "id": item.id,
                            "name": item.function_name,
                            "input": item.function_arguments,
                        }
                    )
                elif isinstance(item, FunctionCallResultContent):
                    blocks.append(
                        {
                            "type": "tool_result",
                            "tool_use_id": item.id,
                            "content": item.content,
                        }
                    )
            if blocks:
                _append_message(wire, {"role": role, "content": blocks})
        return wire

    def tool_declarations(self, tools: ToolRegistry) -> list[dict[str, Any]]:
        return [
            {
                "name": descriptor.name,
                "description": descriptor.description,
                "input_schema": to_flat_input_schema(descriptor.parameter_schema),
            }
            for descriptor in tools.descriptors()
        ]

    def build_request(
        self,
        model: str,
        wire_messages: list[dict[str, Any]],
        *,
        tools: ToolRegistry | None,
        locale: str | None,
    ) -> dict[str, Any]:
        request: dict[str, Any] = {
            "model": model,
            "system": build_system_prompt(locale),
            "messages": wire_messages,
            "temperature": self.settings.temperature,
            "max_tokens": self.settings.max_tokens_for(model),
        }
        if tools is not None and len(tools):
            request["tools"] = self.tool_declarations(tools)
        return request

    def is_tool_call_response(self, response: WireResponse) -> bool:
        if not response.ok:
            return False
        return response.payload.get("stop_reason") == _TOOL_USE and any(
            block.get("type") == _TOOL_USE for block in _blocks(response.payload)
        )

    def tool_call_message(self, response: WireResponse) -> Message:
        return self.from_wire_message(
            {"role": "assistant", "content": _blocks(response.payload)}
        )

    def from_wire_message(self, wire: dict[str, Any]) -> Message:
        """Parse one Messages API message back into a generic message.

        A user message carrying ``tool_result`` blocks becomes a ``tool``
        message.
        """
        content: list[Any] = []
        has_results = False
        for block in _blocks(wire):
            kind = block.get("type")
            if kind == "text" and block.get("text"):
                content.append(TextContent(block["text"]))
            elif kind == _TOOL_USE:
                args = block.get("input")
                content.append(
                    FunctionCallRequestContent(
                        id=block["id"],
                        function_type=_TOOL_USE,
                        function_name=block.get("name", ""),
                        function_arguments=args if isinstance(args, dict) else {},
                    )
                )
            elif kind == "tool_result":
                has_results = True
                result = block.get("content")
                content.append(
                    FunctionCallResultContent(
                        block["tool_use_id"],
                        result if isinstance(result, str) else json.dumps(result),
                    )
                )
        role = "tool" if has_results else wire.get("role") or "assistant"
        return Message(role, content or "")

    def _final_text(self, payload: dict[str, Any]) -> str:
        return "\n\n".join(
            block["text"]
            for block in _blocks(payload)
            if block.get("type") == "text" and isinstance(block.get("text"), str)
        )

    def final_message(self, response: WireResponse) -> Message:
        if not response.ok:
            return super().final_message(response)
        texts = [
            TextContent(block["text"])
            for block in _blocks(response.payload)
            if block.get("type") == "text" and isinstance(block.get("text"), str)
        ]
        return Message("assistant", texts or "")


def _is_plain_user_message(message: Message) -> bool:
    return message.role == "user" and not message.has_function_call_results


def _blocks(payload: dict[str, Any]) -> list[dict[str, Any]]:
    content = payload.get("content")
    if not isinstance(content, list):
        return []
    return [block for block in content if isinstance(block, dict)]


def _append_message(messages: list[dict[str, Any]], msg: dict[str, Any]) -> None:
    """Append *msg*, merging into the previous message when roles match.

    Anthropic requires strict user/assistant alternation. Consecutive tool
    results become one user message carrying several ``tool_result`` blocks.
    """
    if messages and messages[-1]["role"] == msg["role"]:
        messages[-1]["content"] = messages[-1]["content"] + msg["content"]
    else:
        messages.append(msg)
