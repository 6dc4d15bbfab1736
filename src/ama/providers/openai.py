"""OpenAI Chat Completions adapter."""

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
from ama.providers._utils import to_strict_schema
from ama.providers.base import ProviderAdapter

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ama.providers.models import WireResponse
    from ama.tools.base import ToolRegistry

logger = logging.getLogger(__name__)

_FUNCTION_TYPE = "function"


class OpenAIAdapter(ProviderAdapter):
    """Adapter for ``POST /v1/chat/completions``."""

    provider_name: ClassVar[str] = "openai"

    def _default_client(self, api_key: str) -> Any:
        try:
            from openai import AsyncOpenAI
        except ImportError as e:
            raise ConfigurationError(
                "openai package not installed", hint="pip install openai"
            ) from e
        return AsyncOpenAI(api_key=api_key, max_retries=0, timeout=self._timeout_s)

    async def _create(self, client: Any, request: dict[str, Any]) -> Any:
        return await client.chat.completions.create(**request)

    def sanitize_head(self, history: list[Message]) -> int:
        """Drop leading tool results; OpenAI rejects a tool message without its call."""
        removed = 0
        while history and (
            history[0].role == "tool" or history[0].has_function_call_results
        ):
            history.pop(0)
            removed += 1
        if removed:
            logger.debug("Removed %d orphaned tool result(s) from history head", removed)
        return removed

    def wire_prefix(self, locale: str | None) -> list[dict[str, Any]]:
        return [{"role": "system", "content": build_system_prompt(locale)}]

    def to_wire_messages(self, messages: Sequence[Message]) -> list[dict[str, Any]]:
        wire: list[dict[str, Any]] = []
        for message in messages:
            results = message.function_call_results
            if results:
                # One tool message per result, whatever role stored them.
                wire.extend(
                    {"role": "tool", "tool_call_id": r.id, "content": r.content}
                    for r in results
                )
                continue

            requests = message.function_call_requests
            if requests:
                wire.append(
                    {
                        "role": "assistant",
                        "content": message.text or None,
                        "tool_calls": [
                            {
                                "id": r.id,
                                "type": _FUNCTION_TYPE,
                                "function": {
                                    "name": r.function_name,
                                    "arguments": json.dumps(r.function_arguments),
                                },
                            }
                            for r in requests
                        ],
                    }
                )
                continue

            wire.append(
                {
                    "role": message.role,
                    "content": [
                        {"type": "text", "text": c.text}
                        for c in message.content
                        if isinstance(c, TextContent)
                    ],
                }
            )
        return wire

    def tool_declarations(self, tools: ToolRegistry) -> list[dict[str, Any]]:
        declarations: list[dict[str, Any]] = []
        for descriptor in tools.descriptors():
            params = descriptor.parameter_schema
            if descriptor.strict:
                params = to_strict_schema(params)
            declarations.append(
                {
                    "type": _FUNCTION_TYPE,
                    "function": {
                        "name": descriptor.name,
                        "strict": descriptor.strict,
                        "description": descriptor.description,
                        "parameters": params,
                    },
                }
            )
        return declarations

    def build_request(
        self,
        model: str,
        wire_messages: list[dict[str, Any]],
        *,
        tools: ToolRegistry | None,
        locale: str | None,
    ) -> dict[str, Any]:
        _ = locale  # carried by the system message
        request: dict[str, Any] = {
            "messages": wire_messages,
            "model": model,
            "temperature": self.settings.temperature,
            "n": 1,
            "max_tokens": self.settings.max_tokens_for(model),
        }
        if tools is not None and len(tools):
            request["tools"] = self.tool_declarations(tools)
        return request

    def is_tool_call_response(self, response: WireResponse) -> bool:
        if not response.ok:
            return False
        choice = _first_choice(response.payload)
        message = choice.get("message") or {}
        return choice.get("finish_reason") == "tool_calls" and bool(
            message.get("tool_calls")
        )

    def tool_call_message(self, response: WireResponse) -> Message:
        message = _first_choice(response.payload).get("message") or {}
        return self.from_wire_message({**message, "role": "assistant"})

    def from_wire_message(self, wire: dict[str, Any]) -> Message:
        """Parse one Chat Completions message back into a generic message."""
        role = wire.get("role")
        if role == "tool":
            return Message(
                "tool",
                [
                    FunctionCallResultContent(
                        wire["tool_call_id"], str(wire.get("content") or "")
                    )
                ],
            )
        content: list[Any] = []
        text = wire.get("content")
        if isinstance(text, str) and text:
            content.append(TextContent(text))
        elif isinstance(text, list):
            content.extend(
                TextContent(part["text"])
                for part in text
                if isinstance(part, dict) and part.get("type") == "text"
            )
        for call in wire.get("tool_calls") or []:
            function = call.get("function") or {}
            content.append(
                FunctionCallRequestContent(
                    id=call["id"],
                    function_type=call.get("type") or _FUNCTION_TYPE,
                    function_name=function.get("name", ""),
                    function_arguments=_parse_arguments(function.get("arguments")),
                )
            )
        return Message(role or "assistant", content or "")

    def _final_text(self, payload: dict[str, Any]) -> str:
        message = _first_choice(payload).get("message") or {}
        text = message.get("content")
        return text if isinstance(text, str) else ""


def _first_choice(payload: dict[str, Any]) -> dict[str, Any]:
    choices = payload.get("choices") or []
    first = choices[0] if choices else {}
    return first if isinstance(first, dict) else {}


def _parse_arguments(raw: Any) -> dict[str, Any]:
    """Decode the JSON-encoded ``arguments`` string of a tool call."""
    if isinstance(raw, dict):
        return raw
    if not raw:
        return {}
    try:
        args = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Discarding malformed tool call arguments: %r", raw)
        return {}
    return args if isinstance(args, dict) else {}
