"""Test helpers (small, reusable doubles).

Keep this file tiny and purpose-built: fake SDK clients are injected through
the adapter's ``client_factory`` so no test ever reaches a provider.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from types import SimpleNamespace
from typing import Any, ClassVar

from ama.errors import ToolExecutionError
from ama.tools.base import Tool, ToolDescriptor

# =============================================================================
# Fake SDK clients
# =============================================================================


@dataclass
class ScriptedClient:
    """Stands in for both ``AsyncOpenAI`` and ``AsyncAnthropic``.

    Each ``create`` call pops the next scripted item: a response dict is
    returned, an exception is raised. Requests are recorded for assertions.
    """

    script: list[dict[str, Any] | BaseException] = field(default_factory=list)
    requests: list[dict[str, Any]] = field(default_factory=list)
    closed: bool = False

    def __post_init__(self) -> None:
        self.chat = SimpleNamespace(completions=SimpleNamespace(create=self._create))
        self.messages = SimpleNamespace(create=self._create)

    async def _create(self, **kwargs: Any) -> dict[str, Any]:
        self.requests.append(kwargs)
        if not self.script:
            raise AssertionError("ScriptedClient ran out of scripted responses")
        item = self.script.pop(0)
        if isinstance(item, BaseException):
            raise item
        return item

    async def close(self) -> None:
        self.closed = True


def factory_for(client: ScriptedClient, keys: list[str] | None = None):
    """Return a ``client_factory`` that always hands out *client*."""

    def _factory(api_key: str) -> ScriptedClient:
        if keys is not None:
            keys.append(api_key)
        return client

    return _factory


# =============================================================================
# Scripted provider responses
# =============================================================================


def openai_text(text: str | None) -> dict[str, Any]:
    return {
        "id": "chatcmpl-1",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "finish_reason": "stop",
                "message": {"role": "assistant", "content": text},
            }
        ],
    }


def openai_tool_calls(*calls: tuple[str, str, str], text: str | None = None) -> dict[str, Any]:
    """Build a tool-call completion from ``(id, name, arguments_json)`` tuples."""
    return {
        "id": "chatcmpl-2",
        "object": "chat.completion",
        "choices": [
            {
                "index": 0,
                "finish_reason": "tool_calls",
                "message": {
                    "role": "assistant",
                    "content": text,
                    "tool_calls": [
                        {
                            "id": call_id,
                            "type": "function",
                            "function": {"name": name, "arguments": arguments},
                        }
                        for call_id, name, arguments in calls
                    ],
                },
            }
        ],
    }


def anthropic_text(*texts: str) -> dict[str, Any]:
    return {
        "id": "msg_1",
        "type": "message",
        "role": "assistant",
        "stop_reason": "end_turn",
        "content": [{"type": "text", "text": t} for t in texts],
    }


def anthropic_tool_use(
    *calls: tuple[str, str, dict[str, Any]], text: str | None = None
) -> dict[str, Any]:
    """Build a tool-use message from ``(id, name, input)`` tuples."""
    blocks: list[dict[str, Any]] = []
    if text:
        blocks.append({"type": "text", "text": text})
    blocks.extend(
        {"type": "tool_use", "id": call_id, "name": name, "input": args}
        for call_id, name, args in calls
    )
    return {
        "id": "msg_2",
        "type": "message",
        "role": "assistant",
        "stop_reason": "tool_use",
        "content": blocks,
    }


# =============================================================================
# Fake tools
# =============================================================================


class EchoTool(Tool):
    """Returns its ``value`` argument after an optional delay."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="echo",
        description="Echo a value back.",
        parameter_schema={
            "type": "object",
            "properties": {
                "value": {"type": "string", "description": "Value to echo."},
                "delay": {"type": "number", "description": "Seconds to wait."},
            },
            "required": ["value"],
        },
    )

    def __init__(self) -> None:
        self.calls: list[dict[str, Any]] = []
        self.completed: list[str] = []

    async def _execute(self, args: Any) -> dict[str, Any]:
        self.calls.append(dict(args))
        delay = args.get("delay")
        if delay:
            await asyncio.sleep(delay)
        self.completed.append(args["value"])
        return {"echo": args["value"]}


class FailingTool(Tool):
    """Always fails with ``boom``."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="fail", description="Always fails."
    )

    async def _execute(self, args: Any) -> Any:
        _ = args
        raise ToolExecutionError("boom")


class CrashingTool(Tool):
    """Raises an unexpected ``RuntimeError`` while running."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="crash", description="Crashes."
    )

    async def _execute(self, args: Any) -> Any:
        _ = args
        raise RuntimeError("unexpected")


class BrokenFilterTool(Tool):
    """Runs fine but cannot filter its own output."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="broken_filter", description="Returns output its filter rejects."
    )

    async def _execute(self, args: Any) -> Any:
        _ = args
        return ["not", "a", "mapping"]

    def filter_response(self, payload: Any) -> Any:
        return payload["items"]
