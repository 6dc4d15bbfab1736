"""Tool contract and registry.

A tool pairs a JSON-schema declaration (``ToolDescriptor``) with an async
``execute`` and a ``filter_response`` that shrinks the raw payload to what the
model should see. ``execute`` never raises for operational failures: it
returns ``{"error": "..."}`` so the model can react to the failure.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
import logging
from typing import TYPE_CHECKING, Any, ClassVar

import httpx

from ama.errors import ToolExecutionError, UnknownToolError

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Iterable, Iterator, Mapping

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ToolDescriptor:
    """Provider-neutral tool declaration."""

    name: str
    description: str
    parameter_schema: dict[str, Any] = field(
        default_factory=lambda: {
            "type": "object",
            "properties": {},
            "required": [],
            "additionalProperties": False,
        }
    )
    strict: bool = True


def tool_error(message: str) -> dict[str, str]:
    """Build the error payload a tool returns instead of raising."""
    return {"error": message}


def is_tool_error(payload: Any) -> bool:
    """Whether *payload* is an ``{"error": ...}`` tool result."""
    return isinstance(payload, dict) and isinstance(payload.get("error"), str)


class Tool(ABC):
    """Base class for built-in tools."""

    descriptor: ClassVar[ToolDescriptor]

    @property
    def name(self) -> str:
        return self.descriptor.name

    async def execute(self, args: Mapping[str, Any]) -> Any:
        """Run the tool, converting failures into an error payload."""
        try:
            return await self._execute(args)
        except asyncio.CancelledError:
            raise
        except ToolExecutionError as e:
            logger.warning("Tool %s failed: %s", self.name, e)
            return tool_error(str(e))
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Tool %s failed with %s: %s", self.name, type(e).__name__, e)
            return tool_error(f"{self.name} failed: {type(e).__name__}")
        except Exception as e:
            logger.exception("Tool %s raised %s", self.name, type(e).__name__)
            return tool_error(f"{self.name} failed: {type(e).__name__}")

    @abstractmethod
    async def _execute(self, args: Mapping[str, Any]) -> Any:
        """Return the raw payload or raise ToolExecutionError."""

    def filter_response(self, payload: Any) -> str | object:
        """Reduce a raw payload to what the model should see."""
        return payload


class HttpTool(Tool):
    """Tool that talks HTTP, optionally through a shared client."""

    def __init__(
        self,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        self._shared_client = client
        self._timeout_s = timeout_s

    @asynccontextmanager
    async def _client(self) -> AsyncIterator[httpx.AsyncClient]:
        if self._shared_client is not None:
            yield self._shared_client
            return
        async with httpx.AsyncClient(
            timeout=self._timeout_s, follow_redirects=True
        ) as client:
            yield client


class ToolRegistry:
    """Fixed set of tools addressable by name."""

    def __init__(self, tools: Iterable[Tool] = ()) -> None:
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    def register(self, tool: Tool) -> None:
        """Register a tool by its descriptor name."""
        self._tools[tool.name] = tool
        logger.debug("Registered tool: %s", tool.name)

    def get(self, name: str) -> Tool:
        """Return the tool called *name*.

        Raises:
            UnknownToolError: When no such tool is registered.
        """
        try:
            return self._tools[name]
        except KeyError:
            raise UnknownToolError(
                name,
                hint=f"Registered tools: {', '.join(self._tools) or 'none'}",
            ) from None

    def names(self) -> list[str]:
        return list(self._tools)

    def descriptors(self) -> list[ToolDescriptor]:
        return [tool.descriptor for tool in self._tools.values()]

    def __contains__(self, name: object) -> bool:
        return name in self._tools

    def __iter__(self) -> Iterator[Tool]:
        return iter(self._tools.values())

    def __len__(self) -> int:
        return len(self._tools)
