"""Built-in tools: clock, web search, and web page content."""

from __future__ import annotations

from typing import TYPE_CHECKING

from ama.tools.base import (
    HttpTool,
    Tool,
    ToolDescriptor,
    ToolRegistry,
    is_tool_error,
    tool_error,
)
from ama.tools.clock import CurrentDateTimeTool
from ama.tools.web_content import WebContentTool
from ama.tools.web_search import GooglePse, WebSearchTool

if TYPE_CHECKING:
    import httpx

    from ama.config import Config


def default_registry(
    config: Config, *, client: httpx.AsyncClient | None = None
) -> ToolRegistry:
    """Build the registry of built-in tools.

    Args:
        config: Supplies search credentials, blocklist and timeouts.
        client: Optional per-process HTTP client shared by the web tools.
    """
    timeout_s = config.request_timeout_s
    return ToolRegistry(
        [
            CurrentDateTimeTool(),
            WebSearchTool(
                GooglePse(config.google_pse_search_engine_id, config.google_pse_api_key),
                blocklist=config.search_blocklist or (),
                client=client,
                timeout_s=timeout_s,
            ),
            WebContentTool(client=client, timeout_s=timeout_s),
        ]
    )


__all__ = [
    "CurrentDateTimeTool",
    "GooglePse",
    "HttpTool",
    "Tool",
    "ToolDescriptor",
    "ToolRegistry",
    "WebContentTool",
    "WebSearchTool",
    "default_registry",
    "is_tool_error",
    "tool_error",
]
