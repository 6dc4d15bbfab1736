"""Web search tool backed by Google Programmable Search."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, ClassVar

from ama.errors import ToolExecutionError
from ama.tools.base import HttpTool, ToolDescriptor

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    import httpx

logger = logging.getLogger(__name__)

GOOGLE_PSE_URL = "https://www.googleapis.com/customsearch/v1"
MAX_RESULTS = 5


class GooglePse:
    """Google Programmable Search Engine client."""

    id = "google"

    def __init__(self, search_engine_id: str | None, api_key: str | None) -> None:
        self.search_engine_id = search_engine_id
        self.api_key = api_key

    async def search(self, client: httpx.AsyncClient, query: str) -> dict[str, Any]:
        if not self.search_engine_id or not self.api_key:
            raise ToolExecutionError(
                "Web search is not configured.",
                hint="Set GOOGLE_PSE_SEARCH_ENGINE_ID and GOOGLE_PSE_API_KEY.",
            )
        response = await client.get(
            GOOGLE_PSE_URL,
            params={"key": self.api_key, "cx": self.search_engine_id, "q": query},
            headers={"Accept-Encoding": "gzip, deflate"},
        )
        if not response.is_success:
            logger.error(
                "Failed to search the web for %r (status=%d)", query, response.status_code
            )
            raise ToolExecutionError(
                "Failed to search the web.",
                status_code=response.status_code,
                phase="search",
            )
        try:
            payload = response.json()
        except ValueError as e:
            raise ToolExecutionError("Failed to search the web.", phase="search") from e
        if not isinstance(payload, dict):
            raise ToolExecutionError("Failed to search the web.", phase="search")
        return payload


class WebSearchTool(HttpTool):
    """Searches the web and returns the top, blocklist-filtered links."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="web_search",
        description=(
            "Search the web for information. Call this whenever you need to search "
            "the web for information, for example when a user asks 'How is the "
            "weather today in London', then rephrase the query to optimize it for "
            "a web search and call the function with the query. Then, use the links "
            "provided in the search result to retrieve the content of a web page "
            "with the get_webpage_content tool. Do not just respond with the URLs "
            "to the user. Do not allow the user to ask for illegal things."
        ),
        parameter_schema={
            "type": "object",
            "properties": {
                "query": {
                    "type": "string",
                    "description": "The search query for the web search.",
                },
            },
            "required": ["query"],
            "additionalProperties": False,
        },
    )

    def __init__(
        self,
        engine: GooglePse,
        *,
        blocklist: Iterable[str] = (),
        max_results: int = MAX_RESULTS,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = 30.0,
    ) -> None:
        super().__init__(client=client, timeout_s=timeout_s)
        self.engine = engine
        self.blocklist = tuple(blocklist)
        self.max_results = max_results

    async def _execute(self, args: Mapping[str, Any]) -> dict[str, Any]:
        query = args.get("query")
        if not isinstance(query, str) or not query.strip():
            raise ToolExecutionError("A non-empty 'query' argument is required.")
        logger.debug("Searching the web for %r using %r", query, self.engine.id)
        async with self._client() as client:
            return await self.engine.search(client, query)

    def filter_response(self, payload: Any) -> list[dict[str, str]]:
        """Keep id, title and link of the first non-blocklisted results."""
        items = payload.get("items") if isinstance(payload, dict) else None
        results: list[dict[str, str]] = []
        for i, item in enumerate(items if isinstance(items, list) else []):
            if not isinstance(item, dict):
                continue
            link = str(item.get("link", ""))
            if any(domain in link for domain in self.blocklist):
                continue
            results.append(
                {"id": f"search_result_{i}", "title": str(item.get("title", "")), "link": link}
            )
            if len(results) >= self.max_results:
                break
        return results
