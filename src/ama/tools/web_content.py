"""Web page content tool: fetch a URL and reduce it to its visible text."""

from __future__ import annotations

import logging
import re
from typing import TYPE_CHECKING, Any, ClassVar

from bs4 import BeautifulSoup

from ama.errors import ToolExecutionError
from ama.tools.base import HttpTool, ToolDescriptor

if TYPE_CHECKING:
    from collections.abc import Mapping

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_USER_AGENT = "Mozilla/5.0 (compatible; ama-assistant/1.0)"


def extract_visible_text(document: bytes | str) -> str:
    """Return the whitespace-collapsed visible text of an HTML document.

    Bytes are decoded with BeautifulSoup's encoding detection (declared
    charset, byte-order mark, then content sniffing).
    """
    soup = BeautifulSoup(document, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    root = soup.body or soup
    return _WHITESPACE_RE.sub(" ", root.get_text(separator=" ")).strip()


class WebContentTool(HttpTool):
    """Retrieves a web page so the model can read it."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="get_webpage_content",
        description=(
            "Retrieve the content of a web page. Use this whenever you need to get "
            "the HTML content of a specific web page URL."
        ),
        parameter_schema={
            "type": "object",
            "properties": {
                "url": {
                    "type": "string",
                    "description": "The URL of the web page to retrieve.",
                },
            },
            "required": ["url"],
            "additionalProperties": False,
        },
    )

    async def _execute(self, args: Mapping[str, Any]) -> bytes:
        url = args.get("url")
        if not isinstance(url, str) or not url.startswith(("http://", "https://")):
            raise ToolExecutionError(f"Invalid URL: {url!r}")
        logger.debug("Retrieving web page content from %s", url)
        async with self._client() as client:
            response = await client.get(
                url, headers={"User-Agent": _USER_AGENT}, follow_redirects=True
            )
        if not response.is_success:
            logger.warning("Fetching %s failed (status=%d)", url, response.status_code)
            raise ToolExecutionError(
                "Unable to retrieve web page content.",
                status_code=response.status_code,
                phase="fetch",
            )
        return response.content

    def filter_response(self, payload: Any) -> str:
        text = extract_visible_text(payload)
        logger.debug("Filtered web page content to %d chars", len(text))
        return text
