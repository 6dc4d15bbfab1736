"""Current date/time tool."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, ClassVar

from ama.tools.base import Tool, ToolDescriptor

if TYPE_CHECKING:
    from collections.abc import Mapping


def utc_now_iso() -> str:
    """Current UTC time as ISO-8601 with milliseconds and a ``Z`` suffix."""
    now = datetime.now(timezone.utc)
    return now.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class CurrentDateTimeTool(Tool):
    """Returns the current date and time."""

    descriptor: ClassVar[ToolDescriptor] = ToolDescriptor(
        name="get_current_date_time",
        description=(
            "Get the current date and time. Call this whenever you need to get "
            "the current date and time."
        ),
    )

    async def _execute(self, args: Mapping[str, Any]) -> str:
        _ = args
        return utc_now_iso()
