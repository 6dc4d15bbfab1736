"""Per-user conversation persistence.

Defines the `HistoryStore` protocol the orchestrator consumes, plus an
in-memory store and a simple single-file `JSONHistoryStore`.

A store hands out its history list by reference: messages appended through
``add_message_to_history`` show up in the list the caller already holds.
"""

from __future__ import annotations

import hashlib
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any, Protocol

from ama.errors import DeserializationError
from ama.messages import Message

if TYPE_CHECKING:
    import os

    from ama.config import Config

logger = logging.getLogger(__name__)

DEFAULT_MAX_HISTORY_LENGTH = 20


class HistoryStore(Protocol):
    """Protocol for one user's settings and conversation history."""

    async def get_api_key(self) -> str | None:
        """User-supplied API key, if any."""
        ...

    async def get_llm_model(self) -> str | None:
        """User-selected model, if any."""
        ...

    async def get_llm_provider_id(self) -> str | None:
        """User-selected provider id (``"OpenAI"`` or ``"Anthropic"``), if any."""
        ...

    async def get_message_history(self) -> list[Message]:
        """The live history list (mutated by ``add_message_to_history``)."""
        ...

    async def add_message_to_history(self, message: Message) -> None:
        """Append, truncate to the retained maximum and save durably."""
        ...


def trim_history(history: list[Message], max_length: int) -> int:
    """Truncate *history* in place to *max_length* entries, oldest first.

    Truncation can cut between a tool call and its results; leading tool
    results are dropped afterwards so the head is never orphaned.

    Returns:
        Number of messages removed.
    """
    removed = 0
    excess = len(history) - max_length
    if excess > 0:
        del history[:excess]
        removed += excess
    while history and (history[0].role == "tool" or history[0].has_function_call_results):
        history.pop(0)
        removed += 1
    if removed:
        logger.debug("Trimmed %d message(s) from history head", removed)
    return removed


class InMemoryHistoryStore:
    """Process-local store, for tests and single-session hosts."""

    def __init__(
        self,
        *,
        max_length: int = DEFAULT_MAX_HISTORY_LENGTH,
        api_key: str | None = None,
        model: str | None = None,
        provider_id: str | None = None,
        messages: list[Message] | None = None,
    ) -> None:
        self.max_length = max_length
        self.api_key = api_key
        self.model = model
        self.provider_id = provider_id
        self.messages: list[Message] = list(messages or ())

    @classmethod
    def from_config(cls, config: Config, **kwargs: Any) -> InMemoryHistoryStore:
        """Create a store retaining ``config.max_history_length`` messages."""
        return cls(max_length=config.max_history_length, **kwargs)

    async def get_api_key(self) -> str | None:
        return self.api_key

    async def get_llm_model(self) -> str | None:
        return self.model

    async def get_llm_provider_id(self) -> str | None:
        return self.provider_id

    async def get_message_history(self) -> list[Message]:
        return self.messages

    async def add_message_to_history(self, message: Message) -> None:
        self.messages.append(message)
        trim_history(self.messages, self.max_length)


class JSONHistoryStore:
    """Single JSON file mapping hashed user ids to settings and history.

    Uses copy-on-write: write to a temp file and rename for atomicity.
    Shape saved per user key (SHA-256 of the user id):
      {
        "api_key": str | null,
        "llm_model": str | null,
        "llm_provider_id": str | null,
        "messages": [<Message.to_dict()>, ...]
      }
    """

    def __init__(
        self,
        path: str | os.PathLike[str],
        user_id: str,
        *,
        max_length: int = DEFAULT_MAX_HISTORY_LENGTH,
    ) -> None:
        """Initialize the store for *user_id* backed by a JSON file path."""
        self._path = Path(path)
        self._key = hashlib.sha256(user_id.encode("utf-8")).hexdigest()
        self.max_length = max_length
        self._messages: list[Message] | None = None

    @classmethod
    def from_config(
        cls, path: str | os.PathLike[str], user_id: str, config: Config
    ) -> JSONHistoryStore:
        """Create a store retaining ``config.max_history_length`` messages."""
        return cls(path, user_id, max_length=config.max_history_length)

    async def get_api_key(self) -> str | None:
        return _optional_str(self._entry().get("api_key"))

    async def get_llm_model(self) -> str | None:
        return _optional_str(self._entry().get("llm_model"))

    async def get_llm_provider_id(self) -> str | None:
        return _optional_str(self._entry().get("llm_provider_id"))

    async def set_llm_settings(
        self,
        *,
        api_key: str | None = None,
        model: str | None = None,
        provider_id: str | None = None,
    ) -> None:
        """Save the user's API key, model and provider choice."""
        data = self._read_all()
        entry = data.get(self._key)
        if not isinstance(entry, dict):
            entry = {"messages": []}
        entry["api_key"] = api_key
        entry["llm_model"] = model
        entry["llm_provider_id"] = provider_id
        data[self._key] = entry
        self._write_all(data)

    async def get_message_history(self) -> list[Message]:
        """Load the history once; later calls return the same list."""
        if self._messages is None:
            raw = self._entry().get("messages", [])
            if not isinstance(raw, list):
                raise DeserializationError(
                    "Persisted history is not a list",
                    hint=f"Inspect or remove the entry in {self._path}",
                )
            self._messages = [Message.from_dict(item) for item in raw]
        return self._messages

    async def add_message_to_history(self, message: Message) -> None:
        history = await self.get_message_history()
        history.append(message)
        trim_history(history, self.max_length)
        data = self._read_all()
        entry = data.get(self._key)
        if not isinstance(entry, dict):
            entry = {}
        entry["messages"] = [m.to_dict() for m in history]
        data[self._key] = entry
        self._write_all(data)

    def _entry(self) -> dict[str, Any]:
        entry = self._read_all().get(self._key)
        return entry if isinstance(entry, dict) else {}

    def _read_all(self) -> dict[str, Any]:
        """Read and deserialize the entire JSON file into a mapping."""
        if not self._path.exists():
            return {}
        try:
            result = json.loads(self._path.read_text(encoding="utf-8"))
        except ValueError as e:
            raise DeserializationError(
                f"History file {self._path} is not valid JSON",
                hint="Restore it from a backup or delete it to start fresh.",
            ) from e
        return result if isinstance(result, dict) else {}

    def _write_all(self, data: dict[str, Any]) -> None:
        """Persist data atomically via temp file rename."""
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, ensure_ascii=False), encoding="utf-8")
        tmp.replace(self._path)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value else None
