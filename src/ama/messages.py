"""Provider-independent conversation messages.

A ``Message`` is a role plus an ordered tuple of typed content items. Messages
are immutable once created; the conversation only ever grows at the tail and
is trimmed at the head by the history store.

Persisted form (JSON)::

    {"role": "assistant",
     "content": [{"type": "function_call_request", "id": "call_1",
                  "functionType": "function", "functionName": "web_search",
                  "functionArguments": {"query": "weather london"}}]}
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
import json
from typing import Any, Literal, Union

from ama.errors import DeserializationError

Role = Literal["system", "user", "assistant", "tool"]
ROLES: frozenset[str] = frozenset({"system", "user", "assistant", "tool"})

TEXT = "text"
FUNCTION_CALL_REQUEST = "function_call_request"
FUNCTION_CALL_RESULT = "function_call_result"


@dataclass(frozen=True)
class TextContent:
    """Plain text."""

    text: str
    type: str = field(default=TEXT, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "text": self.text}


@dataclass(frozen=True)
class FunctionCallRequestContent:
    """The model asking to invoke a tool."""

    id: str
    function_type: str
    function_name: str
    function_arguments: dict[str, Any] = field(default_factory=dict)
    type: str = field(default=FUNCTION_CALL_REQUEST, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "id": self.id,
            "functionType": self.function_type,
            "functionName": self.function_name,
            "functionArguments": self.function_arguments,
        }


@dataclass(frozen=True)
class FunctionCallResultContent:
    """Result of a tool invocation, correlated to a request by ``id``."""

    id: str
    content: str
    type: str = field(default=FUNCTION_CALL_RESULT, init=False)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.id, "content": self.content}


MessageContent = Union[TextContent, FunctionCallRequestContent, FunctionCallResultContent]
_CONTENT_TYPES = (TextContent, FunctionCallRequestContent, FunctionCallResultContent)


def content_from_dict(data: Mapping[str, Any]) -> MessageContent:
    """Rebuild one content item from its persisted form.

    Raises:
        DeserializationError: When ``type`` is missing or unknown, or a
            required key for that type is absent.
    """
    content_type = data.get("type")
    try:
        if content_type == TEXT:
            return TextContent(str(data["text"]))
        if content_type == FUNCTION_CALL_REQUEST:
            arguments = data.get("functionArguments") or {}
            if not isinstance(arguments, Mapping):
                raise DeserializationError(
                    f"functionArguments must be an object, got {type(arguments).__name__}"
                )
            return FunctionCallRequestContent(
                id=str(data["id"]),
                function_type=str(data.get("functionType") or "function"),
                function_name=str(data["functionName"]),
                function_arguments=dict(arguments),
            )
        if content_type == FUNCTION_CALL_RESULT:
            return FunctionCallResultContent(
                id=str(data["id"]), content=str(data["content"])
            )
    except KeyError as e:
        raise DeserializationError(
            f"Message content of type {content_type!r} is missing key {e.args[0]!r}"
        ) from e
    raise DeserializationError(
        f"Unknown message content type: {content_type!r}",
        hint="The stored history may be corrupted or written by a newer version.",
    )


def _normalize_content(
    content: str | MessageContent | Mapping[str, Any] | list[Any] | tuple[Any, ...],
) -> tuple[MessageContent, ...]:
    if isinstance(content, str):
        return (TextContent(content),)
    if isinstance(content, (*_CONTENT_TYPES, Mapping)):
        content = [content]
    items: list[MessageContent] = []
    for element in content:
        if isinstance(element, _CONTENT_TYPES):
            items.append(element)
        elif isinstance(element, Mapping):
            items.append(content_from_dict(element))
        else:
            raise TypeError(
                f"Unsupported message content element: {type(element).__name__}"
            )
    return tuple(items)


@dataclass(frozen=True)
class Message:
    """A single conversation entry.

    ``content`` accepts a plain string (one ``TextContent``), content objects,
    or plain dicts as read back from storage.
    """

    role: Role
    content: tuple[MessageContent, ...]

    def __init__(
        self,
        role: Role,
        content: str | MessageContent | Mapping[str, Any] | list[Any] | tuple[Any, ...],
    ) -> None:
        if role not in ROLES:
            raise ValueError(f"Unknown message role: {role!r}")
        items = _normalize_content(content)
        if not items:
            raise ValueError("A message must have at least one content item")
        object.__setattr__(self, "role", role)
        object.__setattr__(self, "content", items)

    @property
    def text(self) -> str:
        """Text items joined with blank lines (empty when there are none)."""
        return "\n\n".join(c.text for c in self.content if isinstance(c, TextContent))

    @property
    def function_call_requests(self) -> list[FunctionCallRequestContent]:
        return [c for c in self.content if isinstance(c, FunctionCallRequestContent)]

    @property
    def function_call_results(self) -> list[FunctionCallResultContent]:
        return [c for c in self.content if isinstance(c, FunctionCallResultContent)]

    @property
    def has_function_call_requests(self) -> bool:
        return any(isinstance(c, FunctionCallRequestContent) for c in self.content)

    @property
    def has_function_call_results(self) -> bool:
        return any(isinstance(c, FunctionCallResultContent) for c in self.content)

    def to_dict(self) -> dict[str, Any]:
        return {"role": self.role, "content": [c.to_dict() for c in self.content]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False)

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Message:
        """Rebuild a message from its persisted form.

        Raises:
            DeserializationError: For unknown roles, empty or malformed content.
        """
        if not isinstance(data, Mapping):
            raise DeserializationError(
                f"Stored message must be an object, got {type(data).__name__}"
            )
        role = data.get("role")
        if not isinstance(role, str) or role not in ROLES:
            raise DeserializationError(f"Unknown message role: {role!r}")
        content = data.get("content")
        if not isinstance(content, (str, list)) or not content:
            raise DeserializationError(f"Stored {role} message has no content")
        if isinstance(content, list) and not all(
            isinstance(c, Mapping) for c in content
        ):
            raise DeserializationError(
                f"Stored {role} message content must be a list of objects"
            )
        return cls(role, content)

    @classmethod
    def from_json(cls, text: str) -> Message:
        try:
            data = json.loads(text)
        except json.JSONDecodeError as e:
            raise DeserializationError(f"Stored message is not valid JSON: {e}") from e
        return cls.from_dict(data)
