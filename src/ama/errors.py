"""Exception hierarchy for ama."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterator


class AmaError(Exception):
    """Base exception for all ama errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint


class ConfigurationError(AmaError):
    """Configuration validation or resolution failed."""


class InternalError(AmaError):
    """An ama internal error (bug) or invariant violation."""


class DeserializationError(AmaError):
    """A persisted message could not be reconstructed.

    Raised instead of dropping the entry: a message that cannot be read back
    is a data-corruption signal.
    """


class UnknownToolError(AmaError):
    """The model referenced a tool that is not in the registry.

    The adapter's tool declarations and the registry are out of sync; this is
    a configuration bug and is never converted into a tool result.
    """

    def __init__(self, tool_name: str, *, hint: str | None = None) -> None:
        super().__init__(f"Unknown tool requested by model: {tool_name!r}", hint=hint)
        self.tool_name = tool_name


class APIError(AmaError):
    """HTTP API call failed.

    Carries retry metadata so callers can perform bounded retries without
    brittle substring matching.
    """

    def __init__(
        self,
        message: str,
        *,
        hint: str | None = None,
        retryable: bool | None = None,
        status_code: int | None = None,
        retry_after_s: float | None = None,
        provider: str | None = None,
        phase: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.retryable = retryable
        self.status_code = status_code
        self.retry_after_s = retry_after_s
        self.provider = provider
        self.phase = phase


class ProviderTransportError(APIError):
    """Calling an LLM provider failed (network, HTTP status, or decoding).

    Adapters recover from it locally by returning the message as the answer.
    """


class RateLimitError(ProviderTransportError):
    """Rate limit exceeded (HTTP 429)."""


class ToolExecutionError(APIError):
    """A tool call failed; recovered as an ``{"error": ...}`` tool result."""


def _walk_exception_chain(exc: BaseException) -> Iterator[BaseException]:
    """Yield *exc* and its ``__cause__``/``__context__`` chain, with cycle protection."""
    seen: set[int] = set()
    stack: list[BaseException] = [exc]
    while stack:
        cur = stack.pop()
        if id(cur) in seen:
            continue
        seen.add(id(cur))
        yield cur

        cause = cur.__cause__
        if isinstance(cause, BaseException):
            stack.append(cause)
        context = cur.__context__
        if isinstance(context, BaseException):
            stack.append(context)
