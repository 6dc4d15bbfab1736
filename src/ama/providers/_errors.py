"""Shared provider-side error helpers.

Providers attach retry metadata via ProviderTransportError so core retry logic
can be bounded and deterministic without brittle substring matching.
"""

from __future__ import annotations

import asyncio
from typing import Any

import httpx

from ama._http import RETRYABLE_STATUS_CODES
from ama.errors import (
    APIError,
    ProviderTransportError,
    RateLimitError,
    _walk_exception_chain,
)


def extract_status_code(exc: BaseException) -> int | None:
    """Walk the exception chain to find an HTTP status code."""
    for e in _walk_exception_chain(exc):
        for attr in ("status_code", "status"):
            value = getattr(e, attr, None)
            if isinstance(value, int) and 100 <= value <= 599:
                return value
        response = getattr(e, "response", None)
        value = getattr(response, "status_code", None)
        if isinstance(value, int) and 100 <= value <= 599:
            return value
    return None


def extract_retry_after_s(exc: BaseException) -> float | None:
    """Walk the exception chain to find a retry-after delay in seconds."""
    for e in _walk_exception_chain(exc):
        value = getattr(e, "retry_after", None)
        if isinstance(value, (int, float)) and value >= 0:
            return float(value)

        response = getattr(e, "response", None)
        headers: Any = getattr(response, "headers", None)
        if headers is None:
            continue
        raw: Any = None
        try:
            raw = headers.get("Retry-After")
        except Exception:
            raw = None
        if isinstance(raw, str) and raw.strip():
            try:
                seconds = float(raw)
            except ValueError:
                continue
            if seconds >= 0:
                return seconds
    return None


def extract_api_message(exc: BaseException) -> str | None:
    """Return the provider's own error message from an SDK error body.

    Both SDKs expose the decoded JSON body as ``.body``, shaped like
    ``{"error": {"message": "..."}}`` (OpenAI) or
    ``{"type": "error", "error": {"type": "...", "message": "..."}}`` (Anthropic).
    """
    for e in _walk_exception_chain(exc):
        body: Any = getattr(e, "body", None)
        if not isinstance(body, dict):
            continue
        error = body.get("error", body)
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
    return None


def _auth_hint(provider: str, status_code: int | None) -> str | None:
    """Generate a hint for auth errors where naming the env var is useful."""
    if status_code in {401, 403}:
        env_var = "ANTHROPIC_API_KEY" if provider == "anthropic" else "OPENAI_API_KEY"
        return f"Check credentials (the user's key, or the platform default {env_var})."
    return None


def wrap_provider_error(
    exc: BaseException,
    *,
    provider: str,
    phase: str,
    message: str | None = None,
) -> ProviderTransportError:
    """Map provider SDK or transport exceptions into ProviderTransportError."""
    if isinstance(exc, asyncio.CancelledError):
        raise exc

    if isinstance(exc, ProviderTransportError):
        if exc.provider is None:
            exc.provider = provider
        if exc.phase is None:
            exc.phase = phase
        return exc

    status_code = extract_status_code(exc)
    retry_after_s = extract_retry_after_s(exc)

    retryable = retry_after_s is not None
    if isinstance(status_code, int) and status_code in RETRYABLE_STATUS_CODES:
        retryable = True
    else:
        for e in _walk_exception_chain(exc):
            if isinstance(e, (httpx.TimeoutException, httpx.RequestError)):
                retryable = True
                break

    hint = exc.hint if isinstance(exc, APIError) else _auth_hint(provider, status_code)
    msg = message or f"{provider} {phase} failed"
    cause = extract_api_message(exc) or str(exc)

    err_cls: type[ProviderTransportError] = ProviderTransportError
    if status_code == 429:
        err_cls = RateLimitError

    status_note = f" (status={status_code})" if isinstance(status_code, int) else ""
    return err_cls(
        f"{msg}{status_note}: {cause}" if cause else f"{msg}{status_note}",
        hint=hint,
        retryable=retryable,
        status_code=status_code,
        retry_after_s=retry_after_s,
        provider=provider,
        phase=phase,
    )
