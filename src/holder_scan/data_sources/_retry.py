"""
Shared async HTTP helpers and the retry/backoff loop.

The HTTP helpers make exactly one attempt and translate every failure into
the package error taxonomy (``errors.py``).  Retrying is done once, by the
request scheduler, through :func:`retry_with_backoff`; nothing else in the
code base loops on failures.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

import httpx

from ..errors import (
    MalformedResponseError,
    RateLimitError,
    TransientNetworkError,
    UpstreamError,
)

logger = logging.getLogger(__name__)

# Gateway errors are returned by load balancers in front of RPC nodes while
# the node itself is healthy; they clear on their own.
_TRANSIENT_STATUSES = frozenset({502, 503, 504})
# JSON-RPC error codes that mean "slow down" or "try again shortly"
_RPC_RATE_LIMIT_CODES = frozenset({-32429})
_RPC_TRANSIENT_CODES = frozenset({-32004, -32005})


def _parse_retry_after(resp: httpx.Response, default: Optional[float] = None) -> Optional[float]:
    """Extract wait time from a ``Retry-After`` header, or use *default*.

    The header may be an integer (seconds) or an HTTP-date.  We only handle
    the integer form since that's what most APIs emit.
    """
    raw = resp.headers.get("retry-after")
    if raw is not None:
        try:
            return max(float(raw), 0.5)
        except (ValueError, TypeError):
            pass
    return default


def _check_status(resp: httpx.Response, label: str) -> None:
    status = resp.status_code
    if status == 429:
        raise RateLimitError(f"{label} rate-limited (HTTP 429)", _parse_retry_after(resp))
    if status in _TRANSIENT_STATUSES:
        raise TransientNetworkError(f"{label} HTTP {status}")
    if status >= 400:
        raise UpstreamError(f"{label} HTTP {status}", status=status)


def _decode_json(resp: httpx.Response, label: str) -> Any:
    try:
        return resp.json()
    except ValueError as exc:
        raise MalformedResponseError(f"{label} returned a non-JSON body") from exc


async def async_http_get(
    client: httpx.AsyncClient,
    url: str,
    *,
    params: Optional[dict[str, Any]] = None,
    label: str = "HTTP",
) -> Any:
    """GET *url* once and return the parsed JSON body.

    Raises ``TransientNetworkError`` / ``RateLimitError`` for retryable
    failures, ``UpstreamError`` for other HTTP errors and
    ``MalformedResponseError`` for bodies that are not JSON.
    """
    try:
        resp = await client.get(url, params=params)
    except httpx.TimeoutException as exc:
        raise TransientNetworkError(f"{label} timed out: {exc}") from exc
    except httpx.TransportError as exc:
        raise TransientNetworkError(f"{label} connection failed: {exc}") from exc
    _check_status(resp, label)
    return _decode_json(resp, label)


async def async_http_post_json(
    client: httpx.AsyncClient,
    url: str,
    *,
    json_payload: Any,
    label: str = "RPC",
) -> Any:
    """POST a JSON-RPC *payload* once and return its ``result``.

    A JSON-RPC ``error`` object is mapped onto the same taxonomy as HTTP
    errors.  A ``null`` result is returned as ``None``.
    """
    try:
        resp = await client.post(url, json=json_payload)
    except httpx.TimeoutException as exc:
        raise TransientNetworkError(f"{label} timed out: {exc}") from exc
    except httpx.TransportError as exc:
        raise TransientNetworkError(f"{label} connection failed: {exc}") from exc
    _check_status(resp, label)
    body = _decode_json(resp, label)
    if not isinstance(body, dict):
        raise MalformedResponseError(f"{label} returned {type(body).__name__}, expected an object")
    error = body.get("error")
    if error:
        code = error.get("code") if isinstance(error, dict) else None
        message = error.get("message", error) if isinstance(error, dict) else error
        if code in _RPC_RATE_LIMIT_CODES:
            raise RateLimitError(f"{label} rate-limited: {message}")
        if code in _RPC_TRANSIENT_CODES:
            raise TransientNetworkError(f"{label} error {code}: {message}")
        raise UpstreamError(f"{label} error {code}: {message}", code=code)
    if "result" not in body:
        raise MalformedResponseError(f"{label} response has neither result nor error")
    return body["result"]


async def retry_with_backoff(
    fn: Callable[[], Awaitable[Any]],
    *,
    max_retries: int = 3,
    backoff_base: float = 1.0,
    label: str = "request",
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    before_attempt: Optional[Callable[[], Awaitable[Any]]] = None,
) -> Any:
    """Call *fn*, retrying up to *max_retries* times on transient failures.

    The delay before retry ``n`` (0-based) is ``backoff_base * 2**n``, or the
    server's ``Retry-After`` hint when that is longer.  *before_attempt*
    runs ahead of every attempt, retries included; the scheduler uses it to
    take a rate-limit token.  Non-transient errors propagate untouched.
    """
    attempt = 0
    while True:
        if before_attempt is not None:
            await before_attempt()
        try:
            return await fn()
        except TransientNetworkError as exc:
            if attempt >= max_retries:
                logger.warning("%s failed after %d retries: %s", label, max_retries, exc)
                raise
            wait = backoff_base * (2 ** attempt)
            retry_after = getattr(exc, "retry_after", None)
            if retry_after is not None and retry_after > wait:
                wait = retry_after
            logger.warning("%s transient failure (%s), retry in %.1fs", label, exc, wait)
            await sleep(wait)
            attempt += 1
