"""Retry wrapper for stream initiation."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator, Callable
from dataclasses import dataclass
from typing import Any, TypeVar

import httpx
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from aicore_llm.config import Settings
from aicore_llm.errors import MidStreamError, TransportError

T = TypeVar("T")

_NOTHING: Any = object()

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Bounded exponential backoff applied until the first item arrives."""

    attempts: int = 3
    min_wait_s: float = 1.0
    max_wait_s: float = 10.0
    multiplier: float = 2.0

    @classmethod
    def from_settings(cls, settings: Settings) -> RetryPolicy:
        return cls(
            attempts=max(settings.max_attempts, 1),
            min_wait_s=settings.retry_min_wait_s,
            max_wait_s=settings.retry_max_wait_s,
        )


async def stream_with_retry(
    open_stream: Callable[[], AsyncGenerator[T, None]],
    policy: RetryPolicy,
) -> AsyncGenerator[T, None]:
    """Yield from ``open_stream()``, retrying only before the first item.

    A :class:`TransportError` raised while the stream is being opened (or
    before it produced anything) triggers a fresh ``open_stream()`` call,
    up to ``policy.attempts`` in total; the last error is re-raised. Once an
    item has been yielded, a failure ends the stream as
    :class:`MidStreamError` and is never retried, since a restart would
    repeat text the caller already has.
    """
    retrying = AsyncRetrying(
        stop=stop_after_attempt(policy.attempts),
        wait=wait_exponential(
            multiplier=policy.multiplier, min=policy.min_wait_s, max=policy.max_wait_s
        ),
        retry=retry_if_exception_type(TransportError),
        before_sleep=before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    stream, first = await retrying(_open_first, open_stream)

    try:
        if first is _NOTHING:
            return
        yield first
        try:
            async for item in stream:
                yield item
        except (TransportError, httpx.HTTPError) as exc:
            raise MidStreamError(f"stream failed after output started: {exc}") from exc
    finally:
        await stream.aclose()


async def _open_first(
    open_stream: Callable[[], AsyncGenerator[T, None]],
) -> tuple[AsyncGenerator[T, None], Any]:
    """Open a stream and pull its first item; the stream is closed on failure."""
    stream = open_stream()
    try:
        first = await anext(stream)
    except StopAsyncIteration:
        first = _NOTHING
    except BaseException:
        await stream.aclose()
        raise
    return stream, first
