"""Retry with backoff for collaborator calls (broadcast delivery, storage).

The planner itself never retries: a failed send is reported and the draft
kept. Collaborators that talk to flaky transports can wrap their own calls
with ``retry_with_backoff`` or wrap a whole dispatcher in
``RetryingDispatcher``.
"""
from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Sequence, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

# Max retries and exponential backoff delays (seconds)
_MAX_RETRIES = 3
_BACKOFF_TIMEOUT = [3, 9, 27]       # 3s, 9s, 27s  (×3 exponential)
_BACKOFF_RATE_LIMIT = [5, 15, 45]   # 5s, 15s, 45s (×3 exponential)

RETRYABLE = ("timeout", "rate_limit", "connection_closed")


def classify_error(error: BaseException) -> str | None:
    """Classify an error into a retry category.

    Returns:
        "timeout", "rate_limit", "connection_closed", or None (not retryable).
    """
    if isinstance(error, (asyncio.TimeoutError, TimeoutError)):
        return "timeout"
    if isinstance(error, (ConnectionResetError, ConnectionAbortedError, BrokenPipeError)):
        return "connection_closed"
    msg = str(error).lower()
    if "read timeout" in msg or "connect timeout" in msg or "timed out" in msg:
        return "timeout"
    if "rate limit" in msg or "too many requests" in msg or "throttling" in msg or "429" in msg:
        return "rate_limit"
    if "serviceunav" in msg or "service unavailable" in msg or "503" in msg:
        return "timeout"  # transient, same as timeout
    if "connection was closed" in msg or "connection reset" in msg or "broken pipe" in msg:
        return "connection_closed"
    return None


def backoff_delay(category: str, attempt: int) -> int:
    table = _BACKOFF_RATE_LIMIT if category == "rate_limit" else _BACKOFF_TIMEOUT
    return table[min(attempt, len(table) - 1)]


async def retry_with_backoff(
    func: Callable[[], Awaitable[T]],
    *,
    max_retries: int = _MAX_RETRIES,
    on_retry: Callable[[str, int], Awaitable[None]] | None = None,
    sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    retry_on: Sequence[str] = RETRYABLE,
) -> T:
    """Call ``func`` until it succeeds, retrying transient errors.

    Args:
        func: Zero-argument coroutine factory.
        max_retries: Retries after the first attempt.
        on_retry: Optional async callback(message, attempt) for feedback.
        sleep: Awaitable sleep, injectable for tests.
        retry_on: Error categories worth retrying.

    Raises:
        The last exception once retries are exhausted, or immediately for
        errors outside ``retry_on``.
    """
    last_error: BaseException | None = None
    for attempt in range(max_retries + 1):
        try:
            return await func()
        except Exception as e:
            last_error = e
            category = classify_error(e)
            if category not in retry_on or attempt >= max_retries:
                raise
            delay = backoff_delay(category, attempt)
            logger.warning(
                "Transient %s error, retrying in %ds (%d/%d): %s",
                category, delay, attempt + 1, max_retries, e,
            )
            if on_retry:
                await on_retry(f"{category}, retrying in {delay}s ({attempt + 1}/{max_retries})...", attempt + 1)
            await sleep(delay)

    assert last_error is not None
    raise last_error


class RetryingDispatcher:
    """BroadcastDispatcher wrapper that retries transient delivery errors."""

    def __init__(self, inner: Any, *, max_retries: int = _MAX_RETRIES, sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep) -> None:
        self.inner = inner
        self.max_retries = max_retries
        self._sleep = sleep

    async def send_announcement(self, content: str, sender_id: str) -> int:
        return await retry_with_backoff(
            lambda: self.inner.send_announcement(content, sender_id),
            max_retries=self.max_retries, sleep=self._sleep,
        )

    async def send_poll(self, question: str, sender_id: str, requires_excuse: bool = False) -> int:
        return await retry_with_backoff(
            lambda: self.inner.send_poll(question, sender_id, requires_excuse),
            max_retries=self.max_retries, sleep=self._sleep,
        )
