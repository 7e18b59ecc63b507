"""Retry helpers for outbound calls.

One shared backoff utility on top of tenacity. Call sites choose what is
retryable with a predicate and how long to wait with a ``BackoffPolicy``;
everything else (attempt accounting, logging, re-raising the last error) lives
here so no connector carries its own retry loop.
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

import httpx
from pydantic import BaseModel, ConfigDict, Field
from tenacity import AsyncRetrying, retry_if_exception, stop_after_attempt, wait_exponential

from docsync.core.config import settings
from docsync.core.logging import ContextualLogger
from docsync.core.logging import logger as default_logger

T = TypeVar("T")

RATE_LIMIT_REASONS = frozenset({"rateLimitExceeded", "userRateLimitExceeded"})


class BackoffPolicy(BaseModel):
    """Exponential backoff schedule: ``initial_delay * 2**n`` capped at ``max_delay``."""

    initial_delay: float = Field(0.5, gt=0)
    max_delay: float = Field(64.0, gt=0)
    max_retries: int = Field(10, ge=0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def for_sources(cls) -> "BackoffPolicy":
        """Policy for source API calls, from settings."""
        return cls(
            initial_delay=settings.SOURCE_RETRY_INITIAL_DELAY,
            max_delay=settings.SOURCE_RETRY_MAX_DELAY,
            max_retries=settings.SOURCE_RETRY_MAX_RETRIES,
        )

    @classmethod
    def for_embeddings(cls) -> "BackoffPolicy":
        """Policy for embedding calls, from settings."""
        return cls(
            initial_delay=settings.EMBEDDING_RETRY_INITIAL_DELAY,
            max_delay=settings.EMBEDDING_RETRY_MAX_DELAY,
            max_retries=max(settings.EMBEDDING_RETRY_ATTEMPTS - 1, 0),
        )


def _error_reasons(response: httpx.Response) -> set:
    """Extract Google-style ``error.errors[].reason`` values from a JSON body."""
    try:
        body = response.json()
    except ValueError:
        return set()
    if not isinstance(body, dict):
        return set()
    error = body.get("error")
    if not isinstance(error, dict):
        return set()
    return {item.get("reason") for item in error.get("errors") or [] if isinstance(item, dict)}


def should_retry_on_rate_limit(exception: BaseException) -> bool:
    """Check if exception is a retryable rate limit.

    Matches HTTP 429, and HTTP 403 whose body carries a rate limit reason
    (Google APIs report quota exhaustion as 403).

    Args:
        exception: Exception to check

    Returns:
        True if this is a rate limit that should be retried
    """
    if not isinstance(exception, httpx.HTTPStatusError):
        return False
    status = exception.response.status_code
    if status == 429:
        return True
    if status == 403:
        return bool(_error_reasons(exception.response) & RATE_LIMIT_REASONS)
    return False


def should_retry_on_server_error(exception: BaseException) -> bool:
    """Check if exception is a 5xx response."""
    if isinstance(exception, httpx.HTTPStatusError):
        return exception.response.status_code >= 500
    return False


def should_retry_on_transport_error(exception: BaseException) -> bool:
    """Check if exception is a transient network failure (includes timeouts)."""
    return isinstance(exception, httpx.TransportError)


def should_retry_on_timeout(exception: BaseException) -> bool:
    """Check if exception is a timeout."""
    return isinstance(exception, (httpx.TimeoutException, asyncio.TimeoutError))


def should_retry_source_request(exception: BaseException) -> bool:
    """Combined retry condition for source API calls.

    Rate limits, server errors and transport errors retry. Everything else,
    including 401/404 and other 4xx, fails immediately.
    """
    return (
        should_retry_on_rate_limit(exception)
        or should_retry_on_server_error(exception)
        or should_retry_on_transport_error(exception)
    )


def _retry_after_seconds(exception: Optional[BaseException]) -> Optional[float]:
    if not isinstance(exception, httpx.HTTPStatusError):
        return None
    if exception.response.status_code != 429:
        return None
    retry_after = exception.response.headers.get("Retry-After")
    if not retry_after:
        return None
    try:
        return float(retry_after)
    except (ValueError, TypeError):
        return None


def wait_with_retry_after(policy: BackoffPolicy) -> Callable[[Any], float]:
    """Build a wait strategy: exponential backoff, stretched by Retry-After on 429s.

    The result never exceeds ``policy.max_delay``.
    """
    exponential = wait_exponential(multiplier=policy.initial_delay, max=policy.max_delay)

    def wait(retry_state) -> float:
        delay = exponential(retry_state)
        retry_after = _retry_after_seconds(retry_state.outcome.exception())
        if retry_after is not None:
            delay = max(delay, retry_after)
        return min(delay, policy.max_delay)

    return wait


async def call_with_backoff(
    func: Callable[..., Awaitable[T]],
    *args: Any,
    policy: Optional[BackoffPolicy] = None,
    retry_on: Callable[[BaseException], bool] = should_retry_source_request,
    sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    logger: Optional[ContextualLogger] = None,
    **kwargs: Any,
) -> T:
    """Await ``func(*args, **kwargs)``, retrying per ``policy`` while ``retry_on`` matches.

    The callable is re-invoked with the same arguments on each attempt, so a
    page fetch retries the same page token. The last error is re-raised once
    retries are exhausted; non-retryable errors are raised on first sight.

    Args:
        func: Coroutine function to call
        policy: Backoff schedule (defaults to the source policy from settings)
        retry_on: Predicate selecting retryable exceptions
        sleep: Async sleep used between attempts (injectable for tests)
        logger: Logger for retry warnings

    Returns:
        Whatever ``func`` returns
    """
    policy = policy or BackoffPolicy.for_sources()
    log = logger or default_logger

    def _log_retry(retry_state) -> None:
        exc = retry_state.outcome.exception()
        log.warning(
            f"Retrying {getattr(func, '__name__', 'call')} after attempt "
            f"{retry_state.attempt_number}/{policy.max_retries + 1} failed "
            f"({type(exc).__name__}: {exc}); sleeping {retry_state.next_action.sleep:.2f}s"
        )

    retry_kwargs = dict(
        stop=stop_after_attempt(policy.max_retries + 1),
        wait=wait_with_retry_after(policy),
        retry=retry_if_exception(retry_on),
        before_sleep=_log_retry,
        reraise=True,
    )
    if sleep is not None:
        retry_kwargs["sleep"] = sleep

    async for attempt in AsyncRetrying(**retry_kwargs):
        with attempt:
            return await func(*args, **kwargs)
    raise AssertionError("unreachable")  # pragma: no cover
