"""HTTP utilities providing retry/backoff semantics."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, Tuple, Type, TypeVar

import httpx

T = TypeVar("T")

logger = logging.getLogger(__name__)


class RetryConfig:
    def __init__(
        self,
        *,
        attempts: int = 3,
        backoff_seconds: float = 1.0,
        max_backoff_seconds: float = 5.0,
    ) -> None:
        self.attempts = attempts
        self.backoff_seconds = backoff_seconds
        self.max_backoff_seconds = max_backoff_seconds

    def delay_for(self, attempt: int) -> float:
        """Exponential delay after the given (1-based) failed attempt, capped."""
        return min(self.backoff_seconds * (2 ** (attempt - 1)), self.max_backoff_seconds)


def is_transient_response(response: httpx.Response) -> bool:
    return response.status_code >= 500


async def retry_async(
    func: Callable[..., Awaitable[T]],
    *args,
    retry_config: RetryConfig | None = None,
    retry_on: Tuple[Type[BaseException], ...] = (Exception,),
    **kwargs,
) -> T:
    """Await ``func`` until it succeeds, retrying only on ``retry_on`` errors."""
    config = retry_config or RetryConfig()
    attempt = 0

    while True:
        try:
            return await func(*args, **kwargs)
        except retry_on as exc:
            attempt += 1
            if attempt >= config.attempts:
                raise
            delay = config.delay_for(attempt)
            logger.info(
                "Transient failure (%s), retrying in %.1fs (attempt %d/%d)",
                type(exc).__name__,
                delay,
                attempt + 1,
                config.attempts,
            )
            await asyncio.sleep(delay)


async def request_with_retry(
    func: Callable[..., Awaitable[httpx.Response]],
    *args,
    retry_config: RetryConfig | None = None,
    **kwargs,
) -> httpx.Response:
    """Issue a request, retrying on transport errors and 5xx responses.

    4xx responses are returned to the caller untouched.
    """
    config = retry_config or RetryConfig()
    attempt = 0
    last_exception: Exception | None = None

    while attempt < config.attempts:
        try:
            response = await func(*args, **kwargs)
            if not is_transient_response(response):
                return response
            response.raise_for_status()
        except (httpx.TransportError, httpx.HTTPStatusError) as exc:
            last_exception = exc
        attempt += 1
        if attempt >= config.attempts:
            break
        await asyncio.sleep(config.delay_for(attempt))

    if last_exception is not None:
        raise last_exception
    raise RuntimeError("Request failed without raising an exception")


__all__ = ["RetryConfig", "is_transient_response", "request_with_retry", "retry_async"]
