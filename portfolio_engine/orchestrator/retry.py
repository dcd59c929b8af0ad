"""
Portfolio Tracker — Retry Wrapper
──────────────────────────────────
Bounded retry around a fallible coroutine. The operation reports its result
as an Outcome instead of raising, so the wrapper decides on data:

    Success(value)                              → return value
    Failure(error, rate_limited=True, ...)      → sleep, try again
    Failure(error)                              → raise error now

Only rate-limit failures are retried. The delay is the server's Retry-After
when it sent one, otherwise base_delay * 2^attempt, capped at max_delay.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Optional, Union

from portfolio_engine import config

log = logging.getLogger("pt.retry")


@dataclass
class Success:
    value: Any


@dataclass
class Failure:
    error:        BaseException
    rate_limited: bool = False
    retry_after:  Optional[float] = None


Outcome = Union[Success, Failure]


def backoff_delay(attempt: int, retry_after: Optional[float] = None,
                  base_delay: float = config.RETRY_BASE_DELAY,
                  max_delay: float = config.RETRY_MAX_DELAY) -> float:
    if retry_after is not None and retry_after >= 0:
        return min(float(retry_after), max_delay)
    return min(base_delay * (2 ** attempt), max_delay)


async def with_retry(
    operation: Callable[[], Awaitable[Outcome]],
    max_attempts: int = config.RETRY_MAX_ATTEMPTS,
    label: str = "operation",
    base_delay: float = config.RETRY_BASE_DELAY,
    max_delay: float = config.RETRY_MAX_DELAY,
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
) -> Any:
    if max_attempts < 1:
        raise ValueError("max_attempts must be at least 1")

    last: Optional[Failure] = None
    for attempt in range(max_attempts):
        outcome = await operation()
        if isinstance(outcome, Success):
            return outcome.value

        last = outcome
        if not outcome.rate_limited or attempt == max_attempts - 1:
            break

        wait = backoff_delay(attempt, outcome.retry_after, base_delay, max_delay)
        log.warning(f"{label}: rate limited. Waiting {wait:.1f}s before retry {attempt + 1}/{max_attempts}")
        await sleep(wait)

    raise last.error
