"""
Portfolio Tracker — Adaptive Rate Limiter
──────────────────────────────────────────
Spaces out calls to a rate-sensitive API (SEC EDGAR) and backs off hard once
the remote side starts answering 429.

  acquire()               wait for the next slot, or raise RateLimitBlocked
  report_rate_limited()   remote said 429 → block for base * 2^failures (capped)
  report_success()        reset the failure streak

Block schedule with the defaults (base 10 min, cap 24 h):
  1st 429 → 20 min, 2nd → 40 min, 3rd → 80 min, ... 8th+ → 24 h
"""

import asyncio
import logging
import time
from dataclasses import dataclass
from typing import Awaitable, Callable

from portfolio_engine import config
from portfolio_engine.errors import RateLimitBlocked

log = logging.getLogger("pt.rate_limiter")


@dataclass
class RateLimiterState:
    min_interval:         float
    last_request_at:      float = float("-inf")
    blocked_until:        float = 0.0
    consecutive_failures: int   = 0

    @property
    def is_blocked(self) -> bool:
        return self.blocked_until > 0


class AdaptiveRateLimiter:
    """Minimum-interval limiter with exponential block-out on 429."""

    def __init__(
        self,
        name: str = "SEC API",
        min_interval: float = config.SEC_MIN_INTERVAL,
        block_base: float = config.SEC_BLOCK_BASE,
        block_max: float = config.SEC_BLOCK_MAX,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.name       = name
        self.block_base = block_base
        self.block_max  = block_max
        self.state      = RateLimiterState(min_interval=min_interval)
        self._clock     = clock
        self._sleep     = sleep
        self._lock      = asyncio.Lock()

    async def acquire(self) -> float:
        """
        Wait until a call is permitted. Returns the seconds spent waiting.
        Raises RateLimitBlocked while inside a block window.
        """
        async with self._lock:
            state = self.state
            now = self._clock()

            if state.is_blocked:
                if now < state.blocked_until:
                    raise RateLimitBlocked(state.blocked_until - now, service=self.name)
                log.info(f"{self.name} block period ended, resuming requests")
                state.blocked_until = 0.0
                state.consecutive_failures = 0

            waited = 0.0
            elapsed = now - state.last_request_at
            if elapsed < state.min_interval:
                waited = state.min_interval - elapsed
                log.debug(f"{self.name}: waiting {waited:.2f}s before next request")
                await self._sleep(waited)

            state.last_request_at = self._clock()
            return waited

    def report_rate_limited(self) -> float:
        """Register a 429. Returns the block duration in seconds."""
        state = self.state
        state.consecutive_failures += 1
        block = min(self.block_base * (2 ** state.consecutive_failures), self.block_max)
        state.blocked_until = self._clock() + block
        log.warning(f"{self.name} rate limited. Blocking for {int(block)} seconds.")
        return block

    def report_success(self) -> None:
        self.state.consecutive_failures = 0

    def retry_after(self) -> float:
        """Seconds left in the current block window (0 when not blocked)."""
        if not self.state.is_blocked:
            return 0.0
        return max(0.0, self.state.blocked_until - self._clock())
