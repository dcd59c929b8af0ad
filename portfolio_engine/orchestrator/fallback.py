"""
Portfolio Tracker — Fallback Fetcher
─────────────────────────────────────
Breadth, not depth: try each source variant once, in order, and keep the
first result that is actually usable. Variants are never run in parallel so
"first success wins" is deterministic and the remote side sees at most one
request per variant.
"""

import logging
from typing import Awaitable, Callable, Generic, List, Optional, Sequence, TypeVar

from portfolio_engine.errors import SourceUnavailable

log = logging.getLogger("pt.fallback")

V = TypeVar("V")
R = TypeVar("R")


class FallbackFetcher(Generic[V, R]):

    def __init__(
        self,
        variants: Sequence[V],
        fetch: Callable[[V], Awaitable[Optional[R]]],
        is_usable: Callable[[R], bool] = lambda r: r is not None,
        describe: Callable[[V], str] = str,
    ):
        if not variants:
            raise ValueError("FallbackFetcher needs at least one variant")
        self.variants  = list(variants)
        self._fetch    = fetch
        self._is_usable = is_usable
        self._describe = describe

    async def run(self, ticker: str) -> R:
        last_error: Optional[BaseException] = None
        tried: List[str] = []
        for variant in self.variants:
            label = self._describe(variant)
            tried.append(label)
            try:
                result = await self._fetch(variant)
            except Exception as e:
                last_error = e
                log.warning(f"{ticker}: variant {label} failed: {e}")
                continue
            if result is not None and self._is_usable(result):
                if len(tried) > 1:
                    log.info(f"{ticker}: served by fallback variant {label}")
                return result
            log.debug(f"{ticker}: variant {label} returned no usable data")

        log.warning(f"{ticker}: all {len(tried)} variants exhausted ({', '.join(tried)})")
        raise SourceUnavailable(ticker, last_error)
