"""
Portfolio Tracker — Service Container
──────────────────────────────────────
Everything with shared mutable state (caches, the EDGAR limiter, the HTTP
connection pool) lives on one Services object. The FastAPI app owns one;
tests build their own with a mocked transport and a fake clock.
"""

import asyncio
import time
from typing import Awaitable, Callable, Optional, Sequence

import httpx

from data_sources import EdgarSource, LLMSummarizer, NewsSource, QuoteSource, Translator
from data_sources.quotes import QuoteVariant
from portfolio_engine import config
from portfolio_engine.cache.ttl_cache import TTLCache, connect_redis
from portfolio_engine.orchestrator.rate_limiter import AdaptiveRateLimiter


class Services:

    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        llm: Optional[LLMSummarizer] = None,
        limiter: Optional[AdaptiveRateLimiter] = None,
        quote_variants: Optional[Sequence[QuoteVariant]] = None,
        news_api_key: str = config.NEWS_API_KEY,
        redis_url: str = config.REDIS_URL,
        filing_pause: float = config.FILING_PAUSE,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.client = client or httpx.AsyncClient(
            limits=httpx.Limits(max_connections=50, max_keepalive_connections=20),
            timeout=config.QUOTE_TIMEOUT,
            follow_redirects=True,
        )
        self.redis_url    = redis_url
        self.redis        = None
        self.filing_pause = filing_pause
        self.sleep        = sleep

        self.quote_cache = TTLCache("quote", clock=clock)
        self.news_cache  = TTLCache("news", clock=clock)
        self.cik_cache   = TTLCache("cik", clock=clock)

        self.sec_limiter = limiter or AdaptiveRateLimiter(clock=clock, sleep=sleep)

        self.quotes     = QuoteSource(self.client, quote_variants)
        self.news       = NewsSource(self.client, api_key=news_api_key)
        self.edgar      = EdgarSource(self.client, self.sec_limiter, self.cik_cache)
        self.llm        = llm or LLMSummarizer(sleep=sleep)
        self.translator = Translator(self.client, sleep=sleep)

    @property
    def caches(self):
        return (self.quote_cache, self.news_cache, self.cik_cache)

    async def connect(self):
        self.redis = await connect_redis(self.redis_url)
        for cache in self.caches:
            cache.redis = self.redis

    async def close(self):
        await self.client.aclose()
        if self.redis is not None:
            await self.redis.aclose()
            self.redis = None
