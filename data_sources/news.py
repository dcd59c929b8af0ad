"""
Portfolio Tracker — 📰 News Source
───────────────────────────────────
Recent headlines for a ticker.

Variants, in order:
  yahoo     Yahoo Finance search API, no key needed
  newsapi   newsapi.org /v2/everything — only when NEWS_API_KEY is set
            (free tier: 100 requests/day, hence the 5 minute news TTL)

A variant is usable when it yields at least one article.
"""

import logging
from datetime import datetime, timezone
from typing import List, Optional

import httpx

from data_sources.base import DataSource
from portfolio_engine import config
from portfolio_engine.models.payloads import NewsItem
from portfolio_engine.orchestrator.fallback import FallbackFetcher

log = logging.getLogger("pt.sources.news")

YAHOO_SEARCH_URL = "https://query1.finance.yahoo.com/v1/finance/search"
NEWS_API_URL     = "https://newsapi.org/v2/everything"


def _fmt_epoch(seconds) -> str:
    try:
        return datetime.fromtimestamp(int(seconds), tz=timezone.utc).strftime("%Y-%m-%d %H:%M UTC")
    except (TypeError, ValueError, OverflowError):
        return ""


def _fmt_iso(value: str) -> str:
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00")).strftime("%Y-%m-%d %H:%M UTC")
    except (AttributeError, ValueError):
        return value or ""


class NewsSource(DataSource):

    def __init__(self, client: httpx.AsyncClient, api_key: str = config.NEWS_API_KEY,
                 page_size: int = config.NEWS_PAGE_SIZE):
        super().__init__(client)
        self.api_key   = api_key
        self.page_size = page_size

    @property
    def name(self) -> str:
        return "News"

    @property
    def timeout(self) -> float:
        return config.NEWS_TIMEOUT

    @property
    def variants(self) -> List[str]:
        return ["yahoo", "newsapi"] if self.api_key else ["yahoo"]

    async def fetch(self, ticker: str) -> List[NewsItem]:
        """Raises SourceUnavailable when every variant comes back empty."""
        fetcher = FallbackFetcher(
            self.variants,
            fetch=lambda v: self.fetch_variant(ticker, v),
            is_usable=lambda items: len(items) > 0,
        )
        return await fetcher.run(ticker)

    async def fetch_variant(self, ticker: str, variant: str) -> Optional[List[NewsItem]]:
        if variant == "yahoo":
            return await self._fetch_yahoo(ticker)
        if variant == "newsapi":
            return await self._fetch_newsapi(ticker)
        raise ValueError(f"Unknown news variant {variant}")

    async def _fetch_yahoo(self, ticker: str) -> List[NewsItem]:
        data = await self._get_json(
            YAHOO_SEARCH_URL,
            params={"q": ticker, "newsCount": self.page_size, "quotesCount": 0},
        )
        return [
            NewsItem(
                title=item.get("title", ""),
                link=item.get("link", ""),
                source=item.get("publisher", "Yahoo Finance"),
                pub_date=_fmt_epoch(item.get("providerPublishTime")),
                description=item.get("snippet") or item.get("summary") or "",
            )
            for item in (data.get("news") or [])[: self.page_size]
            if item.get("title")
        ]

    async def _fetch_newsapi(self, ticker: str) -> List[NewsItem]:
        data = await self._get_json(
            NEWS_API_URL,
            params={
                "q":        f"{ticker} stock market",
                "language": "en",
                "sortBy":   "publishedAt",
                "pageSize": self.page_size,
            },
            headers={"X-Api-Key": self.api_key, "Accept": "application/json"},
        )
        return [
            NewsItem(
                title=a.get("title", ""),
                link=a.get("url", ""),
                source=(a.get("source") or {}).get("name", "NewsAPI"),
                pub_date=_fmt_iso(a.get("publishedAt", "")),
                description=a.get("description") or "",
            )
            for a in (data.get("articles") or [])
            if a.get("title")
        ]
