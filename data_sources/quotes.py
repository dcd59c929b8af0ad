"""
Portfolio Tracker — 💹 Quote Source
────────────────────────────────────
Yahoo Finance quotes with multi-variant fallback.

Variant order (first usable result wins, each tried once):
  1. query1 v8/chart   SYMBOL
  2. query2 v8/chart   SYMBOL
  3. query1 v8/chart   SYMBOL.NE     (Cboe Canada listing)
  4. query1 v8/chart   SYMBOL.TO     (Toronto listing)

Market cap and P/E are not in the chart meta; they come from a best-effort
v7/quote call inside the same variant. Its failure leaves "N/A" behind and
never fails the variant.
"""

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence

import httpx

from data_sources.base import DataSource
from portfolio_engine import config
from portfolio_engine.models.payloads import Quote, format_market_cap, format_volume
from portfolio_engine.orchestrator.fallback import FallbackFetcher

log = logging.getLogger("pt.sources.quotes")

CHART_URL   = "https://{host}.finance.yahoo.com/v8/finance/chart/{symbol}"
DETAILS_URL = "https://query1.finance.yahoo.com/v7/finance/quote"


@dataclass(frozen=True)
class QuoteVariant:
    host:   str = "query1"
    suffix: str = ""

    def symbol(self, ticker: str) -> str:
        return ticker + self.suffix

    def label(self) -> str:
        return f"{self.host}{self.suffix or ''}"


DEFAULT_VARIANTS: List[QuoteVariant] = [
    QuoteVariant("query1", ""),
    QuoteVariant("query2", ""),
    QuoteVariant("query1", ".NE"),
    QuoteVariant("query1", ".TO"),
]

_EXCHANGE_PREFIXES = {
    "LON:": ".L",
    "EPA:": ".PA",
    "ETR:": ".DE",
    "AMS:": ".AS",
    "TSX:": ".TO",
    "ASX:": ".AX",
    "NYSE:": "",
    "NASDAQ:": "",
}


def normalise_symbol(symbol: str) -> str:
    symbol = symbol.upper().strip()
    for prefix, suffix in _EXCHANGE_PREFIXES.items():
        if symbol.startswith(prefix):
            return symbol[len(prefix):] + suffix
    return symbol


def is_usable_quote(quote: Quote) -> bool:
    return bool(quote.price and quote.price > 0 and quote.name)


def _fmt_pe(details: dict) -> str:
    pe = details.get("forwardPE") or details.get("trailingPE")
    return f"{pe:.2f}" if isinstance(pe, (int, float)) else "N/A"


class QuoteSource(DataSource):

    def __init__(self, client: httpx.AsyncClient, variants: Sequence[QuoteVariant] = None):
        super().__init__(client)
        self.variants = list(variants or DEFAULT_VARIANTS)

    @property
    def name(self) -> str:
        return "Yahoo Finance"

    @property
    def timeout(self) -> float:
        return config.QUOTE_TIMEOUT

    async def fetch(self, ticker: str) -> Quote:
        """Raises SourceUnavailable when no variant yields a usable quote."""
        ticker = normalise_symbol(ticker)
        fetcher = FallbackFetcher(
            self.variants,
            fetch=lambda v: self.fetch_variant(ticker, v),
            is_usable=is_usable_quote,
            describe=QuoteVariant.label,
        )
        return await fetcher.run(ticker)

    async def fetch_variant(self, ticker: str, variant: QuoteVariant) -> Optional[Quote]:
        symbol = variant.symbol(ticker)
        data = await self._get_json(
            CHART_URL.format(host=variant.host, symbol=symbol),
            params={"interval": "1d", "range": "1d"},
        )
        result = (data.get("chart") or {}).get("result") or []
        if not result:
            return None
        meta = result[0].get("meta") or {}
        price = meta.get("regularMarketPrice")
        if not price:
            return None

        details = await self._fetch_details(symbol)
        name = (details.get("longName") or details.get("shortName")
                or meta.get("longName") or meta.get("shortName") or ticker)
        volume = details.get("regularMarketVolume") or meta.get("regularMarketVolume")

        return Quote.build(
            ticker=ticker,
            name=name,
            price=price,
            previous_close=meta.get("previousClose") or meta.get("chartPreviousClose"),
            market_cap=format_market_cap(details.get("marketCap")),
            volume=format_volume(volume),
            pe_ratio=_fmt_pe(details),
        )

    async def _fetch_details(self, symbol: str) -> dict:
        try:
            data = await self._get_json(DETAILS_URL, params={"symbols": symbol})
            rows = (data.get("quoteResponse") or {}).get("result") or []
            return rows[0] if rows else {}
        except Exception as e:
            log.warning(f"Details unavailable for {symbol}: {e}")
            return {}
