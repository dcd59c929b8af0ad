"""
Portfolio Tracker — Stock Endpoints
────────────────────────────────────
/api/stock/{ticker}        quote, 30s cache, 404 when every variant fails
/api/stock/{ticker}/news   headlines, 5m cache, never fails

News degrades instead of erroring: stale cache if NewsAPI is rate limiting
us, otherwise one synthetic "Market Data" item.
"""

import logging
import re
from typing import List

from data_sources.quotes import normalise_symbol
from portfolio_engine.errors import SourceUnavailable, UpstreamRateLimited, ValidationError
from portfolio_engine.models.payloads import NewsItem, news_to_dicts
from portfolio_engine.services import Services

log = logging.getLogger("pt.api.stock")

_TICKER = re.compile(r"^[A-Z0-9^][A-Z0-9.\-=^]{0,14}$")


def validate_ticker(raw) -> str:
    if not isinstance(raw, str) or not raw.strip():
        raise ValidationError("Ticker is required", code="MISSING_TICKER")
    ticker = normalise_symbol(raw)
    if not _TICKER.match(ticker):
        raise ValidationError(f"Invalid ticker symbol: {raw}", code="INVALID_TICKER")
    return ticker


async def get_quote_response(services: Services, ticker: str) -> dict:
    """Cached quote for an already-validated ticker. Raises SourceUnavailable."""
    cached = await services.quote_cache.get(ticker)
    if cached is not None:
        return cached
    quote = await services.quotes.fetch(ticker)
    data = quote.to_dict()
    await services.quote_cache.put(ticker, data)
    return data


async def get_news_response(services: Services, ticker: str) -> List[dict]:
    cached = await services.news_cache.get(ticker)
    if cached is not None:
        return cached

    try:
        items = news_to_dicts(await services.news.fetch(ticker))
    except SourceUnavailable as e:
        if isinstance(e.last_error, UpstreamRateLimited):
            stale = services.news_cache.peek_stale(ticker)
            if stale:
                log.warning(f"{ticker}: news rate limited — serving stale headlines")
                return stale
        log.warning(f"{ticker}: news unavailable ({e}) — returning market data placeholder")
        items = [NewsItem.market_data(ticker).to_dict()]

    await services.news_cache.put(ticker, items)
    return items
