"""
Portfolio Tracker Data Sources
───────────────────────────────
Thin adapters over the third-party services the API aggregates:

    from data_sources import QuoteSource, NewsSource, EdgarSource
    quote = await QuoteSource(client).fetch("AAPL")
"""

from .base import DataSource
from .edgar import EdgarSource, select_filings
from .llm import LLMSummarizer
from .news import NewsSource
from .quotes import QuoteSource, normalise_symbol
from .translator import Translator

__all__ = [
    "DataSource", "EdgarSource", "LLMSummarizer", "NewsSource",
    "QuoteSource", "Translator", "normalise_symbol", "select_filings",
]
