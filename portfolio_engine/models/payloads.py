"""
Portfolio Tracker — Payload Models
───────────────────────────────────
Canonical shapes of what the API returns and what the caches store.
Attribute names are Python; to_dict() gives the camelCase wire format.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


def _now_label() -> str:
    return datetime.now().strftime("%m/%d/%Y, %I:%M:%S %p")


def format_market_cap(value: Optional[float]) -> str:
    if not value:
        return "N/A"
    if value >= 1e12:
        return f"{value / 1e12:.2f}T USD"
    if value >= 1e9:
        return f"{value / 1e9:.2f}B USD"
    if value >= 1e6:
        return f"{value / 1e6:.2f}M USD"
    return f"{value:.2f} USD"


def format_volume(value: Optional[float]) -> str:
    if not value:
        return "N/A"
    if value >= 1e6:
        return f"{value / 1e6:.2f}M"
    if value >= 1e3:
        return f"{value / 1e3:.2f}K"
    return str(int(value))


@dataclass
class Quote:
    ticker:         str
    name:           str
    price:          float
    change:         float
    change_percent: float
    market_cap:     str = "N/A"
    volume:         str = "N/A"
    pe_ratio:       str = "N/A"
    last_update:    str = field(default_factory=_now_label)

    @property
    def direction(self) -> str:
        return "up" if self.change >= 0 else "down"

    @classmethod
    def build(cls, ticker: str, name: str, price: float, previous_close: Optional[float], **extra) -> "Quote":
        prev = previous_close or price
        change = price - prev
        change_pct = (change / prev * 100) if prev else 0.0
        return cls(
            ticker=ticker,
            name=name,
            price=round(float(price), 2),
            change=round(float(change), 2),
            change_percent=round(float(change_pct), 2),
            **extra,
        )

    def to_dict(self) -> dict:
        return {
            "ticker":        self.ticker,
            "name":          self.name,
            "price":         self.price,
            "change":        self.change,
            "changePercent": self.change_percent,
            "direction":     self.direction,
            "marketCap":     self.market_cap,
            "volume":        self.volume,
            "peRatio":       self.pe_ratio,
            "lastUpdate":    self.last_update,
        }


@dataclass
class NewsItem:
    title:       str
    link:        str
    source:      str
    pub_date:    str
    description: str = ""

    def to_dict(self) -> dict:
        return {
            "title":       self.title,
            "link":        self.link,
            "source":      self.source,
            "pubDate":     self.pub_date,
            "description": self.description,
        }

    @classmethod
    def market_data(cls, ticker: str) -> "NewsItem":
        """Synthetic stand-in when no news source answers."""
        return cls(
            title=f"Latest Market Data for {ticker}",
            link=f"https://finance.yahoo.com/quote/{ticker}",
            source="Market Data",
            pub_date=_now_label(),
            description=f"View the latest market data and trading information for {ticker}.",
        )


@dataclass
class FilingReference:
    form_type:    str     # "10-K" | "10-Q" | "8-K"
    filing_date:  str     # YYYY-MM-DD
    document_url: str


@dataclass
class FilingAnalysis:
    form_type:   str
    filing_date: str
    analysis:    str

    def to_dict(self) -> dict:
        return {"type": self.form_type, "date": self.filing_date, "analysis": self.analysis}


@dataclass
class Translation:
    original_text:   str
    translated_text: str
    target_language: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "originalText":   self.original_text,
            "translatedText": self.translated_text,
            "targetLanguage": self.target_language,
        }


def news_to_dicts(items: List[NewsItem]) -> List[dict]:
    return [n.to_dict() for n in items]
