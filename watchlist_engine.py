"""
Portfolio Tracker — Watchlist Engine
Runs as a separate service alongside the portfolio API.

- Keeps the user's watchlist (quote + headlines per ticker)
- Adds/removes tickers, rejecting duplicates before any network call
- Refreshes every item every minute, one item's failure never touches another
- Persists the whole list to one JSON key and restores it on startup
- Exposes a /watchlist REST API for the dashboard

Environment variables (.env):
    WATCHLIST_API_URL         = http://localhost:3002/api
    WATCHLIST_STORAGE         = watchlist_state.json
    WATCHLIST_REFRESH_SECONDS = 60
    WATCHLIST_PORT            = 8001
"""

import asyncio
import json
import logging
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Optional, Set

import httpx
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from portfolio_engine import config
from portfolio_engine.errors import (
    DuplicateTicker, PortfolioError, SourceUnavailable, UpstreamError, ValidationError,
)

logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(message)s")
log = logging.getLogger("pt.watchlist")

STORAGE_KEY = "portfolio"

IDLE    = "idle"
LOADING = "loading"
SUCCESS = "success"
ERROR   = "error"


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def _json(r: httpx.Response, what: str):
    try:
        return r.json()
    except ValueError as e:
        raise UpstreamError(f"{what}: response is not JSON") from e


# ── Model ──────────────────────────────────────────────────────

@dataclass
class WatchlistItem:
    ticker:       str
    quote:        Optional[dict] = None
    news:         List[dict] = field(default_factory=list)
    status:       str = IDLE
    error:        Optional[str] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> "WatchlistItem":
        return cls(
            ticker=data["ticker"],
            quote=data.get("quote"),
            news=list(data.get("news") or []),
            status=data.get("status", IDLE),
            error=data.get("error"),
            last_updated=data.get("last_updated"),
        )


# ── Storage ────────────────────────────────────────────────────

class JsonStorage:
    """One JSON file, one key, the whole list rewritten on every save."""

    def __init__(self, path: Path = Path(config.WATCHLIST_STORAGE)):
        self.path = Path(path)

    def load(self) -> List[WatchlistItem]:
        if not self.path.exists():
            return []
        try:
            saved = json.loads(self.path.read_text())
            items = [WatchlistItem.from_dict(d) for d in saved.get(STORAGE_KEY, [])]
            log.info(f"Watchlist restored from disk ({len(items)} items)")
            return items
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            log.warning(f"Could not load watchlist: {e}")
            return []

    def save(self, items: List[WatchlistItem]) -> None:
        try:
            payload = {STORAGE_KEY: [i.to_dict() for i in items]}
            self.path.write_text(json.dumps(payload, indent=2, default=str))
        except OSError as e:
            log.error(f"Watchlist save failed: {e}")


# ── Watchlist ──────────────────────────────────────────────────

class Watchlist:

    def __init__(self, client: httpx.AsyncClient, storage: JsonStorage,
                 api_url: str = config.WATCHLIST_API_URL):
        self.client  = client
        self.storage = storage
        self.api_url = api_url.rstrip("/")
        self.items: Dict[str, WatchlistItem] = {}
        self._pending: Set[str] = set()

    def restore(self) -> None:
        self.items = {i.ticker: i for i in self.storage.load()}

    def persist(self) -> None:
        self.storage.save(list(self.items.values()))

    def snapshot(self) -> List[dict]:
        return [i.to_dict() for i in self.items.values()]

    async def _fetch_quote(self, ticker: str) -> dict:
        try:
            r = await self.client.get(f"{self.api_url}/stock/{ticker}")
        except httpx.HTTPError as e:
            raise UpstreamError(f"Quote request for {ticker} failed: {e}") from e
        if r.status_code == 404:
            raise SourceUnavailable(ticker)
        if r.status_code != 200:
            raise UpstreamError(f"Quote request for {ticker} returned HTTP {r.status_code}")
        return _json(r, f"Quote for {ticker}")

    async def _fetch_news(self, ticker: str) -> List[dict]:
        try:
            r = await self.client.get(f"{self.api_url}/stock/{ticker}/news")
        except httpx.HTTPError as e:
            raise UpstreamError(f"News request for {ticker} failed: {e}") from e
        if r.status_code != 200:
            raise UpstreamError(f"News request for {ticker} returned HTTP {r.status_code}")
        return _json(r, f"News for {ticker}")

    async def add(self, raw_ticker: str) -> WatchlistItem:
        ticker = (raw_ticker or "").strip().upper()
        if not ticker:
            raise ValidationError("Ticker is required", code="MISSING_TICKER")
        if ticker in self.items or ticker in self._pending:
            raise DuplicateTicker(ticker)

        # reserved until the item lands in self.items or the add fails
        self._pending.add(ticker)
        try:
            item = WatchlistItem(ticker=ticker, status=LOADING)
            item.quote = await self._fetch_quote(ticker)
            try:
                item.news = await self._fetch_news(ticker)
            except UpstreamError as e:
                log.warning(f"{ticker}: news unavailable, adding without headlines ({e})")
                item.news = []

            item.status = SUCCESS
            item.last_updated = _now()
            self.items[ticker] = item
        finally:
            self._pending.discard(ticker)
        self.persist()
        log.info(f"Added {ticker} to watchlist")
        return item

    def remove(self, raw_ticker: str) -> bool:
        ticker = (raw_ticker or "").strip().upper()
        if self.items.pop(ticker, None) is None:
            return False
        self.persist()
        log.info(f"Removed {ticker} from watchlist")
        return True

    async def refresh_item(self, item: WatchlistItem) -> None:
        item.status = LOADING
        try:
            quote = await self._fetch_quote(item.ticker)
            news = await self._fetch_news(item.ticker)
        except PortfolioError as e:
            log.warning(f"{item.ticker}: refresh failed, keeping previous data ({e})")
            item.status = ERROR
            item.error = str(e)
            return
        item.quote = quote
        item.news = news
        item.status = SUCCESS
        item.error = None
        item.last_updated = _now()

    async def refresh_all(self) -> int:
        """Refresh every item concurrently. Returns how many failed."""
        items = list(self.items.values())
        if not items:
            return 0
        results = await asyncio.gather(*[self.refresh_item(i) for i in items], return_exceptions=True)
        for item, result in zip(items, results):
            if isinstance(result, Exception):
                log.error(f"{item.ticker}: refresh crashed ({result!r})")
                item.status = ERROR
                item.error = str(result)
        self.persist()
        failed = sum(1 for i in items if i.status == ERROR)
        log.info(f"Refreshed {len(items)} items ({failed} failed)")
        return failed


# ── API ────────────────────────────────────────────────────────

class AddRequest(BaseModel):
    ticker: Optional[str] = None


def create_app(watchlist: Optional[Watchlist] = None, schedule: bool = True) -> FastAPI:
    scheduler = AsyncIOScheduler()
    wl = watchlist or Watchlist(httpx.AsyncClient(timeout=20), JsonStorage())

    async def scheduled_refresh():
        if not wl.items:
            return
        await wl.refresh_all()

    app = FastAPI(title="Portfolio Watchlist", version="1.0.0")
    app.add_middleware(CORSMiddleware, allow_origins=["*"], allow_methods=["*"], allow_headers=["*"])
    app.state.watchlist = wl

    @app.on_event("startup")
    async def startup():
        wl.restore()
        if schedule:
            scheduler.add_job(scheduled_refresh, "interval",
                              seconds=config.WATCHLIST_REFRESH_SECONDS, id="refresh")
            scheduler.start()
        log.info(f"Watchlist started. Refreshing every {config.WATCHLIST_REFRESH_SECONDS}s. "
                 f"API on :{config.WATCHLIST_PORT}")

    @app.on_event("shutdown")
    async def shutdown():
        if scheduler.running:
            scheduler.shutdown()
        wl.persist()
        if watchlist is None:
            await wl.client.aclose()

    @app.get("/watchlist")
    def get_watchlist():
        return {"items": wl.snapshot()}

    @app.post("/watchlist")
    async def add_ticker(body: AddRequest):
        try:
            item = await wl.add(body.ticker)
        except ValidationError as e:
            return JSONResponse(status_code=400, content={"error": e.message, "code": e.code})
        except (SourceUnavailable, UpstreamError) as e:
            return JSONResponse(status_code=502, content={"error": f"Could not add {body.ticker}",
                                                          "details": str(e)})
        return item.to_dict()

    @app.delete("/watchlist/{ticker}")
    def remove_ticker(ticker: str):
        if not wl.remove(ticker):
            return JSONResponse(status_code=404, content={"error": "Not in watchlist", "ticker": ticker})
        return {"ok": True}

    @app.post("/watchlist/refresh")
    async def refresh():
        """Manually refresh every item."""
        failed = await wl.refresh_all()
        return {"ok": True, "failed": failed, "items": wl.snapshot()}

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("watchlist_engine:create_app", factory=True, host="0.0.0.0",
                port=config.WATCHLIST_PORT, reload=False)
