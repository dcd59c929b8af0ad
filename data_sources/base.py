"""
Portfolio Tracker — Data Source Base
─────────────────────────────────────
All external sources inherit from DataSource.

A source owns no connection of its own: it borrows the service-wide
httpx.AsyncClient so connection pooling and timeouts stay in one place.
`_get()` turns HTTP outcomes into the error taxonomy:

  200           → response
  429           → UpstreamRateLimited (with Retry-After when sent)
  timeout/conn  → NetworkError
  anything else → UpstreamError
"""

import logging
from abc import ABC, abstractmethod
from typing import Mapping, Optional

import httpx

from portfolio_engine.errors import NetworkError, UpstreamError, UpstreamRateLimited

log = logging.getLogger("pt.sources")

BROWSER_HEADERS = {
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
    "Accept": "application/json",
    "Accept-Language": "en-US,en;q=0.9",
}


def parse_retry_after(headers: Optional[Mapping[str, str]]) -> Optional[float]:
    if not headers:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return max(0.0, float(value))
    except (TypeError, ValueError):
        return None


class DataSource(ABC):

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    @property
    @abstractmethod
    def name(self) -> str: ...

    @property
    def timeout(self) -> float:
        return 10.0

    async def _get(self, url: str, params: dict = None, headers: dict = None) -> httpx.Response:
        try:
            r = await self.client.get(url, params=params,
                                      headers=headers or BROWSER_HEADERS,
                                      timeout=self.timeout)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{self.name}: timeout fetching {url[:80]}") from e
        except httpx.TransportError as e:
            raise NetworkError(f"{self.name}: network error fetching {url[:80]}: {e}") from e

        if r.status_code == 200:
            return r
        if r.status_code == 429:
            raise UpstreamRateLimited(f"{self.name} rate limit reached",
                                      retry_after=parse_retry_after(r.headers))
        raise UpstreamError(f"{self.name} returned HTTP {r.status_code} for {url[:80]}")

    async def _get_json(self, url: str, params: dict = None, headers: dict = None):
        r = await self._get(url, params=params, headers=headers)
        try:
            return r.json()
        except ValueError as e:
            raise UpstreamError(f"{self.name}: invalid JSON from {url[:80]}") from e
