"""
Portfolio Tracker — 🌐 Translator
──────────────────────────────────
Google's public translate endpoint (client=gtx, no key). Payload is a nested
list: [[["translated", "original", ...], ...], ...]; the first element's
segments are joined.

Wrapped in with_retry: only 429s are retried.
"""

import asyncio
import logging
import re
from typing import Optional

import httpx

from data_sources.base import DataSource, parse_retry_after
from portfolio_engine import config
from portfolio_engine.errors import (
    NetworkError, UnsupportedLanguage, UpstreamError, UpstreamRateLimited,
)
from portfolio_engine.orchestrator.retry import Failure, Outcome, Success, with_retry

log = logging.getLogger("pt.sources.translate")

_LANGUAGE_CODE = re.compile(r"^[a-zA-Z]{2,3}(-[a-zA-Z]{2,4})?$")


def _join_segments(payload) -> Optional[str]:
    if not isinstance(payload, list) or not payload or not isinstance(payload[0], list):
        return None
    parts = [seg[0] for seg in payload[0] if isinstance(seg, list) and seg and isinstance(seg[0], str)]
    text = "".join(parts).strip()
    return text or None


class Translator(DataSource):

    def __init__(self, client: httpx.AsyncClient, url: str = config.TRANSLATE_URL,
                 max_attempts: int = config.RETRY_MAX_ATTEMPTS, sleep=asyncio.sleep):
        super().__init__(client)
        self.url          = url
        self.max_attempts = max_attempts
        self._sleep       = sleep

    @property
    def name(self) -> str:
        return "Translate"

    @property
    def timeout(self) -> float:
        return config.TRANSLATE_TIMEOUT

    async def _attempt(self, text: str, target: str) -> Outcome:
        params = {"client": "gtx", "sl": "auto", "tl": target, "dt": "t", "q": text}
        try:
            r = await self.client.get(self.url, params=params, timeout=self.timeout)
        except httpx.TransportError as e:
            log.warning(f"Translation request failed: {e}")
            return Failure(NetworkError(f"Translation network error: {e}"))

        if r.status_code == 429:
            retry_after = parse_retry_after(r.headers)
            return Failure(UpstreamRateLimited("Translation rate limit reached", retry_after=retry_after),
                           rate_limited=True, retry_after=retry_after)
        if r.status_code == 400:
            return Failure(UnsupportedLanguage(target))
        if r.status_code != 200:
            return Failure(UpstreamError(f"Translation failed with HTTP {r.status_code}"))

        try:
            translated = _join_segments(r.json())
        except ValueError:
            translated = None
        if not translated:
            return Failure(UpstreamError("Empty translation result"))
        return Success(translated)

    async def translate(self, text: str, target: str = config.DEFAULT_LANGUAGE) -> str:
        if not _LANGUAGE_CODE.match(target or ""):
            raise UnsupportedLanguage(target)
        return await with_retry(
            lambda: self._attempt(text, target),
            max_attempts=self.max_attempts,
            label="translate",
            sleep=self._sleep,
        )
