"""
Portfolio Tracker — 🏛️ SEC EDGAR Source
────────────────────────────────────────
Filing discovery and document text from SEC EDGAR (free, no API key).

Flow:
  1. ticker → CIK via company_tickers.json     (cached 24h in the "cik" cache)
  2. CIK → data.sec.gov/submissions/CIK##########.json
  3. keep 10-K / 10-Q / 8-K inside the window, newest first,
     capped per form: 1 × 10-K, 2 × 10-Q, 2 × 8-K
  4. each primary document → cleaned text

Every request goes through the AdaptiveRateLimiter. EDGAR asks for a real
contact in the User-Agent (SEC_USER_AGENT) and answers 403/429 otherwise.
"""

import logging
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Mapping, Optional

import httpx

from data_sources.base import DataSource
from portfolio_engine import config
from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.errors import FilingNotFound, UpstreamError, UpstreamRateLimited
from portfolio_engine.models.payloads import FilingReference
from portfolio_engine.orchestrator.rate_limiter import AdaptiveRateLimiter
from portfolio_engine.text.chunker import clean_filing_html

log = logging.getLogger("pt.sources.edgar")

CIK_LOOKUP_URL  = "https://www.sec.gov/files/company_tickers.json"
SUBMISSIONS_URL = "https://data.sec.gov/submissions/CIK{cik}.json"
ARCHIVE_URL     = "https://www.sec.gov/Archives/edgar/data/{cik}/{accession}/{document}"

FILING_QUOTAS = {"10-K": 1, "10-Q": 2, "8-K": 2}

_CIK_TABLE_KEY = "company_tickers"


def select_filings(
    entries: Iterable[Mapping[str, str]],
    window_start: date,
    window_end: date,
    quotas: Mapping[str, int] = FILING_QUOTAS,
) -> List[FilingReference]:
    """
    Pure selection step. Each entry has form, filing_date (YYYY-MM-DD) and url.
    Returns references inside the window, newest first, at most quotas[form]
    of each form.
    """
    candidates = []
    for e in entries:
        form = e.get("form")
        if form not in quotas:
            continue
        try:
            filed = datetime.strptime(e.get("filing_date", ""), "%Y-%m-%d").date()
        except ValueError:
            log.debug(f"Skipping filing with bad date {e.get('filing_date')!r}")
            continue
        if not (window_start <= filed <= window_end):
            continue
        candidates.append((filed, FilingReference(form_type=form,
                                                  filing_date=e["filing_date"],
                                                  document_url=e.get("url", ""))))

    candidates.sort(key=lambda c: c[0], reverse=True)

    counts: Dict[str, int] = {form: 0 for form in quotas}
    selected = []
    for _, ref in candidates:
        if counts[ref.form_type] < quotas[ref.form_type]:
            selected.append(ref)
            counts[ref.form_type] += 1
        if all(counts[f] >= quotas[f] for f in quotas):
            break
    return selected


def _recent_entries(cik: str, recent: dict) -> List[dict]:
    forms     = recent.get("form") or []
    dates     = recent.get("filingDate") or []
    accession = recent.get("accessionNumber") or []
    documents = recent.get("primaryDocument") or []
    rows = []
    for i, form in enumerate(forms):
        if i >= len(dates) or i >= len(accession) or i >= len(documents):
            break
        rows.append({
            "form":        form,
            "filing_date": dates[i],
            "url":         ARCHIVE_URL.format(cik=int(cik), accession=accession[i].replace("-", ""),
                                              document=documents[i]),
        })
    return rows


class EdgarSource(DataSource):

    def __init__(
        self,
        client: httpx.AsyncClient,
        limiter: AdaptiveRateLimiter,
        cik_cache: TTLCache,
        user_agent: str = config.SEC_USER_AGENT,
        window_days: int = config.FILING_WINDOW_DAYS,
    ):
        super().__init__(client)
        self.limiter     = limiter
        self.cik_cache   = cik_cache
        self.window_days = window_days
        self.headers = {
            "User-Agent":      user_agent,
            "Accept-Encoding": "gzip, deflate",
            "Accept":          "application/json, text/html, */*",
        }

    @property
    def name(self) -> str:
        return "SEC EDGAR"

    @property
    def timeout(self) -> float:
        return config.SEC_TIMEOUT

    async def _request(self, url: str) -> httpx.Response:
        """Rate-limited GET. Raises RateLimitBlocked without touching the network while blocked."""
        await self.limiter.acquire()
        try:
            r = await self._get(url, headers=self.headers)
        except UpstreamRateLimited:
            self.limiter.report_rate_limited()
            raise UpstreamRateLimited("SEC rate limit exceeded. Please try again later.")
        self.limiter.report_success()
        return r

    # ── CIK lookup ────────────────────────────────────────────
    async def _cik_table(self) -> Dict[str, str]:
        table = await self.cik_cache.get(_CIK_TABLE_KEY)
        if table is not None:
            return table
        r = await self._request(CIK_LOOKUP_URL)
        try:
            rows = r.json().values()
            table = {str(row["ticker"]).upper(): str(row["cik_str"]).zfill(10) for row in rows}
        except (ValueError, AttributeError, KeyError, TypeError) as e:
            raise UpstreamError(f"Invalid CIK table from SEC: {e}") from e
        await self.cik_cache.put(_CIK_TABLE_KEY, table)
        log.info(f"Loaded {len(table)} ticker → CIK mappings")
        return table

    async def lookup_cik(self, ticker: str) -> str:
        ticker = ticker.upper()
        table = await self._cik_table()
        cik = table.get(ticker)
        if not cik:
            raise FilingNotFound(ticker, f"No CIK found for ticker {ticker}")
        log.info(f"Found CIK for {ticker}: {cik}")
        return cik

    # ── Filing list ───────────────────────────────────────────
    async def list_filings(self, ticker: str, today: Optional[date] = None) -> List[FilingReference]:
        cik = await self.lookup_cik(ticker)
        r = await self._request(SUBMISSIONS_URL.format(cik=cik))
        try:
            recent = r.json()["filings"]["recent"]
        except (ValueError, KeyError, TypeError) as e:
            raise UpstreamError(f"Invalid submissions payload for {ticker}") from e

        end = today or date.today()
        start = end - timedelta(days=self.window_days)
        selected = select_filings(_recent_entries(cik, recent), start, end)
        if not selected:
            raise FilingNotFound(ticker, f"No filings found for {ticker} in the last {self.window_days} days")
        log.info(f"Selected {len(selected)} filings for {ticker}")
        return selected

    # ── Document text ─────────────────────────────────────────
    async def fetch_filing_text(self, ref: FilingReference) -> str:
        if not ref.document_url:
            raise UpstreamError("Invalid filing URL")
        r = await self._request(ref.document_url)
        text = clean_filing_html(r.text)
        if not text:
            raise UpstreamError(f"Empty filing document at {ref.document_url}")
        return text
