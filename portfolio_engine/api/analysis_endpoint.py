"""
Portfolio Tracker — Analysis Endpoints
───────────────────────────────────────
/api/analyze/basic   LLM company overview, seeded with the cached quote
/api/analyze/sec     per-filing LLM summaries of recent 10-K/10-Q/8-K

SEC flow per request:
  list_filings (quota + window)  →  for each filing, 10-K first:
      fetch text → extract sections → pack → summarize (with retry)
Filings are processed in form priority so the annual report is done first
if EDGAR starts refusing midway; the response is newest-first.
"""

import logging

from portfolio_engine.api.stock_endpoint import get_quote_response
from portfolio_engine.errors import SourceUnavailable, UpstreamError
from portfolio_engine.models.payloads import FilingAnalysis
from portfolio_engine.services import Services
from portfolio_engine.text.chunker import extract_sections, order_by_form

log = logging.getLogger("pt.api.analysis")


async def basic_analysis(services: Services, ticker: str) -> dict:
    try:
        quote = await get_quote_response(services, ticker)
    except SourceUnavailable as e:
        log.warning(f"Could not fetch stock data for {ticker}: {e}")
        quote = {"price": "N/A", "marketCap": "N/A"}

    overview = await services.llm.company_overview(ticker, quote.get("price", "N/A"),
                                                    quote.get("marketCap", "N/A"))
    return {"ticker": ticker, "overview": overview}


async def sec_analysis(services: Services, ticker: str) -> dict:
    if not services.llm.enabled:
        raise UpstreamError(f"AI analysis for {ticker} is disabled, set ANTHROPIC_API_KEY")

    log.info(f"Starting SEC analysis for {ticker}")
    filings = await services.edgar.list_filings(ticker)

    analyses = {}
    for i, ref in enumerate(order_by_form(filings)):
        if i:
            await services.sleep(services.filing_pause)
        text = await services.edgar.fetch_filing_text(ref)
        sections = extract_sections(text)
        log.info(f"{ticker} {ref.form_type} {ref.filing_date}: {len(sections)} sections")
        summary = await services.llm.summarize_filing(ref.form_type, sections)
        analyses[ref.document_url] = FilingAnalysis(ref.form_type, ref.filing_date, summary)

    return {
        "ticker":  ticker,
        "filings": [analyses[ref.document_url].to_dict() for ref in filings],
    }
