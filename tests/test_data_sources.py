from datetime import date

import anthropic
import httpx
import pytest

from conftest import FakeAnthropic, chart_payload, details_payload
from data_sources import EdgarSource, LLMSummarizer, NewsSource, QuoteSource, Translator, select_filings
from data_sources.quotes import normalise_symbol
from portfolio_engine.cache.ttl_cache import TTLCache
from portfolio_engine.errors import (
    FilingNotFound, NetworkError, RateLimitBlocked, SourceUnavailable, UnsupportedLanguage,
    UpstreamError, UpstreamRateLimited,
)
from portfolio_engine.orchestrator.rate_limiter import AdaptiveRateLimiter
from portfolio_engine.text.chunker import Section

CHART = "query1.finance.yahoo.com/v8/finance/chart/"
CHART2 = "query2.finance.yahoo.com/v8/finance/chart/"
DETAILS = "query1.finance.yahoo.com/v7/finance/quote"
SEARCH = "query1.finance.yahoo.com/v1/finance/search"
CIK_TABLE = "www.sec.gov/files/company_tickers.json"
SUBMISSIONS = "data.sec.gov/submissions/"
TRANSLATE = "translate.googleapis.com/translate_a/single"


# ── Quotes ─────────────────────────────────────────────────────

def test_normalise_symbol_maps_exchange_prefixes():
    assert normalise_symbol(" lon:vod ") == "VOD.L"
    assert normalise_symbol("NASDAQ:MSFT") == "MSFT"
    assert normalise_symbol("aapl") == "AAPL"


@pytest.mark.asyncio
async def test_quote_from_primary_variant(upstream):
    upstream.on(CHART + "MSFT", httpx.Response(200, json=chart_payload()))
    upstream.on(DETAILS, httpx.Response(200, json=details_payload()))

    quote = await QuoteSource(upstream.client()).fetch("msft")

    assert quote.ticker == "MSFT"
    assert quote.name == "Microsoft Corporation"
    assert quote.price == 410.5
    assert quote.change == 10.5
    assert quote.direction == "up"
    assert quote.market_cap == "3.05T USD"
    assert quote.volume == "21.50M"
    assert quote.pe_ratio == "35.12"


@pytest.mark.asyncio
async def test_quote_falls_through_variants_in_order(upstream):
    upstream.on(CHART + "ABC", httpx.Response(500))
    upstream.on(CHART2 + "ABC", httpx.Response(200, json={"chart": {"result": []}}))
    upstream.on(CHART + "ABC.NE", httpx.Response(200, json=chart_payload(price=12.0, previous_close=12.5,
                                                                         name="ABC Corp")))
    upstream.on(CHART + "ABC.TO", httpx.Response(200, json=chart_payload()))
    upstream.on(DETAILS, httpx.Response(503))

    quote = await QuoteSource(upstream.client()).fetch("ABC")

    assert quote.name == "ABC Corp"
    assert quote.direction == "down"
    assert quote.market_cap == "N/A"
    assert upstream.count(CHART + "ABC.TO") == 0
    assert upstream.count(CHART2 + "ABC") == 1


@pytest.mark.asyncio
async def test_quote_unavailable_when_every_variant_fails(upstream):
    with pytest.raises(SourceUnavailable) as exc:
        await QuoteSource(upstream.client()).fetch("ZZZZ")
    assert exc.value.ticker == "ZZZZ"
    assert upstream.count(CHART) + upstream.count(CHART2) == 4


# ── News ───────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_yahoo_news_parsed(upstream):
    upstream.on(SEARCH, httpx.Response(200, json={"news": [
        {"title": "Apple beats", "link": "https://x/1", "publisher": "Reuters",
         "providerPublishTime": 1700000000},
        {"title": "", "link": "https://x/2"},
    ]}))
    items = await NewsSource(upstream.client(), api_key="").fetch("AAPL")
    assert [i.title for i in items] == ["Apple beats"]
    assert items[0].source == "Reuters"
    assert items[0].pub_date.startswith("2023-11-14")


@pytest.mark.asyncio
async def test_newsapi_used_when_yahoo_is_empty(upstream):
    upstream.on(SEARCH, httpx.Response(200, json={"news": []}))
    upstream.on("newsapi.org/v2/everything", httpx.Response(200, json={"articles": [
        {"title": "Tesla recalls", "url": "https://n/1", "source": {"name": "CNBC"},
         "publishedAt": "2024-03-01T10:00:00Z", "description": "Recall"},
    ]}))
    items = await NewsSource(upstream.client(), api_key="secret").fetch("TSLA")
    assert items[0].source == "CNBC"
    assert upstream.calls[-1].headers["X-Api-Key"] == "secret"


def test_newsapi_variant_needs_a_key(upstream):
    assert NewsSource(upstream.client(), api_key="").variants == ["yahoo"]


# ── EDGAR ──────────────────────────────────────────────────────

def entry(form, filed):
    return {"form": form, "filing_date": filed, "url": f"https://sec/{form}/{filed}"}


def test_select_filings_applies_quotas_newest_first():
    entries = [
        entry("10-K", "2024-02-01"), entry("10-K", "2023-02-01"), entry("10-K", "2022-12-01"),
        entry("10-Q", "2024-10-25"), entry("10-Q", "2024-07-25"), entry("10-Q", "2024-04-25"),
        entry("10-Q", "2023-10-25"), entry("10-Q", "2023-07-25"),
        entry("8-K", "2024-09-01"),
        entry("S-1", "2024-09-02"),
    ]
    selected = select_filings(entries, date(2022, 11, 1), date(2024, 11, 1))
    assert [(r.form_type, r.filing_date) for r in selected] == [
        ("10-Q", "2024-10-25"),
        ("8-K", "2024-09-01"),
        ("10-Q", "2024-07-25"),
        ("10-K", "2024-02-01"),
    ]


def test_select_filings_ignores_filings_outside_window():
    entries = [entry("10-K", "2020-02-01"), entry("8-K", "bad-date")]
    assert select_filings(entries, date(2022, 11, 1), date(2024, 11, 1)) == []


def make_edgar(upstream, clock, fake_sleep):
    limiter = AdaptiveRateLimiter(clock=clock, sleep=fake_sleep, min_interval=1.0)
    return EdgarSource(upstream.client(), limiter, TTLCache("cik", clock=clock)), limiter


CIK_ROWS = {"0": {"cik_str": 789019, "ticker": "MSFT", "title": "MICROSOFT CORP"}}


@pytest.mark.asyncio
async def test_list_filings_resolves_cik_and_builds_archive_urls(upstream, clock, fake_sleep):
    upstream.on(CIK_TABLE, httpx.Response(200, json=CIK_ROWS))
    upstream.on(SUBMISSIONS + "CIK0000789019.json", httpx.Response(200, json={"filings": {"recent": {
        "form":            ["10-Q", "4", "10-K"],
        "filingDate":      ["2024-10-30", "2024-10-01", "2024-07-30"],
        "accessionNumber": ["0000950170-24-118967", "x", "0000950170-24-087843"],
        "primaryDocument": ["msft-20240930.htm", "x.xml", "msft-20240630.htm"],
    }}}))
    edgar, _ = make_edgar(upstream, clock, fake_sleep)

    refs = await edgar.list_filings("MSFT", today=date(2024, 11, 15))

    assert [r.form_type for r in refs] == ["10-Q", "10-K"]
    assert refs[0].document_url == (
        "https://www.sec.gov/Archives/edgar/data/789019/000095017024118967/msft-20240930.htm"
    )
    assert upstream.calls[0].headers["User-Agent"]


@pytest.mark.asyncio
async def test_cik_table_is_cached(upstream, clock, fake_sleep):
    upstream.on(CIK_TABLE, httpx.Response(200, json=CIK_ROWS))
    edgar, _ = make_edgar(upstream, clock, fake_sleep)
    assert await edgar.lookup_cik("msft") == "0000789019"
    with pytest.raises(FilingNotFound, match="No CIK found for ticker ZZZZ"):
        await edgar.lookup_cik("ZZZZ")
    assert upstream.count(CIK_TABLE) == 1


@pytest.mark.asyncio
async def test_edgar_429_blocks_further_requests(upstream, clock, fake_sleep):
    upstream.on(CIK_TABLE, httpx.Response(429))
    edgar, limiter = make_edgar(upstream, clock, fake_sleep)

    with pytest.raises(UpstreamRateLimited, match="SEC rate limit exceeded"):
        await edgar.lookup_cik("MSFT")
    assert limiter.state.is_blocked

    with pytest.raises(RateLimitBlocked):
        await edgar.lookup_cik("MSFT")
    assert upstream.count(CIK_TABLE) == 1


@pytest.mark.asyncio
async def test_fetch_filing_text_cleans_document(upstream, clock, fake_sleep):
    from portfolio_engine.models.payloads import FilingReference
    upstream.on("www.sec.gov/Archives/", httpx.Response(200, text="<html><p>Item 1. Business</p><p>Cloud</p></html>"))
    edgar, _ = make_edgar(upstream, clock, fake_sleep)
    ref = FilingReference("10-K", "2024-07-30", "https://www.sec.gov/Archives/edgar/data/1/2/doc.htm")
    assert await edgar.fetch_filing_text(ref) == "Item 1. Business\nCloud"


# ── Translator ─────────────────────────────────────────────────

GTX_PAYLOAD = [[["שלום ", "Hello ", None, None], ["עולם", "world", None, None]], None, "en"]


@pytest.mark.asyncio
async def test_translate_joins_segments(upstream, fake_sleep):
    upstream.on(TRANSLATE, httpx.Response(200, json=GTX_PAYLOAD))
    out = await Translator(upstream.client(), sleep=fake_sleep).translate("Hello world", "iw")
    assert out == "שלום עולם"
    params = upstream.calls[0].url.params
    assert params["client"] == "gtx"
    assert params["tl"] == "iw"


@pytest.mark.asyncio
async def test_translate_retries_rate_limit(upstream, fake_sleep):
    responses = iter([
        httpx.Response(429, headers={"retry-after": "3"}),
        httpx.Response(200, json=GTX_PAYLOAD),
    ])
    upstream.on(TRANSLATE, lambda request: next(responses))
    out = await Translator(upstream.client(), sleep=fake_sleep).translate("Hello world")
    assert out == "שלום עולם"
    assert fake_sleep.calls == [3.0]


@pytest.mark.asyncio
async def test_translate_rejects_malformed_language_without_network(upstream, fake_sleep):
    with pytest.raises(UnsupportedLanguage):
        await Translator(upstream.client(), sleep=fake_sleep).translate("Hi", "not a language")
    assert upstream.calls == []


@pytest.mark.asyncio
async def test_translate_network_error(upstream, fake_sleep):
    def down(request):
        raise httpx.ConnectError("connection refused", request=request)

    upstream.on(TRANSLATE, down)
    with pytest.raises(NetworkError):
        await Translator(upstream.client(), sleep=fake_sleep).translate("Hi")


# ── LLM ────────────────────────────────────────────────────────

@pytest.mark.asyncio
async def test_summarize_filing_caps_chunks(fake_sleep):
    fake = FakeAnthropic("Strong quarter.")
    llm = LLMSummarizer(client=fake, max_chunks=2, sleep=fake_sleep)
    sections = [Section(f"ITEM {i}", "x" * 3500, priority=i) for i in range(5)]

    summary = await llm.summarize_filing("10-K", sections)

    assert summary == "Strong quarter.\n\nStrong quarter."
    assert len(fake.messages.calls) == 2
    assert "10-K" in fake.messages.calls[0]["messages"][0]["content"]


@pytest.mark.asyncio
async def test_llm_rate_limit_is_retried(fake_sleep):
    fake = FakeAnthropic("Overview.")
    request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
    limited = anthropic.RateLimitError(
        "rate limited",
        response=httpx.Response(429, headers={"retry-after": "5"}, request=request),
        body=None,
    )
    original = fake.messages.create
    attempts = []

    def flaky(**kwargs):
        attempts.append(1)
        if len(attempts) == 1:
            raise limited
        return original(**kwargs)

    fake.messages.create = flaky
    llm = LLMSummarizer(client=fake, sleep=fake_sleep)

    assert await llm.company_overview("AAPL", 190.0, "2.9T USD") == "Overview."
    assert fake_sleep.calls == [5.0]


@pytest.mark.asyncio
async def test_llm_disabled_without_key():
    llm = LLMSummarizer(api_key="")
    assert not llm.enabled
    with pytest.raises(UpstreamError, match="disabled"):
        await llm.complete("system", "prompt")
