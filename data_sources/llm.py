"""
Portfolio Tracker — 🧠 LLM Summarizer
──────────────────────────────────────
Company overviews and filing summaries via the Anthropic Messages API.

The SDK client is synchronous, so calls run in the default executor. SDK-side
retries are switched off (max_retries=0); with_retry owns backoff so the
attempt cap is enforced in one place.

Long filings are packed into ≤4000-char groups (pack_sections) and each group
is summarized separately, capped at LLM_MAX_CHUNKS groups per filing.
"""

import asyncio
import logging
from typing import Any, Optional, Sequence

import anthropic
from anthropic import Anthropic

from data_sources.base import parse_retry_after
from portfolio_engine import config
from portfolio_engine.errors import NetworkError, UpstreamError, UpstreamRateLimited
from portfolio_engine.orchestrator.retry import Failure, Outcome, Success, with_retry
from portfolio_engine.text.chunker import Section, format_sections, pack_sections

log = logging.getLogger("pt.sources.llm")

ANALYSIS_LANGUAGE = config.ANALYSIS_LANGUAGE

FILING_SYSTEM_PROMPT = (
    "You are an expert financial analyst specializing in SEC filing analysis. "
    f"Write in {ANALYSIS_LANGUAGE}. Focus on material changes in financial position, "
    "significant business developments, emerging risks and opportunities, and "
    "management's forward-looking statements."
)

OVERVIEW_SYSTEM_PROMPT = (
    "You are a financial analyst providing structured company analysis. "
    f"Write in {ANALYSIS_LANGUAGE}. When giving investment scores use a 1-10 scale "
    "(half points allowed) and explain the rationale."
)

OVERVIEW_SECTIONS = [
    "Company overview", "Financial performance", "Organizational developments",
    "Market analysis", "Regulatory risks", "Outlook", "Investment case",
]


class LLMSummarizer:

    def __init__(
        self,
        api_key: str = config.ANTHROPIC_API_KEY,
        model: str = config.LLM_MODEL,
        max_tokens: int = config.LLM_MAX_TOKENS,
        max_chunks: int = config.LLM_MAX_CHUNKS,
        max_attempts: int = config.RETRY_MAX_ATTEMPTS,
        client: Optional[Any] = None,
        sleep=asyncio.sleep,
    ):
        self.model        = model
        self.max_tokens   = max_tokens
        self.max_chunks   = max_chunks
        self.max_attempts = max_attempts
        self._sleep       = sleep
        if client is not None:
            self.client = client
        else:
            self.client = Anthropic(api_key=api_key, max_retries=0) if api_key else None

    @property
    def enabled(self) -> bool:
        return self.client is not None

    async def _attempt(self, system: str, prompt: str, max_tokens: int) -> Outcome:
        loop = asyncio.get_event_loop()
        try:
            response = await loop.run_in_executor(None, lambda: self.client.messages.create(
                model=self.model,
                max_tokens=max_tokens,
                system=system,
                messages=[{"role": "user", "content": prompt}],
            ))
        except anthropic.RateLimitError as e:
            retry_after = parse_retry_after(getattr(e.response, "headers", None))
            return Failure(UpstreamRateLimited(f"LLM rate limit: {e}", retry_after=retry_after),
                           rate_limited=True, retry_after=retry_after)
        except anthropic.APIConnectionError as e:
            return Failure(NetworkError(f"LLM unreachable: {e}"))
        except anthropic.APIError as e:
            return Failure(UpstreamError(f"LLM error: {e}"))

        text = "".join(getattr(block, "text", "") for block in response.content).strip()
        if not text:
            return Failure(UpstreamError("Empty completion from LLM"))
        return Success(text)

    async def complete(self, system: str, prompt: str, max_tokens: Optional[int] = None,
                       label: str = "llm") -> str:
        if not self.enabled:
            raise UpstreamError("AI analysis disabled — set ANTHROPIC_API_KEY")
        return await with_retry(
            lambda: self._attempt(system, prompt, max_tokens or self.max_tokens),
            max_attempts=self.max_attempts,
            label=label,
            sleep=self._sleep,
        )

    async def summarize_filing(self, form_type: str, sections: Sequence[Section]) -> str:
        groups = pack_sections(sections)
        if len(groups) > self.max_chunks:
            log.info(f"{form_type}: {len(groups)} chunks, summarizing the first {self.max_chunks}")
        parts = []
        for i, group in enumerate(groups[: self.max_chunks]):
            prompt = (
                f"Analyze this {form_type} filing excerpt (part {i + 1} of "
                f"{min(len(groups), self.max_chunks)}). Cover: executive summary, financial "
                "analysis, business developments, risks and opportunities, comparison with "
                "prior periods, outlook.\n\nContent to analyze:\n"
                + format_sections(group)
            )
            parts.append(await self.complete(FILING_SYSTEM_PROMPT, prompt, label=f"{form_type} summary"))
        return "\n\n".join(parts)

    async def company_overview(self, ticker: str, price: Any = "N/A", market_cap: Any = "N/A") -> str:
        prompt = (
            f"Analyze the company {ticker} (Current Price: {price}, Market Cap: {market_cap}) "
            "and provide a detailed overview in these sections, separated by two newlines:\n"
            + "\n".join(f"{i + 1}. {title}" for i, title in enumerate(OVERVIEW_SECTIONS))
        )
        return await self.complete(OVERVIEW_SYSTEM_PROMPT, prompt, max_tokens=3000,
                                   label=f"{ticker} overview")
