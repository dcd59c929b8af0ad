"""
Portfolio Tracker — Error Taxonomy
───────────────────────────────────
  ValidationError        client fault, never retried
  SourceUnavailable      every fallback variant failed
  RateLimitBlocked       local limiter refuses until the block window ends
  UpstreamRateLimited    a remote service answered 429
  FilingNotFound         no CIK or no filings in the window
  UpstreamError          any other remote failure
  NetworkError           remote host unreachable or timed out
"""

from typing import Optional


class PortfolioError(Exception):
    """Base class for every error raised by the tracker."""


class ValidationError(PortfolioError):

    def __init__(self, message: str, code: str = "VALIDATION_ERROR"):
        super().__init__(message)
        self.message = message
        self.code = code


class DuplicateTicker(ValidationError):

    def __init__(self, ticker: str):
        super().__init__(f"{ticker} is already in the watchlist", code="DUPLICATE_TICKER")
        self.ticker = ticker


class SourceUnavailable(PortfolioError):

    def __init__(self, ticker: str, last_error: Optional[BaseException] = None):
        detail = f": {last_error}" if last_error else ""
        super().__init__(f"No source variant returned data for {ticker}{detail}")
        self.ticker = ticker
        self.last_error = last_error


class RateLimitBlocked(PortfolioError):

    def __init__(self, retry_after: float, service: str = "SEC API"):
        self.retry_after = max(0.0, float(retry_after))
        super().__init__(f"{service} is blocked. Please wait {int(self.retry_after + 0.999)} seconds.")


class UpstreamRateLimited(PortfolioError):

    def __init__(self, message: str, retry_after: Optional[float] = None):
        super().__init__(message)
        self.retry_after = retry_after


class FilingNotFound(PortfolioError):

    def __init__(self, ticker: str, reason: str):
        super().__init__(reason)
        self.ticker = ticker


class UpstreamError(PortfolioError):
    """Network failures, unexpected status codes and unparseable payloads."""


class NetworkError(UpstreamError):
    """The remote host could not be reached or timed out."""


class UnsupportedLanguage(ValidationError):

    def __init__(self, language: str):
        super().__init__(f"Translation to '{language}' is not supported", code="UNSUPPORTED_LANGUAGE")
        self.language = language
