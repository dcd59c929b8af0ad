"""
Portfolio Tracker — Configuration
──────────────────────────────────
Every tunable lives here, read once from the environment (or a local .env).

Environment variables:
    PORT                      = 3002
    REDIS_URL                 = redis://localhost:6379   (unset → in-memory cache)
    SEC_USER_AGENT            = "Company-Research-Tool contact@company.com"
    SEC_MIN_INTERVAL          = 1.0      # seconds between EDGAR requests
    NEWS_API_KEY              = <newsapi.org key>        (optional)
    ANTHROPIC_API_KEY         = sk-ant-...
    WATCHLIST_API_URL         = http://localhost:3002/api
"""

import os

from dotenv import load_dotenv

load_dotenv()

# ── Server ─────────────────────────────────────────────────────
PORT            = int(os.environ.get("PORT", "3002"))
API_PREFIX      = "/api"
REDIS_URL       = os.environ.get("REDIS_URL", "")

# ── Outbound HTTP ──────────────────────────────────────────────
QUOTE_TIMEOUT     = float(os.environ.get("QUOTE_TIMEOUT", "8"))
NEWS_TIMEOUT      = float(os.environ.get("NEWS_TIMEOUT", "5"))
SEC_TIMEOUT       = float(os.environ.get("SEC_TIMEOUT", "30"))
TRANSLATE_TIMEOUT = float(os.environ.get("TRANSLATE_TIMEOUT", "10"))

# ── SEC EDGAR ──────────────────────────────────────────────────
SEC_USER_AGENT      = os.environ.get("SEC_USER_AGENT", "Company-Research-Tool contact@company.com")
SEC_MIN_INTERVAL    = float(os.environ.get("SEC_MIN_INTERVAL", "1.0"))
SEC_BLOCK_BASE      = float(os.environ.get("SEC_BLOCK_BASE", str(10 * 60)))
SEC_BLOCK_MAX       = float(os.environ.get("SEC_BLOCK_MAX", str(24 * 3600)))
FILING_WINDOW_DAYS  = int(os.environ.get("FILING_WINDOW_DAYS", "730"))
FILING_PAUSE        = float(os.environ.get("FILING_PAUSE", "2.0"))

# ── News ───────────────────────────────────────────────────────
NEWS_API_KEY   = os.environ.get("NEWS_API_KEY", "")
NEWS_PAGE_SIZE = int(os.environ.get("NEWS_PAGE_SIZE", "5"))

# ── LLM ────────────────────────────────────────────────────────
ANTHROPIC_API_KEY   = os.getenv("ANTHROPIC_API_KEY", "")
LLM_MODEL           = os.getenv("LLM_MODEL", "claude-sonnet-4-20250514")
LLM_MAX_TOKENS      = int(os.getenv("LLM_MAX_TOKENS", "2500"))
LLM_MAX_CHUNKS      = int(os.getenv("LLM_MAX_CHUNKS", "3"))
ANALYSIS_LANGUAGE   = os.getenv("ANALYSIS_LANGUAGE", "Hebrew")
RETRY_MAX_ATTEMPTS  = int(os.getenv("RETRY_MAX_ATTEMPTS", "3"))
RETRY_BASE_DELAY    = float(os.getenv("RETRY_BASE_DELAY", "2.0"))
RETRY_MAX_DELAY     = float(os.getenv("RETRY_MAX_DELAY", "60.0"))

# ── Translation ────────────────────────────────────────────────
TRANSLATE_URL       = os.getenv("TRANSLATE_URL", "https://translate.googleapis.com/translate_a/single")
TRANSLATE_MAX_CHARS = int(os.getenv("TRANSLATE_MAX_CHARS", "5000"))
DEFAULT_LANGUAGE    = os.getenv("DEFAULT_LANGUAGE", "iw")

# ── Watchlist engine ───────────────────────────────────────────
WATCHLIST_API_URL         = os.getenv("WATCHLIST_API_URL", f"http://localhost:{PORT}{API_PREFIX}")
WATCHLIST_STORAGE         = os.getenv("WATCHLIST_STORAGE", "watchlist_state.json")
WATCHLIST_REFRESH_SECONDS = int(os.getenv("WATCHLIST_REFRESH_SECONDS", "60"))
WATCHLIST_PORT            = int(os.getenv("WATCHLIST_PORT", "8001"))
