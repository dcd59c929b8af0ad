"""
Portfolio Tracker — TTL Configuration
──────────────────────────────────────
Single source of truth for cache durations.
Organised by data kind — how fast the real world changes.
"""

import os

# ── Per namespace TTL (seconds) ───────────────────────────────

TTL = {
    # Fast-changing, the watchlist polls every minute
    "quote":  int(os.environ.get("QUOTE_CACHE_TTL", "30")),

    # Headlines move slower; NewsAPI free tier is 100 req/day
    "news":   int(os.environ.get("NEWS_CACHE_TTL", str(5 * 60))),

    # EDGAR ticker → CIK table, ~10k rows, changes a few times a week
    "cik":    int(os.environ.get("CIK_CACHE_TTL", str(24 * 3600))),
}
