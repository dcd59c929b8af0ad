"""Portfolio Tracker core: config, caching, orchestration, text handling and endpoint logic."""
