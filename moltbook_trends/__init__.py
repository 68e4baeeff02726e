"""Moltbook daily trend reports.

This package contains:
- Moltbook extraction (headless browser first, plain HTML tiers as fallback)
- Topic analysis and the daily report builder (with mock fixtures)
- A small key-value store for reports (in-memory or Redis)
- FastAPI app that serves reports to the dashboard

When every extraction tier fails, the report falls back to mock data so the
dashboard always has something to show.
"""

__all__ = [
    "settings",
    "logging_conf",
]
