from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from moltbook_trends.moltbook.crawler import crawl_moltbook
from moltbook_trends.report.builder import build_mock_report, build_report_from_topics, report_key
from moltbook_trends.settings import Settings
from moltbook_trends.store.kv import HISTORY_KEY, KVStore, get_kv, prune_oldest_week_if_needed

log = logging.getLogger(__name__)


async def crawl_report(settings: Settings) -> Dict[str, Any]:
    """Build today's report from a live crawl, or from mock data if the crawl comes up empty."""
    log.info("Attempting to crawl Moltbook (browser=%s)", settings.browser_enabled)
    try:
        result = await crawl_moltbook(settings)
    except Exception:
        log.exception("Crawl error, falling back to mock data")
        return build_mock_report()

    if result.success and result.topics:
        log.info(
            "Real crawl successful: source=%s posts=%s topics=%s",
            result.source,
            len(result.posts),
            len(result.topics),
        )
        return build_report_from_topics(result.topics, result.posts)

    log.warning("Real crawl failed (%s), using mock data", result.error or "no topics matched")
    return build_mock_report()


async def save_report(kv: KVStore, report: Dict[str, Any], *, prune_threshold_bytes: int) -> str:
    date = str(report["date"])
    await kv.set(report_key(date), report)

    history = await kv.lrange(HISTORY_KEY, 0, -1)
    if date not in history:
        await kv.lpush(HISTORY_KEY, date)

    await prune_oldest_week_if_needed(kv, prune_threshold_bytes)
    return date


async def run_crawl(
    *,
    settings: Settings,
    kv: Optional[KVStore] = None,
    dry_run: bool = False,
) -> Dict[str, Any]:
    kv = kv or await get_kv(settings)
    report = await crawl_report(settings)

    if dry_run:
        log.info("[DRY] not storing report for %s (source=%s)", report["date"], report.get("source"))
        return {"success": True, "date": report["date"], "report": report}

    date = await save_report(kv, report, prune_threshold_bytes=settings.redis_prune_threshold_bytes)
    log.info("Crawl completed for %s (source=%s)", date, report.get("source"))
    return {"success": True, "date": date, "report": report}
