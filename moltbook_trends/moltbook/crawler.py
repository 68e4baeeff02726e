from __future__ import annotations

import logging
from typing import List, Optional

from moltbook_trends.moltbook.browser import BrowserCrawler
from moltbook_trends.moltbook.client import MoltbookClient
from moltbook_trends.moltbook.models import CrawlResult, Post
from moltbook_trends.moltbook.parsers import (
    cards_to_posts,
    extract_post_ids,
    extract_posts_from_html,
    extract_submolts_from_html,
    merge_cards,
    parse_next_data_posts,
    placeholder_posts,
)
from moltbook_trends.report.analyzer import analyze_posts
from moltbook_trends.settings import Settings

log = logging.getLogger(__name__)


def extract_from_html(html: str, base_url: str) -> CrawlResult:
    """Static-HTML tiers: __NEXT_DATA__, then the DOM, then bare post ids."""
    source = "next_data"
    posts: Optional[List[Post]] = parse_next_data_posts(html, base_url)

    if not posts:
        source = "html"
        posts = extract_posts_from_html(html, base_url)

    if not posts:
        source = "regex"
        ids = extract_post_ids(html)
        if not ids:
            return CrawlResult.failed("No post IDs in HTML")
        posts = placeholder_posts(ids, base_url)

    submolts = extract_submolts_from_html(html)
    topics = analyze_posts(posts, base_url=base_url)
    log.info(
        "HTML fallback (%s): %s posts, %s topics, %s submolts",
        source,
        len(posts),
        len(topics),
        len(submolts),
    )
    return CrawlResult(
        success=True,
        topics=topics,
        posts=posts,
        submolts=submolts or None,
        source=source,
    )


async def fetch_posts_from_html(settings: Settings, client: Optional[MoltbookClient] = None) -> CrawlResult:
    client = client or MoltbookClient.from_settings(settings)
    try:
        html = await client.fetch_home_html()
        return extract_from_html(html, settings.base_url)
    except Exception as e:
        log.warning("HTML fallback failed: %r", e)
        return CrawlResult.failed(str(e) or e.__class__.__name__)


async def crawl_with_browser(settings: Settings, crawler: Optional[BrowserCrawler] = None) -> CrawlResult:
    crawler = crawler or BrowserCrawler(settings=settings)
    snap = await crawler.snapshot()

    merged = merge_cards(snap.home, snap.top)
    posts = cards_to_posts(merged, settings.base_url)
    if not posts:
        log.warning("No post links found on page")
        return CrawlResult.failed("No posts found after crawl")

    topics = analyze_posts(posts, base_url=settings.base_url)
    log.info("Browser crawl: %s posts, %s topics", len(posts), len(topics))
    return CrawlResult(
        success=True,
        topics=topics,
        posts=posts,
        submolts=snap.submolts,
        source="browser",
    )


async def crawl_moltbook(
    settings: Settings,
    *,
    client: Optional[MoltbookClient] = None,
    crawler: Optional[BrowserCrawler] = None,
) -> CrawlResult:
    """Crawl Moltbook through every tier until one yields posts.

    Never raises: failures come back as ``CrawlResult(success=False)``.
    """
    if not settings.browser_enabled:
        log.info("Browser disabled (serverless=%s), using HTML fallback", settings.serverless)
        return await fetch_posts_from_html(settings, client)

    try:
        return await crawl_with_browser(settings, crawler)
    except Exception as e:
        msg = str(e) or e.__class__.__name__
        log.exception("Browser crawl error, trying HTML fallback")
        fallback = await fetch_posts_from_html(settings, client)
        if fallback.success:
            return fallback
        return CrawlResult.failed(msg)
