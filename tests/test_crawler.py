import asyncio
import dataclasses

import pytest

import moltbook_trends.jobs.crawl_report as crawl_report_mod
from moltbook_trends.jobs.crawl_report import crawl_report, run_crawl, save_report
from moltbook_trends.moltbook import client as client_mod
from moltbook_trends.moltbook import crawler as crawler_mod
from moltbook_trends.moltbook.browser import FeedSnapshot
from moltbook_trends.moltbook.client import MoltbookClient, RetryableStatus
from moltbook_trends.moltbook.crawler import crawl_moltbook, extract_from_html
from moltbook_trends.moltbook.models import CrawlResult, RawPostCard, Submolt
from moltbook_trends.report.analyzer import analyze_posts
from moltbook_trends.store.kv import HISTORY_KEY, MemoryKV

from samples import BASE_URL, FEED_HTML, NEXT_DATA_HTML, POST_1, POST_2, POST_3, POST_5, SCRIPT_ONLY_HTML


class FakeClient:
    def __init__(self, html=None, exc=None) -> None:
        self.html = html
        self.exc = exc
        self.calls = 0

    async def fetch_home_html(self) -> str:
        self.calls += 1
        if self.exc is not None:
            raise self.exc
        return self.html


class FakeCrawler:
    def __init__(self, snap=None, exc=None) -> None:
        self.snap = snap
        self.exc = exc

    async def snapshot(self) -> FeedSnapshot:
        if self.exc is not None:
            raise self.exc
        return self.snap


def _card(pid: str, title: str, text: str = "") -> RawPostCard:
    return RawPostCard(id=pid, href=f"/post/{pid}", title=title, card_text=text)


def test_extract_from_html_tiers():
    dom = extract_from_html(FEED_HTML, BASE_URL)
    assert dom.success and dom.source == "html"
    assert [t.id for t in dom.topics] == ["memorySystem", "gitCollaboration"]
    assert [s.name for s in dom.submolts] == ["m/general", "m/tools"]

    nxt = extract_from_html(NEXT_DATA_HTML, BASE_URL)
    assert nxt.source == "next_data"
    assert [t.id for t in nxt.topics] == ["costOptimization"]
    assert nxt.submolts is None

    ids = extract_from_html(SCRIPT_ONLY_HTML, BASE_URL)
    assert ids.success and ids.source == "regex"
    assert [p.title for p in ids.posts] == ["Post", "Post"]
    assert ids.posts[0].url == f"{BASE_URL}/post/{POST_5}"
    assert ids.topics == []


def test_extract_from_html_without_ids():
    result = extract_from_html("<html><body>maintenance</body></html>", BASE_URL)
    assert not result.success
    assert result.error == "No post IDs in HTML"


def test_crawl_uses_html_when_browser_disabled(settings):
    client = FakeClient(html=FEED_HTML)
    crawler = FakeCrawler(exc=AssertionError("browser must not run"))
    result = asyncio.run(crawl_moltbook(settings, client=client, crawler=crawler))
    assert result.success and result.source == "html"
    assert client.calls == 1


def test_crawl_skips_browser_when_serverless(browser_settings):
    settings = dataclasses.replace(browser_settings, serverless=True)
    assert not settings.browser_enabled
    result = asyncio.run(crawl_moltbook(settings, client=FakeClient(html=NEXT_DATA_HTML)))
    assert result.source == "next_data"


def test_browser_crawl_top_feed_wins(browser_settings):
    snap = FeedSnapshot(
        home=[_card(POST_1, "old title"), _card(POST_2, "Git worktrees", "u/bob\n4 votes")],
        top=[_card(POST_1, "Memory that scales", "u/alice\nm/general\n9 upvotes\n2 comments")],
        submolts=[Submolt(name="m/general", member_count=10)],
    )
    client = FakeClient(exc=AssertionError("html must not run"))
    result = asyncio.run(crawl_moltbook(browser_settings, client=client, crawler=FakeCrawler(snap=snap)))

    assert result.success and result.source == "browser"
    assert [p.id for p in result.posts] == [POST_1, POST_2]
    first = result.posts[0]
    assert first.title == "Memory that scales"
    assert (first.author, first.submolt, first.votes, first.comments) == ("u/alice", "m/general", 9, 2)
    assert [t.id for t in result.topics] == ["memorySystem", "gitCollaboration"]
    assert result.submolts[0].member_count == 10
    assert client.calls == 0


def test_browser_crawl_without_cards(browser_settings):
    client = FakeClient(exc=AssertionError("html must not run"))
    result = asyncio.run(crawl_moltbook(browser_settings, client=client, crawler=FakeCrawler(snap=FeedSnapshot())))
    assert not result.success
    assert result.error == "No posts found after crawl"


def test_browser_error_falls_back_to_html(browser_settings):
    client = FakeClient(html=FEED_HTML)
    crawler = FakeCrawler(exc=RuntimeError("chromium crashed"))
    result = asyncio.run(crawl_moltbook(browser_settings, client=client, crawler=crawler))
    assert result.success and result.source == "html"


def test_browser_and_html_both_fail(browser_settings):
    client = FakeClient(exc=OSError("network down"))
    crawler = FakeCrawler(exc=RuntimeError("chromium crashed"))
    result = asyncio.run(crawl_moltbook(browser_settings, client=client, crawler=crawler))
    assert not result.success
    # the browser error is the one reported
    assert result.error == "chromium crashed"


def test_html_parse_error_is_a_failed_result(monkeypatch, settings):
    def broken_extract(html, base_url):
        raise RecursionError("maximum recursion depth exceeded")

    monkeypatch.setattr(crawler_mod, "extract_from_html", broken_extract)
    result = asyncio.run(crawl_moltbook(settings, client=FakeClient(html=FEED_HTML)))
    assert not result.success
    assert "recursion" in result.error


def test_deeply_nested_next_data_falls_through(settings):
    deep = (
        '<script id="__NEXT_DATA__" type="application/json">'
        + "[" * 100000
        + "]" * 100000
        + "</script>"
        + FEED_HTML
    )
    result = asyncio.run(crawl_moltbook(settings, client=FakeClient(html=deep)))
    assert result.success and result.source == "html"


def test_client_retries_then_succeeds(monkeypatch):
    calls = []
    sleeps = []

    async def fake_get_text(self, url):
        calls.append(url)
        if len(calls) < 3:
            raise RetryableStatus(503, url)
        return "<html></html>"

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(MoltbookClient, "_get_text", fake_get_text)
    monkeypatch.setattr(client_mod.asyncio, "sleep", fake_sleep)

    client = MoltbookClient(base_url=BASE_URL, request_attempts=3)
    assert asyncio.run(client.fetch_home_html()) == "<html></html>"
    assert calls == [BASE_URL] * 3
    assert len(sleeps) == 2
    assert 1.0 <= sleeps[0] < 2.0
    assert 2.0 <= sleeps[1] < 3.0


def test_client_gives_up_after_last_attempt(monkeypatch):
    sleeps = []

    async def fake_get_text(self, url):
        raise RetryableStatus(429, url)

    async def fake_sleep(seconds):
        sleeps.append(seconds)

    monkeypatch.setattr(MoltbookClient, "_get_text", fake_get_text)
    monkeypatch.setattr(client_mod.asyncio, "sleep", fake_sleep)

    client = MoltbookClient(base_url=BASE_URL, request_attempts=2)
    with pytest.raises(RetryableStatus) as exc_info:
        asyncio.run(client.fetch_home_html())
    assert exc_info.value.status == 429
    assert len(sleeps) == 1


def _patch_crawl(monkeypatch, result=None, exc=None):
    async def fake_crawl(settings):
        if exc is not None:
            raise exc
        return result

    monkeypatch.setattr(crawl_report_mod, "crawl_moltbook", fake_crawl)


def test_crawl_report_from_live_topics(monkeypatch, settings):
    posts = extract_from_html(FEED_HTML, BASE_URL).posts
    result = CrawlResult(success=True, topics=analyze_posts(posts, base_url=BASE_URL), posts=posts, source="html")
    _patch_crawl(monkeypatch, result=result)

    report = asyncio.run(crawl_report(settings))
    assert report["source"] == "crawl"
    assert report["stats"]["totalPosts"] == 2
    assert report["topIssues"][0]["id"] == "memorySystem"


@pytest.mark.parametrize(
    "result,exc",
    [
        (CrawlResult.failed("No posts found after crawl"), None),
        (CrawlResult(success=True, topics=[], posts=[], source="regex"), None),
        (None, RuntimeError("boom")),
    ],
)
def test_crawl_report_falls_back_to_mock(monkeypatch, settings, result, exc):
    _patch_crawl(monkeypatch, result=result, exc=exc)
    report = asyncio.run(crawl_report(settings))
    assert report["source"] == "mock"
    assert len(report["topIssues"]) == 20


def test_save_report_keeps_history_unique():
    async def go():
        kv = MemoryKV()
        report = {"date": "2026-02-03", "source": "mock"}
        assert await save_report(kv, report, prune_threshold_bytes=1 << 30) == "2026-02-03"
        await save_report(kv, dict(report, source="crawl"), prune_threshold_bytes=1 << 30)
        assert await kv.lrange(HISTORY_KEY, 0, -1) == ["2026-02-03"]
        assert (await kv.get("report:2026-02-03"))["source"] == "crawl"

    asyncio.run(go())


def test_run_crawl_stores_report(monkeypatch, settings):
    _patch_crawl(monkeypatch, result=CrawlResult.failed("offline"))

    async def go():
        kv = MemoryKV()
        out = await run_crawl(settings=settings, kv=kv)
        assert out["success"] is True
        assert await kv.get(f"report:{out['date']}") == out["report"]
        assert await kv.lrange(HISTORY_KEY, 0, -1) == [out["date"]]

    asyncio.run(go())


def test_run_crawl_dry_run_stores_nothing(monkeypatch, settings):
    _patch_crawl(monkeypatch, result=CrawlResult.failed("offline"))

    async def go():
        kv = MemoryKV()
        out = await run_crawl(settings=settings, kv=kv, dry_run=True)
        assert out["report"]["source"] == "mock"
        assert await kv.llen(HISTORY_KEY) == 0
        assert await kv.get(f"report:{out['date']}") is None

    asyncio.run(go())
