from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List

from playwright.async_api import Browser, Page, Route, async_playwright
from playwright.async_api import Error as PlaywrightError

from moltbook_trends.moltbook.models import RawPostCard, Submolt
from moltbook_trends.moltbook.parsers import POST_LINK_SELECTORS
from moltbook_trends.settings import Settings

log = logging.getLogger(__name__)

BLOCKED_RESOURCE_TYPES = {"image", "media"}

# Returns [{id, href, title, cardText}] for every post link matching `sel`.
# The card text is the largest ancestor text (max 6 levels, < 4000 chars)
# that does not already contain another post's link.
_EXTRACT_CARDS_JS = """
(sel) => {
  const idOf = (href) => {
    const m = (href || '').match(/\\/post\\/([a-f0-9-]{36})/i);
    return m ? m[1] : null;
  };
  const links = Array.from(document.querySelectorAll(sel));
  return links.map((a) => {
    const href = a.href || a.getAttribute('href') || '';
    const id = idOf(href);
    if (!id) return null;
    const title = (a.textContent || '').trim().slice(0, 300) || 'Untitled';
    let cardText = (a.innerText || a.textContent || '').trim();
    let el = a;
    for (let i = 0; i < 6 && el; i++) {
      el = el.parentElement;
      if (!el) break;
      const ids = new Set(
        Array.from(el.querySelectorAll('a[href*="/post/"]')).map((x) => idOf(x.href)).filter(Boolean)
      );
      if (ids.size > 1) break;
      const t = (el.innerText || el.textContent || '').trim();
      if (t.length > cardText.length && t.length < 4000) cardText = t;
    }
    return { id, href, title, cardText };
  }).filter((x) => x !== null);
}
"""

_CLICK_TOP_TAB_JS = """
() => {
  const all = Array.from(document.querySelectorAll('a, button, [role="tab"]'));
  const top = all.find((el) => {
    const t = (el.textContent || '').trim();
    return t === 'Top' || t.includes('Top') || t.includes('\\u{1F525}');
  });
  if (top && top instanceof HTMLElement) {
    top.click();
    return true;
  }
  return false;
}
"""

_EXTRACT_SUBMOLTS_JS = """
() => {
  const links = Array.from(document.querySelectorAll('a[href*="/m/"]'));
  const seen = new Set();
  const out = [];
  for (const a of links) {
    const href = a.href || a.getAttribute('href') || '';
    const m = href.match(/\\/m\\/([^/?#]+)/);
    if (!m || seen.has(m[1])) continue;
    seen.add(m[1]);
    let description = '';
    let memberCount = 0;
    let el = a;
    for (let i = 0; i < 5 && el; i++) {
      el = el.parentElement;
      if (!el) break;
      const t = (el.textContent || '').trim();
      if (t.length > description.length && t.length < 1000) description = t;
      const n = t.match(/(\\d+)\\s*(?:members?|成员)/i);
      if (n) memberCount = parseInt(n[1], 10) || 0;
    }
    out.push({ name: `m/${m[1]}`, description: description.slice(0, 200), member_count: memberCount });
  }
  return out;
}
"""


def _cards_from_js(rows: List[Dict[str, Any]]) -> List[RawPostCard]:
    return [
        RawPostCard(
            id=str(r["id"]),
            href=str(r.get("href") or ""),
            title=str(r.get("title") or ""),
            card_text=str(r.get("cardText") or ""),
        )
        for r in rows or []
        if r and r.get("id")
    ]


@dataclass
class FeedSnapshot:
    home: List[RawPostCard] = field(default_factory=list)
    top: List[RawPostCard] = field(default_factory=list)
    submolts: List[Submolt] = field(default_factory=list)


@dataclass
class BrowserCrawler:
    """Renders the Moltbook SPA in headless Chromium and pulls post cards out of the DOM."""
    settings: Settings

    async def _block_heavy_resources(self, route: Route) -> None:
        if route.request.resource_type in BLOCKED_RESOURCE_TYPES:
            await route.abort()
        else:
            await route.continue_()

    async def extract_cards(self, page: Page) -> List[RawPostCard]:
        """Run every post-link selector and dedupe by id, first seen wins."""
        seen = set()
        out: List[RawPostCard] = []
        for sel in POST_LINK_SELECTORS:
            rows = await page.evaluate(_EXTRACT_CARDS_JS, sel)
            for card in _cards_from_js(rows):
                if card.id in seen:
                    continue
                seen.add(card.id)
                out.append(card)
        return out

    async def click_top_tab(self, page: Page) -> bool:
        try:
            clicked = bool(await page.evaluate(_CLICK_TOP_TAB_JS))
        except PlaywrightError as e:
            log.warning("Top tab click failed: %r", e)
            return False
        if clicked:
            await page.wait_for_timeout(self.settings.wait_after_top_click_ms)
        return clicked

    async def crawl_submolts(self, page: Page) -> List[Submolt]:
        try:
            await page.goto(f"{self.settings.base_url}/m", wait_until="domcontentloaded", timeout=15000)
            await page.wait_for_timeout(self.settings.request_delay_ms)
            rows = await page.evaluate(_EXTRACT_SUBMOLTS_JS)
        except PlaywrightError as e:
            log.warning("Submolts crawl failed: %r", e)
            return []
        return [
            Submolt(
                name=str(r.get("name") or ""),
                description=str(r.get("description") or ""),
                member_count=int(r.get("member_count") or 0),
            )
            for r in rows or []
            if r.get("name")
        ]

    async def _open_home(self, browser: Browser) -> Page:
        context = await browser.new_context(
            viewport={"width": 1280, "height": 800},
            user_agent=self.settings.user_agent,
            ignore_https_errors=True,
        )
        page = await context.new_page()
        await page.route("**/*", self._block_heavy_resources)

        await page.goto(self.settings.base_url, wait_until="domcontentloaded", timeout=self.settings.nav_timeout_ms)
        await page.wait_for_timeout(self.settings.wait_after_nav_ms)

        try:
            await page.wait_for_selector(POST_LINK_SELECTORS[0], timeout=self.settings.selector_timeout_ms)
        except PlaywrightError:
            # lazy feed: scroll to trigger loading
            log.info("No post link after navigation, scrolling to trigger lazy load")
            await page.evaluate("() => window.scrollTo(0, document.body.scrollHeight)")
            await page.wait_for_timeout(2000)
        return page

    async def snapshot(self) -> FeedSnapshot:
        """Home feed, then the Top feed, then (optionally) the submolt directory.

        Raises on navigation/browser failures; the caller decides how to fall back.
        """
        snap = FeedSnapshot()
        async with async_playwright() as p:
            browser = await p.chromium.launch(headless=True)
            try:
                page = await self._open_home(browser)

                snap.home = await self.extract_cards(page)
                log.info("Home feed: %s raw cards", len(snap.home))

                if await self.click_top_tab(page):
                    await page.wait_for_timeout(500)
                    snap.top = await self.extract_cards(page)
                    log.info("Top feed: %s raw cards", len(snap.top))

                if self.settings.crawl_submolts and (snap.home or snap.top):
                    await page.wait_for_timeout(self.settings.request_delay_ms)
                    snap.submolts = await self.crawl_submolts(page)
                    if snap.submolts:
                        log.info("Submolts: %s boards", len(snap.submolts))
            finally:
                await browser.close()
        return snap
