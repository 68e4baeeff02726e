from __future__ import annotations

import json
import logging
import re
from typing import Any, Dict, Iterable, List, Optional, Tuple

from bs4 import BeautifulSoup

from moltbook_trends.moltbook.models import Post, RawPostCard, Submolt

log = logging.getLogger(__name__)

POST_LINK_SELECTORS = ('a[href*="/post/"]', 'a[href*="post/"]', '[href*="/post/"]')

MAX_TITLE_CHARS = 300
MAX_CARD_TEXT_CHARS = 4000
HTML_CARD_DEPTH = 8
NEXT_DATA_MAX_POSTS = 50
REGEX_MAX_POSTS = 30

_POST_ID_RE = re.compile(r"/post/([a-f0-9-]{36})", re.IGNORECASE)
_AUTHOR_RE = re.compile(r"u/(\w+)")
_SUBMOLT_RE = re.compile(r"m/(\w+)")
_VOTES_RE = re.compile(r"(\d+)\s*(?:⬆|upvote|vote)", re.IGNORECASE)
_BARE_NUMBER_LINE_RE = re.compile(r"^(\d+)\s*$", re.MULTILINE)
_COMMENTS_RE = re.compile(r"(\d+)\s*comment", re.IGNORECASE)
_COMMENTS_EMOJI_RE = re.compile(r"💬\s*(\d+)")
_SUBMOLT_MEMBERS_RE = re.compile(r"m/(\w+)[\s\S]*?(\d+)\s*members?", re.IGNORECASE)
_SUBMOLT_HREF_RE = re.compile(r'href="[^"]*/m/(\w+)[^"]*"', re.IGNORECASE)

_SPAM_PATTERNS = (
    re.compile(r"0x[a-f0-9]{40}", re.IGNORECASE),
    re.compile(r"send\s+(?:eth|btc|usdt|token)", re.IGNORECASE),
    re.compile(r"airdrop|double your crypto|guaranteed returns", re.IGNORECASE),
)
_EMOJI_ONLY_RE = re.compile(r"^(?:[\U0001F300-\U0001F9FF]\s*){10,}$")
_WORD_REPEAT_RE = re.compile(r"(\b\w+\b)(?:\s+\1){8,}", re.IGNORECASE)

def absolute_url(href: str, base_url: str) -> str:
    if href.startswith("http"):
        return href
    sep = "" if href.startswith("/") else "/"
    return f"{base_url}{sep}{href}"

def post_url(post_id: str, base_url: str) -> str:
    return f"{base_url}/post/{post_id}"

def post_id_from_href(href: str) -> Optional[str]:
    m = _POST_ID_RE.search(href or "")
    return m.group(1) if m else None

# ---- card text heuristics ----

def parse_author(card_text: str) -> str:
    m = _AUTHOR_RE.search(card_text or "")
    return f"u/{m.group(1)}" if m else "Unknown"

def parse_submolt(card_text: str) -> Optional[str]:
    m = _SUBMOLT_RE.search(card_text or "")
    return f"m/{m.group(1)}" if m else None

def parse_votes_and_comments(card_text: str) -> Tuple[int, int]:
    text = card_text or ""
    votes = 0
    comments = 0

    m = _VOTES_RE.search(text) or _BARE_NUMBER_LINE_RE.search(text)
    if m:
        votes = int(m.group(1))

    m = _COMMENTS_RE.search(text) or _COMMENTS_EMOJI_RE.search(text)
    if m:
        comments = int(m.group(1))

    return votes, comments

def is_spam(post: Post) -> bool:
    """Hard spam filter: crypto shilling and meaningless content only."""
    text = f"{post.title} {post.content}".lower()
    if any(p.search(text) for p in _SPAM_PATTERNS):
        return True

    squashed = re.sub(r"\s", "", post.title + post.content)
    if _EMOJI_ONLY_RE.match(squashed):
        return True

    if _WORD_REPEAT_RE.search(post.title):
        return True
    return False

def card_to_post(card: RawPostCard, base_url: str) -> Post:
    votes, comments = parse_votes_and_comments(card.card_text)
    url = card.href if card.href.startswith("http") else post_url(card.id, base_url)
    return Post(
        id=card.id,
        title=card.title or "Untitled",
        url=url,
        author=parse_author(card.card_text),
        votes=votes,
        comments=comments,
        submolt=parse_submolt(card.card_text),
    )

def cards_to_posts(cards: Iterable[RawPostCard], base_url: str) -> List[Post]:
    """Convert raw cards to posts, drop spam and dedupe by id.

    If the spam filter would drop every post, all of them are kept.
    """
    cards = list(cards)
    all_posts = [card_to_post(c, base_url) for c in cards]
    posts = [p for p in all_posts if not is_spam(p)]
    if not posts and all_posts:
        log.warning("All %s posts look like spam, keeping them anyway", len(all_posts))
        posts = all_posts
    return dedupe_posts(posts)

def dedupe_posts(posts: Iterable[Post]) -> List[Post]:
    by_id: Dict[str, Post] = {}
    for p in posts:
        by_id[p.id] = p
    return list(by_id.values())

def merge_cards(*feeds: Iterable[RawPostCard]) -> List[RawPostCard]:
    """Merge feeds by post id. Later feeds win, first-seen order is kept."""
    by_id: Dict[str, RawPostCard] = {}
    for feed in feeds:
        for card in feed:
            by_id[card.id] = card
    return list(by_id.values())

# ---- __NEXT_DATA__ ----

def _num(v: Any) -> Optional[int]:
    if isinstance(v, bool) or not isinstance(v, (int, float)):
        return None
    return int(v)

def _first_present(d: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        v = d.get(k)
        if v is not None:
            return v
    return None

def _author_from_row(raw: Any) -> str:
    if not raw:
        return "Unknown"
    if isinstance(raw, dict):
        name = raw.get("username")
        return f"u/{name}" if name else "Unknown"
    return f"u/{raw}"

def parse_next_data_posts(html: str, base_url: str) -> Optional[List[Post]]:
    """Read posts from the Next.js ``__NEXT_DATA__`` payload, if any."""
    try:
        soup = BeautifulSoup(html, "html.parser")
        script = soup.find("script", id="__NEXT_DATA__")
        if script is None or not script.string:
            return None
        data = json.loads(script.string)
        props = ((data or {}).get("props") or {}).get("pageProps")
        if not isinstance(props, dict):
            return None

        raw_posts = _first_present(props, "posts", "feed", "listings", "initialPosts")
        if not isinstance(raw_posts, list) or not raw_posts:
            return None

        posts: List[Post] = []
        for row in raw_posts[:NEXT_DATA_MAX_POSTS]:
            if not isinstance(row, dict):
                continue
            post_id = _first_present(row, "id", "postId", "uuid")
            if not post_id or not isinstance(post_id, str):
                continue

            title = str(_first_present(row, "title", "name") or "").strip() or "Post"
            votes = _num(row.get("votes"))
            if votes is None:
                votes = _num(row.get("upvotes"))
            comments = _num(row.get("commentsCount"))
            if comments is None:
                comments = _num(row.get("comments"))
            submolt = row.get("submolt")

            posts.append(
                Post(
                    id=post_id,
                    title=title[:MAX_TITLE_CHARS],
                    url=post_url(post_id, base_url),
                    author=_author_from_row(row.get("author")),
                    votes=votes or 0,
                    comments=comments or 0,
                    submolt=str(submolt) if submolt else None,
                )
            )
        return posts or None
    except Exception as e:
        log.debug("__NEXT_DATA__ parse failed: %r", e)
        return None

# ---- static DOM ----

def _card_text_for(anchor: Any, depth: int) -> str:
    """Largest ancestor text that still belongs to this card only."""
    card_text = anchor.get_text("\n", strip=True)
    for parent in anchor.parents:
        if depth <= 0 or parent.name == "[document]":
            break
        depth -= 1
        # Stop once the ancestor spans more than one post card.
        ids = {post_id_from_href(a.get("href", "")) for a in parent.select('a[href*="/post/"]')}
        ids.discard(None)
        if len(ids) > 1:
            break
        t = parent.get_text("\n", strip=True)
        if len(t) > len(card_text) and len(t) < MAX_CARD_TEXT_CHARS:
            card_text = t
    return card_text

def extract_cards_from_html(html: str, base_url: str) -> List[RawPostCard]:
    soup = BeautifulSoup(html, "html.parser")
    seen = set()
    cards: List[RawPostCard] = []
    for a in soup.select('a[href*="/post/"]'):
        href = a.get("href") or ""
        post_id = post_id_from_href(href)
        if not post_id or post_id in seen:
            continue
        seen.add(post_id)
        title = a.get_text(" ", strip=True)[:MAX_TITLE_CHARS] or "Post"
        cards.append(
            RawPostCard(
                id=post_id,
                href=absolute_url(href, base_url),
                title=title,
                card_text=_card_text_for(a, HTML_CARD_DEPTH),
            )
        )
    return cards

def extract_posts_from_html(html: str, base_url: str) -> List[Post]:
    return [card_to_post(c, base_url) for c in extract_cards_from_html(html, base_url)]

# ---- regex only ----

def extract_post_ids(html: str, limit: int = REGEX_MAX_POSTS) -> List[str]:
    by_id: Dict[str, str] = {}
    for m in _POST_ID_RE.finditer(html or ""):
        by_id.setdefault(m.group(1).lower(), m.group(1))
    return list(by_id.values())[:limit]

def placeholder_posts(post_ids: Iterable[str], base_url: str) -> List[Post]:
    return [Post(id=pid, title="Post", url=post_url(pid, base_url)) for pid in post_ids]

# ---- submolts ----

def extract_submolts_from_html(html: str) -> List[Submolt]:
    seen = set()
    out: List[Submolt] = []
    for m in _SUBMOLT_MEMBERS_RE.finditer(html or ""):
        name = f"m/{m.group(1)}"
        if name in seen:
            continue
        seen.add(name)
        out.append(Submolt(name=name, member_count=int(m.group(2))))
    if out:
        return out

    for m in _SUBMOLT_HREF_RE.finditer(html or ""):
        name = f"m/{m.group(1)}"
        if name in seen:
            continue
        seen.add(name)
        out.append(Submolt(name=name))
    return out
