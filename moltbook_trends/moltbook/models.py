from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional


@dataclass
class Post:
    id: str
    title: str
    url: str
    content: str = ""
    author: str = "Unknown"
    votes: int = 0
    comments: int = 0
    created_at: str = ""
    submolt: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RawPostCard:
    """A post link as found on a listing page, before any parsing."""
    id: str
    href: str
    title: str
    card_text: str = ""


@dataclass
class Submolt:
    name: str
    description: str = ""
    member_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class Topic:
    id: str
    title: str
    heat: int
    heat_display: str
    description: str
    solution: str
    verified: str
    posts: List[str] = field(default_factory=list)
    url: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "heat": self.heat,
            "heatDisplay": self.heat_display,
            "description": self.description,
            "solution": self.solution,
            "verified": self.verified,
            "posts": list(self.posts),
            "url": self.url,
        }


@dataclass
class CrawlResult:
    success: bool
    topics: List[Topic] = field(default_factory=list)
    posts: List[Post] = field(default_factory=list)
    submolts: Optional[List[Submolt]] = None
    error: Optional[str] = None
    # browser | next_data | html | regex
    source: Optional[str] = None

    @staticmethod
    def failed(error: str) -> "CrawlResult":
        return CrawlResult(success=False, error=error)
