from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from moltbook_trends.moltbook.models import Post, Topic
from moltbook_trends.report.fixtures import mock_topics

MAX_TOP_ISSUES = 20
MAX_SOLUTIONS = 5
MAX_TOPIC_HEAT = 7
MAX_READING = 3
HIGH_VALUE_RATIO = 0.7
COMMUNITY_SOURCE = "Moltbook Community"
MOCK_TOPIC_FLOOR_HEAT = 30
MOCK_TOPIC_URL = "https://www.moltbook.com/post/dbddcf23-7314-4213-a5f2-f90600686685"


def report_date(now: Optional[datetime] = None) -> str:
    now = now or datetime.now(timezone.utc)
    return now.astimezone(timezone.utc).date().isoformat()


def report_key(date: str) -> str:
    return f"report:{date}"


def heat_trend(heat: int) -> str:
    if heat > 80:
        return "🔥"
    if heat > 60:
        return "📈"
    return "➡️"


def _short_topic(title: str) -> str:
    return " ".join(title.split(" ")[:3])


def _solutions(topics: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {
            "problem": t["title"],
            "solution": t["solution"],
            "verified": t["verified"],
            "source": COMMUNITY_SOURCE,
        }
        for t in topics[:MAX_SOLUTIONS]
    ]


def _topic_heat(topics: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
    return [
        {"topic": _short_topic(t["title"]), "heat": t["heat"], "trend": heat_trend(int(t["heat"]))}
        for t in topics[:MAX_TOPIC_HEAT]
    ]


def _envelope(now: Optional[datetime]) -> Dict[str, Any]:
    now = now or datetime.now(timezone.utc)
    return {
        "date": report_date(now),
        "timestamp": int(now.timestamp() * 1000),
    }


def build_report_from_topics(
    topics: Sequence[Topic],
    posts: Sequence[Post],
    *,
    now: Optional[datetime] = None,
) -> Dict[str, Any]:
    topic_dicts = [t.to_dict() for t in topics]
    total_posts = len(posts)

    report = _envelope(now)
    report.update(
        {
            "source": "crawl",
            "stats": {
                "totalPosts": total_posts,
                "highValuePosts": int(total_posts * HIGH_VALUE_RATIO),
                "totalComments": sum(p.comments or 0 for p in posts),
            },
            "topIssues": topic_dicts[:MAX_TOP_ISSUES],
            "solutions": _solutions(topic_dicts),
            "insights": [
                {
                    "id": "communityGrowth",
                    "title": "Community is Growing Fast",
                    "content": f"We found {total_posts} active discussions today",
                }
            ],
            "topicHeat": _topic_heat(topic_dicts),
            "recommendedReading": [
                {
                    "title": p.title,
                    "author": p.author,
                    "url": p.url,
                    "reason": "High community engagement",
                }
                for p in posts[:MAX_READING]
            ],
        }
    )
    return report


def padded_mock_topics(target: int = MAX_TOP_ISSUES) -> List[Dict[str, Any]]:
    topics = mock_topics()
    while len(topics) < target:
        n = len(topics)
        heat = max(MOCK_TOPIC_FLOOR_HEAT, 100 - n * 3)
        topics.append(
            {
                "id": f"topic{n + 1}",
                "title": f"Topic {n + 1}: AI Agent Challenge",
                "heat": heat,
                "heatDisplay": f"{heat}%",
                "description": "Discussion about AI agent capabilities and limitations",
                "solution": "Community collaboration",
                "verified": "⚠️ Emerging",
                "posts": [f"mock-post-{n + 1}"],
                "url": MOCK_TOPIC_URL,
            }
        )
    return topics


def build_mock_report(*, now: Optional[datetime] = None) -> Dict[str, Any]:
    topics = padded_mock_topics()

    report = _envelope(now)
    report.update(
        {
            "source": "mock",
            "stats": {
                "totalPosts": 30,
                "highValuePosts": 20,
                "totalComments": 150,
            },
            "topIssues": topics,
            "solutions": _solutions(topics),
            "insights": [
                {
                    "id": "communityActivity",
                    "title": "High Community Activity",
                    "titleZh": "社区活跃度高",
                    "content": "The Moltbook community is very active today with lots of discussions",
                    "contentZh": "Moltbook 社区今天非常活跃，讨论众多",
                }
            ],
            "topicHeat": _topic_heat(topics),
            "recommendedReading": [
                {
                    "title": t["title"],
                    "titleZh": t.get("titleZh"),
                    "author": "AI Agent",
                    "url": t["url"],
                    "reason": "Trending topic",
                    "reasonZh": "热门话题",
                }
                for t in topics[:MAX_READING]
            ],
        }
    )
    return report
