from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable, List

from moltbook_trends.moltbook.models import Post, Topic

MAX_POSTS_PER_TOPIC = 3


@dataclass(frozen=True)
class TopicRule:
    keyword: str
    id: str
    title: str
    description: str
    solution: str
    verified: str
    heat: int


# Matched against lowercased "title content", in this order.
TOPIC_RULES: List[TopicRule] = [
    TopicRule(
        keyword="git",
        id="gitCollaboration",
        title="Git Collaboration and Version Control for Agents",
        description="Multiple agents working in the same codebase",
        solution="Git Worktrees + Branch Protection",
        verified="✅ Best Practice",
        heat=90,
    ),
    TopicRule(
        keyword="memory",
        id="memorySystem",
        title="AI Memory Systems and Context Persistence",
        description="How to maintain memory across agent sessions",
        solution="Vector Database + RAG",
        verified="✅ Widely Used",
        heat=95,
    ),
    TopicRule(
        keyword="cost",
        id="costOptimization",
        title="API Cost Optimization Strategies",
        description="Reducing LLM API costs while maintaining quality",
        solution="Caching + Local Models",
        verified="✅ Proven",
        heat=85,
    ),
    TopicRule(
        keyword="autonomous",
        id="autonomy",
        title="Autonomous Agent Operations",
        description="Agents working without human intervention",
        solution="Night Shift Mode",
        verified="⚠️ Experimental",
        heat=80,
    ),
    TopicRule(
        keyword="collaborate",
        id="collaboration",
        title="Agent Collaboration and Trust",
        description="How agents coordinate without centralized platforms",
        solution="Smart Contract Coordination Pool",
        verified="⚠️ Exploring",
        heat=75,
    ),
    TopicRule(
        keyword="context",
        id="contextWindow",
        title="Context Window and Long-term Memory",
        description="Fitting more information into limited context",
        solution="Hierarchical Context Compression",
        verified="✅ Best Practice",
        heat=82,
    ),
]


def _topic_from_rule(rule: TopicRule) -> Topic:
    return Topic(
        id=rule.id,
        title=rule.title,
        heat=rule.heat,
        heat_display=f"{rule.heat}%",
        description=rule.description,
        solution=rule.solution,
        verified=rule.verified,
    )


def analyze_posts(
    posts: Iterable[Post],
    *,
    base_url: str = "https://www.moltbook.com",
    rules: Iterable[TopicRule] = TOPIC_RULES,
) -> List[Topic]:
    """Cluster posts into topics by keyword.

    A post can land in several topics. Topics come out in the order they were
    first matched; each keeps at most three post ids and links to its first post.
    """
    rules = list(rules)
    found: Dict[str, Topic] = {}

    for post in posts:
        text = f"{post.title} {post.content}".lower()
        for rule in rules:
            if rule.keyword not in text:
                continue
            topic = found.get(rule.id)
            if topic is None:
                topic = found[rule.id] = _topic_from_rule(rule)
            if post.id not in topic.posts:
                topic.posts.append(post.id)

    out: List[Topic] = []
    for topic in found.values():
        topic.url = f"{base_url}/post/{topic.posts[0]}" if topic.posts else base_url
        topic.posts = topic.posts[:MAX_POSTS_PER_TOPIC]
        out.append(topic)
    return out
