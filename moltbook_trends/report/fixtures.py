"""Static topics used when no live data can be extracted."""

from __future__ import annotations

import copy
from typing import Any, Dict, List

MOCK_TOPICS: List[Dict[str, Any]] = [
    {
        "id": "parallelCollaboration",
        "title": "Code Conflicts in Multi-Agent Parallel Collaboration",
        "titleZh": "多 Agent 并行协作中的代码冲突",
        "heat": 100,
        "heatDisplay": "100%",
        "description": "Multiple AI agents editing the same repository causes merge hell",
        "descriptionZh": "多个 AI agents 同时编辑同一仓库导致合并冲突",
        "solution": "Git Worktree Pattern",
        "solutionZh": "Git Worktree 模式",
        "verified": "✅ Highly Recognized",
        "verifiedZh": "高度认可",
        "posts": ["dbddcf23-7314-4213-a5f2-f90600686685"],
        "url": "https://www.moltbook.com/post/dbddcf23-7314-4213-a5f2-f90600686685",
    },
    {
        "id": "memorySystem",
        "title": "Scalability and Semantic Search of AI Memory Systems",
        "titleZh": "AI 记忆系统的可扩展性和语义搜索",
        "heat": 95,
        "heatDisplay": "95%",
        "description": "MEMORY.md files don't scale and can't search semantically",
        "descriptionZh": "MEMORY.md 文件无法扩展且无法语义搜索",
        "solution": "Database-first + Vector Search",
        "solutionZh": "Database-first + 向量搜索",
        "verified": "✅ Strongly Recommended",
        "verifiedZh": "强烈推荐",
        "posts": ["a1b2c3d4-5678-90ab-cdef-1234567890ab"],
        "url": "https://www.moltbook.com/post/a1b2c3d4-5678-90ab-cdef-1234567890ab",
    },
    {
        "id": "branchingConversations",
        "title": "Branching Structure of AI Conversations",
        "titleZh": "AI 对话的分支结构",
        "heat": 90,
        "heatDisplay": "90%",
        "description": "AI chats are single-threaded, follow-up questions pollute context",
        "descriptionZh": "AI 聊天是单线程的，后续问题会污染上下文",
        "solution": "Conversation Tree Structure",
        "solutionZh": "对话树结构",
        "verified": "✅ Widely Recognized",
        "verifiedZh": "广泛认可",
        "posts": ["fedcba09-8765-4321-abcd-ef1234567890"],
        "url": "https://www.moltbook.com/post/fedcba09-8765-4321-abcd-ef1234567890",
    },
    {
        "id": "agentCoordination",
        "title": "Autonomous Coordination and Trust Between Agents",
        "titleZh": "Agent 间自主协调和信任机制",
        "heat": 85,
        "heatDisplay": "85%",
        "description": "How can agents coordinate without centralized platforms?",
        "descriptionZh": "Agent 之间如何在没有中心化平台的情况下进行协调？",
        "solution": "Smart Contract Coordination Pool",
        "solutionZh": "智能合约协调池",
        "verified": "⚠️ Exploring",
        "verifiedZh": "探索中",
        "posts": ["12345678-1234-1234-1234-123456789012"],
        "url": "https://www.moltbook.com/post/12345678-1234-1234-1234-123456789012",
    },
]

# Topics charted on the dashboard trend view: (name, chinese name, keyword)
TREND_TOPICS = [
    ("Memory System", "记忆系统", "memory"),
    ("Multi-Agent Collaboration", "多 Agent 协作", "collaborat"),
    ("Branching Conversations", "分支对话", "branch"),
    ("Autonomous Coordination", "自主协调", "coordinat"),
    ("Night Operations", "夜间运行", "night"),
]


def mock_topics() -> List[Dict[str, Any]]:
    return copy.deepcopy(MOCK_TOPICS)
