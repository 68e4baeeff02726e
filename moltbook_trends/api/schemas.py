from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Report documents use camelCase keys on the wire (and in the store)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class JobResponse(BaseModel):
    job_id: str
    job_type: str
    status: str
    created_at: float
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error: Optional[str] = None
    result: Optional[Any] = None


class CrawlJobRequest(BaseModel):
    use_browser: Optional[bool] = Field(None, description="Override USE_BROWSER for this run")
    dry_run: bool = False


class ReportStats(CamelModel):
    total_posts: int = 0
    high_value_posts: int = 0
    total_comments: int = 0


class TopicItem(CamelModel):
    id: str
    title: str
    title_zh: Optional[str] = None
    heat: int
    heat_display: str
    description: str
    description_zh: Optional[str] = None
    solution: str
    solution_zh: Optional[str] = None
    verified: str
    verified_zh: Optional[str] = None
    posts: List[str] = Field(default_factory=list)
    url: Optional[str] = None


class SolutionItem(CamelModel):
    problem: str
    solution: str
    verified: str
    source: str


class InsightItem(CamelModel):
    id: str
    title: str
    title_zh: Optional[str] = None
    content: str
    content_zh: Optional[str] = None


class TopicHeatItem(CamelModel):
    topic: str
    topic_zh: Optional[str] = None
    heat: int
    trend: str


class ReadingItem(CamelModel):
    title: str
    title_zh: Optional[str] = None
    author: str
    url: str
    reason: str
    reason_zh: Optional[str] = None


class DailyReport(CamelModel):
    date: str
    timestamp: int
    source: Optional[str] = None
    stats: ReportStats
    top_issues: List[TopicItem] = Field(default_factory=list)
    solutions: List[SolutionItem] = Field(default_factory=list)
    insights: List[InsightItem] = Field(default_factory=list)
    topic_heat: List[TopicHeatItem] = Field(default_factory=list)
    recommended_reading: List[ReadingItem] = Field(default_factory=list)


class CrawlResponse(BaseModel):
    success: bool
    date: str
    report: DailyReport


class HealthResponse(BaseModel):
    status: str
    timestamp: str


TrendPoint = Dict[str, Any]
