from __future__ import annotations

import dataclasses
import json
import logging
import os
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from moltbook_trends.logging_conf import setup_logging
from moltbook_trends.settings import Settings
from moltbook_trends.api.job_manager import JobManager
from moltbook_trends.api.schemas import (
    CrawlJobRequest,
    CrawlResponse,
    DailyReport,
    HealthResponse,
    JobResponse,
    TrendPoint,
)
from moltbook_trends.jobs.crawl_report import run_crawl
from moltbook_trends.report.builder import build_mock_report, report_date, report_key
from moltbook_trends.report.trends import last_dates, trend_series
from moltbook_trends.store.kv import HISTORY_KEY, KVStore, get_kv

log = logging.getLogger(__name__)

DATE_PATTERN = r"^\d{4}-\d{2}-\d{2}$"
HISTORY_DAYS = 7


def _load_env() -> None:
    """Load .env for local development.

    Set ENV_FILE to override the default.
    """
    env_file = os.getenv("ENV_FILE", ".env")
    if env_file and Path(env_file).exists():
        load_dotenv(env_file)


def _parse_cors_origins(raw: str) -> List[str]:
    raw = (raw or "").strip()
    if not raw:
        # dashboard may be served from anywhere
        return ["*"]

    # Accept JSON list first, fallback to comma-separated.
    try:
        v = json.loads(raw)
        if isinstance(v, list):
            return [str(x) for x in v if str(x).strip()]
    except ValueError:
        pass

    return [x.strip() for x in raw.split(",") if x.strip()]


async def get_store(request: Request) -> KVStore:
    kv: Optional[KVStore] = getattr(request.app.state, "kv", None)
    if kv is None:
        kv = await get_kv(request.app.state.settings)
        request.app.state.kv = kv
    return kv


def _today() -> datetime:
    return datetime.now(timezone.utc)


def create_app(settings: Optional[Settings] = None, kv: Optional[KVStore] = None) -> FastAPI:
    _load_env()
    setup_logging()

    settings = settings or Settings.from_env()

    app = FastAPI(title="Moltbook Trends API", version="0.1")

    # Store shared objects
    app.state.settings = settings
    app.state.jobs = JobManager()
    app.state.kv = kv

    cors_origins = _parse_cors_origins(settings.cors_origins)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=cors_origins,
        allow_credentials="*" not in cors_origins,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def _health() -> HealthResponse:
        return HealthResponse(status="ok", timestamp=_today().isoformat())

    app.get("/health", response_model=HealthResponse)(_health)

    router = APIRouter(prefix="/api")
    router.get("/health", response_model=HealthResponse)(_health)

    @router.get("/settings")
    def get_settings_endpoint(request: Request) -> Dict[str, Any]:
        s: Settings = request.app.state.settings
        # Do not return the Redis URL, it may carry a password.
        return {
            "base_url": s.base_url,
            "browser_enabled": s.browser_enabled,
            "serverless": s.serverless,
            "crawl_submolts": s.crawl_submolts,
            "request_attempts": s.request_attempts,
            "redis_configured": bool(s.redis_url),
            "redis_prune_threshold_bytes": s.redis_prune_threshold_bytes,
        }

    # -------
    # Reports
    # -------

    @router.get("/data", response_model=None)
    async def get_data(
        kind: Optional[str] = Query(default=None, alias="type", description="latest | history"),
        date: Optional[str] = Query(default=None, pattern=DATE_PATTERN, description="YYYY-MM-DD"),
        kv: KVStore = Depends(get_store),
    ) -> Any:
        if kind == "history":
            dates = await kv.lrange(HISTORY_KEY, 0, -1)
            unique = list(dict.fromkeys(d for d in dates if isinstance(d, str)))
            return unique or last_dates(_today().date(), HISTORY_DAYS)

        if kind == "latest" or not date:
            today = report_date(_today())
            report = await kv.get(report_key(today))
            if not report:
                report = build_mock_report()
                await kv.set(report_key(today), report)
            return _report_response(report)

        report = await kv.get(report_key(date))
        if not report:
            raise HTTPException(status_code=404, detail="Report not found")
        return _report_response(report)

    @router.get("/trends", response_model=List[TrendPoint])
    async def get_trends(kv: KVStore = Depends(get_store)) -> List[TrendPoint]:
        today = _today().date()
        reports = {d: await kv.get(report_key(d)) for d in last_dates(today, HISTORY_DAYS)}
        return trend_series(reports, today=today, days=HISTORY_DAYS)

    @router.post("/crawl", response_model=CrawlResponse, response_model_exclude_none=True)
    async def post_crawl(request: Request, kv: KVStore = Depends(get_store)) -> Any:
        s: Settings = request.app.state.settings
        try:
            return await run_crawl(settings=s, kv=kv)
        except Exception:
            log.exception("Crawl request failed")
            return JSONResponse(status_code=500, content={"success": False, "error": "Failed to crawl Moltbook"})

    # ----
    # Jobs
    # ----

    @router.post("/jobs/crawl", response_model=JobResponse)
    async def job_crawl(request: Request, payload: CrawlJobRequest, kv: KVStore = Depends(get_store)) -> JobResponse:
        s: Settings = request.app.state.settings
        jobs: JobManager = request.app.state.jobs
        if payload.use_browser is not None:
            s = dataclasses.replace(s, use_browser=payload.use_browser)

        async def _run() -> Dict[str, Any]:
            out = await run_crawl(settings=s, kv=kv, dry_run=payload.dry_run)
            return {"ok": True, "date": out["date"], "source": out["report"].get("source"), "dry_run": payload.dry_run}

        job = await jobs.submit("crawl", _run)
        return JobResponse(**job.to_dict())

    @router.get("/jobs/{job_id}", response_model=JobResponse)
    async def get_job(request: Request, job_id: str) -> JobResponse:
        jobs: JobManager = request.app.state.jobs
        job = await jobs.get(job_id)
        if not job:
            raise HTTPException(status_code=404, detail=f"Job not found: {job_id}")
        return JobResponse(**job.to_dict())

    @router.get("/jobs", response_model=List[JobResponse])
    async def list_jobs(request: Request, limit: int = Query(default=50, ge=1, le=200)) -> List[JobResponse]:
        jobs: JobManager = request.app.state.jobs
        items = await jobs.list(limit=int(limit))
        return [JobResponse(**j.to_dict()) for j in items]

    app.include_router(router)
    return app


def _report_response(report: Dict[str, Any]) -> JSONResponse:
    # Validate the stored document, then drop absent localized fields.
    model = DailyReport.model_validate(report)
    return JSONResponse(content=model.model_dump(by_alias=True, exclude_none=True))


app = create_app()
