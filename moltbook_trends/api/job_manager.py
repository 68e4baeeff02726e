from __future__ import annotations

import asyncio
import logging
import time
import traceback
import uuid
from dataclasses import asdict, dataclass
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

log = logging.getLogger(__name__)

MAX_FINISHED_JOBS = 100


@dataclass
class Job:
    job_id: str
    job_type: str
    status: str  # queued | running | succeeded | failed
    created_at: float
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    error: Optional[str] = None
    result: Optional[Any] = None

    @property
    def active(self) -> bool:
        return self.status in {"queued", "running"}

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class JobManager:
    """In-memory background jobs for crawl runs.

    A crawl drives a headless browser, so only one job of a given type runs at
    a time: submitting while one is active returns the active job.
    Job history lives in this process only (run uvicorn with one worker).
    """

    def __init__(self) -> None:
        self._jobs: Dict[str, Job] = {}
        self._tasks: Set[asyncio.Task] = set()
        self._lock = asyncio.Lock()

    async def submit(self, job_type: str, coro_factory: Callable[[], Awaitable[Any]]) -> Job:
        async with self._lock:
            for existing in self._jobs.values():
                if existing.job_type == job_type and existing.active:
                    log.info("Job %s already active (%s), not starting another", job_type, existing.job_id)
                    return existing

            job = Job(job_id=uuid.uuid4().hex, job_type=job_type, status="queued", created_at=time.time())
            self._jobs[job.job_id] = job
            self._evict_finished()

        async def _runner() -> None:
            job.status = "running"
            job.started_at = time.time()
            try:
                job.result = await coro_factory()
                job.status = "succeeded"
            except Exception:
                log.exception("Job %s (%s) failed", job.job_id, job.job_type)
                job.error = traceback.format_exc()
                job.status = "failed"
            finally:
                job.finished_at = time.time()

        task = asyncio.create_task(_runner())
        # keep a strong reference until the task is done
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return job

    def _evict_finished(self) -> None:
        finished = [j for j in self._jobs.values() if not j.active]
        if len(finished) <= MAX_FINISHED_JOBS:
            return
        finished.sort(key=lambda j: j.created_at)
        for j in finished[: len(finished) - MAX_FINISHED_JOBS]:
            del self._jobs[j.job_id]

    async def get(self, job_id: str) -> Optional[Job]:
        async with self._lock:
            return self._jobs.get(job_id)

    async def list(self, limit: int = 50) -> List[Job]:
        async with self._lock:
            jobs = list(self._jobs.values())

        jobs.sort(key=lambda j: j.created_at, reverse=True)
        return jobs[: max(1, min(int(limit), 200))]
