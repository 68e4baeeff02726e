from __future__ import annotations

import logging
import os

import uvicorn
from dotenv import load_dotenv

from moltbook_trends.logging_conf import setup_logging
from moltbook_trends.settings import _env_bool, _env_int

log = logging.getLogger(__name__)


def main() -> None:
    load_dotenv(os.getenv("ENV_FILE", ".env"))
    setup_logging()

    host = os.getenv("HOST", "0.0.0.0")
    port = _env_int("PORT", 3001)
    workers = max(1, _env_int("WORKERS", 1))
    reload = _env_bool("RELOAD", False)

    # Jobs always live in the worker; reports do too unless REDIS_URL is set.
    if workers > 1 and not os.getenv("REDIS_URL"):
        log.warning("WORKERS=%s without REDIS_URL: each worker keeps its own report store", workers)

    uvicorn.run(
        "moltbook_trends.api.main:app",
        host=host,
        port=port,
        reload=reload,
        workers=workers,
        log_level=os.getenv("LOG_LEVEL", "info").lower(),
    )


if __name__ == "__main__":
    main()
