from __future__ import annotations

from dataclasses import dataclass
import os

def _env_int(key: str, default: int) -> int:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return int(v)
    except ValueError:
        return default

def _env_float(key: str, default: float) -> float:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    try:
        return float(v)
    except ValueError:
        return default

def _env_bool(key: str, default: bool) -> bool:
    v = os.getenv(key)
    if v is None or v == "":
        return default
    return v.strip().lower() in {"1", "true", "yes", "y", "on"}

DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)

@dataclass(frozen=True)
class Settings:
    # target site
    base_url: str
    user_agent: str

    # browser crawl
    use_browser: bool
    serverless: bool
    nav_timeout_ms: int
    selector_timeout_ms: int
    wait_after_nav_ms: int
    wait_after_top_click_ms: int
    request_delay_ms: int
    crawl_submolts: bool

    # plain HTTP fallback
    http_timeout_seconds: float
    request_attempts: int

    # report store
    redis_url: str
    redis_prune_threshold_bytes: int

    # api
    cors_origins: str

    @property
    def browser_enabled(self) -> bool:
        # Serverless hosts lack the system libraries Chromium needs.
        return self.use_browser and not self.serverless

    @staticmethod
    def from_env() -> "Settings":
        return Settings(
            base_url=os.getenv("MOLTBOOK_BASE_URL", "https://www.moltbook.com").rstrip("/"),
            user_agent=os.getenv("USER_AGENT", DEFAULT_USER_AGENT),
            use_browser=_env_bool("USE_BROWSER", True),
            serverless=os.getenv("VERCEL", "") == "1",
            nav_timeout_ms=_env_int("NAV_TIMEOUT_MS", 25000),
            selector_timeout_ms=_env_int("SELECTOR_TIMEOUT_MS", 20000),
            wait_after_nav_ms=_env_int("WAIT_AFTER_NAV_MS", 6000),
            wait_after_top_click_ms=_env_int("WAIT_AFTER_TOP_CLICK_MS", 2500),
            request_delay_ms=_env_int("REQUEST_DELAY_MS", 1500),
            crawl_submolts=_env_bool("CRAWL_SUBMOLTS", True),
            http_timeout_seconds=_env_float("HTTP_TIMEOUT_SECONDS", 15.0),
            request_attempts=_env_int("REQUEST_ATTEMPTS", 3),
            redis_url=os.getenv("REDIS_URL", ""),
            redis_prune_threshold_bytes=_env_int("REDIS_PRUNE_THRESHOLD_BYTES", 29 * 1024 * 1024),
            cors_origins=os.getenv("CORS_ORIGINS", ""),
        )
