from __future__ import annotations

import dataclasses

import pytest

from moltbook_trends.settings import Settings

from samples import BASE_URL


@pytest.fixture
def settings() -> Settings:
    return dataclasses.replace(
        Settings.from_env(),
        base_url=BASE_URL,
        use_browser=False,
        serverless=False,
        crawl_submolts=False,
        request_attempts=1,
        redis_url="",
        redis_prune_threshold_bytes=29 * 1024 * 1024,
        cors_origins="",
    )


@pytest.fixture
def browser_settings(settings: Settings) -> Settings:
    return dataclasses.replace(settings, use_browser=True)
