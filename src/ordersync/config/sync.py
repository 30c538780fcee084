"""Import run defaults."""

from __future__ import annotations

from dataclasses import dataclass

from .env import env_int

DEFAULT_BATCH_SIZE = 50
DEFAULT_PER_PAGE = 100
DEFAULT_MAX_PAGE_FAILURES = 3
DEFAULT_PLAN_WORKERS = 1


@dataclass(frozen=True, slots=True)
class SyncConfig:
    batch_size: int = DEFAULT_BATCH_SIZE
    per_page: int = DEFAULT_PER_PAGE
    max_page_failures: int = DEFAULT_MAX_PAGE_FAILURES
    plan_workers: int = DEFAULT_PLAN_WORKERS


def get_sync_config() -> SyncConfig:
    return SyncConfig(
        batch_size=env_int("ORDERSYNC_BATCH_SIZE", DEFAULT_BATCH_SIZE),
        per_page=env_int("ORDERSYNC_PER_PAGE", DEFAULT_PER_PAGE),
        max_page_failures=env_int("ORDERSYNC_MAX_PAGE_FAILURES", DEFAULT_MAX_PAGE_FAILURES),
        plan_workers=env_int("ORDERSYNC_PLAN_WORKERS", DEFAULT_PLAN_WORKERS),
    )
