"""Import pipeline orchestration."""

from __future__ import annotations

from .orchestrator import ImportOrchestrator, estimate_batches
from .pages import PageCursor, PageFailure
from .state import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_PAGE_FAILURES,
    DEFAULT_PER_PAGE,
    CancellationToken,
    ImportRequest,
    ImportResult,
    ProgressCallback,
)

__all__ = [
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_MAX_PAGE_FAILURES",
    "DEFAULT_PER_PAGE",
    "CancellationToken",
    "ImportOrchestrator",
    "ImportRequest",
    "ImportResult",
    "PageCursor",
    "PageFailure",
    "ProgressCallback",
    "estimate_batches",
]
