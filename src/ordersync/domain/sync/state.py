"""Request, progress and result types for import runs."""

from __future__ import annotations

import threading
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from ordersync.domain.model import RunStatus
from ordersync.domain.ports import MAX_PER_PAGE
from ordersync.domain.time_windows import TimeWindow

if TYPE_CHECKING:
    from uuid import UUID

    from ordersync.domain.model import (
        Conflict,
        ErrorDescriptor,
        FailureReason,
        ImportRun,
        ProgressSnapshot,
    )

DEFAULT_BATCH_SIZE = 50
DEFAULT_PER_PAGE = 100
DEFAULT_MAX_PAGE_FAILURES = 3

type ProgressCallback = Callable[[ProgressSnapshot], None]


class CancellationToken:
    """Cooperative cancellation flag, honoured between batches."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportRequest:
    window: TimeWindow = field(default_factory=TimeWindow)
    batch_size: int = DEFAULT_BATCH_SIZE
    per_page: int = DEFAULT_PER_PAGE
    statuses: tuple[str, ...] = ()
    order_ids: tuple[str, ...] = ()
    max_page_failures: int = DEFAULT_MAX_PAGE_FAILURES

    def __post_init__(self) -> None:
        if self.batch_size < 1:
            raise ValueError("Batch size must be positive")
        if self.per_page < 1:
            raise ValueError("Page size must be positive")
        if self.per_page > MAX_PER_PAGE:
            raise ValueError(f"Page size must be at most {MAX_PER_PAGE}, got {self.per_page}")
        if self.max_page_failures < 1:
            raise ValueError("Page failure ceiling must be positive")


@dataclass(frozen=True, slots=True, kw_only=True)
class ImportResult:
    """Terminal summary of a run.

    ``conflicts`` holds the conflicts this run raised; orders whose earlier conflict is
    still pending are only counted in ``carried_conflicts``.
    """

    run_id: UUID
    status: RunStatus
    failure_reason: FailureReason | None
    processed_orders: int
    total_orders: int | None
    created: int
    updated: int
    skipped: int
    conflicts: tuple[Conflict, ...]
    carried_conflicts: int
    errors: tuple[ErrorDescriptor, ...]
    duration: timedelta

    @classmethod
    def from_run(cls, run: ImportRun, conflicts: tuple[Conflict, ...]) -> ImportResult:
        return cls(
            run_id=run.id,
            status=run.status,
            failure_reason=run.failure_reason,
            processed_orders=run.processed_orders,
            total_orders=run.total_orders,
            created=run.created,
            updated=run.updated,
            skipped=run.skipped,
            conflicts=conflicts,
            carried_conflicts=run.carried_conflicts,
            errors=run.error_log,
            duration=run.duration or timedelta(0),
        )

    @property
    def error_count(self) -> int:
        return sum(error.count for error in self.errors)

    @property
    def requires_action(self) -> bool:
        return self.status is RunStatus.COMPLETED_WITH_CONFLICTS
