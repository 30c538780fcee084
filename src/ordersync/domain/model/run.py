"""Import run bookkeeping: counters, error log and the run state machine."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, cast
from uuid import UUID, uuid4

from ordersync.domain.errors import RunStateError

from .enums import ErrorKind, FailureReason, RunStatus

if TYPE_CHECKING:
    from collections.abc import Mapping


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class ErrorDescriptor:
    """One entry of a run's error log.

    ``count`` is the number of orders the error accounts for: one for a malformed
    order, a whole page for a page that could not be fetched, zero for run-level
    failures that did not consume any order.
    """

    kind: ErrorKind
    message: str
    external_id: str | None = None
    page: int | None = None
    count: int = 1

    def to_payload(self) -> dict[str, object]:
        return {
            "kind": self.kind.value,
            "message": self.message,
            "external_id": self.external_id,
            "page": self.page,
            "count": self.count,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> ErrorDescriptor:
        page = payload.get("page")
        external_id = payload.get("external_id")
        return cls(
            kind=ErrorKind(str(payload["kind"])),
            message=str(payload.get("message", "")),
            external_id=str(external_id) if external_id is not None else None,
            page=cast(int, page) if page is not None else None,
            count=cast(int, payload.get("count", 1)),
        )


@dataclass(frozen=True, slots=True, kw_only=True)
class ProgressSnapshot:
    """Everything a caller needs to render progress for a run."""

    run_id: UUID
    status: RunStatus
    processed_orders: int
    total_orders: int | None
    current_batch: int
    total_batches: int | None
    created: int
    updated: int
    skipped: int
    conflicts: int
    carried_conflicts: int
    errors: int


@dataclass(eq=False, kw_only=True)
class ImportRun:
    """One invocation of the import pipeline.

    Mutated only by the orchestrator, and frozen once it reaches a terminal status.
    ``conflicts`` counts conflicts raised by this run; ``carried_conflicts`` counts
    orders whose conflict from an earlier run was still pending and seen again.
    """

    batch_size: int
    window_start: datetime | None = None
    window_end: datetime | None = None
    statuses: tuple[str, ...] = ()
    status: RunStatus = RunStatus.PENDING
    failure_reason: FailureReason | None = None
    total_orders: int | None = None
    processed_orders: int = 0
    created: int = 0
    updated: int = 0
    skipped: int = 0
    conflicts: int = 0
    carried_conflicts: int = 0
    errors: int = 0
    current_batch: int = 0
    total_batches: int | None = None
    error_log: tuple[ErrorDescriptor, ...] = ()
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    started_at: datetime | None = None
    finished_at: datetime | None = None

    def start(self, *, now: datetime) -> None:
        if self.status is not RunStatus.PENDING:
            raise RunStateError(f"Run {self.id} cannot start from {self.status}")
        self.status = RunStatus.RUNNING
        self.started_at = now

    def set_totals(self, *, total_orders: int, total_batches: int) -> None:
        self._ensure_running()
        self.total_orders = total_orders
        self.total_batches = max(total_batches, self.current_batch)

    def tally(
        self,
        *,
        created: int = 0,
        updated: int = 0,
        skipped: int = 0,
        conflicts: int = 0,
        carried_conflicts: int = 0,
    ) -> None:
        self._ensure_running()
        self.created += created
        self.updated += updated
        self.skipped += skipped
        self.conflicts += conflicts
        self.carried_conflicts += carried_conflicts
        self.processed_orders += created + updated + skipped + conflicts + carried_conflicts

    def record_error(self, descriptor: ErrorDescriptor) -> None:
        self._ensure_running()
        self.errors += descriptor.count
        self.processed_orders += descriptor.count
        self.error_log = (*self.error_log, descriptor)

    def advance_batch(self) -> None:
        self._ensure_running()
        self.current_batch += 1
        if self.total_batches is not None and self.current_batch > self.total_batches:
            # the remote total grew while we were paging
            self.total_batches = self.current_batch

    def complete(self, *, pending_conflicts: int, now: datetime) -> None:
        self._ensure_running()
        self.status = (
            RunStatus.COMPLETED_WITH_CONFLICTS if pending_conflicts else RunStatus.COMPLETED
        )
        self.finished_at = now

    def fail(
        self,
        reason: FailureReason,
        *,
        now: datetime,
        error: ErrorDescriptor | None = None,
    ) -> None:
        if self.status.is_terminal:
            raise RunStateError(f"Run {self.id} already finished as {self.status}")
        if error is not None:
            self.errors += error.count
            self.processed_orders += error.count
            self.error_log = (*self.error_log, error)
        self.status = RunStatus.FAILED
        self.failure_reason = reason
        self.finished_at = now

    def progress(self) -> ProgressSnapshot:
        return ProgressSnapshot(
            run_id=self.id,
            status=self.status,
            processed_orders=self.processed_orders,
            total_orders=self.total_orders,
            current_batch=self.current_batch,
            total_batches=self.total_batches,
            created=self.created,
            updated=self.updated,
            skipped=self.skipped,
            conflicts=self.conflicts,
            carried_conflicts=self.carried_conflicts,
            errors=self.errors,
        )

    @property
    def duration(self) -> timedelta | None:
        if self.started_at is None or self.finished_at is None:
            return None
        return self.finished_at - self.started_at

    def _ensure_running(self) -> None:
        if self.status is not RunStatus.RUNNING:
            raise RunStateError(f"Run {self.id} is {self.status}, not running")
