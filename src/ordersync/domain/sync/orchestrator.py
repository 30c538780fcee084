"""Import orchestrator: drives pages and batches through the reconciliation core."""

from __future__ import annotations

import threading
from concurrent.futures import ThreadPoolExecutor
from datetime import UTC, datetime
from itertools import batched
from logging import getLogger
from math import ceil
from typing import TYPE_CHECKING

from ordersync.domain.errors import (
    ConflictPersistenceError,
    OrderNotFoundError,
    OrderPersistenceError,
    RemoteAuthError,
)
from ordersync.domain.model import (
    ConflictState,
    ErrorDescriptor,
    ErrorKind,
    FailureReason,
    ImportRun,
)
from ordersync.domain.ports import OrderQuery
from ordersync.domain.reconciliation import (
    ORDER_LOCKS,
    KeyedLocks,
    OrderAction,
    OrderPlan,
    apply_plan,
    plan_order,
)

from .pages import PageCursor, PageFailure
from .state import CancellationToken, ImportRequest, ImportResult

if TYPE_CHECKING:
    from collections.abc import Callable, Hashable, Sequence

    from ordersync.domain.model import Conflict, ProgressSnapshot, RemoteOrder
    from ordersync.domain.ports import (
        OrderSyncUnitOfWork,
        RemoteOrderFetcher,
        RemoteOrderPage,
        UnitOfWorkFactory,
    )
    from ordersync.domain.reconciliation import OrderState

    from .state import ProgressCallback

log = getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


def estimate_batches(total_orders: int, *, per_page: int, batch_size: int) -> int:
    full_pages, remainder = divmod(total_orders, per_page)
    return full_pages * ceil(per_page / batch_size) + ceil(remainder / batch_size)


class ImportOrchestrator:
    """Run the import pipeline for one request at a time.

    Pages are processed sequentially. Within a batch, planning is pure and may fan out
    over ``plan_workers`` threads; every write then happens one order at a time under
    that order's lock, after re-checking that the order has not changed since it was
    planned.
    """

    def __init__(
        self,
        *,
        fetcher: RemoteOrderFetcher,
        unit_of_work_factory: UnitOfWorkFactory,
        locks: KeyedLocks = ORDER_LOCKS,
        clock: Callable[[], datetime] = _utcnow,
        plan_workers: int = 1,
        lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ) -> None:
        if plan_workers < 1:
            raise ValueError("plan_workers must be positive")
        self.fetcher = fetcher
        self.unit_of_work_factory = unit_of_work_factory
        self.locks = locks
        self.clock = clock
        self.plan_workers = plan_workers
        self.lock_timeout = lock_timeout
        self._progress_lock = threading.Lock()
        self._progress: ProgressSnapshot | None = None

    def progress(self) -> ProgressSnapshot | None:
        """Latest snapshot of the current (or last) run, safe to poll from another thread."""

        with self._progress_lock:
            return self._progress

    def run(
        self,
        request: ImportRequest,
        *,
        cancel: CancellationToken | None = None,
        on_progress: ProgressCallback | None = None,
    ) -> ImportResult:
        start, end = request.window.resolve(clock=self.clock)
        query = OrderQuery(
            after=start,
            before=end,
            statuses=request.statuses,
            order_ids=request.order_ids,
        )
        run = ImportRun(
            batch_size=request.batch_size,
            window_start=start,
            window_end=end,
            statuses=request.statuses,
            created_at=self.clock(),
        )
        self._save(run)
        run.start(now=self.clock())
        self._checkpoint(run, on_progress)
        log.info(
            "Starting import run %s: window=%s..%s, batch_size=%s, per_page=%s",
            run.id,
            start,
            end,
            request.batch_size,
            request.per_page,
        )

        try:
            self._drive(run, query, request, cancel, on_progress)
        except RemoteAuthError as exc:
            log.error("Remote rejected credentials, aborting run %s: %s", run.id, exc)  # noqa: TRY400
            run.fail(
                FailureReason.AUTH,
                now=self.clock(),
                error=ErrorDescriptor(kind=ErrorKind.AUTH, message=str(exc), count=0),
            )
        except Exception as exc:
            log.exception("Import run %s failed unexpectedly", run.id)
            run.fail(
                FailureReason.ERROR,
                now=self.clock(),
                error=ErrorDescriptor(
                    kind=ErrorKind.UNEXPECTED,
                    message=str(exc) or type(exc).__name__,
                    count=0,
                ),
            )
            self._checkpoint(run, on_progress)
            raise

        if not run.status.is_terminal:
            run.complete(
                pending_conflicts=self._pending_conflicts(run) + run.carried_conflicts,
                now=self.clock(),
            )
        self._checkpoint(run, on_progress)

        result = ImportResult.from_run(run, self._run_conflicts(run))
        log.info(
            "Finished import run %s as %s: created=%s, updated=%s, skipped=%s, "
            "conflicts=%s, carried_conflicts=%s, errors=%s, duration=%s",
            run.id,
            run.status,
            run.created,
            run.updated,
            run.skipped,
            run.conflicts,
            run.carried_conflicts,
            run.errors,
            result.duration,
        )
        return result

    def _drive(
        self,
        run: ImportRun,
        query: OrderQuery,
        request: ImportRequest,
        cancel: CancellationToken | None,
        on_progress: ProgressCallback | None,
    ) -> None:
        cursor = PageCursor(
            fetcher=self.fetcher,
            query=query,
            per_page=request.per_page,
            max_consecutive_failures=request.max_page_failures,
        )
        for outcome in cursor:
            if isinstance(outcome, PageFailure):
                run.record_error(
                    ErrorDescriptor(
                        kind=ErrorKind.PAGE,
                        message=str(outcome.error),
                        page=outcome.page,
                        count=outcome.expected_orders,
                    )
                )
                self._checkpoint(run, on_progress)
                if cursor.unavailable:
                    log.error(
                        "Giving up on run %s after %s consecutive page failures",
                        run.id,
                        cursor.consecutive_failures,
                    )
                    run.fail(FailureReason.REMOTE_UNAVAILABLE, now=self.clock())
                    return
            else:
                self._process_page(run, outcome, request, cancel, on_progress)

            if cancel is not None and cancel.cancelled:
                log.warning("Import run %s cancelled after page %s", run.id, cursor.next_page - 1)
                run.fail(FailureReason.CANCELLED, now=self.clock())
                return

    def _process_page(
        self,
        run: ImportRun,
        page: RemoteOrderPage,
        request: ImportRequest,
        cancel: CancellationToken | None,
        on_progress: ProgressCallback | None,
    ) -> None:
        if page.total_orders is not None and page.total_orders != run.total_orders:
            run.set_totals(
                total_orders=page.total_orders,
                total_batches=estimate_batches(
                    page.total_orders,
                    per_page=request.per_page,
                    batch_size=request.batch_size,
                ),
            )

        for reject in page.rejects:
            log.warning("Skipping malformed order %s: %s", reject.external_id, reject.message)
            run.record_error(
                ErrorDescriptor(
                    kind=ErrorKind.NORMALIZATION,
                    message=reject.message,
                    external_id=reject.external_id,
                    page=page.page,
                )
            )

        for batch in batched(page.orders, request.batch_size):
            self._process_batch(run, batch)
            run.advance_batch()
            self._checkpoint(run, on_progress)
            if cancel is not None and cancel.cancelled:
                return

        if not page.orders:
            self._checkpoint(run, on_progress)

    def _process_batch(self, run: ImportRun, orders: Sequence[RemoteOrder]) -> None:
        with self.unit_of_work_factory() as uow:
            states = uow.repositories.orders.states_for(order.external_id for order in orders)

        for plan in self._plan_all(orders, states):
            self._apply(run, plan)

    def _plan_all(
        self,
        orders: Sequence[RemoteOrder],
        states: dict[str, OrderState],
    ) -> list[OrderPlan]:
        if self.plan_workers == 1 or len(orders) < 2:  # noqa: PLR2004
            return [plan_order(order, states) for order in orders]
        with ThreadPoolExecutor(max_workers=self.plan_workers) as pool:
            return list(pool.map(lambda order: plan_order(order, states), orders))

    def _apply(self, run: ImportRun, plan: OrderPlan) -> None:
        external_id = plan.remote.external_id
        key: Hashable = plan.state.order_id if plan.state is not None else external_id
        try:
            with (
                self.locks.hold(key, timeout=self.lock_timeout),
                self.unit_of_work_factory() as uow,
            ):
                plan = self._recheck(plan, uow)
                try:
                    applied = apply_plan(plan, uow.repositories, run_id=run.id, now=self.clock())
                    uow.commit()
                except OrderPersistenceError as exc:
                    if plan.action is OrderAction.CONFLICT and not isinstance(
                        exc, ConflictPersistenceError
                    ):
                        raise ConflictPersistenceError(str(exc)) from exc
                    raise
        except ConflictPersistenceError as exc:
            log.warning("Could not store conflict for order %s: %s", external_id, exc)
            run.record_error(
                ErrorDescriptor(
                    kind=ErrorKind.CONFLICT_PERSISTENCE,
                    message=str(exc),
                    external_id=external_id,
                )
            )
            return
        except (OrderPersistenceError, OrderNotFoundError, TimeoutError) as exc:
            log.warning("Could not apply %s to order %s: %s", plan.action, external_id, exc)
            run.record_error(
                ErrorDescriptor(
                    kind=ErrorKind.PERSISTENCE,
                    message=str(exc),
                    external_id=external_id,
                )
            )
            return

        match plan.action:
            case OrderAction.CREATE:
                run.tally(created=1)
            case OrderAction.ADOPT_REMOTE | OrderAction.AUTO_MERGE:
                run.tally(updated=1)
            case OrderAction.SKIP:
                run.tally(skipped=1)
            case OrderAction.CONFLICT if applied.carried_over:
                run.tally(carried_conflicts=1)
            case OrderAction.CONFLICT:
                run.tally(conflicts=1)

    def _recheck(self, plan: OrderPlan, uow: OrderSyncUnitOfWork) -> OrderPlan:
        """Re-plan from fresh state if the order changed after the batch was read."""

        external_id = plan.remote.external_id
        fresh = uow.repositories.orders.states_for([external_id]).get(external_id)
        planned = plan.state
        if fresh is None and planned is None:
            return plan
        if fresh is not None and planned is not None and fresh.version == planned.version:
            return plan
        log.debug("Order %s changed since planning; re-planning", external_id)
        return plan_order(plan.remote, {external_id: fresh} if fresh is not None else {})

    def _save(self, run: ImportRun) -> None:
        with self.unit_of_work_factory() as uow:
            uow.repositories.runs.save(run)
            uow.commit()

    def _checkpoint(self, run: ImportRun, on_progress: ProgressCallback | None) -> None:
        self._save(run)
        snapshot = run.progress()
        with self._progress_lock:
            self._progress = snapshot
        if on_progress is not None:
            on_progress(snapshot)

    def _pending_conflicts(self, run: ImportRun) -> int:
        with self.unit_of_work_factory() as uow:
            return uow.repositories.conflicts.count_pending(run.id)

    def _run_conflicts(self, run: ImportRun) -> tuple[Conflict, ...]:
        with self.unit_of_work_factory() as uow:
            return tuple(
                uow.repositories.conflicts.find(state=ConflictState.PENDING, run_id=run.id)
            )
