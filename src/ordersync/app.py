"""Application orchestration entry points."""

from __future__ import annotations

from logging import getLogger
from typing import TYPE_CHECKING

from ordersync.adapters.sqlalchemy.unit_of_work import SqlAlchemyUnitOfWork, is_started, startup
from ordersync.adapters.woocommerce import build_woocommerce_fetcher
from ordersync.config import get_sync_config
from ordersync.domain import operations
from ordersync.domain.model import ConflictState
from ordersync.domain.reconciliation import ResolutionOutcome, resolve_order
from ordersync.domain.sync import ImportOrchestrator, ImportRequest, ImportResult
from ordersync.domain.time_windows import TimeWindow

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from ordersync.domain.model import (
        AuditEntry,
        Conflict,
        ImportRun,
        Order,
        ResolutionStrategy,
    )
    from ordersync.domain.ports import RemoteOrderFetcher, UnitOfWorkFactory
    from ordersync.domain.sync import CancellationToken, ProgressCallback


log = getLogger(__name__)


def _ensure_started() -> None:
    if not is_started():
        startup()


def _unit_of_work_factory(factory: UnitOfWorkFactory | None) -> UnitOfWorkFactory:
    if factory is not None:
        return factory
    _ensure_started()
    return SqlAlchemyUnitOfWork


def run_import(
    *,
    window: TimeWindow | None = None,
    statuses: tuple[str, ...] = (),
    order_ids: tuple[str, ...] = (),
    batch_size: int | None = None,
    per_page: int | None = None,
    source: RemoteOrderFetcher | None = None,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
    cancel: CancellationToken | None = None,
    on_progress: ProgressCallback | None = None,
) -> ImportResult:
    """Import remote orders using the configured adapters."""

    config = get_sync_config()
    effective_uow = _unit_of_work_factory(unit_of_work_factory)
    effective_source = source or build_woocommerce_fetcher()
    request = ImportRequest(
        window=window or TimeWindow(),
        batch_size=batch_size or config.batch_size,
        per_page=per_page or config.per_page,
        statuses=statuses,
        order_ids=order_ids,
        max_page_failures=config.max_page_failures,
    )
    orchestrator = ImportOrchestrator(
        fetcher=effective_source,
        unit_of_work_factory=effective_uow,
        plan_workers=config.plan_workers,
    )
    return orchestrator.run(request, cancel=cancel, on_progress=on_progress)


def resolve_conflict(
    order_id: UUID,
    strategy: ResolutionStrategy | str,
    selections: Mapping[str, str] | None = None,
    *,
    actor: str,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> ResolutionOutcome:
    return resolve_order(
        order_id,
        strategy,
        selections,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        actor=actor,
    )


def list_import_runs(
    *,
    limit: int = 20,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[ImportRun]:
    return operations.list_runs(
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        limit=limit,
    )


def list_pending_conflicts(
    *,
    run_id: UUID | None = None,
    state: ConflictState | None = ConflictState.PENDING,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[Conflict]:
    """Conflicts awaiting an operator decision; ``state=None`` lists every state."""

    return operations.list_conflicts(
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
        state=state,
        run_id=run_id,
    )


def get_order_changelog(
    order_id: UUID,
    *,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> list[AuditEntry]:
    return operations.order_changelog(
        order_id,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
    )


def edit_local_order(
    order_id: UUID,
    changes: Mapping[str, object],
    *,
    actor: str,
    unit_of_work_factory: UnitOfWorkFactory | None = None,
) -> Order:
    return operations.edit_order(
        order_id,
        changes,
        actor=actor,
        unit_of_work_factory=_unit_of_work_factory(unit_of_work_factory),
    )
