"""Operator-facing queries and local edits around the sync pipeline."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from ordersync.domain.errors import (
    ConcurrentModificationError,
    NormalizationError,
    OrderNotFoundError,
)
from ordersync.domain.model import (
    RECONCILED_FIELDS,
    ConflictState,
    coerce_field_value,
)
from ordersync.domain.reconciliation.locks import ORDER_LOCKS, KeyedLocks

if TYPE_CHECKING:
    from uuid import UUID

    from ordersync.domain.model import AuditEntry, Conflict, FieldValue, ImportRun, Order
    from ordersync.domain.ports import UnitOfWorkFactory

log = getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(UTC)


def list_runs(*, unit_of_work_factory: UnitOfWorkFactory, limit: int = 20) -> list[ImportRun]:
    """Import history, newest first."""

    with unit_of_work_factory() as uow:
        return uow.repositories.runs.recent(limit)


def list_conflicts(
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    state: ConflictState | None = ConflictState.PENDING,
    run_id: UUID | None = None,
) -> list[Conflict]:
    with unit_of_work_factory() as uow:
        return uow.repositories.conflicts.find(state=state, run_id=run_id)


def order_changelog(order_id: UUID, *, unit_of_work_factory: UnitOfWorkFactory) -> list[AuditEntry]:
    """Audit entries for one order, oldest first."""

    with unit_of_work_factory() as uow:
        if uow.repositories.orders.get(order_id) is None:
            raise OrderNotFoundError(order_id)
        return uow.repositories.audit.for_order(order_id)


def edit_order(
    order_id: UUID,
    changes: Mapping[str, object],
    *,
    actor: str,
    unit_of_work_factory: UnitOfWorkFactory,
    locks: KeyedLocks = ORDER_LOCKS,
    clock: Callable[[], datetime] = _utcnow,
) -> Order:
    """Change reconciled fields on the local copy and stamp who changed them.

    The baseline is left alone, which is what lets the next sync tell this edit
    apart from a remote change.
    """

    unknown = sorted(set(changes) - set(RECONCILED_FIELDS))
    if unknown:
        raise NormalizationError(f"Cannot edit unknown fields: {', '.join(unknown)}")
    values: dict[str, FieldValue] = {
        name: coerce_field_value(name, value) for name, value in changes.items()
    }

    try:
        with locks.hold(order_id, timeout=30.0), unit_of_work_factory() as uow:
            order = uow.repositories.orders.get(order_id)
            if order is None:
                raise OrderNotFoundError(order_id)
            order.edit(values, actor=actor, now=clock())
            uow.commit()
    except TimeoutError as exc:
        raise ConcurrentModificationError(f"Order {order_id} is busy; try again") from exc

    log.info("Order %s edited by %s: %s", order.external_id, actor, ", ".join(sorted(values)))
    return order
