"""Write an order plan through an open unit of work."""

from __future__ import annotations

from dataclasses import dataclass
from logging import getLogger
from typing import TYPE_CHECKING

from ordersync.domain.errors import OrderNotFoundError
from ordersync.domain.model import (
    RECONCILED_FIELDS,
    AuditAction,
    AuditEntry,
    Conflict,
    FieldSource,
    Order,
)

from .classify import OrderAction, OrderPlan
from .compare import snapshots_equal

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from ordersync.domain.ports import OrderSyncRepositories

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class AppliedPlan:
    """What ``apply_plan`` staged.

    ``carried_over`` is set when the conflict was already pending from an earlier
    run and was refreshed instead of raised again.
    """

    order: Order
    conflict: Conflict | None = None
    carried_over: bool = False


def apply_plan(
    plan: OrderPlan,
    repositories: OrderSyncRepositories,
    *,
    run_id: UUID,
    now: datetime,
) -> AppliedPlan:
    """Stage the writes for ``plan``; the caller owns the commit."""

    if plan.action is OrderAction.CREATE:
        return AppliedPlan(_create(plan, repositories, run_id=run_id, now=now))

    if plan.state is None:
        raise ValueError(f"{plan.action} plan for {plan.remote.external_id} has no local state")
    order = repositories.orders.get(plan.state.order_id)
    if order is None:
        raise OrderNotFoundError(plan.state.order_id)

    remote = plan.remote.snapshot
    match plan.action:
        case OrderAction.ADOPT_REMOTE | OrderAction.AUTO_MERGE:
            order.apply_values({name: remote.value(name) for name in plan.adopt}, now=now)
            order.mark_synced(
                remote,
                now=now,
                clear_local_edits=snapshots_equal(order.snapshot(), remote),
            )
            repositories.audit.add(
                AuditEntry(
                    order_id=order.id,
                    run_id=run_id,
                    action=AuditAction.AUTO_MERGED,
                    field_sources=_auto_sources(plan),
                    created_at=now,
                )
            )
        case OrderAction.SKIP:
            if not snapshots_equal(order.baseline, remote):
                order.mark_synced(
                    remote,
                    now=now,
                    clear_local_edits=snapshots_equal(order.snapshot(), remote),
                )
        case OrderAction.CONFLICT:
            return save_conflict(plan, order, repositories, run_id=run_id, now=now)
        case _:
            raise AssertionError(f"Unhandled order action {plan.action!r}")
    return AppliedPlan(order)


def save_conflict(
    plan: OrderPlan,
    order: Order,
    repositories: OrderSyncRepositories,
    *,
    run_id: UUID,
    now: datetime,
) -> AppliedPlan:
    """Record the conflict for ``order``, reusing one the operator has not settled yet.

    An order has at most one pending conflict across runs: a later run that sees the
    same order refreshes it rather than queueing a duplicate.
    """

    fields = plan.conflicts
    existing = repositories.conflicts.get_for_run(run_id, order.id)
    if existing is not None:
        if existing.is_pending:
            if existing.refresh(fields, plan.remote.snapshot, now=now):
                log.info("Conflict for order %s updated", order.external_id)
        else:
            existing.reopen(fields, plan.remote.snapshot, now=now)
            log.info("Conflict for order %s reopened", order.external_id)
        return AppliedPlan(order, existing)

    pending = repositories.conflicts.pending_for_order(order.id)
    if pending:
        carried = pending[-1]
        if carried.refresh(fields, plan.remote.snapshot, now=now):
            log.info(
                "Pending conflict for order %s from run %s updated",
                order.external_id,
                carried.run_id,
            )
        return AppliedPlan(order, carried, carried_over=True)

    conflict = Conflict(
        run_id=run_id,
        order_id=order.id,
        external_id=order.external_id,
        fields=fields,
        remote_snapshot=plan.remote.snapshot,
        local_modified_by=order.last_modified_by,
        local_modified_at=order.last_modified_at,
        created_at=now,
        updated_at=now,
    )
    repositories.conflicts.add(conflict)
    log.info(
        "Conflict recorded for order %s: %s",
        order.external_id,
        ", ".join(conflict.field_names),
    )
    return AppliedPlan(order, conflict)


def _auto_sources(plan: OrderPlan) -> dict[str, FieldSource]:
    if plan.diff is None:
        return {
            name: FieldSource.REMOTE if name in plan.adopt else FieldSource.LOCAL
            for name in RECONCILED_FIELDS
        }
    return {item.field: item.decision.source for item in plan.diff.fields}


def _create(
    plan: OrderPlan,
    repositories: OrderSyncRepositories,
    *,
    run_id: UUID,
    now: datetime,
) -> Order:
    order = Order.from_remote(plan.remote, now=now)
    repositories.orders.add(order)
    repositories.audit.add(
        AuditEntry(
            order_id=order.id,
            run_id=run_id,
            action=AuditAction.CREATED,
            field_sources=dict.fromkeys(RECONCILED_FIELDS, FieldSource.REMOTE),
            created_at=now,
        )
    )
    return order
