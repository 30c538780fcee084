"""Resolution executor: settle an order's pending conflict with a chosen strategy."""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING

from ordersync.domain.errors import (
    ConcurrentModificationError,
    ConflictNotFoundError,
    OrderNotFoundError,
    ResolutionValidationError,
)
from ordersync.domain.model import (
    RECONCILED_FIELDS,
    AuditAction,
    AuditEntry,
    FieldSource,
    ResolutionStrategy,
)

from .compare import changed_fields
from .diff import FieldDecision, diff_order
from .locks import ORDER_LOCKS, KeyedLocks

if TYPE_CHECKING:
    from uuid import UUID

    from ordersync.domain.model import OrderSnapshot
    from ordersync.domain.ports import UnitOfWorkFactory

log = getLogger(__name__)

DEFAULT_LOCK_TIMEOUT_SECONDS = 30.0


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True, kw_only=True)
class ResolutionOutcome:
    order_id: UUID
    strategy: ResolutionStrategy
    field_sources: Mapping[str, FieldSource]
    resolved_conflicts: tuple[UUID, ...]
    baseline: OrderSnapshot


def _parse_selections(selections: Mapping[str, str]) -> dict[str, FieldSource]:
    unknown = sorted(name for name in selections if name not in RECONCILED_FIELDS)
    if unknown:
        raise ResolutionValidationError(
            f"Unknown fields in selection: {', '.join(unknown)}",
            unknown=unknown,
        )
    parsed: dict[str, FieldSource] = {}
    for name, source in selections.items():
        try:
            parsed[name] = FieldSource(source)
        except ValueError as exc:
            raise ResolutionValidationError(
                f"Field {name} must be resolved to 'local' or 'remote', got {source!r}"
            ) from exc
    return parsed


def merge_for_resolution(
    local: OrderSnapshot,
    remote: OrderSnapshot,
    baseline: OrderSnapshot | None,
    strategy: ResolutionStrategy,
    selections: Mapping[str, str] | None = None,
) -> tuple[OrderSnapshot, dict[str, FieldSource]]:
    """Compute the merged field state and the side each field was taken from.

    ``selective`` must name a side for every field that is conflicting right now;
    all other fields follow the automatic three-way decision. Nothing is returned
    unless the whole request is valid.
    """

    strategy = ResolutionStrategy(strategy)
    if strategy is not ResolutionStrategy.SELECTIVE:
        if selections:
            raise ResolutionValidationError(
                f"Field selections are only accepted with {ResolutionStrategy.SELECTIVE}"
            )
        source = (
            FieldSource.LOCAL if strategy is ResolutionStrategy.KEEP_LOCAL else FieldSource.REMOTE
        )
        merged = local if source is FieldSource.LOCAL else remote
        return merged, dict.fromkeys(RECONCILED_FIELDS, source)

    chosen = _parse_selections(selections or {})
    diff = diff_order(local, remote, baseline)
    missing = [
        item.field
        for item in diff.with_decision(FieldDecision.CONFLICT)
        if item.field not in chosen
    ]
    if missing:
        raise ResolutionValidationError(
            f"Selective resolution is missing a choice for: {', '.join(missing)}",
            missing=missing,
        )

    sources: dict[str, FieldSource] = {}
    for item in diff.fields:
        if item.decision is FieldDecision.CONFLICT:
            sources[item.field] = chosen[item.field]
        else:
            sources[item.field] = item.decision.source
    merged = local.with_values(
        {name: remote.value(name) for name, source in sources.items() if source is FieldSource.REMOTE}
    )
    return merged, sources


def resolve_order(
    order_id: UUID,
    strategy: ResolutionStrategy | str,
    selections: Mapping[str, str] | None = None,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    actor: str,
    locks: KeyedLocks = ORDER_LOCKS,
    clock: Callable[[], datetime] = _utcnow,
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
) -> ResolutionOutcome:
    """Apply ``strategy`` to every pending conflict of ``order_id``.

    The order's fields, its baseline, the conflict states and one audit entry are
    committed together; any validation failure leaves all of them untouched.
    """

    try:
        strategy = ResolutionStrategy(strategy)
    except ValueError as exc:
        raise ResolutionValidationError(f"Unknown resolution strategy {strategy!r}") from exc

    try:
        with locks.hold(order_id, timeout=lock_timeout):
            outcome = _resolve_locked(
                order_id,
                strategy,
                selections,
                unit_of_work_factory=unit_of_work_factory,
                actor=actor,
                clock=clock,
            )
    except TimeoutError as exc:
        raise ConcurrentModificationError(f"Order {order_id} is busy; try again") from exc

    log.info(
        "Resolved order %s with %s by %s (%d conflict(s))",
        order_id,
        strategy,
        actor,
        len(outcome.resolved_conflicts),
    )
    return outcome


def _resolve_locked(
    order_id: UUID,
    strategy: ResolutionStrategy,
    selections: Mapping[str, str] | None,
    *,
    unit_of_work_factory: UnitOfWorkFactory,
    actor: str,
    clock: Callable[[], datetime],
) -> ResolutionOutcome:
    with unit_of_work_factory() as uow:
        repositories = uow.repositories
        order = repositories.orders.get(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        pending = repositories.conflicts.pending_for_order(order_id)
        if not pending:
            raise ConflictNotFoundError(order_id)
        latest = max(pending, key=lambda conflict: (conflict.updated_at, conflict.created_at))

        current = order.snapshot()
        merged, sources = merge_for_resolution(
            current,
            latest.remote_snapshot,
            order.baseline,
            strategy,
            selections,
        )

        now = clock()
        order.apply_values(
            {name: merged.value(name) for name in changed_fields(merged, current)},
            now=now,
        )
        baseline = order.snapshot()
        order.mark_synced(baseline, now=now, clear_local_edits=True)
        for conflict in pending:
            conflict.resolve(strategy, actor=actor, now=now)
        repositories.audit.add(
            AuditEntry(
                order_id=order.id,
                run_id=latest.run_id,
                action=AuditAction.RESOLVED,
                strategy=strategy,
                field_sources=sources,
                actor=actor,
                created_at=now,
            )
        )
        uow.commit()

    return ResolutionOutcome(
        order_id=order_id,
        strategy=strategy,
        field_sources=sources,
        resolved_conflicts=tuple(conflict.id for conflict in pending),
        baseline=baseline,
    )
