"""Repository implementations backed by SQLAlchemy sessions."""

from __future__ import annotations

from typing import TYPE_CHECKING

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError

from ordersync.adapters.sqlalchemy.mappings import (
    audit_entry_table,
    conflict_table,
    import_run_table,
    order_table,
)
from ordersync.domain.errors import ConflictPersistenceError
from ordersync.domain.model import AuditEntry, Conflict, ConflictState, ImportRun, Order
from ordersync.domain.reconciliation.match import OrderState

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.orm import Session


class SqlAlchemyOrderRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Order) -> None:
        self.session.add(entity)

    def get(self, order_id: UUID) -> Order | None:
        return self.session.get(Order, order_id)

    def get_by_external_id(self, external_id: str) -> Order | None:
        stmt = select(Order).where(order_table.c.external_id == external_id)
        return self.session.execute(stmt).scalar_one_or_none()

    def states_for(self, external_ids: Iterable[str]) -> dict[str, OrderState]:
        wanted = list(dict.fromkeys(external_ids))
        if not wanted:
            return {}
        stmt = select(Order).where(order_table.c.external_id.in_(wanted))
        orders = self.session.execute(stmt).scalars().all()
        return {order.external_id: OrderState.of(order) for order in orders}


class SqlAlchemyConflictRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: Conflict) -> None:
        self.session.add(entity)
        try:
            self.session.flush()
        except SQLAlchemyError as exc:
            raise ConflictPersistenceError(
                f"Could not store conflict for order {entity.external_id}: {exc}"
            ) from exc

    def get_for_run(self, run_id: UUID, order_id: UUID) -> Conflict | None:
        stmt = (
            select(Conflict)
            .where(conflict_table.c.run_id == run_id)
            .where(conflict_table.c.order_id == order_id)
        )
        return self.session.execute(stmt).scalar_one_or_none()

    def pending_for_order(self, order_id: UUID) -> list[Conflict]:
        stmt = (
            select(Conflict)
            .where(conflict_table.c.order_id == order_id)
            .where(conflict_table.c.state == ConflictState.PENDING)
            .order_by(conflict_table.c.created_at)
        )
        return list(self.session.execute(stmt).scalars())

    def find(
        self,
        *,
        state: ConflictState | None = None,
        run_id: UUID | None = None,
    ) -> list[Conflict]:
        stmt = select(Conflict).order_by(conflict_table.c.created_at)
        if state is not None:
            stmt = stmt.where(conflict_table.c.state == state)
        if run_id is not None:
            stmt = stmt.where(conflict_table.c.run_id == run_id)
        return list(self.session.execute(stmt).scalars())

    def count_pending(self, run_id: UUID) -> int:
        stmt = (
            select(func.count())
            .select_from(conflict_table)
            .where(conflict_table.c.run_id == run_id)
            .where(conflict_table.c.state == ConflictState.PENDING)
        )
        return int(self.session.execute(stmt).scalar_one())


class SqlAlchemyImportRunRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def save(self, run: ImportRun) -> None:
        self.session.merge(run)

    def get(self, run_id: UUID) -> ImportRun | None:
        return self.session.get(ImportRun, run_id)

    def recent(self, limit: int = 20) -> list[ImportRun]:
        stmt = select(ImportRun).order_by(import_run_table.c.created_at.desc()).limit(limit)
        return list(self.session.execute(stmt).scalars())


class SqlAlchemyAuditRepository:
    def __init__(self, session: Session) -> None:
        self.session = session

    def add(self, entity: AuditEntry) -> None:
        self.session.add(entity)

    def for_order(self, order_id: UUID) -> list[AuditEntry]:
        stmt = (
            select(AuditEntry)
            .where(audit_entry_table.c.order_id == order_id)
            .order_by(audit_entry_table.c.created_at, audit_entry_table.c.id)
        )
        return list(self.session.execute(stmt).scalars())
