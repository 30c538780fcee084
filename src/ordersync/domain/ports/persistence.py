"""Ports for persisting orders, runs, conflicts and audit entries."""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

from ordersync.domain.model import AuditEntry, Conflict, ImportRun, Order

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from ordersync.domain.model import ConflictState
    from ordersync.domain.reconciliation.match import OrderState


@runtime_checkable
class Repository[TEntity](Protocol):
    """Minimal repository contract for a persistent aggregate store."""

    def add(self, entity: TEntity) -> None: ...


@runtime_checkable
class OrderRepository(Repository[Order], Protocol):
    def get(self, order_id: UUID) -> Order | None: ...

    def get_by_external_id(self, external_id: str) -> Order | None: ...

    def states_for(self, external_ids: Iterable[str]) -> dict[str, OrderState]: ...


@runtime_checkable
class ConflictRepository(Repository[Conflict], Protocol):
    """Conflicts are unique per ``(run_id, order_id)``.

    ``add`` flushes immediately and raises ``ConflictPersistenceError`` on failure.
    """

    def get_for_run(self, run_id: UUID, order_id: UUID) -> Conflict | None: ...

    def pending_for_order(self, order_id: UUID) -> list[Conflict]: ...

    def find(
        self,
        *,
        state: ConflictState | None = None,
        run_id: UUID | None = None,
    ) -> list[Conflict]: ...

    def count_pending(self, run_id: UUID) -> int: ...


@runtime_checkable
class ImportRunRepository(Protocol):
    def save(self, run: ImportRun) -> None: ...

    def get(self, run_id: UUID) -> ImportRun | None: ...

    def recent(self, limit: int = 20) -> list[ImportRun]: ...


@runtime_checkable
class AuditRepository(Repository[AuditEntry], Protocol):
    """Append-only; there is no update or delete."""

    def for_order(self, order_id: UUID) -> list[AuditEntry]: ...
