"""Unit-of-work abstractions for coordinating repositories."""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from types import TracebackType

    from ordersync.domain.ports.persistence import (
        AuditRepository,
        ConflictRepository,
        ImportRunRepository,
        OrderRepository,
    )


@runtime_checkable
class RepositoryCollection(Protocol):
    """Marker protocol for groups of repositories managed together."""


@runtime_checkable
class UnitOfWork[TRepositories: RepositoryCollection](Protocol):
    """Generic unit-of-work boundary around a repository collection.

    ``commit`` raises ``ConcurrentModificationError`` when an order row was changed
    by another writer and ``OrderPersistenceError`` for other storage failures.
    """

    @property
    def repositories(self) -> TRepositories: ...

    def __enter__(self) -> UnitOfWork[TRepositories]: ...

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> bool: ...

    def commit(self) -> None: ...

    def rollback(self) -> None: ...


@dataclass(slots=True)
class OrderSyncRepositories(RepositoryCollection):
    """Repositories required by the import pipeline and resolution executor."""

    orders: OrderRepository
    conflicts: ConflictRepository
    runs: ImportRunRepository
    audit: AuditRepository


type OrderSyncUnitOfWork = UnitOfWork[OrderSyncRepositories]
type UnitOfWorkFactory = Callable[[], OrderSyncUnitOfWork]
