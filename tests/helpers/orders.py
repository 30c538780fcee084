"""Reusable fakes and builders for order sync tests."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime, timedelta
from math import ceil
from typing import TYPE_CHECKING, Literal

from ordersync.domain.errors import (
    ConcurrentModificationError,
    ConflictPersistenceError,
    RemoteAuthError,
    TransientRemoteError,
)
from ordersync.domain.model import (
    Address,
    AuditEntry,
    Conflict,
    ConflictState,
    ImportRun,
    LineItem,
    Order,
    OrderSnapshot,
    RemoteOrder,
)
from ordersync.domain.ports import (
    NormalizationFailure,
    OrderQuery,
    OrderSyncRepositories,
    RemoteOrderFetcher,
    RemoteOrderPage,
)
from ordersync.domain.reconciliation import OrderState

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable
    from types import TracebackType
    from uuid import UUID

    from ordersync.domain.ports import OrderSyncUnitOfWork

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=UTC)


def make_address(**overrides: str) -> Address:
    values = {
        "first_name": "Ada",
        "last_name": "Lovelace",
        "address_1": "1 Analytical Way",
        "city": "London",
        "postcode": "N1 1AA",
        "country": "GB",
        "email": "ada@example.com",
    }
    values.update(overrides)
    return Address(**values)


def make_line_item(sku: str = "SKU-1", *, quantity: int = 1, unit_price: int = 4500) -> LineItem:
    return LineItem(sku=sku, name=f"Item {sku}", quantity=quantity, unit_price=unit_price)


def make_snapshot(**overrides: object) -> OrderSnapshot:
    values: dict[str, object] = {
        "status": "processing",
        "total_amount": 9000,
        "shipping_cost": 500,
        "tax_amount": 0,
        "billing_address": make_address(),
        "shipping_address": make_address(),
        "line_items": (make_line_item(quantity=2),),
    }
    values.update(overrides)
    return OrderSnapshot(**values)  # pyright: ignore[reportArgumentType]


def make_remote_order(external_id: str = "1001", **overrides: object) -> RemoteOrder:
    return RemoteOrder(
        external_id=external_id,
        order_number=external_id,
        currency="USD",
        customer_name="Ada Lovelace",
        customer_email="ada@example.com",
        ordered_at=BASE_TIME,
        modified_at=BASE_TIME,
        snapshot=make_snapshot(**overrides),
    )


def make_state(order: Order) -> OrderState:
    return OrderState.of(order)


class SteppingClock:
    """Deterministic clock advancing one second per call."""

    def __init__(self, start: datetime = BASE_TIME, *, step: timedelta = timedelta(seconds=1)) -> None:
        self.current = start
        self.step = step

    def __call__(self) -> datetime:
        value = self.current
        self.current += self.step
        return value


# ---------------------------------------------------------------------------
# In-memory persistence


@dataclass
class InMemoryStore:
    """Committed state shared by every fake unit of work created from it."""

    orders: dict[UUID, Order] = field(default_factory=dict)
    conflicts: dict[UUID, Conflict] = field(default_factory=dict)
    runs: dict[UUID, ImportRun] = field(default_factory=dict)
    audit: list[AuditEntry] = field(default_factory=list)
    fail_conflict_writes: bool = False
    commits: int = 0

    def add_order(self, order: Order) -> Order:
        self.orders[order.id] = order
        return order

    def order_by_external_id(self, external_id: str) -> Order:
        for order in self.orders.values():
            if order.external_id == external_id:
                return order
        raise KeyError(external_id)

    def pending_conflicts(self) -> list[Conflict]:
        return [conflict for conflict in self.conflicts.values() if conflict.is_pending]


class InMemoryOrderRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.staged: dict[UUID, Order] = {}
        self.read_versions: dict[UUID, int] = {}
        self.new: set[UUID] = set()

    def add(self, entity: Order) -> None:
        self.staged[entity.id] = entity
        self.new.add(entity.id)

    def get(self, order_id: UUID) -> Order | None:
        if order_id in self.staged:
            return self.staged[order_id]
        stored = self.store.orders.get(order_id)
        if stored is None:
            return None
        copy = replace(stored)
        self.staged[order_id] = copy
        self.read_versions[order_id] = stored.version
        return copy

    def get_by_external_id(self, external_id: str) -> Order | None:
        for order in (*self.staged.values(), *self.store.orders.values()):
            if order.external_id == external_id:
                return self.get(order.id)
        return None

    def states_for(self, external_ids: Iterable[str]) -> dict[str, OrderState]:
        wanted = set(external_ids)
        merged = {**self.store.orders, **self.staged}
        return {
            order.external_id: OrderState.of(order)
            for order in merged.values()
            if order.external_id in wanted
        }


class InMemoryConflictRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.staged: dict[UUID, Conflict] = {}

    def _visible(self) -> dict[UUID, Conflict]:
        return {**self.store.conflicts, **self.staged}

    def _stage(self, conflict: Conflict) -> Conflict:
        if conflict.id not in self.staged:
            self.staged[conflict.id] = replace(conflict)
        return self.staged[conflict.id]

    def add(self, entity: Conflict) -> None:
        if self.store.fail_conflict_writes:
            raise ConflictPersistenceError(f"conflict store offline for {entity.external_id}")
        for existing in self._visible().values():
            if existing.run_id == entity.run_id and existing.order_id == entity.order_id:
                raise ConflictPersistenceError("duplicate conflict for run and order")
        self.staged[entity.id] = entity

    def get_for_run(self, run_id: UUID, order_id: UUID) -> Conflict | None:
        for conflict in self._visible().values():
            if conflict.run_id == run_id and conflict.order_id == order_id:
                return self._stage(conflict)
        return None

    def pending_for_order(self, order_id: UUID) -> list[Conflict]:
        matches = [
            conflict
            for conflict in self._visible().values()
            if conflict.order_id == order_id and conflict.is_pending
        ]
        return [self._stage(conflict) for conflict in sorted(matches, key=lambda c: c.created_at)]

    def find(
        self,
        *,
        state: ConflictState | None = None,
        run_id: UUID | None = None,
    ) -> list[Conflict]:
        return sorted(
            (
                conflict
                for conflict in self._visible().values()
                if (state is None or conflict.state is state)
                and (run_id is None or conflict.run_id == run_id)
            ),
            key=lambda conflict: conflict.created_at,
        )

    def count_pending(self, run_id: UUID) -> int:
        return len(self.find(state=ConflictState.PENDING, run_id=run_id))


class InMemoryImportRunRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.staged: dict[UUID, ImportRun] = {}

    def save(self, run: ImportRun) -> None:
        self.staged[run.id] = replace(run)

    def get(self, run_id: UUID) -> ImportRun | None:
        return self.staged.get(run_id) or self.store.runs.get(run_id)

    def recent(self, limit: int = 20) -> list[ImportRun]:
        runs = {**self.store.runs, **self.staged}.values()
        return sorted(runs, key=lambda run: run.created_at, reverse=True)[:limit]


class InMemoryAuditRepository:
    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.staged: list[AuditEntry] = []

    def add(self, entity: AuditEntry) -> None:
        self.staged.append(entity)

    def for_order(self, order_id: UUID) -> list[AuditEntry]:
        return [
            entry for entry in (*self.store.audit, *self.staged) if entry.order_id == order_id
        ]


class FakeUnitOfWork:
    """Unit of work over an ``InMemoryStore``.

    Reads hand out copies; nothing reaches the store until ``commit``. Committing an
    order whose stored version moved since it was read raises
    ``ConcurrentModificationError``, mirroring the SQL version column.
    """

    def __init__(self, store: InMemoryStore) -> None:
        self.store = store
        self.committed = False
        self._repositories: OrderSyncRepositories | None = None

    def __enter__(self) -> FakeUnitOfWork:
        self._repositories = OrderSyncRepositories(
            orders=InMemoryOrderRepository(self.store),
            conflicts=InMemoryConflictRepository(self.store),
            runs=InMemoryImportRunRepository(self.store),
            audit=InMemoryAuditRepository(self.store),
        )
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_value: BaseException | None,
        traceback: TracebackType | None,
    ) -> Literal[False]:
        self._repositories = None
        return False

    @property
    def repositories(self) -> OrderSyncRepositories:
        if self._repositories is None:
            raise RuntimeError("Unit of work is not active")
        return self._repositories

    def commit(self) -> None:
        repositories = self.repositories
        orders = repositories.orders
        assert isinstance(orders, InMemoryOrderRepository)
        for order_id, read_version in orders.read_versions.items():
            stored = self.store.orders.get(order_id)
            if stored is not None and stored.version != read_version:
                raise ConcurrentModificationError(f"order {order_id} changed underneath")
        for order_id, order in orders.staged.items():
            if order_id not in orders.new:
                order.version = orders.read_versions[order_id] + 1
            self.store.orders[order_id] = order
        orders.read_versions = {order_id: order.version for order_id, order in orders.staged.items()}
        orders.new.clear()

        conflicts = repositories.conflicts
        assert isinstance(conflicts, InMemoryConflictRepository)
        self.store.conflicts.update(conflicts.staged)
        runs = repositories.runs
        assert isinstance(runs, InMemoryImportRunRepository)
        self.store.runs.update(runs.staged)
        audit = repositories.audit
        assert isinstance(audit, InMemoryAuditRepository)
        for entry in audit.staged:
            entry.id = len(self.store.audit) + 1
            self.store.audit.append(entry)
        audit.staged.clear()

        self.store.commits += 1
        self.committed = True

    def rollback(self) -> None:
        if self._repositories is not None:
            self.__enter__()


def uow_factory(store: InMemoryStore) -> Callable[[], OrderSyncUnitOfWork]:
    def factory() -> OrderSyncUnitOfWork:
        return FakeUnitOfWork(store)

    return factory


# ---------------------------------------------------------------------------
# Remote source


class FakeOrderSource(RemoteOrderFetcher):
    """In-memory remote listing, paged like the WooCommerce endpoint.

    ``failing_pages`` raise ``TransientRemoteError`` (as if retries were exhausted);
    ``rejects`` attaches normalisation failures to a page.
    """

    def __init__(
        self,
        orders: Iterable[RemoteOrder] = (),
        *,
        failing_pages: Iterable[int] = (),
        rejects: dict[int, tuple[NormalizationFailure, ...]] | None = None,
        auth_error: bool = False,
        report_totals: bool = True,
    ) -> None:
        self.orders = list(orders)
        self.failing_pages = set(failing_pages)
        self.rejects = rejects or {}
        self.auth_error = auth_error
        self.report_totals = report_totals
        self.calls: list[tuple[OrderQuery, int, int]] = []

    def replace_order(self, remote: RemoteOrder) -> None:
        self.orders = [
            remote if order.external_id == remote.external_id else order for order in self.orders
        ]

    def __call__(self, *, query: OrderQuery, page: int, per_page: int) -> RemoteOrderPage:
        self.calls.append((query, page, per_page))
        if self.auth_error:
            raise RemoteAuthError("credentials rejected", status_code=401)
        if page in self.failing_pages:
            raise TransientRemoteError(f"page {page} unavailable", status_code=503)
        selected = [
            order
            for order in self.orders
            if not query.order_ids or order.external_id in query.order_ids
        ]
        selected.sort(key=lambda order: int(order.external_id))
        start = (page - 1) * per_page
        rejects = self.rejects.get(page, ())
        total = len(selected) + sum(len(items) for items in self.rejects.values())
        return RemoteOrderPage(
            page=page,
            orders=tuple(selected[start : start + per_page]),
            rejects=rejects,
            total_orders=total if self.report_totals else None,
            total_pages=max(1, ceil(total / per_page)) if self.report_totals else None,
        )

