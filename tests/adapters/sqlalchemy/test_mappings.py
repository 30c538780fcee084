from __future__ import annotations

from typing import TYPE_CHECKING
from uuid import uuid4

from sqlalchemy import inspect, select

from ordersync.adapters.sqlalchemy import start_mappers
from ordersync.adapters.sqlalchemy.mappings import order_table
from ordersync.domain.model import (
    AuditAction,
    AuditEntry,
    Conflict,
    ErrorDescriptor,
    ErrorKind,
    FieldSource,
    ImportRun,
    Order,
    RunStatus,
)
from ordersync.domain.reconciliation import diff_order
from tests.helpers.orders import (
    BASE_TIME,
    make_address,
    make_line_item,
    make_remote_order,
    make_snapshot,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine
    from sqlalchemy.orm import Session


def test_start_mappers_is_idempotent() -> None:
    # First invocation happens in the sqlite_engine fixture; calling again should be harmless.
    start_mappers()
    start_mappers()


def test_migrations_create_every_table(sqlite_engine: Engine) -> None:
    tables = set(inspect(sqlite_engine).get_table_names())

    assert {"sales_order", "import_run", "order_conflict", "audit_entry"} <= tables
    run_columns = {column["name"] for column in inspect(sqlite_engine).get_columns("import_run")}
    assert "carried_conflicts" in run_columns


def test_order_value_objects_round_trip(sqlite_session: Session) -> None:
    remote = make_remote_order(
        "42",
        line_items=(make_line_item("A", quantity=3, unit_price=199), make_line_item("B")),
        shipping_address=make_address(city="Leeds", phone="+44 1"),
    )
    order = Order.from_remote(remote, now=BASE_TIME)
    sqlite_session.add(order)
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded = sqlite_session.get(Order, order.id)

    assert loaded is not None
    assert loaded.snapshot() == remote.snapshot
    assert loaded.baseline == remote.snapshot
    assert loaded.tags == order.tags
    assert loaded.created_at == BASE_TIME
    assert loaded.version == 1


def test_version_column_increments_on_update(sqlite_session: Session) -> None:
    order = Order.from_remote(make_remote_order(), now=BASE_TIME)
    sqlite_session.add(order)
    sqlite_session.commit()

    order.edit({"status": "completed"}, actor="alice", now=BASE_TIME)
    sqlite_session.commit()

    stored = sqlite_session.execute(
        select(order_table.c.version, order_table.c.status).where(order_table.c.id == order.id)
    ).one()
    assert tuple(stored) == (2, "completed")


def test_run_conflict_and_audit_round_trip(sqlite_session: Session) -> None:
    order = Order.from_remote(make_remote_order(), now=BASE_TIME)
    run = ImportRun(batch_size=25, statuses=("processing",), created_at=BASE_TIME)
    run.start(now=BASE_TIME)
    run.record_error(ErrorDescriptor(kind=ErrorKind.PAGE, message="HTTP 503", page=2, count=4))
    run.tally(carried_conflicts=1)
    diff = diff_order(
        make_snapshot(total_amount=10000),
        make_snapshot(total_amount=9500),
        make_snapshot(),
    )
    conflict = Conflict(
        run_id=run.id,
        order_id=order.id,
        external_id=order.external_id,
        fields=diff.conflicts,
        remote_snapshot=make_snapshot(total_amount=9500),
        created_at=BASE_TIME,
        updated_at=BASE_TIME,
    )
    entry = AuditEntry(
        order_id=order.id,
        run_id=run.id,
        action=AuditAction.CREATED,
        field_sources={"total_amount": FieldSource.REMOTE},
        created_at=BASE_TIME,
    )
    sqlite_session.add_all([order, run, conflict, entry])
    sqlite_session.commit()
    sqlite_session.expunge_all()

    loaded_run = sqlite_session.get(ImportRun, run.id)
    loaded_conflict = sqlite_session.get(Conflict, conflict.id)
    loaded_entry = sqlite_session.execute(select(AuditEntry)).scalar_one()

    assert loaded_run is not None
    assert loaded_run.status is RunStatus.RUNNING
    assert loaded_run.statuses == ("processing",)
    assert loaded_run.error_log == run.error_log
    assert loaded_run.errors == 4
    assert loaded_run.carried_conflicts == 1
    assert loaded_conflict is not None
    assert loaded_conflict.fields == conflict.fields
    assert loaded_conflict.field_names == ("total_amount",)
    assert loaded_conflict.remote_snapshot.total_amount == 9500
    assert loaded_entry.id is not None
    assert loaded_entry.field_sources == {"total_amount": FieldSource.REMOTE}


def test_unknown_ids_load_nothing(sqlite_session: Session) -> None:
    assert sqlite_session.get(Order, uuid4()) is None
