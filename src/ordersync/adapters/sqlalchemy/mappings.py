"""SQLAlchemy mapping metadata for the order sync domain model."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime
from functools import cache
from typing import TYPE_CHECKING, Any, cast

from sqlalchemy import (
    Column,
    DateTime,
    Dialect,
    Enum,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    Text,
    TypeDecorator,
    UniqueConstraint,
    Uuid,
    orm,
)
from sqlalchemy.orm import configure_mappers

from ordersync.domain.model import (
    Address,
    AuditAction,
    AuditEntry,
    Conflict,
    ConflictField,
    ConflictState,
    ErrorDescriptor,
    FailureReason,
    FieldSource,
    ImportRun,
    LineItem,
    Order,
    OrderSnapshot,
    ResolutionStrategy,
    RunStatus,
)

if TYPE_CHECKING:
    from sqlalchemy.engine import Engine

log = logging.getLogger(__name__)

UUIDColumnType = Uuid[uuid.UUID]


class UTCDateTime(TypeDecorator[datetime]):
    impl = DateTime(timezone=True)
    cache_ok = True

    def process_bind_param(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=UTC)
        return value.astimezone(UTC)

    def process_result_value(self, value: datetime | None, dialect: Dialect) -> datetime | None:
        _ = dialect
        if value is None:
            return None
        return value if value.tzinfo else value.replace(tzinfo=UTC)


class _JSONText[T](TypeDecorator[T]):
    """Value object stored as a JSON document in a text column."""

    impl = Text
    cache_ok = True

    def dump(self, value: T) -> object:
        raise NotImplementedError

    def load(self, payload: Any) -> T:  # noqa: ANN401
        raise NotImplementedError

    def process_bind_param(self, value: T | None, dialect: Dialect) -> str | None:
        _ = dialect
        if value is None:
            return None
        return json.dumps(self.dump(value), sort_keys=True)

    def process_result_value(self, value: str | None, dialect: Dialect) -> T | None:
        _ = dialect
        if value is None:
            return None
        return self.load(json.loads(value))


class AddressType(_JSONText[Address]):
    cache_ok = True

    def dump(self, value: Address) -> object:
        return value.to_payload()

    def load(self, payload: Any) -> Address:
        return Address.from_payload(cast("dict[str, object]", payload))


class LineItemsType(_JSONText[tuple[LineItem, ...]]):
    cache_ok = True

    def dump(self, value: tuple[LineItem, ...]) -> object:
        return [item.to_payload() for item in value]

    def load(self, payload: Any) -> tuple[LineItem, ...]:
        return tuple(LineItem.from_payload(item) for item in cast("list[dict[str, object]]", payload))


class SnapshotType(_JSONText[OrderSnapshot]):
    cache_ok = True

    def dump(self, value: OrderSnapshot) -> object:
        return value.to_payload()

    def load(self, payload: Any) -> OrderSnapshot:
        return OrderSnapshot.from_payload(cast("dict[str, object]", payload))


class ConflictFieldsType(_JSONText[tuple[ConflictField, ...]]):
    cache_ok = True

    def dump(self, value: tuple[ConflictField, ...]) -> object:
        return [item.to_payload() for item in value]

    def load(self, payload: Any) -> tuple[ConflictField, ...]:
        items = cast("list[dict[str, object]]", payload)
        return tuple(ConflictField.from_payload(item) for item in items)


class ErrorLogType(_JSONText[tuple[ErrorDescriptor, ...]]):
    cache_ok = True

    def dump(self, value: tuple[ErrorDescriptor, ...]) -> object:
        return [item.to_payload() for item in value]

    def load(self, payload: Any) -> tuple[ErrorDescriptor, ...]:
        items = cast("list[dict[str, object]]", payload)
        return tuple(ErrorDescriptor.from_payload(item) for item in items)


class StringTupleType(_JSONText[tuple[str, ...]]):
    cache_ok = True

    def dump(self, value: tuple[str, ...]) -> object:
        return list(value)

    def load(self, payload: Any) -> tuple[str, ...]:
        return tuple(str(item) for item in cast("list[object]", payload))


class FieldSourcesType(_JSONText[dict[str, FieldSource]]):
    cache_ok = True

    def dump(self, value: dict[str, FieldSource]) -> object:
        return {name: FieldSource(source).value for name, source in value.items()}

    def load(self, payload: Any) -> dict[str, FieldSource]:
        items = cast("dict[str, str]", payload)
        return {name: FieldSource(source) for name, source in items.items()}


mapper_registry = orm.registry()
mapper_registry.metadata.naming_convention = {
    "ix": "ix_%(column_0_label)s",
    "uq": "uq_%(table_name)s_%(column_0_label)s",
    "ck": "ck_%(table_name)s_%(constraint_name)s",
    "fk": "fk_%(table_name)s_%(column_0_label)s_%(referred_table_name)s",
    "pk": "pk_%(table_name)s",
}

order_table = Table(
    "sales_order",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("external_id", String(64), nullable=False, unique=True),
    Column("order_number", String(64), nullable=False),
    Column("status", String(32), nullable=False),
    Column("total_amount", Integer, nullable=False),
    Column("shipping_cost", Integer, nullable=False),
    Column("tax_amount", Integer, nullable=False),
    Column("billing_address", AddressType, nullable=False),
    Column("shipping_address", AddressType, nullable=False),
    Column("line_items", LineItemsType, nullable=False),
    Column("currency", String(3), nullable=False),
    Column("customer_name", String, nullable=False),
    Column("customer_email", String, nullable=False),
    Column("ordered_at", UTCDateTime, nullable=True),
    Column("tags", StringTupleType, nullable=False),
    Column("baseline", SnapshotType, nullable=True),
    Column("last_modified_by", String, nullable=True),
    Column("last_modified_at", UTCDateTime, nullable=True),
    Column("last_synced_at", UTCDateTime, nullable=True),
    Column("version", Integer, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
)

import_run_table = Table(
    "import_run",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("status", Enum(RunStatus, native_enum=False), nullable=False),
    Column("failure_reason", Enum(FailureReason, native_enum=False), nullable=True),
    Column("window_start", UTCDateTime, nullable=True),
    Column("window_end", UTCDateTime, nullable=True),
    Column("batch_size", Integer, nullable=False),
    Column("statuses", StringTupleType, nullable=False),
    Column("total_orders", Integer, nullable=True),
    Column("processed_orders", Integer, nullable=False),
    Column("created", Integer, nullable=False),
    Column("updated", Integer, nullable=False),
    Column("skipped", Integer, nullable=False),
    Column("conflicts", Integer, nullable=False),
    Column("carried_conflicts", Integer, nullable=False, server_default="0"),
    Column("errors", Integer, nullable=False),
    Column("current_batch", Integer, nullable=False),
    Column("total_batches", Integer, nullable=True),
    Column("error_log", ErrorLogType, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Column("started_at", UTCDateTime, nullable=True),
    Column("finished_at", UTCDateTime, nullable=True),
    Index("ix_import_run_created_at", "created_at"),
)

conflict_table = Table(
    "order_conflict",
    mapper_registry.metadata,
    Column("id", UUIDColumnType, primary_key=True, default=uuid.uuid4),
    Column("run_id", UUIDColumnType, ForeignKey("import_run.id"), nullable=False),
    Column("order_id", UUIDColumnType, ForeignKey("sales_order.id"), nullable=False),
    Column("external_id", String(64), nullable=False),
    Column("fields", ConflictFieldsType, nullable=False),
    Column("remote_snapshot", SnapshotType, nullable=False),
    Column("state", Enum(ConflictState, native_enum=False), nullable=False),
    Column("local_modified_by", String, nullable=True),
    Column("local_modified_at", UTCDateTime, nullable=True),
    Column("resolution", Enum(ResolutionStrategy, native_enum=False), nullable=True),
    Column("resolved_by", String, nullable=True),
    Column("created_at", UTCDateTime, nullable=False),
    Column("updated_at", UTCDateTime, nullable=False),
    Column("resolved_at", UTCDateTime, nullable=True),
    UniqueConstraint("run_id", "order_id", name="uq_order_conflict_run_id_order_id"),
    Index("ix_order_conflict_order_id_state", "order_id", "state"),
)

audit_entry_table = Table(
    "audit_entry",
    mapper_registry.metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("order_id", UUIDColumnType, nullable=False),
    Column("run_id", UUIDColumnType, nullable=True),
    Column("action", Enum(AuditAction, native_enum=False), nullable=False),
    Column("strategy", Enum(ResolutionStrategy, native_enum=False), nullable=True),
    Column("field_sources", FieldSourcesType, nullable=False),
    Column("actor", String, nullable=False),
    Column("created_at", UTCDateTime, nullable=False),
    Index("ix_audit_entry_order_id_run_id", "order_id", "run_id"),
)


@cache
def start_mappers() -> orm.registry:
    """Configure SQLAlchemy mappers for the domain model."""

    log.info("Starting SQLAlchemy mappers")

    mapper_registry.map_imperatively(
        Order,
        order_table,
        version_id_col=order_table.c.version,
    )
    mapper_registry.map_imperatively(ImportRun, import_run_table)
    mapper_registry.map_imperatively(Conflict, conflict_table)
    mapper_registry.map_imperatively(AuditEntry, audit_entry_table)

    configure_mappers()
    return mapper_registry


def create_all_tables(engine: Engine) -> None:
    """Create database tables for the mapped metadata."""

    log.info("Creating all tables")
    mapper_registry.metadata.create_all(engine)
