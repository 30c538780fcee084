"""The reconciled order aggregate and its field snapshots."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final, cast
from uuid import UUID, uuid4

from .primitives import Address, LineItem, Money, normalize_money, normalize_text

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping


type FieldValue = str | Money | Address | tuple[LineItem, ...]

RECONCILED_FIELDS: Final[tuple[str, ...]] = (
    "status",
    "total_amount",
    "shipping_cost",
    "tax_amount",
    "billing_address",
    "shipping_address",
    "line_items",
)
MONEY_FIELDS: Final[frozenset[str]] = frozenset({"total_amount", "shipping_cost", "tax_amount"})
ADDRESS_FIELDS: Final[frozenset[str]] = frozenset({"billing_address", "shipping_address"})

HIGH_VALUE_THRESHOLD: Final[Money] = 50_000
MEDIUM_VALUE_THRESHOLD: Final[Money] = 20_000
LOW_VALUE_THRESHOLD: Final[Money] = 5_000
STATUS_TAGS: Final[dict[str, str]] = {
    "processing": "Processing",
    "completed": "Completed",
    "refunded": "Refunded",
}


def _utcnow() -> datetime:
    return datetime.now(UTC)


def coerce_field_value(name: str, value: object) -> FieldValue:
    """Normalise a raw value for one reconciled field, or raise ``KeyError`` for unknown names."""

    if name not in RECONCILED_FIELDS:
        raise KeyError(name)
    if name in MONEY_FIELDS:
        return normalize_money(value, field_name=name)
    if name in ADDRESS_FIELDS:
        if isinstance(value, Address):
            return value
        return Address.from_payload(cast("Mapping[str, object] | None", value))
    if name == "line_items":
        items = cast("Iterable[LineItem | Mapping[str, object]]", value or ())
        return tuple(
            item if isinstance(item, LineItem) else LineItem.from_payload(item) for item in items
        )
    return normalize_text(value)


def field_to_payload(name: str, value: FieldValue | None) -> object:
    """JSON-safe form of a field value, used by the baseline and conflict stores."""

    if value is None:
        return None
    if name in ADDRESS_FIELDS:
        return cast(Address, value).to_payload()
    if name == "line_items":
        return [item.to_payload() for item in cast("tuple[LineItem, ...]", value)]
    return value


def field_from_payload(name: str, payload: object) -> FieldValue | None:
    if payload is None:
        return None
    return coerce_field_value(name, payload)


@dataclass(frozen=True, slots=True, kw_only=True)
class OrderSnapshot:
    """The reconciled business fields of an order at one point in time."""

    status: str
    total_amount: Money
    shipping_cost: Money = 0
    tax_amount: Money = 0
    billing_address: Address = field(default_factory=Address)
    shipping_address: Address = field(default_factory=Address)
    line_items: tuple[LineItem, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "status", normalize_text(self.status))
        object.__setattr__(self, "line_items", tuple(self.line_items))

    def value(self, name: str) -> FieldValue:
        if name not in RECONCILED_FIELDS:
            raise KeyError(name)
        return cast(FieldValue, getattr(self, name))

    def with_values(self, values: Mapping[str, FieldValue]) -> OrderSnapshot:
        unknown = set(values) - set(RECONCILED_FIELDS)
        if unknown:
            raise KeyError(", ".join(sorted(unknown)))
        return replace(self, **values)  # pyright: ignore[reportArgumentType]

    def to_payload(self) -> dict[str, object]:
        return {name: field_to_payload(name, self.value(name)) for name in RECONCILED_FIELDS}

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> OrderSnapshot:
        values = {
            name: coerce_field_value(name, payload[name])
            for name in RECONCILED_FIELDS
            if name in payload
        }
        return cls(**values)  # pyright: ignore[reportArgumentType]


@dataclass(frozen=True, slots=True, kw_only=True)
class RemoteOrder:
    """One remote order after normalisation into the internal shape."""

    external_id: str
    order_number: str
    snapshot: OrderSnapshot
    currency: str = ""
    customer_name: str = ""
    customer_email: str = ""
    ordered_at: datetime | None = None
    modified_at: datetime | None = None


def auto_tags(snapshot: OrderSnapshot) -> tuple[str, ...]:
    """Tags assigned to orders the first time they are imported."""

    tags: list[str] = []
    if snapshot.total_amount >= HIGH_VALUE_THRESHOLD:
        tags.append("High-Value")
    elif snapshot.total_amount >= MEDIUM_VALUE_THRESHOLD:
        tags.append("Medium-Value")
    elif snapshot.total_amount < LOW_VALUE_THRESHOLD:
        tags.append("Low-Value")
    status_tag = STATUS_TAGS.get(snapshot.status.lower())
    if status_tag is not None:
        tags.append(status_tag)
    return tuple(tags)


@dataclass(eq=False, kw_only=True)
class Order:
    """Local system-of-record copy of an order.

    ``baseline`` is the field state at the last successful reconciliation and is the
    common ancestor for the next three-way comparison. ``version`` is bumped by the
    persistence layer on every write.
    """

    external_id: str
    order_number: str
    status: str
    total_amount: Money
    shipping_cost: Money = 0
    tax_amount: Money = 0
    billing_address: Address = field(default_factory=Address)
    shipping_address: Address = field(default_factory=Address)
    line_items: tuple[LineItem, ...] = ()
    currency: str = ""
    customer_name: str = ""
    customer_email: str = ""
    ordered_at: datetime | None = None
    tags: tuple[str, ...] = ()
    baseline: OrderSnapshot | None = None
    last_modified_by: str | None = None
    last_modified_at: datetime | None = None
    last_synced_at: datetime | None = None
    version: int = 0
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)

    @classmethod
    def from_remote(cls, remote: RemoteOrder, *, now: datetime) -> Order:
        snapshot = remote.snapshot
        return cls(
            external_id=remote.external_id,
            order_number=remote.order_number,
            status=snapshot.status,
            total_amount=snapshot.total_amount,
            shipping_cost=snapshot.shipping_cost,
            tax_amount=snapshot.tax_amount,
            billing_address=snapshot.billing_address,
            shipping_address=snapshot.shipping_address,
            line_items=snapshot.line_items,
            currency=remote.currency,
            customer_name=remote.customer_name,
            customer_email=remote.customer_email,
            ordered_at=remote.ordered_at,
            tags=auto_tags(snapshot),
            baseline=snapshot,
            last_synced_at=now,
            created_at=now,
            updated_at=now,
        )

    def snapshot(self) -> OrderSnapshot:
        return OrderSnapshot(
            status=self.status,
            total_amount=self.total_amount,
            shipping_cost=self.shipping_cost,
            tax_amount=self.tax_amount,
            billing_address=self.billing_address,
            shipping_address=self.shipping_address,
            line_items=self.line_items,
        )

    def apply_values(self, values: Mapping[str, FieldValue], *, now: datetime) -> None:
        if not values:
            return
        for name, value in values.items():
            if name not in RECONCILED_FIELDS:
                raise KeyError(name)
            setattr(self, name, value)
        self.updated_at = now

    def edit(self, values: Mapping[str, FieldValue], *, actor: str, now: datetime) -> None:
        """Apply a local change and remember who made it."""

        self.apply_values(values, now=now)
        self.last_modified_by = actor
        self.last_modified_at = now

    def mark_synced(
        self,
        baseline: OrderSnapshot,
        *,
        now: datetime,
        clear_local_edits: bool,
    ) -> None:
        self.baseline = baseline
        self.last_synced_at = now
        self.updated_at = now
        if clear_local_edits:
            self.last_modified_by = None
            self.last_modified_at = None
