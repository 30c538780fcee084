"""Value objects for money, addresses and line items."""

from __future__ import annotations

from dataclasses import dataclass, fields
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import TYPE_CHECKING, Final, cast

from ordersync.domain.errors import NormalizationError

if TYPE_CHECKING:
    from collections.abc import Mapping

type Money = int
"""Amounts are held as integer minor units (cents) throughout the core."""

_MINOR_UNITS: Final[Decimal] = Decimal(100)


def normalize_money(value: object, *, field_name: str = "amount") -> Money:
    """Convert ``value`` to integer minor units.

    ``int`` is taken as already being minor units. ``Decimal``, ``str`` and ``float``
    are major units (``"12.50"`` -> ``1250``); floats go through ``str`` first so that
    ``0.1`` does not turn into ``0.1000000000000000055``.
    """

    if isinstance(value, bool):
        raise NormalizationError(f"{field_name}: boolean is not an amount")
    if isinstance(value, int):
        return value
    if isinstance(value, Decimal):
        amount = value
    elif isinstance(value, float):
        amount = Decimal(str(value))
    elif isinstance(value, str):
        text = value.strip()
        if not text:
            raise NormalizationError(f"{field_name}: empty amount")
        try:
            amount = Decimal(text)
        except InvalidOperation as exc:
            raise NormalizationError(f"{field_name}: {value!r} is not a number") from exc
    else:
        raise NormalizationError(f"{field_name}: unsupported amount type {type(value).__name__}")

    if not amount.is_finite():
        raise NormalizationError(f"{field_name}: {value!r} is not finite")
    return int((amount * _MINOR_UNITS).quantize(Decimal(1), rounding=ROUND_HALF_UP))


def format_money(value: Money) -> str:
    sign = "-" if value < 0 else ""
    whole, cents = divmod(abs(value), 100)
    return f"{sign}{whole}.{cents:02d}"


def normalize_text(value: object) -> str:
    if value is None:
        return ""
    return str(value).strip()


@dataclass(frozen=True, slots=True)
class Address:
    """Postal/contact block. Two addresses are equal iff every sub-field matches."""

    first_name: str = ""
    last_name: str = ""
    company: str = ""
    address_1: str = ""
    address_2: str = ""
    city: str = ""
    state: str = ""
    postcode: str = ""
    country: str = ""
    email: str = ""
    phone: str = ""

    def __post_init__(self) -> None:
        for item in fields(self):
            object.__setattr__(self, item.name, normalize_text(getattr(self, item.name)))

    @classmethod
    def from_payload(cls, payload: Mapping[str, object] | None) -> Address:
        if not payload:
            return cls()
        names = {item.name for item in fields(cls)}
        return cls(**{key: normalize_text(value) for key, value in payload.items() if key in names})

    def to_payload(self) -> dict[str, str]:
        return {item.name: getattr(self, item.name) for item in fields(self)}

    @property
    def is_empty(self) -> bool:
        return not any(getattr(self, item.name) for item in fields(self))

    @property
    def full_name(self) -> str:
        return " ".join(part for part in (self.first_name, self.last_name) if part)


@dataclass(frozen=True, slots=True, kw_only=True)
class LineItem:
    sku: str
    quantity: int
    unit_price: Money
    name: str = ""
    product_id: int | None = None
    variation_id: int | None = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "sku", normalize_text(self.sku))
        object.__setattr__(self, "name", normalize_text(self.name))
        if isinstance(self.quantity, bool) or not isinstance(self.quantity, int):
            raise NormalizationError(f"line item {self.sku!r}: quantity must be an integer")

    @property
    def sort_key(self) -> str:
        """SKU, or a product/variation key for items sold without one."""

        if self.sku:
            return self.sku
        return f"product:{self.product_id or 0}:{self.variation_id or 0}"

    @property
    def comparison_key(self) -> tuple[str, int, Money]:
        return (self.sort_key, self.quantity, self.unit_price)

    def to_payload(self) -> dict[str, object]:
        return {
            "sku": self.sku,
            "name": self.name,
            "quantity": self.quantity,
            "unit_price": self.unit_price,
            "product_id": self.product_id,
            "variation_id": self.variation_id,
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> LineItem:
        product_id = payload.get("product_id")
        variation_id = payload.get("variation_id")
        return cls(
            sku=normalize_text(payload.get("sku")),
            name=normalize_text(payload.get("name")),
            quantity=cast(int, payload.get("quantity", 0)),
            unit_price=normalize_money(payload.get("unit_price", 0), field_name="unit_price"),
            product_id=cast(int, product_id) if product_id is not None else None,
            variation_id=cast(int, variation_id) if variation_id is not None else None,
        )
