"""Per-type equality rules used by the three-way diff.

Amounts are already integer minor units, so they compare exactly. Strings compare
trimmed and case-sensitive. Addresses compare sub-field by sub-field. Line-item
collections compare position by position as ``(sku, quantity, unit_price)`` tuples
after a stable sort by SKU: reordering lines with distinct SKUs is a non-change, while
lines sharing a SKU are compared in the order they are listed.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, cast

from ordersync.domain.model import RECONCILED_FIELDS, Address, LineItem, normalize_text
from ordersync.domain.model.order import ADDRESS_FIELDS, MONEY_FIELDS

if TYPE_CHECKING:
    from collections.abc import Hashable

    from ordersync.domain.model import FieldValue, OrderSnapshot


def line_items_key(items: tuple[LineItem, ...]) -> tuple[tuple[str, int, int], ...]:
    return tuple(item.comparison_key for item in sorted(items, key=lambda item: item.sort_key))


def comparable(name: str, value: FieldValue | None) -> Hashable:
    """Reduce a field value to the form two sides are compared in."""

    if value is None:
        return None
    if name in MONEY_FIELDS:
        return cast(int, value)
    if name in ADDRESS_FIELDS:
        return cast(Address, value)
    if name == "line_items":
        return line_items_key(cast("tuple[LineItem, ...]", value))
    return normalize_text(value)


def values_equal(name: str, left: FieldValue | None, right: FieldValue | None) -> bool:
    if name not in RECONCILED_FIELDS:
        raise KeyError(name)
    return comparable(name, left) == comparable(name, right)


def snapshots_equal(left: OrderSnapshot | None, right: OrderSnapshot | None) -> bool:
    if left is None or right is None:
        return left is right
    return all(values_equal(name, left.value(name), right.value(name)) for name in RECONCILED_FIELDS)


def changed_fields(left: OrderSnapshot, right: OrderSnapshot | None) -> tuple[str, ...]:
    if right is None:
        return RECONCILED_FIELDS
    return tuple(
        name
        for name in RECONCILED_FIELDS
        if not values_equal(name, left.value(name), right.value(name))
    )
