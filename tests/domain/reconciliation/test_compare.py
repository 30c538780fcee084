from __future__ import annotations

import pytest

from ordersync.domain.model import RECONCILED_FIELDS, LineItem
from ordersync.domain.reconciliation import changed_fields, snapshots_equal, values_equal
from tests.helpers.orders import make_address, make_line_item, make_snapshot


def test_line_items_compare_order_independently() -> None:
    left = (make_line_item("A", quantity=1), make_line_item("B", quantity=2))
    right = (make_line_item("B", quantity=2), make_line_item("A", quantity=1))

    assert values_equal("line_items", left, right)


def test_lines_sharing_a_sku_compare_in_listed_order() -> None:
    left = (make_line_item("A", quantity=1), make_line_item("A", quantity=2))
    right = (make_line_item("A", quantity=2), make_line_item("A", quantity=1))

    assert not values_equal("line_items", left, right)


def test_line_items_differ_on_quantity_or_price() -> None:
    base = (make_line_item("A", quantity=1, unit_price=1000),)

    assert not values_equal("line_items", base, (make_line_item("A", quantity=2, unit_price=1000),))
    assert not values_equal("line_items", base, (make_line_item("A", quantity=1, unit_price=1001),))


def test_line_item_name_is_not_compared() -> None:
    left = (make_line_item("A"),)
    right = (LineItem(sku="A", name="Renamed", quantity=1, unit_price=4500),)

    assert values_equal("line_items", left, right)


def test_line_items_without_sku_use_product_key() -> None:
    first = LineItem(sku="", quantity=1, unit_price=100, product_id=7, variation_id=3)
    second = LineItem(sku="", quantity=1, unit_price=100, product_id=7, variation_id=4)

    assert first.sort_key == "product:7:3"
    assert not values_equal("line_items", (first,), (second,))


def test_strings_compare_trimmed_and_case_sensitive() -> None:
    assert values_equal("status", "processing", " processing ")
    assert not values_equal("status", "processing", "Processing")


def test_addresses_compare_by_sub_field() -> None:
    assert values_equal("shipping_address", make_address(), make_address(city=" London "))
    assert not values_equal("shipping_address", make_address(), make_address(postcode="N1 1AB"))


def test_money_compares_exact_minor_units() -> None:
    assert values_equal("total_amount", 10000, 10000)
    assert not values_equal("total_amount", 10000, 10001)


def test_values_equal_rejects_unknown_field() -> None:
    with pytest.raises(KeyError):
        values_equal("customer_note", "a", "a")


def test_changed_fields_lists_only_differences() -> None:
    left = make_snapshot()
    right = make_snapshot(total_amount=9500, status="completed")

    assert changed_fields(left, right) == ("status", "total_amount")
    assert changed_fields(left, left) == ()


def test_changed_fields_against_missing_baseline_is_everything() -> None:
    assert changed_fields(make_snapshot(), None) == RECONCILED_FIELDS


def test_snapshots_equal_handles_none() -> None:
    assert snapshots_equal(None, None)
    assert not snapshots_equal(make_snapshot(), None)
    assert snapshots_equal(make_snapshot(), make_snapshot())
