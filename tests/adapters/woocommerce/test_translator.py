from __future__ import annotations

from datetime import UTC, datetime

import pytest

from ordersync.adapters.woocommerce import WooOrderPayload, parse_order, translate_order
from ordersync.domain.errors import NormalizationError

WooPayload = dict[str, object]


def test_parse_order_maps_the_reconciled_fields(woocommerce_orders: list[WooPayload]) -> None:
    order = parse_order(woocommerce_orders[0])
    snapshot = order.snapshot

    assert order.external_id == "727"
    assert order.order_number == "727"
    assert order.currency == "USD"
    assert order.customer_name == "John Doe"
    assert order.customer_email == "john.doe@example.com"
    assert order.ordered_at == datetime(2024, 3, 1, 12, 15, tzinfo=UTC)
    assert order.modified_at == datetime(2024, 3, 2, 13, 0, tzinfo=UTC)
    assert snapshot.status == "processing"
    assert snapshot.total_amount == 2935
    assert snapshot.shipping_cost == 1000
    assert snapshot.tax_amount == 135
    assert snapshot.shipping_address.city == "San Francisco"
    assert snapshot.shipping_address.email == ""
    assert [(item.sort_key, item.quantity, item.unit_price) for item in snapshot.line_items] == [
        ("product:93:0", 2, 300),
        ("SYI-BLK-M", 1, 1200),
    ]


def test_parse_order_tolerates_sparse_payloads(woocommerce_orders: list[WooPayload]) -> None:
    order = parse_order(woocommerce_orders[1])
    snapshot = order.snapshot

    assert snapshot.billing_address.phone == ""
    assert snapshot.shipping_address.is_empty
    (item,) = snapshot.line_items
    assert item.sku == "BOOK-1"
    # no explicit price: derived from subtotal / quantity
    assert item.unit_price == 1500


def test_translation_is_deterministic(woocommerce_orders: list[WooPayload]) -> None:
    payload = WooOrderPayload.model_validate(woocommerce_orders[0])

    assert translate_order(payload) == translate_order(payload)


def test_numeric_order_number_is_accepted(woocommerce_orders: list[WooPayload]) -> None:
    raw = {**woocommerce_orders[1], "number": 728, "total": 45}

    order = parse_order(raw)

    assert order.order_number == "728"
    assert order.snapshot.total_amount == 4500


def test_missing_required_field_is_reported_with_location(
    woocommerce_orders: list[WooPayload],
) -> None:
    raw = dict(woocommerce_orders[0])
    del raw["total"]

    with pytest.raises(NormalizationError, match="total") as excinfo:
        parse_order(raw)

    assert excinfo.value.external_id == "727"


def test_unparseable_amount_is_tagged_with_order_id(woocommerce_orders: list[WooPayload]) -> None:
    raw = {**woocommerce_orders[0], "total_tax": "n/a"}

    with pytest.raises(NormalizationError, match="total_tax") as excinfo:
        parse_order(raw)

    assert excinfo.value.external_id == "727"


def test_fractional_quantity_is_rejected(woocommerce_orders: list[WooPayload]) -> None:
    raw = dict(woocommerce_orders[1])
    raw["line_items"] = [{"id": 1, "quantity": 1.5, "subtotal": "3.00"}]

    with pytest.raises(NormalizationError) as excinfo:
        parse_order(raw)

    assert excinfo.value.external_id == "728"
