"""Translate WooCommerce order payloads into remote order snapshots."""

from __future__ import annotations

from datetime import UTC, datetime
from decimal import Decimal
from typing import TYPE_CHECKING

from pydantic import ValidationError

from ordersync.domain.errors import NormalizationError
from ordersync.domain.model import (
    Address,
    LineItem,
    OrderSnapshot,
    RemoteOrder,
    normalize_money,
)

from .schema import WooAddressPayload, WooLineItemPayload, WooOrderPayload

if TYPE_CHECKING:
    from collections.abc import Mapping


def _as_utc(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    # *_gmt fields come without an offset
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


def _translate_address(payload: WooAddressPayload) -> Address:
    return Address.from_payload(payload.model_dump())


def _unit_price(item: WooLineItemPayload) -> Decimal:
    if item.price is not None:
        return item.price
    if item.quantity:
        return Decimal(item.subtotal) / item.quantity
    return Decimal(0)


def _translate_line_item(payload: WooLineItemPayload, *, order_id: str) -> LineItem:
    try:
        unit_price = normalize_money(_unit_price(payload), field_name="line_items.price")
    except ArithmeticError as exc:
        raise NormalizationError(
            f"line item {payload.id}: unusable subtotal {payload.subtotal!r}",
            external_id=order_id,
        ) from exc
    return LineItem(
        sku=payload.sku or "",
        name=payload.name,
        quantity=payload.quantity,
        unit_price=unit_price,
        product_id=payload.product_id,
        variation_id=payload.variation_id,
    )


def translate_order(payload: WooOrderPayload) -> RemoteOrder:
    """Map one validated payload onto the internal order shape.

    Deterministic: the same payload always produces an equal ``RemoteOrder``.
    """

    external_id = str(payload.id)
    try:
        snapshot = OrderSnapshot(
            status=payload.status,
            total_amount=normalize_money(payload.total, field_name="total"),
            shipping_cost=normalize_money(payload.shipping_total, field_name="shipping_total"),
            tax_amount=normalize_money(payload.total_tax, field_name="total_tax"),
            billing_address=_translate_address(payload.billing),
            shipping_address=_translate_address(payload.shipping),
            line_items=tuple(
                _translate_line_item(item, order_id=external_id) for item in payload.line_items
            ),
        )
    except NormalizationError as exc:
        if exc.external_id is None:
            raise NormalizationError(str(exc), external_id=external_id) from exc
        raise

    billing = snapshot.billing_address
    return RemoteOrder(
        external_id=external_id,
        order_number=payload.number or external_id,
        currency=payload.currency.upper(),
        customer_name=billing.full_name,
        customer_email=billing.email,
        ordered_at=_as_utc(payload.date_created_gmt),
        modified_at=_as_utc(payload.date_modified_gmt),
        snapshot=snapshot,
    )


def parse_order(raw: Mapping[str, object]) -> RemoteOrder:
    """Validate and translate a raw JSON order, raising ``NormalizationError`` if malformed."""

    raw_id = raw.get("id")
    external_id = str(raw_id) if raw_id is not None else None
    try:
        payload = WooOrderPayload.model_validate(raw)
    except ValidationError as exc:
        summary = "; ".join(
            f"{'.'.join(str(part) for part in error['loc'])}: {error['msg']}"
            for error in exc.errors()
        )
        raise NormalizationError(summary, external_id=external_id) from exc
    return translate_order(payload)
