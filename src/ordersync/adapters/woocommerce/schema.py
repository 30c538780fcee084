"""Pydantic models describing the WooCommerce REST v3 order payloads."""

from __future__ import annotations

from datetime import datetime  # noqa: TC003
from decimal import Decimal  # noqa: TC003

from pydantic import BaseModel, ConfigDict, Field, field_validator


def _none_to_blank(value: object) -> object:
    return "" if value is None else value


class WooBaseModel(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, coerce_numbers_to_str=True)


class WooAddressPayload(WooBaseModel):
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

    _blank = field_validator("*", mode="before")(_none_to_blank)


class WooLineItemPayload(WooBaseModel):
    id: int
    name: str = ""
    product_id: int | None = None
    variation_id: int | None = None
    quantity: int
    subtotal: str = "0"
    total: str = "0"
    sku: str | None = None
    price: Decimal | None = None

    _blank_sku = field_validator("sku", mode="before")(_none_to_blank)

    @field_validator("variation_id", "product_id", mode="before")
    @classmethod
    def _zero_is_none(cls, value: object) -> object:
        return None if value in (0, "0", "") else value


class WooOrderPayload(WooBaseModel):
    id: int
    number: str = ""
    status: str
    currency: str = ""
    date_created_gmt: datetime | None = None
    date_modified_gmt: datetime | None = None
    total: str
    shipping_total: str = "0"
    total_tax: str = "0"
    billing: WooAddressPayload = Field(default_factory=WooAddressPayload)
    shipping: WooAddressPayload = Field(default_factory=WooAddressPayload)
    line_items: list[WooLineItemPayload] = Field(default_factory=list)

    @field_validator("number", mode="before")
    @classmethod
    def _number_as_text(cls, value: object) -> object:
        return "" if value is None else str(value)
