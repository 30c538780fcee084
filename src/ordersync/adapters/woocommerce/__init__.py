"""Public interface for the WooCommerce adapter."""

from __future__ import annotations

from .client import WooCommerceFetcher, build_query_params, build_woocommerce_fetcher
from .schema import WooAddressPayload, WooLineItemPayload, WooOrderPayload
from .translator import parse_order, translate_order

__all__ = [
    "WooAddressPayload",
    "WooCommerceFetcher",
    "WooLineItemPayload",
    "WooOrderPayload",
    "build_query_params",
    "build_woocommerce_fetcher",
    "parse_order",
    "translate_order",
]
