"""Shared fixtures for WooCommerce adapter tests."""

from __future__ import annotations

import json
from pathlib import Path

import pytest

from ordersync.config.http_resilience import ResilienceConfig, RetryPolicy
from ordersync.config.woocommerce import WooCommerceConfig

WooPayload = dict[str, object]
FIXTURES = Path(__file__).parents[2] / "data" / "woocommerce"
STORE_URL = "https://shop.example.com"


def _load_fixture(name: str) -> list[WooPayload]:
    return json.loads((FIXTURES / name).read_text())


@pytest.fixture
def woocommerce_orders() -> list[WooPayload]:
    return _load_fixture("orders_page.json")


@pytest.fixture
def woocommerce_config() -> WooCommerceConfig:
    return WooCommerceConfig(
        store_url=STORE_URL,
        consumer_key="ck_test",
        consumer_secret="cs_test",
        resilience=ResilienceConfig(
            name="woocommerce-test",
            base_url=f"{STORE_URL}/wp-json/wc/v3/",
            retry=RetryPolicy(attempts=3, backoff_factor=0),
        ),
    )
