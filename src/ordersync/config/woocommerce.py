"""WooCommerce REST API configuration values."""

from __future__ import annotations

from dataclasses import dataclass

from .env import require_env_vars
from .errors import ConfigurationError
from .http_resilience import RateLimit, ResilienceConfig, RetryPolicy

WOOCOMMERCE_API_PREFIX = "/wp-json/wc/v3/"
WOOCOMMERCE_TIMEOUT_SECONDS = 20.0


@dataclass(frozen=True)
class WooCommerceConfig:
    """Holds WooCommerce store credentials and HTTP behaviour."""

    store_url: str
    consumer_key: str
    consumer_secret: str
    resilience: ResilienceConfig

    @property
    def api_base_url(self) -> str:
        return self.store_url.rstrip("/") + WOOCOMMERCE_API_PREFIX


def default_woocommerce_resilience(store_url: str) -> ResilienceConfig:
    return ResilienceConfig(
        name="woocommerce",
        base_url=store_url.rstrip("/") + WOOCOMMERCE_API_PREFIX,
        timeout_seconds=WOOCOMMERCE_TIMEOUT_SECONDS,
        retry=RetryPolicy(attempts=3),
        ratelimit=RateLimit(max_calls=5, per_seconds=1.0),
    )


def get_woocommerce_config(*, resilience: ResilienceConfig | None = None) -> WooCommerceConfig:
    values = require_env_vars(
        (
            "WOOCOMMERCE_STORE_URL",
            "WOOCOMMERCE_CONSUMER_KEY",
            "WOOCOMMERCE_CONSUMER_SECRET",
        )
    )
    store_url = values["WOOCOMMERCE_STORE_URL"]
    if not store_url.startswith(("http://", "https://")):
        raise ConfigurationError(f"WOOCOMMERCE_STORE_URL must be an http(s) URL, got {store_url!r}")
    return WooCommerceConfig(
        store_url=store_url,
        consumer_key=values["WOOCOMMERCE_CONSUMER_KEY"],
        consumer_secret=values["WOOCOMMERCE_CONSUMER_SECRET"],
        resilience=resilience or default_woocommerce_resilience(store_url),
    )
