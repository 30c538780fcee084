"""HTTP client for the WooCommerce REST orders endpoint."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import UTC, datetime
from logging import getLogger
from typing import TYPE_CHECKING, cast

import httpx

from ordersync.adapters.http_resilience import ResilientClient, RetryableStatusError
from ordersync.config.woocommerce import WooCommerceConfig, get_woocommerce_config
from ordersync.domain.errors import (
    NormalizationError,
    RemoteAuthError,
    RemoteFetchError,
    TransientRemoteError,
)
from ordersync.domain.ports.fetching import (
    MAX_PER_PAGE,
    NormalizationFailure,
    OrderQuery,
    RemoteOrderFetcher,
    RemoteOrderPage,
)

from .translator import parse_order

if TYPE_CHECKING:
    from collections.abc import Callable

    from ordersync.config.http_resilience import ResilienceConfig
    from ordersync.domain.model import RemoteOrder

log = getLogger(__name__)

ORDERS_ENDPOINT = "orders"
_AUTH_STATUSES = frozenset({401, 403})


def _default_client_factory(config: ResilienceConfig) -> ResilientClient:
    return ResilientClient(config)


def _format_timestamp(value: datetime) -> str:
    if value.tzinfo is None:
        value = value.replace(tzinfo=UTC)
    return value.astimezone(UTC).strftime("%Y-%m-%dT%H:%M:%S")


def _header_int(response: httpx.Response, name: str) -> int | None:
    raw = response.headers.get(name)
    if raw is None:
        return None
    try:
        return int(raw)
    except ValueError:
        log.warning(f"Ignoring non-numeric {name} header: {raw!r}")
        return None


def build_query_params(query: OrderQuery, *, page: int, per_page: int) -> httpx.QueryParams:
    """Translate an ``OrderQuery`` into WooCommerce list parameters.

    Results are ordered by ascending order id so page boundaries stay stable while
    the listing is walked.
    """

    params: list[tuple[str, str | int]] = [
        ("page", page),
        ("per_page", min(per_page, MAX_PER_PAGE)),
        ("orderby", "id"),
        ("order", "asc"),
        # *_gmt so that the window is interpreted in UTC
        ("dates_are_gmt", "true"),
    ]
    if query.after is not None:
        params.append(("after", _format_timestamp(query.after)))
    if query.before is not None:
        params.append(("before", _format_timestamp(query.before)))
    if query.statuses:
        params.append(("status", ",".join(query.statuses)))
    if query.order_ids:
        params.append(("include", ",".join(query.order_ids)))
    return httpx.QueryParams(params)


def _normalize_payloads(payloads: list[object]) -> tuple[list[RemoteOrder], list[NormalizationFailure]]:
    orders: list[RemoteOrder] = []
    rejects: list[NormalizationFailure] = []
    for raw in payloads:
        if not isinstance(raw, dict):
            rejects.append(NormalizationFailure(None, "order payload is not an object"))
            continue
        try:
            orders.append(parse_order(cast(dict[str, object], raw)))
        except NormalizationError as exc:
            log.warning(f"Skipping malformed order {exc.external_id}: {exc}")
            rejects.append(NormalizationFailure(exc.external_id, str(exc)))
    return orders, rejects


@dataclass(slots=True)
class WooCommerceFetcher:
    """Fetch one page of WooCommerce orders and normalise each order individually."""

    config: WooCommerceConfig = field(default_factory=get_woocommerce_config)
    client_factory: Callable[[ResilienceConfig], ResilientClient] = field(
        default=_default_client_factory
    )

    def __call__(self, *, query: OrderQuery, page: int, per_page: int) -> RemoteOrderPage:
        return asyncio.run(self._fetch_page(query=query, page=page, per_page=per_page))

    async def _fetch_page(self, *, query: OrderQuery, page: int, per_page: int) -> RemoteOrderPage:
        params = build_query_params(query, page=page, per_page=per_page)
        auth = httpx.BasicAuth(self.config.consumer_key, self.config.consumer_secret)

        async with self.client_factory(self.config.resilience) as client:
            response = await self._perform_request(client=client, params=params, auth=auth, page=page)

        try:
            payload = response.json()
        except ValueError as exc:
            raise RemoteFetchError(
                f"WooCommerce page {page} returned a non-JSON body",
                status_code=response.status_code,
            ) from exc
        if not isinstance(payload, list):
            raise RemoteFetchError(
                f"WooCommerce page {page} returned an unexpected payload",
                status_code=response.status_code,
            )

        orders, rejects = _normalize_payloads(cast(list[object], payload))
        log.debug(f"Fetched WooCommerce page {page}: {len(orders)} orders, {len(rejects)} rejected")
        return RemoteOrderPage(
            page=page,
            orders=tuple(orders),
            rejects=tuple(rejects),
            total_orders=_header_int(response, "X-WP-Total"),
            total_pages=_header_int(response, "X-WP-TotalPages"),
        )

    async def _perform_request(
        self,
        *,
        client: ResilientClient,
        params: httpx.QueryParams,
        auth: httpx.BasicAuth,
        page: int,
    ) -> httpx.Response:
        try:
            response = await client.get(ORDERS_ENDPOINT, params=params, auth=auth)
        except RetryableStatusError as exc:
            status = exc.response.status_code
            raise TransientRemoteError(
                f"WooCommerce page {page} kept failing with HTTP {status}",
                status_code=status,
            ) from exc
        except httpx.TransportError as exc:
            raise TransientRemoteError(f"WooCommerce page {page} unreachable: {exc}") from exc

        status = response.status_code
        if status in _AUTH_STATUSES:
            log.error(f"WooCommerce rejected the API credentials (HTTP {status})")
            raise RemoteAuthError("WooCommerce rejected the API credentials", status_code=status)
        if response.is_error:
            raise RemoteFetchError(f"WooCommerce page {page} failed with HTTP {status}", status_code=status)
        return response


def build_woocommerce_fetcher(config: WooCommerceConfig | None = None) -> WooCommerceFetcher:
    return WooCommerceFetcher(config=config or get_woocommerce_config())


if TYPE_CHECKING:
    _fetcher_check: RemoteOrderFetcher = WooCommerceFetcher()
