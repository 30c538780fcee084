"""Ports for fetching remote orders."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from datetime import datetime

    from ordersync.domain.model import RemoteOrder

# largest page the remote listing serves; a shorter page marks the end of the listing
MAX_PER_PAGE = 100


@dataclass(frozen=True, slots=True, kw_only=True)
class OrderQuery:
    """Filters for a remote order listing."""

    after: datetime | None = None
    before: datetime | None = None
    statuses: tuple[str, ...] = ()
    order_ids: tuple[str, ...] = ()


@dataclass(frozen=True, slots=True)
class NormalizationFailure:
    """A remote order that was fetched but could not be normalised."""

    external_id: str | None
    message: str


@dataclass(frozen=True, slots=True, kw_only=True)
class RemoteOrderPage:
    """One page of the remote listing, ordered by remote identifier.

    ``total_orders``/``total_pages`` are ``None`` when the remote does not report them.
    """

    page: int
    orders: tuple[RemoteOrder, ...]
    rejects: tuple[NormalizationFailure, ...] = ()
    total_orders: int | None = None
    total_pages: int | None = None

    @property
    def size(self) -> int:
        return len(self.orders) + len(self.rejects)


@runtime_checkable
class RemoteOrderFetcher(Protocol):
    """Callable port returning a single page of normalised remote orders.

    Raises ``RemoteAuthError`` for rejected credentials and ``RemoteFetchError`` (or
    ``TransientRemoteError``) once its own retry ceiling is exhausted.
    """

    def __call__(self, *, query: OrderQuery, page: int, per_page: int) -> RemoteOrderPage: ...


__all__ = ["NormalizationFailure", "OrderQuery", "RemoteOrderFetcher", "RemoteOrderPage"]
