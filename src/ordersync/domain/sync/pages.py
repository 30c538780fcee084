"""Page cursor over the remote order listing with partial-failure semantics."""

from __future__ import annotations

from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING

from ordersync.domain.errors import RemoteAuthError, RemoteFetchError

if TYPE_CHECKING:
    from collections.abc import Iterator

    from ordersync.domain.ports import OrderQuery, RemoteOrderFetcher, RemoteOrderPage

log = getLogger(__name__)


@dataclass(frozen=True, slots=True)
class PageFailure:
    """A page whose fetch exhausted the fetcher's retries."""

    page: int
    error: RemoteFetchError
    expected_orders: int


type PageOutcome = RemoteOrderPage | PageFailure


@dataclass(slots=True)
class PageCursor:
    """Walk pages from ``start_page`` until the listing is exhausted.

    A failed page is yielded as ``PageFailure`` and the cursor moves on. ``unavailable``
    turns true once ``max_consecutive_failures`` pages in a row have failed, which is
    the caller's cue to give up on the run. ``RemoteAuthError`` is never swallowed.
    """

    fetcher: RemoteOrderFetcher
    query: OrderQuery
    per_page: int
    max_consecutive_failures: int
    start_page: int = 1
    total_orders: int | None = None
    total_pages: int | None = None
    consecutive_failures: int = 0
    exhausted: bool = False
    _next_page: int = field(init=False, default=0)

    def __post_init__(self) -> None:
        self._next_page = self.start_page

    @property
    def unavailable(self) -> bool:
        return self.consecutive_failures >= self.max_consecutive_failures

    @property
    def next_page(self) -> int:
        return self._next_page

    def __iter__(self) -> Iterator[PageOutcome]:
        while not self.exhausted and not self.unavailable:
            yield self.fetch_next()

    def fetch_next(self) -> PageOutcome:
        page = self._next_page
        self._next_page += 1
        try:
            result = self.fetcher(query=self.query, page=page, per_page=self.per_page)
        except RemoteAuthError:
            raise
        except RemoteFetchError as exc:
            self.consecutive_failures += 1
            if self.total_pages is not None and page >= self.total_pages:
                self.exhausted = True
            log.warning(
                "Page %s failed (%s consecutive): %s",
                page,
                self.consecutive_failures,
                exc,
            )
            return PageFailure(page=page, error=exc, expected_orders=self._expected_on(page))

        self.consecutive_failures = 0
        if result.total_pages is not None:
            self.total_pages = result.total_pages
        if result.total_orders is not None:
            self.total_orders = result.total_orders
        if result.size == 0:
            self.exhausted = True
        elif self.total_pages is not None:
            self.exhausted = page >= self.total_pages
        else:
            self.exhausted = result.size < self.per_page
        return result

    def _expected_on(self, page: int) -> int:
        if self.total_orders is None:
            return self.per_page
        remaining = self.total_orders - (page - 1) * self.per_page
        return max(0, min(self.per_page, remaining))
