from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from ordersync.domain.errors import RemoteAuthError
from ordersync.domain.ports import OrderQuery
from ordersync.domain.sync import PageCursor, PageFailure
from tests.helpers.orders import FakeOrderSource, make_remote_order

if TYPE_CHECKING:
    from ordersync.domain.model import RemoteOrder


def _cursor(source: FakeOrderSource, *, per_page: int = 2, ceiling: int = 3) -> PageCursor:
    return PageCursor(
        fetcher=source,
        query=OrderQuery(),
        per_page=per_page,
        max_consecutive_failures=ceiling,
    )


def _orders(count: int) -> list[RemoteOrder]:
    return [make_remote_order(str(index)) for index in range(1, count + 1)]


def test_cursor_stops_at_reported_last_page() -> None:
    source = FakeOrderSource(_orders(4))

    outcomes = list(_cursor(source))

    assert [outcome.page for outcome in outcomes] == [1, 2]
    assert len(source.calls) == 2


def test_cursor_without_totals_stops_on_short_page() -> None:
    source = FakeOrderSource(_orders(3), report_totals=False)

    outcomes = list(_cursor(source))

    assert [outcome.page for outcome in outcomes] == [1, 2]


def test_cursor_without_totals_stops_on_empty_page() -> None:
    source = FakeOrderSource(_orders(4), report_totals=False)

    outcomes = list(_cursor(source))

    assert [outcome.page for outcome in outcomes] == [1, 2, 3]
    assert outcomes[-1].size == 0  # pyright: ignore[reportAttributeAccessIssue]


def test_failure_expects_the_page_share_of_known_total() -> None:
    source = FakeOrderSource(_orders(5), failing_pages=[3])

    outcomes = list(_cursor(source))

    failure = outcomes[-1]
    assert isinstance(failure, PageFailure)
    assert failure.page == 3
    assert failure.expected_orders == 1
    assert failure.error.status_code == 503


def test_success_resets_the_failure_streak() -> None:
    source = FakeOrderSource(_orders(10), failing_pages=[1, 2, 4, 5])
    cursor = _cursor(source)

    outcomes = list(cursor)

    assert [type(outcome) is PageFailure for outcome in outcomes] == [
        True,
        True,
        False,
        True,
        True,
    ]
    assert not cursor.unavailable
    assert cursor.exhausted


def test_cursor_becomes_unavailable_after_ceiling() -> None:
    source = FakeOrderSource(_orders(10), failing_pages=[1, 2])
    cursor = _cursor(source, ceiling=2)

    outcomes = list(cursor)

    assert len(outcomes) == 2
    assert cursor.unavailable
    assert cursor.consecutive_failures == 2


def test_auth_errors_propagate() -> None:
    cursor = _cursor(FakeOrderSource(_orders(2), auth_error=True))

    with pytest.raises(RemoteAuthError):
        cursor.fetch_next()
