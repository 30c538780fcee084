from __future__ import annotations

import pytest

from ordersync.domain.model import FieldSource
from ordersync.domain.reconciliation import FieldDecision, classify_field, diff_order
from tests.helpers.orders import make_address, make_snapshot


@pytest.mark.parametrize(
    ("local", "remote", "baseline", "expected"),
    [
        (9000, 9000, 9000, FieldDecision.CONVERGED),
        (9500, 9500, 9000, FieldDecision.CONVERGED),
        (9000, 9500, 9000, FieldDecision.ADOPT_REMOTE),
        (10000, 9000, 9000, FieldDecision.KEEP_LOCAL),
        (10000, 9500, 9000, FieldDecision.CONFLICT),
        (10000, 9500, None, FieldDecision.CONFLICT),
        (9000, 9000, None, FieldDecision.CONVERGED),
    ],
)
def test_classify_field_three_way(
    local: int,
    remote: int,
    baseline: int | None,
    expected: FieldDecision,
) -> None:
    assert classify_field("total_amount", local, remote, baseline) is expected


def test_decision_sources() -> None:
    assert FieldDecision.ADOPT_REMOTE.source is FieldSource.REMOTE
    assert FieldDecision.KEEP_LOCAL.source is FieldSource.LOCAL
    assert FieldDecision.CONVERGED.source is FieldSource.LOCAL


def test_diff_order_example_total_conflict() -> None:
    baseline = make_snapshot(total_amount=9000)
    local = make_snapshot(total_amount=10000)
    remote = make_snapshot(total_amount=9500)

    result = diff_order(local, remote, baseline)

    assert result.has_conflicts
    assert [item.field for item in result.conflicts] == ["total_amount"]
    conflict = result.conflicts[0]
    assert (conflict.local_value, conflict.remote_value, conflict.baseline_value) == (
        10000,
        9500,
        9000,
    )
    assert result.decision_for("status") is FieldDecision.CONVERGED


def test_diff_order_adopts_one_sided_remote_change() -> None:
    baseline = make_snapshot()
    local = make_snapshot(status="on-hold")
    remote = make_snapshot(shipping_address=make_address(city="Paris"))

    result = diff_order(local, remote, baseline)

    assert not result.has_conflicts
    assert result.adoptable == ("shipping_address",)
    assert result.decision_for("status") is FieldDecision.KEEP_LOCAL
    assert result.remote_values(("shipping_address",)) == {
        "shipping_address": make_address(city="Paris")
    }


def test_diff_order_is_deterministic() -> None:
    baseline = make_snapshot()
    local = make_snapshot(total_amount=1)
    remote = make_snapshot(total_amount=2)

    assert diff_order(local, remote, baseline) == diff_order(local, remote, baseline)


def test_decision_for_unknown_field() -> None:
    result = diff_order(make_snapshot(), make_snapshot(), make_snapshot())

    with pytest.raises(KeyError):
        result.decision_for("nope")
