from __future__ import annotations

from ordersync.domain.model import RECONCILED_FIELDS, Order
from ordersync.domain.reconciliation import (
    MatchedCandidate,
    MatchedUnmodified,
    NewOrder,
    OrderAction,
    OrderState,
    match_remote_order,
    plan_order,
)
from tests.helpers.orders import BASE_TIME, make_address, make_remote_order


def _local(external_id: str = "1001", **overrides: object) -> Order:
    return Order.from_remote(make_remote_order(external_id, **overrides), now=BASE_TIME)


def _states(*orders: Order) -> dict[str, OrderState]:
    return {order.external_id: OrderState.of(order) for order in orders}


def test_unknown_external_id_is_new() -> None:
    remote = make_remote_order("2002")

    assert isinstance(match_remote_order(remote, _states(_local("1001"))), NewOrder)
    plan = plan_order(remote, {})
    assert plan.action is OrderAction.CREATE
    assert plan.adopt == RECONCILED_FIELDS


def test_matching_is_exact_on_external_id() -> None:
    local = _local("1001")

    assert isinstance(match_remote_order(make_remote_order("01001"), _states(local)), NewOrder)


def test_unmodified_local_adopts_remote_changes() -> None:
    local = _local()
    remote = make_remote_order(shipping_address=make_address(city="Paris"))

    outcome = match_remote_order(remote, _states(local))
    plan = plan_order(remote, _states(local))

    assert isinstance(outcome, MatchedUnmodified)
    assert outcome.local_id == local.id
    assert plan.action is OrderAction.ADOPT_REMOTE
    assert plan.adopt == ("shipping_address",)
    assert plan.refreshes_baseline


def test_identical_remote_is_skipped() -> None:
    local = _local()

    plan = plan_order(make_remote_order(), _states(local))

    assert plan.action is OrderAction.SKIP
    assert plan.adopt == ()


def test_locally_edited_order_is_a_candidate() -> None:
    local = _local()
    local.edit({"status": "on-hold"}, actor="alice", now=BASE_TIME)

    outcome = match_remote_order(make_remote_order(), _states(local))

    assert isinstance(outcome, MatchedCandidate)
    assert outcome.state.last_modified_by == "alice"


def test_candidate_with_disjoint_changes_auto_merges() -> None:
    local = _local()
    local.edit({"status": "on-hold"}, actor="alice", now=BASE_TIME)
    remote = make_remote_order(tax_amount=120)

    plan = plan_order(remote, _states(local))

    assert plan.action is OrderAction.AUTO_MERGE
    assert plan.adopt == ("tax_amount",)
    assert plan.conflicts == ()


def test_candidate_with_local_only_change_is_skipped() -> None:
    local = _local()
    local.edit({"status": "on-hold"}, actor="alice", now=BASE_TIME)

    plan = plan_order(make_remote_order(), _states(local))

    assert plan.action is OrderAction.SKIP
    assert plan.diff is not None


def test_candidate_with_divergent_change_conflicts() -> None:
    local = _local(total_amount=9000)
    local.edit({"total_amount": 10000}, actor="alice", now=BASE_TIME)
    remote = make_remote_order(total_amount=9500)

    plan = plan_order(remote, _states(local))

    assert plan.action is OrderAction.CONFLICT
    assert [item.field for item in plan.conflicts] == ["total_amount"]
    assert not plan.refreshes_baseline


def test_missing_baseline_conflicts_on_any_difference() -> None:
    local = _local()
    local.baseline = None
    remote = make_remote_order(total_amount=9999)

    plan = plan_order(remote, _states(local))

    assert plan.action is OrderAction.CONFLICT
    assert [item.field for item in plan.conflicts] == ["total_amount"]
