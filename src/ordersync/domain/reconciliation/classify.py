"""Turn a match outcome and diff into a concrete plan for one order."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from ordersync.domain.model import RECONCILED_FIELDS

from .compare import changed_fields
from .diff import DiffResult, diff_order
from .match import MatchedCandidate, MatchedUnmodified, NewOrder, match_remote_order

if TYPE_CHECKING:
    from collections.abc import Mapping

    from ordersync.domain.model import ConflictField, RemoteOrder

    from .match import OrderState


class OrderAction(StrEnum):
    CREATE = "create"
    ADOPT_REMOTE = "adopt_remote"
    AUTO_MERGE = "auto_merge"
    SKIP = "skip"
    CONFLICT = "conflict"


@dataclass(frozen=True, slots=True, kw_only=True)
class OrderPlan:
    """What should happen to one remote order.

    ``adopt`` lists the fields to overwrite from remote. Every action except
    ``CONFLICT`` ends with the baseline set to the remote snapshot.
    """

    action: OrderAction
    remote: RemoteOrder
    state: OrderState | None = None
    diff: DiffResult | None = None
    adopt: tuple[str, ...] = ()

    @property
    def conflicts(self) -> tuple[ConflictField, ...]:
        return self.diff.conflicts if self.diff is not None else ()

    @property
    def refreshes_baseline(self) -> bool:
        return self.action is not OrderAction.CONFLICT


def plan_order(remote: RemoteOrder, states: Mapping[str, OrderState]) -> OrderPlan:
    outcome = match_remote_order(remote, states)
    match outcome:
        case NewOrder():
            return OrderPlan(action=OrderAction.CREATE, remote=remote, adopt=RECONCILED_FIELDS)
        case MatchedUnmodified(state=state):
            changed = changed_fields(remote.snapshot, state.baseline)
            if not changed:
                return OrderPlan(action=OrderAction.SKIP, remote=remote, state=state)
            return OrderPlan(
                action=OrderAction.ADOPT_REMOTE,
                remote=remote,
                state=state,
                adopt=changed,
            )
        case MatchedCandidate(state=state):
            diff = diff_order(state.current, remote.snapshot, state.baseline)
            if diff.has_conflicts:
                return OrderPlan(action=OrderAction.CONFLICT, remote=remote, state=state, diff=diff)
            if diff.adoptable:
                return OrderPlan(
                    action=OrderAction.AUTO_MERGE,
                    remote=remote,
                    state=state,
                    diff=diff,
                    adopt=diff.adoptable,
                )
            return OrderPlan(action=OrderAction.SKIP, remote=remote, state=state, diff=diff)
    raise AssertionError(f"Unhandled match outcome {outcome!r}")
