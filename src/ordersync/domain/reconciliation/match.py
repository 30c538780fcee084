"""Map remote orders to local ones by external identifier."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Literal

from .compare import snapshots_equal

if TYPE_CHECKING:
    from collections.abc import Mapping
    from datetime import datetime
    from uuid import UUID

    from ordersync.domain.model import Order, OrderSnapshot, RemoteOrder


class MatchKind(StrEnum):
    NEW = "new"
    UNMODIFIED = "unmodified"
    CANDIDATE = "candidate"


@dataclass(frozen=True, slots=True, kw_only=True)
class OrderState:
    """Read-only projection of a local order, enough to plan its reconciliation."""

    order_id: UUID
    external_id: str
    version: int
    current: OrderSnapshot
    baseline: OrderSnapshot | None
    last_modified_by: str | None = None
    last_modified_at: datetime | None = None

    @classmethod
    def of(cls, order: Order) -> OrderState:
        return cls(
            order_id=order.id,
            external_id=order.external_id,
            version=order.version,
            current=order.snapshot(),
            baseline=order.baseline,
            last_modified_by=order.last_modified_by,
            last_modified_at=order.last_modified_at,
        )

    @property
    def locally_modified(self) -> bool:
        return not snapshots_equal(self.current, self.baseline)


@dataclass(frozen=True, slots=True)
class NewOrder:
    kind: Literal[MatchKind.NEW] = MatchKind.NEW


@dataclass(frozen=True, slots=True)
class MatchedUnmodified:
    """Local copy still equals its baseline, so remote can be adopted wholesale."""

    state: OrderState
    kind: Literal[MatchKind.UNMODIFIED] = MatchKind.UNMODIFIED

    @property
    def local_id(self) -> UUID:
        return self.state.order_id


@dataclass(frozen=True, slots=True)
class MatchedCandidate:
    """Local copy has diverged from its baseline; needs a full three-way diff."""

    state: OrderState
    kind: Literal[MatchKind.CANDIDATE] = MatchKind.CANDIDATE

    @property
    def local_id(self) -> UUID:
        return self.state.order_id


type MatchOutcome = NewOrder | MatchedUnmodified | MatchedCandidate


def match_remote_order(remote: RemoteOrder, states: Mapping[str, OrderState]) -> MatchOutcome:
    """Exact external identifier match only; no fuzzy matching."""

    state = states.get(remote.external_id)
    if state is None:
        return NewOrder()
    if state.locally_modified:
        return MatchedCandidate(state)
    return MatchedUnmodified(state)
