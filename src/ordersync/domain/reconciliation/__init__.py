"""Pure three-way reconciliation core plus the resolution executor."""

from __future__ import annotations

from .apply import AppliedPlan, apply_plan, save_conflict
from .classify import OrderAction, OrderPlan, plan_order
from .compare import changed_fields, snapshots_equal, values_equal
from .diff import DiffResult, FieldDecision, FieldDiff, classify_field, diff_order
from .locks import ORDER_LOCKS, KeyedLocks
from .match import (
    MatchedCandidate,
    MatchedUnmodified,
    MatchKind,
    MatchOutcome,
    NewOrder,
    OrderState,
    match_remote_order,
)
from .resolve import ResolutionOutcome, merge_for_resolution, resolve_order

__all__ = [
    "ORDER_LOCKS",
    "AppliedPlan",
    "DiffResult",
    "FieldDecision",
    "FieldDiff",
    "KeyedLocks",
    "MatchKind",
    "MatchOutcome",
    "MatchedCandidate",
    "MatchedUnmodified",
    "NewOrder",
    "OrderAction",
    "OrderPlan",
    "OrderState",
    "ResolutionOutcome",
    "apply_plan",
    "changed_fields",
    "classify_field",
    "diff_order",
    "match_remote_order",
    "merge_for_resolution",
    "plan_order",
    "resolve_order",
    "save_conflict",
    "snapshots_equal",
    "values_equal",
]
