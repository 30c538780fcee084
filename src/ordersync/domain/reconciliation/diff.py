"""Three-way field classification of local, remote and baseline order state."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING

from ordersync.domain.model import RECONCILED_FIELDS, ConflictField, FieldSource

from .compare import values_equal

if TYPE_CHECKING:
    from ordersync.domain.model import FieldValue, OrderSnapshot


class FieldDecision(StrEnum):
    CONVERGED = "converged"
    ADOPT_REMOTE = "adopt_remote"
    KEEP_LOCAL = "keep_local"
    CONFLICT = "conflict"

    @property
    def source(self) -> FieldSource:
        """Side whose value the field ends up with when applied automatically."""

        return FieldSource.REMOTE if self is FieldDecision.ADOPT_REMOTE else FieldSource.LOCAL


def classify_field(
    name: str,
    local: FieldValue,
    remote: FieldValue,
    baseline: FieldValue | None,
) -> FieldDecision:
    if values_equal(name, local, remote):
        return FieldDecision.CONVERGED
    if values_equal(name, local, baseline):
        return FieldDecision.ADOPT_REMOTE
    if values_equal(name, remote, baseline):
        return FieldDecision.KEEP_LOCAL
    return FieldDecision.CONFLICT


@dataclass(frozen=True, slots=True)
class FieldDiff:
    field: str
    decision: FieldDecision
    local_value: FieldValue
    remote_value: FieldValue
    baseline_value: FieldValue | None


@dataclass(frozen=True, slots=True)
class DiffResult:
    fields: tuple[FieldDiff, ...]

    def with_decision(self, decision: FieldDecision) -> tuple[FieldDiff, ...]:
        return tuple(item for item in self.fields if item.decision is decision)

    @property
    def conflicts(self) -> tuple[ConflictField, ...]:
        return tuple(
            ConflictField(
                field=item.field,
                local_value=item.local_value,
                remote_value=item.remote_value,
                baseline_value=item.baseline_value,
            )
            for item in self.with_decision(FieldDecision.CONFLICT)
        )

    @property
    def adoptable(self) -> tuple[str, ...]:
        return tuple(item.field for item in self.with_decision(FieldDecision.ADOPT_REMOTE))

    @property
    def has_conflicts(self) -> bool:
        return any(item.decision is FieldDecision.CONFLICT for item in self.fields)

    def decision_for(self, name: str) -> FieldDecision:
        for item in self.fields:
            if item.field == name:
                return item.decision
        raise KeyError(name)

    def remote_values(self, names: tuple[str, ...]) -> dict[str, FieldValue]:
        by_name = {item.field: item for item in self.fields}
        return {name: by_name[name].remote_value for name in names}


def diff_order(
    local: OrderSnapshot,
    remote: OrderSnapshot,
    baseline: OrderSnapshot | None,
) -> DiffResult:
    """Classify every reconciled field. Pure: same inputs always give the same result."""

    return DiffResult(
        fields=tuple(
            FieldDiff(
                field=name,
                decision=classify_field(
                    name,
                    local.value(name),
                    remote.value(name),
                    baseline.value(name) if baseline is not None else None,
                ),
                local_value=local.value(name),
                remote_value=remote.value(name),
                baseline_value=baseline.value(name) if baseline is not None else None,
            )
            for name in RECONCILED_FIELDS
        )
    )
