"""Pending three-way mismatches awaiting an operator decision."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import UUID, uuid4

from ordersync.domain.errors import ConflictNotFoundError

from .enums import ConflictState, ResolutionStrategy
from .order import FieldValue, field_from_payload, field_to_payload

if TYPE_CHECKING:
    from collections.abc import Mapping

    from .order import OrderSnapshot


def _utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass(frozen=True, slots=True)
class ConflictField:
    field: str
    local_value: FieldValue
    remote_value: FieldValue
    baseline_value: FieldValue | None

    def to_payload(self) -> dict[str, object]:
        return {
            "field": self.field,
            "local": field_to_payload(self.field, self.local_value),
            "remote": field_to_payload(self.field, self.remote_value),
            "baseline": field_to_payload(self.field, self.baseline_value),
        }

    @classmethod
    def from_payload(cls, payload: Mapping[str, object]) -> ConflictField:
        name = str(payload["field"])
        local_value = field_from_payload(name, payload["local"])
        remote_value = field_from_payload(name, payload["remote"])
        if local_value is None or remote_value is None:
            raise ValueError(f"Conflict field {name} is missing a local or remote value")
        return cls(
            field=name,
            local_value=local_value,
            remote_value=remote_value,
            baseline_value=field_from_payload(name, payload.get("baseline")),
        )


@dataclass(eq=False, kw_only=True)
class Conflict:
    """One unresolved conflict for one order within one run."""

    run_id: UUID
    order_id: UUID
    external_id: str
    fields: tuple[ConflictField, ...]
    remote_snapshot: OrderSnapshot
    state: ConflictState = ConflictState.PENDING
    local_modified_by: str | None = None
    local_modified_at: datetime | None = None
    resolution: ResolutionStrategy | None = None
    resolved_by: str | None = None
    id: UUID = field(default_factory=uuid4)
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    resolved_at: datetime | None = None

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(item.field for item in self.fields)

    @property
    def is_pending(self) -> bool:
        return self.state is ConflictState.PENDING

    def refresh(
        self,
        fields: tuple[ConflictField, ...],
        remote_snapshot: OrderSnapshot,
        *,
        now: datetime,
    ) -> bool:
        """Replace the conflicting fields when a re-run sees a different picture."""

        if not self.is_pending:
            raise ConflictNotFoundError(self.order_id)
        if fields == self.fields and remote_snapshot == self.remote_snapshot:
            return False
        self.fields = fields
        self.remote_snapshot = remote_snapshot
        self.updated_at = now
        return True

    def resolve(self, strategy: ResolutionStrategy, *, actor: str, now: datetime) -> None:
        if not self.is_pending:
            raise ConflictNotFoundError(self.order_id)
        self.state = ConflictState.RESOLVED
        self.resolution = strategy
        self.resolved_by = actor
        self.resolved_at = now
        self.updated_at = now

    def reopen(
        self,
        fields: tuple[ConflictField, ...],
        remote_snapshot: OrderSnapshot,
        *,
        now: datetime,
    ) -> None:
        """Put a resolved conflict back in the queue when the same run trips over it again."""

        self.fields = fields
        self.remote_snapshot = remote_snapshot
        self.state = ConflictState.PENDING
        self.resolution = None
        self.resolved_by = None
        self.resolved_at = None
        self.updated_at = now
