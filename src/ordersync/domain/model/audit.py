"""Append-only audit trail for writes made by the sync pipeline and operators."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import TYPE_CHECKING, Final

if TYPE_CHECKING:
    from collections.abc import Mapping
    from uuid import UUID

    from .enums import AuditAction, FieldSource, ResolutionStrategy

SYSTEM_ACTOR: Final[str] = "system"


@dataclass(eq=False, kw_only=True)
class AuditEntry:
    """Record of which side each reconciled field came from."""

    order_id: UUID
    action: AuditAction
    field_sources: Mapping[str, FieldSource]
    actor: str = SYSTEM_ACTOR
    run_id: UUID | None = None
    strategy: ResolutionStrategy | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(tz=UTC))
    id: int | None = None
