"""Order sync domain model."""

from __future__ import annotations

from .audit import SYSTEM_ACTOR, AuditEntry
from .conflict import Conflict, ConflictField
from .enums import (
    AuditAction,
    ConflictState,
    ErrorKind,
    FailureReason,
    FieldSource,
    ResolutionStrategy,
    RunStatus,
)
from .order import (
    RECONCILED_FIELDS,
    FieldValue,
    Order,
    OrderSnapshot,
    RemoteOrder,
    auto_tags,
    coerce_field_value,
)
from .primitives import Address, LineItem, Money, format_money, normalize_money, normalize_text
from .run import ErrorDescriptor, ImportRun, ProgressSnapshot

__all__ = [
    "RECONCILED_FIELDS",
    "SYSTEM_ACTOR",
    "Address",
    "AuditAction",
    "AuditEntry",
    "Conflict",
    "ConflictField",
    "ConflictState",
    "ErrorDescriptor",
    "ErrorKind",
    "FailureReason",
    "FieldSource",
    "FieldValue",
    "ImportRun",
    "LineItem",
    "Money",
    "Order",
    "OrderSnapshot",
    "ProgressSnapshot",
    "RemoteOrder",
    "ResolutionStrategy",
    "RunStatus",
    "auto_tags",
    "coerce_field_value",
    "format_money",
    "normalize_money",
    "normalize_text",
]
