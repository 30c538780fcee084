"""Domain enums (pure, dependency-light)."""

from __future__ import annotations

from enum import StrEnum


class RunStatus(StrEnum):
    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    COMPLETED_WITH_CONFLICTS = "completed_with_conflicts"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self not in {RunStatus.PENDING, RunStatus.RUNNING}


class FailureReason(StrEnum):
    """Why a run ended ``failed``."""

    AUTH = "auth"
    CANCELLED = "cancelled"
    REMOTE_UNAVAILABLE = "remote_unavailable"
    ERROR = "error"


class ConflictState(StrEnum):
    PENDING = "pending"
    RESOLVED = "resolved"


class FieldSource(StrEnum):
    LOCAL = "local"
    REMOTE = "remote"


class ResolutionStrategy(StrEnum):
    KEEP_LOCAL = "keep_local"
    USE_REMOTE = "use_remote"
    SELECTIVE = "selective"


class AuditAction(StrEnum):
    CREATED = "created"
    AUTO_MERGED = "auto_merged"
    RESOLVED = "resolved"


class ErrorKind(StrEnum):
    """Classification of errors recorded on an import run."""

    PAGE = "page"
    NORMALIZATION = "normalization"
    CONFLICT_PERSISTENCE = "conflict_persistence"
    PERSISTENCE = "persistence"
    AUTH = "auth"
    UNEXPECTED = "unexpected"
