"""SQLAlchemy adapter package for order sync persistence."""

from __future__ import annotations

from .mappings import create_all_tables, mapper_registry, start_mappers
from .repositories import (
    SqlAlchemyAuditRepository,
    SqlAlchemyConflictRepository,
    SqlAlchemyImportRunRepository,
    SqlAlchemyOrderRepository,
)

__all__ = [
    "SqlAlchemyAuditRepository",
    "SqlAlchemyConflictRepository",
    "SqlAlchemyImportRunRepository",
    "SqlAlchemyOrderRepository",
    "create_all_tables",
    "mapper_registry",
    "start_mappers",
]
