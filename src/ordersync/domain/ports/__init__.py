"""Domain port definitions for adapters."""

from __future__ import annotations

from .fetching import (
    MAX_PER_PAGE,
    NormalizationFailure,
    OrderQuery,
    RemoteOrderFetcher,
    RemoteOrderPage,
)
from .persistence import (
    AuditRepository,
    ConflictRepository,
    ImportRunRepository,
    OrderRepository,
    Repository,
)
from .unit_of_work import (
    OrderSyncRepositories,
    OrderSyncUnitOfWork,
    RepositoryCollection,
    UnitOfWork,
    UnitOfWorkFactory,
)

__all__ = [
    "MAX_PER_PAGE",
    "AuditRepository",
    "ConflictRepository",
    "ImportRunRepository",
    "NormalizationFailure",
    "OrderQuery",
    "OrderRepository",
    "OrderSyncRepositories",
    "OrderSyncUnitOfWork",
    "RemoteOrderFetcher",
    "RemoteOrderPage",
    "Repository",
    "RepositoryCollection",
    "UnitOfWork",
    "UnitOfWorkFactory",
]
