"""Error taxonomy shared by the sync pipeline and its adapters."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID


class OrderSyncError(Exception):
    """Base class for every error raised by the order sync core."""


class RemoteFetchError(OrderSyncError):
    """A page could not be fetched from the remote system."""

    def __init__(self, message: str, *, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TransientRemoteError(RemoteFetchError):
    """Network failure or retryable status that outlived the retry ceiling."""


class RemoteAuthError(RemoteFetchError):
    """The remote system rejected our credentials; the run cannot continue."""


class NormalizationError(OrderSyncError):
    """A single remote order could not be mapped into the internal order shape."""

    def __init__(self, message: str, *, external_id: str | None = None) -> None:
        super().__init__(message)
        self.external_id = external_id


class OrderPersistenceError(OrderSyncError):
    """Writing an order or its bookkeeping rows failed."""


class ConflictPersistenceError(OrderPersistenceError):
    """A conflict record could not be stored; the order must be left untouched."""


class ConcurrentModificationError(OrderPersistenceError):
    """The order row changed underneath us between read and write."""


class ResolutionValidationError(OrderSyncError):
    """A resolution request is incomplete or names fields that cannot be resolved."""

    def __init__(
        self,
        message: str,
        *,
        missing: Iterable[str] = (),
        unknown: Iterable[str] = (),
    ) -> None:
        super().__init__(message)
        self.missing = tuple(missing)
        self.unknown = tuple(unknown)


class OrderNotFoundError(OrderSyncError):
    def __init__(self, order_id: UUID) -> None:
        super().__init__(f"Order {order_id} does not exist")
        self.order_id = order_id


class ConflictNotFoundError(OrderSyncError):
    def __init__(self, order_id: UUID) -> None:
        super().__init__(f"Order {order_id} has no pending conflict")
        self.order_id = order_id


class RunStateError(OrderSyncError):
    """An import run was asked to make an illegal state transition."""
