"""Date windows for import runs."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Protocol


class Clock(Protocol):
    def __call__(self) -> datetime: ...


def _utcnow() -> datetime:
    return datetime.now(UTC)


def _ensure_aware(value: datetime | None) -> datetime | None:
    if value is None:
        return None
    if value.tzinfo is None:
        raise ValueError("Time window values must include timezone information")
    return value.astimezone(UTC)


@dataclass(frozen=True)
class TimeWindow:
    """Requested bounds on the remote order creation date.

    ``lookback`` anchors to ``end`` (or now) and narrows ``start`` when both are given.
    An empty window means "everything the remote will list".
    """

    start: datetime | None = None
    end: datetime | None = None
    lookback: timedelta | None = None

    def resolve(self, *, clock: Clock = _utcnow) -> tuple[datetime | None, datetime | None]:
        """Resolve the window into concrete UTC timestamps, validating its bounds."""

        resolved_end = _ensure_aware(self.end)
        resolved_start = _ensure_aware(self.start)

        if self.lookback is not None:
            if self.lookback < timedelta(0):
                raise ValueError("Lookback duration must be non-negative")
            anchor = resolved_end or clock().astimezone(UTC)
            from_lookback = anchor - self.lookback
            resolved_start = from_lookback if resolved_start is None else max(resolved_start, from_lookback)
            resolved_end = anchor

        if resolved_start and resolved_end and resolved_start > resolved_end:
            raise ValueError("Time window start must be before end")

        return resolved_start, resolved_end


__all__ = ["Clock", "TimeWindow"]
