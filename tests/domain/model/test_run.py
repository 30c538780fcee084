from __future__ import annotations

from datetime import timedelta

import pytest

from ordersync.domain.errors import RunStateError
from ordersync.domain.model import (
    ErrorDescriptor,
    ErrorKind,
    FailureReason,
    ImportRun,
    RunStatus,
)
from tests.helpers.orders import BASE_TIME


def _running() -> ImportRun:
    run = ImportRun(batch_size=10, created_at=BASE_TIME)
    run.start(now=BASE_TIME)
    return run


def test_counters_sum_to_processed() -> None:
    run = _running()

    run.tally(created=2, updated=1, skipped=3, conflicts=1)
    run.record_error(ErrorDescriptor(kind=ErrorKind.PAGE, message="boom", page=2, count=5))

    assert run.processed_orders == 12
    assert run.errors == 5
    assert run.progress().processed_orders == 12


def test_carried_conflicts_count_as_processed_but_not_raised() -> None:
    run = _running()

    run.tally(carried_conflicts=2, skipped=1)

    assert run.processed_orders == 3
    assert run.conflicts == 0
    assert run.progress().carried_conflicts == 2


def test_complete_reflects_pending_conflicts() -> None:
    clean = _running()
    clean.complete(pending_conflicts=0, now=BASE_TIME + timedelta(seconds=3))
    flagged = _running()
    flagged.complete(pending_conflicts=2, now=BASE_TIME)

    assert clean.status is RunStatus.COMPLETED
    assert clean.duration == timedelta(seconds=3)
    assert flagged.status is RunStatus.COMPLETED_WITH_CONFLICTS


def test_terminal_run_rejects_mutation() -> None:
    run = _running()
    run.fail(FailureReason.CANCELLED, now=BASE_TIME)

    assert run.status is RunStatus.FAILED
    assert run.failure_reason is FailureReason.CANCELLED
    with pytest.raises(RunStateError):
        run.tally(created=1)
    with pytest.raises(RunStateError):
        run.fail(FailureReason.ERROR, now=BASE_TIME)
    with pytest.raises(RunStateError):
        run.start(now=BASE_TIME)


def test_pending_run_cannot_count() -> None:
    run = ImportRun(batch_size=10)

    with pytest.raises(RunStateError):
        run.advance_batch()


def test_advance_batch_grows_total_when_remote_grew() -> None:
    run = _running()
    run.set_totals(total_orders=1, total_batches=1)

    run.advance_batch()
    run.advance_batch()

    assert run.current_batch == 2
    assert run.total_batches == 2


def test_error_descriptor_payload_round_trip() -> None:
    descriptor = ErrorDescriptor(
        kind=ErrorKind.NORMALIZATION,
        message="bad total",
        external_id="7",
        page=1,
    )

    assert ErrorDescriptor.from_payload(descriptor.to_payload()) == descriptor
