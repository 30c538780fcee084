# ruff: noqa: T201

from __future__ import annotations

import argparse
import json
import logging
import sys
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING
from uuid import UUID

from ordersync.app import (
    edit_local_order,
    get_order_changelog,
    list_import_runs,
    list_pending_conflicts,
    resolve_conflict,
    run_import,
)
from ordersync.common import configure_logging
from ordersync.domain.errors import NormalizationError, ResolutionValidationError
from ordersync.domain.model import ConflictState, FieldSource, ResolutionStrategy, format_money
from ordersync.domain.model.order import MONEY_FIELDS
from ordersync.domain.time_windows import TimeWindow

if TYPE_CHECKING:
    from collections.abc import Sequence

    from ordersync.domain.model import Conflict, FieldValue, ImportRun, ProgressSnapshot
    from ordersync.domain.sync import ImportResult

log = logging.getLogger(__name__)

DEFAULT_ACTOR = "cli"


def _parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Synchronise WooCommerce orders")
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    imports = subparsers.add_parser("import", help="Import and reconcile remote orders")
    imports.add_argument(
        "--start",
        type=str,
        help="ISO-8601 timestamp (UTC) marking the inclusive start of the window",
    )
    imports.add_argument(
        "--end",
        type=str,
        help="ISO-8601 timestamp (UTC) marking the inclusive end of the window",
    )
    imports.add_argument(
        "--lookback-hours",
        type=float,
        help="Relative lookback window in hours (overrides start if larger)",
    )
    imports.add_argument(
        "--status",
        dest="statuses",
        action="append",
        default=[],
        help="Only import orders with this remote status (repeatable)",
    )
    imports.add_argument(
        "--order-id",
        dest="order_ids",
        action="append",
        default=[],
        help="Only import this remote order id (repeatable)",
    )
    imports.add_argument(
        "--batch-size",
        type=int,
        default=None,
        help="Orders per reconciliation batch (defaults to config)",
    )
    imports.add_argument(
        "--per-page",
        type=int,
        default=None,
        help="Orders requested per API call (defaults to config)",
    )

    conflicts = subparsers.add_parser("conflicts", help="List conflicts awaiting resolution")
    conflicts.add_argument("--run-id", type=str, help="Only show conflicts raised by this run")
    conflicts.add_argument(
        "--all",
        dest="include_resolved",
        action="store_true",
        help="Include resolved conflicts",
    )

    resolve = subparsers.add_parser("resolve", help="Resolve the pending conflict of an order")
    resolve.add_argument("order_id", type=str, help="Local order id")
    resolve.add_argument(
        "--strategy",
        choices=[strategy.value for strategy in ResolutionStrategy],
        required=True,
    )
    resolve.add_argument(
        "--field",
        dest="fields",
        action="append",
        default=[],
        metavar="FIELD=local|remote",
        help="Side to keep for a conflicting field (selective only, repeatable)",
    )
    resolve.add_argument("--actor", default=DEFAULT_ACTOR, help="Recorded as the resolver")

    runs = subparsers.add_parser("runs", help="Show import history")
    runs.add_argument("--limit", type=int, default=20)

    changelog = subparsers.add_parser("changelog", help="Show the audit trail of an order")
    changelog.add_argument("order_id", type=str, help="Local order id")

    edit = subparsers.add_parser("edit", help="Edit reconciled fields on the local copy")
    edit.add_argument("order_id", type=str, help="Local order id")
    edit.add_argument(
        "--set",
        dest="changes",
        action="append",
        default=[],
        required=True,
        metavar="FIELD=VALUE",
        help="New value; JSON for addresses and line items (repeatable)",
    )
    edit.add_argument("--actor", default=DEFAULT_ACTOR, help="Recorded as the editor")

    return parser.parse_args(list(argv))


def _parse_iso_datetime(value: str) -> datetime:
    try:
        normalized = value.strip()
        if normalized.endswith("Z"):
            normalized = normalized[:-1] + "+00:00"
        dt = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise ValueError(f"Invalid ISO timestamp: {value}") from exc
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def _parse_uuid(value: str) -> UUID:
    try:
        return UUID(value)
    except ValueError as exc:
        raise ValueError(f"Invalid UUID: {value}") from exc


def _split_assignment(raw: str) -> tuple[str, str]:
    name, sep, value = raw.partition("=")
    if not sep or not name.strip():
        raise ValueError(f"Expected FIELD=VALUE, got {raw!r}")
    return name.strip(), value


def _parse_field_selections(raw: Sequence[str]) -> dict[str, str]:
    selections: dict[str, str] = {}
    for item in raw:
        name, value = _split_assignment(item)
        selections[name] = value.strip().lower()
    return selections


def _parse_changes(raw: Sequence[str]) -> dict[str, object]:
    changes: dict[str, object] = {}
    for item in raw:
        name, value = _split_assignment(item)
        # "12.50" means major units, so amounts stay text
        if name in MONEY_FIELDS:
            changes[name] = value.strip()
            continue
        try:
            changes[name] = json.loads(value)
        except json.JSONDecodeError:
            changes[name] = value
    return changes


def _build_time_window(args: argparse.Namespace) -> TimeWindow:
    start = _parse_iso_datetime(args.start) if args.start else None
    end = _parse_iso_datetime(args.end) if args.end else None
    lookback = None
    if args.lookback_hours is not None:
        if args.lookback_hours < 0:
            raise ValueError("Lookback hours must be non-negative")
        lookback = timedelta(hours=args.lookback_hours)
    window = TimeWindow(start=start, end=end, lookback=lookback)
    window.resolve()
    return window


def _format_value(name: str, value: FieldValue | None) -> str:
    if value is None:
        return "-"
    if name in MONEY_FIELDS and isinstance(value, int):
        return format_money(value)
    if isinstance(value, tuple):
        return ", ".join(f"{item.quantity}x {item.sort_key}" for item in value) or "(none)"
    return str(value)


def _log_progress(snapshot: ProgressSnapshot) -> None:
    total = snapshot.total_orders if snapshot.total_orders is not None else "?"
    log.info(
        f"Progress {snapshot.processed_orders}/{total} orders "
        f"(batch {snapshot.current_batch}/{snapshot.total_batches or '?'}): "
        f"created={snapshot.created}, updated={snapshot.updated}, skipped={snapshot.skipped}, "
        f"conflicts={snapshot.conflicts}, carried={snapshot.carried_conflicts}, "
        f"errors={snapshot.errors}"
    )


def _print_import_result(result: ImportResult) -> None:
    reason = f" ({result.failure_reason})" if result.failure_reason else ""
    print(f"Run {result.run_id}: {result.status}{reason}")
    print(
        f"  processed={result.processed_orders} created={result.created} "
        f"updated={result.updated} skipped={result.skipped} "
        f"conflicts={len(result.conflicts)} carried={result.carried_conflicts} "
        f"errors={result.error_count}"
    )
    for error in result.errors:
        where = error.external_id or (f"page {error.page}" if error.page is not None else "run")
        print(f"  ! {error.kind} [{where}] x{error.count}: {error.message}")
    if result.requires_action:
        print("  Conflicts need review: ordersync conflicts --run-id", result.run_id)


def _print_conflicts(conflicts: Sequence[Conflict]) -> None:
    if not conflicts:
        print("No conflicts.")
        return
    for conflict in conflicts:
        print(
            f"{conflict.order_id} (remote #{conflict.external_id}) {conflict.state} "
            f"run={conflict.run_id}"
        )
        for item in conflict.fields:
            print(
                f"  {item.field}: local={_format_value(item.field, item.local_value)} "
                f"remote={_format_value(item.field, item.remote_value)} "
                f"baseline={_format_value(item.field, item.baseline_value)}"
            )


def _print_runs(runs: Sequence[ImportRun]) -> None:
    if not runs:
        print("No import runs yet.")
        return
    for run in runs:
        reason = f" ({run.failure_reason})" if run.failure_reason else ""
        print(
            f"{run.id} {run.created_at:%Y-%m-%d %H:%M} {run.status}{reason} "
            f"processed={run.processed_orders} created={run.created} updated={run.updated} "
            f"skipped={run.skipped} conflicts={run.conflicts} carried={run.carried_conflicts} "
            f"errors={run.errors}"
        )


def _dispatch(args: argparse.Namespace) -> None:
    match args.command:
        case "import":
            window = _build_time_window(args)
            result = run_import(
                window=window,
                statuses=tuple(args.statuses),
                order_ids=tuple(args.order_ids),
                batch_size=args.batch_size,
                per_page=args.per_page,
                on_progress=_log_progress,
            )
            _print_import_result(result)
        case "conflicts":
            run_id = _parse_uuid(args.run_id) if args.run_id else None
            state = None if args.include_resolved else ConflictState.PENDING
            _print_conflicts(list_pending_conflicts(run_id=run_id, state=state))
        case "resolve":
            selections = _parse_field_selections(args.fields)
            outcome = resolve_conflict(
                _parse_uuid(args.order_id),
                args.strategy,
                selections or None,
                actor=args.actor,
            )
            kept = sorted(
                name for name, source in outcome.field_sources.items() if source is FieldSource.LOCAL
            )
            print(
                f"Resolved {len(outcome.resolved_conflicts)} conflict(s) on {outcome.order_id} "
                f"with {outcome.strategy}; local fields kept: {', '.join(kept) or 'none'}"
            )
        case "runs":
            _print_runs(list_import_runs(limit=args.limit))
        case "changelog":
            for entry in get_order_changelog(_parse_uuid(args.order_id)):
                sources = ", ".join(f"{name}={source}" for name, source in entry.field_sources.items())
                strategy = f" {entry.strategy}" if entry.strategy else ""
                print(f"{entry.created_at:%Y-%m-%d %H:%M:%S} {entry.action}{strategy} by {entry.actor}: {sources}")
        case "edit":
            order = edit_local_order(
                _parse_uuid(args.order_id),
                _parse_changes(args.changes),
                actor=args.actor,
            )
            print(f"Updated order {order.id} (remote #{order.external_id})")
        case _:
            raise ValueError(f"Unsupported command: {args.command}")


def main(argv: Sequence[str] | None = None) -> None:
    """Main application entry point."""
    args_list = list(argv) if argv is not None else list(sys.argv[1:])
    parsed_args = _parse_args(args_list)
    configure_logging(level=logging.DEBUG if parsed_args.verbose else logging.INFO)

    try:
        _dispatch(parsed_args)
    except (ValueError, ResolutionValidationError, NormalizationError):
        log.exception("CLI validation error")
        sys.exit(2)
    except Exception:
        log.exception("Fatal error during sync")
        sys.exit(1)
