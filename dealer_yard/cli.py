"""Command-line entrypoint for yard lifecycle operations."""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from dealer_yard.application.dto import DispatchRequest, ManualAddRequest, ReceiveRequest, ReportRequest
from dealer_yard.application.use_cases import (
    AuditYardUseCase,
    ChassisLifecycleEngine,
    TierPreviewUseCase,
    YardContext,
    utc_now,
)
from dealer_yard.config import SETTINGS
from dealer_yard.domain.errors import YardError
from dealer_yard.domain.identifiers import require_dealer
from dealer_yard.domain.models import ReconciliationReason, UnitState
from dealer_yard.domain.results import TransitionResult
from dealer_yard.infrastructure.repositories.store_repositories import (
    LifecycleStoreAdapter,
    StoreScheduleFeed,
    StoreYardCapacitySource,
)
from dealer_yard.infrastructure.storage.json_store import JsonFileDocumentStore
from dealer_yard.presentation import yard_views

logger = logging.getLogger(__name__)


def parse_args(argv: list[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Track chassis through dealer yards")
    parser.add_argument("--store", type=Path, default=SETTINGS.store_path, help="Path to the JSON store file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Log at DEBUG level")
    commands = parser.add_subparsers(dest="command", required=True)

    receive = commands.add_parser("receive", help="Receive an in-transit chassis into yard stock")
    receive.add_argument("dealer")
    receive.add_argument("chassis")
    receive.add_argument("--model")
    receive.add_argument("--customer")

    add = commands.add_parser("add", help="Manually add a chassis to the yard")
    add.add_argument("dealer")
    add.add_argument("chassis")
    add.add_argument("--model")
    add.add_argument("--customer")
    add.add_argument("--stock", action="store_true", help="Add straight to yard stock instead of pending approval")
    add.add_argument("--reason", choices=[reason.value for reason in ReconciliationReason])
    add.add_argument("--custom-reason")

    approve = commands.add_parser("approve", help="Approve a pending chassis into yard stock")
    approve.add_argument("dealer")
    approve.add_argument("chassis")

    dispatch = commands.add_parser("dispatch", help="Hand a yard chassis over")
    dispatch.add_argument("dealer")
    dispatch.add_argument("chassis")
    dispatch.add_argument("--dealer-name")

    report = commands.add_parser("report", help="Report a chassis as invalid stock")
    report.add_argument("dealer")
    report.add_argument("chassis")
    report.add_argument("reason", choices=[reason.value for reason in ReconciliationReason])
    report.add_argument("--custom-reason")

    note = commands.add_parser("note", help="Save a note on a chassis report")
    note.add_argument("dealer")
    note.add_argument("chassis")
    note.add_argument("note")

    yard = commands.add_parser("yard", help="Show yard KPIs and inventory")
    yard.add_argument("dealer")
    yard.add_argument("--range", dest="range_type", default="7d", choices=sorted(SETTINGS.kpi_range_days))

    tiers = commands.add_parser("tiers", help="Preview tier targets for a yard")
    tiers.add_argument("dealer")
    tiers.add_argument("--volume", type=int, help="Baseline volume; defaults to the dealer's minVolume")

    audit = commands.add_parser("audit", help="Check a yard for lifecycle inconsistencies")
    audit.add_argument("dealer")

    recover = commands.add_parser("recover", help="Complete interrupted dispatches")
    recover.add_argument("dealer", nargs="?")
    return parser.parse_args(argv)


def _print_transition(action: str, result: TransitionResult) -> None:
    print(f"{action} {result.chassis} ({result.dealer_slug})")
    if result.unit is not None:
        unit = result.unit
        print(f"  state: {unit.state.value}  type: {unit.unit_type.value}  range: {unit.model_range}")
    if result.replaced:
        print("  note: an existing yard record was replaced")
    if result.report is not None and result.report.reason is not None:
        print(f"  reason: {result.report.reason.value}")


async def _show_yard(adapter: LifecycleStoreAdapter, store: JsonFileDocumentStore, dealer: str, range_type: str) -> None:
    dealer_slug = require_dealer(dealer)
    now = utc_now()
    units = await adapter.list_units(dealer_slug, UnitState.YARD_STOCK)
    units = yard_views.enrich_with_schedule(units, await StoreScheduleFeed(store, True, True, True).entries())
    in_transit = await adapter.list_in_transit()
    handovers = await adapter.list_handovers(dealer_slug)

    start, end = yard_views.kpi_window(range_type, now)
    kpis = yard_views.kpi_counts(dealer_slug, units, in_transit, handovers, start, end)
    print(f"Yard summary for {dealer_slug} ({start.date()} to {end.date()})")
    print("=" * 40)
    print(f"PGI: {kpis['pgi']}  Received: {kpis['received']}  Handed over: {kpis['handed_over']}")
    print(f"On yard: {kpis['total']} (stock {kpis['stock']}, customer {kpis['customer']})")

    print("\nDays in yard:")
    for row in yard_views.days_in_yard_buckets(units, now).itertuples(index=False):
        print(f"- {row.label}: {row.count}")

    frame = yard_views.units_to_frame(units, now)
    if frame.empty:
        print("\nNo units on yard.")
    else:
        print()
        print(frame[["chassis", "model", "customer", "type", "model_range", "days_in_yard"]].to_string(index=False))


async def _run(args: argparse.Namespace) -> int:
    store = JsonFileDocumentStore(args.store)
    adapter = LifecycleStoreAdapter(store)
    engine = ChassisLifecycleEngine(YardContext(adapter=adapter))

    if args.command == "receive":
        result = await engine.receive(
            ReceiveRequest(dealer=args.dealer, chassis=args.chassis, model=args.model, customer=args.customer)
        )
        _print_transition("Received", result)
    elif args.command == "add":
        result = await engine.add_manual(
            ManualAddRequest(
                dealer=args.dealer,
                chassis=args.chassis,
                model=args.model,
                customer=args.customer,
                pending=not args.stock,
                reason=args.reason,
                custom_reason=args.custom_reason,
            )
        )
        _print_transition("Added", result)
    elif args.command == "approve":
        _print_transition("Approved", await engine.approve_pending(args.dealer, args.chassis))
    elif args.command == "dispatch":
        result = await engine.dispatch(
            DispatchRequest(dealer=args.dealer, chassis=args.chassis, dealer_name=args.dealer_name)
        )
        _print_transition("Dispatched", result)
    elif args.command == "report":
        result = await engine.report_invalid(
            ReportRequest(dealer=args.dealer, chassis=args.chassis, reason=args.reason, custom_reason=args.custom_reason)
        )
        _print_transition("Reported", result)
    elif args.command == "note":
        _print_transition("Noted", await engine.annotate(args.dealer, args.chassis, args.note))
    elif args.command == "yard":
        await _show_yard(adapter, store, args.dealer, args.range_type)
    elif args.command == "tiers":
        preview = TierPreviewUseCase(adapter, StoreYardCapacitySource(adapter))
        allocation = await preview.execute(args.dealer, baseline_volume=args.volume)
        print(f"Tier targets for baseline volume {allocation.baseline_volume}")
        for item in allocation.requirements:
            ceiling = "-" if item.ceiling is None else item.ceiling
            print(f"- {item.tier} ({item.label}): {item.target_count} [{item.share:.0%}, min {item.minimum}, max {ceiling}]")
        for warning in allocation.warnings:
            print(f"warning: {warning}")
    elif args.command == "audit":
        report = await AuditYardUseCase(adapter).execute(args.dealer)
        if not report.has_issues():
            print("No discrepancies detected.")
        for item in report.discrepancies:
            print(f"- {item.issue_type} for {item.chassis}: {item.message}")
    elif args.command == "recover":
        recovered = await engine.recover_dispatches(args.dealer)
        print(f"Recovered {len(recovered)} interrupted dispatch(es)")
    return 0


def main(argv: list[str] | None = None) -> int:
    args = parse_args(argv if argv is not None else sys.argv[1:])
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        return asyncio.run(_run(args))
    except YardError as exc:
        print(f"error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
