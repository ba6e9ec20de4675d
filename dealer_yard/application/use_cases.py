"""Application services orchestrating the chassis lifecycle.

Every mutating operation is a coroutine that resolves once the document
store has acknowledged the writes. Identifier and reason validation happen
before the first store call, so a rejected request never leaves a partial
write behind.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from datetime import datetime
from typing import Callable, Mapping

from dealer_yard.application.dto import DispatchRequest, ManualAddRequest, ReceiveRequest, ReportRequest
from dealer_yard.config import SETTINGS
from dealer_yard.domain.allocation import TierAllocationCalculator
from dealer_yard.domain.errors import ChassisNotFound, InvalidTransition, StoreError
from dealer_yard.domain.identifiers import prettify_dealer_name, require_chassis, require_dealer
from dealer_yard.domain.models import (
    ChassisUnit,
    DispatchIntent,
    HandoverRecord,
    ReconciliationReport,
    ReportSource,
    UnitSource,
    UnitState,
)
from dealer_yard.domain.repositories import YardCapacitySource
from dealer_yard.domain.results import AuditReport, TierAllocation, TransitionResult, YardSnapshot
from dealer_yard.domain.services import YardAuditor, validate_reason
from dealer_yard.infrastructure.parsing.records import format_timestamp
from dealer_yard.infrastructure.repositories.store_repositories import LifecycleStoreAdapter

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(SETTINGS.timezone)


@dataclass(slots=True)
class YardContext:
    adapter: LifecycleStoreAdapter
    clock: Callable[[], datetime] = field(default=utc_now)


class ReconciliationReporter:
    """Query and update surface for invalid-stock reports.

    Reason and note are written as separate fields: a reason update never
    clears the note and a note update never clears the reason.
    """

    def __init__(self, context: YardContext) -> None:
        self._context = context

    async def get_report(self, dealer: str, chassis: str) -> ReconciliationReport | None:
        return await self._context.adapter.get_report(require_dealer(dealer), require_chassis(chassis))

    async def list_reports(self, dealer: str) -> list[ReconciliationReport]:
        return await self._context.adapter.list_reports(require_dealer(dealer))

    async def upsert_report(
        self,
        dealer: str,
        chassis: str,
        reason: str | None,
        custom_reason: str | None = None,
        source: ReportSource = ReportSource.REPORT_INVALID_STOCK,
    ) -> ReconciliationReport:
        dealer_slug = require_dealer(dealer)
        chassis = require_chassis(chassis)
        parsed, custom = validate_reason(chassis, reason, custom_reason)

        adapter = self._context.adapter
        now = self._context.clock()
        existing = await adapter.get_report(dealer_slug, chassis)
        created_at = existing.created_at if existing and existing.created_at else now
        await adapter.set_report_fields(
            dealer_slug,
            chassis,
            {
                "chassis": chassis,
                "reason": parsed.value,
                "customReason": custom,
                "source": source.value,
                "createdAt": format_timestamp(created_at),
                "updatedAt": format_timestamp(now),
            },
        )
        logger.info("Reported %s/%s as %s", dealer_slug, chassis, parsed.value)
        base = existing or ReconciliationReport(chassis=chassis, dealer_slug=dealer_slug)
        return replace(
            base,
            reason=parsed,
            custom_reason=custom,
            source=source,
            created_at=created_at,
            updated_at=now,
        )

    async def upsert_note(self, dealer: str, chassis: str, note: str | None) -> ReconciliationReport:
        dealer_slug = require_dealer(dealer)
        chassis = require_chassis(chassis)
        text = (note or "").strip() or None

        adapter = self._context.adapter
        now = self._context.clock()
        existing = await adapter.get_report(dealer_slug, chassis)
        fields: dict[str, object] = {
            "chassis": chassis,
            "note": text,
            "noteUpdatedAt": format_timestamp(now),
        }
        if existing is None:
            fields["createdAt"] = format_timestamp(now)
        await adapter.set_report_fields(dealer_slug, chassis, fields)
        logger.info("Saved note for %s/%s", dealer_slug, chassis)
        base = existing or ReconciliationReport(chassis=chassis, dealer_slug=dealer_slug, created_at=now)
        return replace(base, note=text, note_updated_at=now)

    async def remove_report(self, dealer: str, chassis: str) -> None:
        dealer_slug = require_dealer(dealer)
        chassis = require_chassis(chassis)
        await self._context.adapter.delete_report(dealer_slug, chassis)
        logger.info("Removed report for %s/%s", dealer_slug, chassis)


class ChassisLifecycleEngine:
    """Validates and applies chassis transitions against the document store."""

    def __init__(
        self,
        context: YardContext,
        reporter: ReconciliationReporter | None = None,
        require_reason_on_add: bool | None = None,
    ) -> None:
        self._context = context
        self._reporter = reporter or ReconciliationReporter(context)
        if require_reason_on_add is None:
            require_reason_on_add = SETTINGS.require_reason_on_add
        self._require_reason_on_add = require_reason_on_add

    @property
    def reporter(self) -> ReconciliationReporter:
        return self._reporter

    async def receive(self, request: ReceiveRequest) -> TransitionResult:
        dealer_slug = require_dealer(request.dealer)
        chassis = require_chassis(request.chassis)
        adapter = self._context.adapter
        await self._ensure_not_handed_over(dealer_slug, chassis)

        existing = await adapter.get_unit(dealer_slug, chassis, UnitState.YARD_STOCK)
        pending = await adapter.get_unit(dealer_slug, chassis, UnitState.YARD_PENDING)
        in_transit = await adapter.get_in_transit(chassis)

        unit = ChassisUnit(
            chassis=chassis,
            dealer_slug=dealer_slug,
            state=UnitState.YARD_STOCK,
            model=(request.model or (in_transit.model if in_transit else "") or "").strip(),
            customer=(request.customer or (in_transit.customer if in_transit else "") or "").strip(),
            source=UnitSource.PGI,
            received_at=self._context.clock(),
            source_date=request.source_date or (in_transit.pgi_date if in_transit else None),
        )
        if existing is not None:
            logger.warning(
                "Re-receiving %s/%s replaces the yard record received at %s",
                dealer_slug,
                chassis,
                format_timestamp(existing.received_at),
            )

        await adapter.put_unit(unit)
        await adapter.delete_in_transit(chassis)
        if pending is not None:
            await adapter.delete_unit(dealer_slug, chassis, UnitState.YARD_PENDING)
        logger.info("Received %s into %s yard", chassis, dealer_slug)
        return TransitionResult(chassis=chassis, dealer_slug=dealer_slug, unit=unit, replaced=existing is not None)

    async def add_manual(self, request: ManualAddRequest) -> TransitionResult:
        dealer_slug = require_dealer(request.dealer)
        chassis = require_chassis(request.chassis)
        if self._require_reason_on_add or request.reason:
            validate_reason(chassis, request.reason, request.custom_reason)

        adapter = self._context.adapter
        for state in (UnitState.YARD_STOCK, UnitState.YARD_PENDING):
            if await adapter.get_unit(dealer_slug, chassis, state) is not None:
                raise InvalidTransition(chassis, f"already present in {dealer_slug} yard ({state.value})")
        await self._ensure_not_handed_over(dealer_slug, chassis)

        unit = ChassisUnit(
            chassis=chassis,
            dealer_slug=dealer_slug,
            state=UnitState.YARD_PENDING if request.pending else UnitState.YARD_STOCK,
            model=(request.model or "").strip(),
            customer=(request.customer or "").strip(),
            source=UnitSource.PENDING_APPROVAL if request.pending else UnitSource.MANUAL,
            received_at=self._context.clock(),
            vin_number=request.vin_number,
            wholesale_po=request.wholesale_po,
        )
        await adapter.put_unit(unit)

        report = None
        if request.reason:
            try:
                report = await self._reporter.upsert_report(
                    dealer_slug, chassis, request.reason, request.custom_reason, source=ReportSource.ADD_TO_YARD
                )
            except StoreError:
                logger.error("Report for %s/%s failed; rolling back the manual add", dealer_slug, chassis)
                try:
                    await adapter.delete_unit(dealer_slug, chassis, unit.state)
                except StoreError:
                    logger.exception("Rollback of %s/%s failed", dealer_slug, chassis)
                raise
        logger.info("Manually added %s to %s yard as %s", chassis, dealer_slug, unit.state.value)
        return TransitionResult(chassis=chassis, dealer_slug=dealer_slug, unit=unit, report=report)

    async def approve_pending(self, dealer: str, chassis: str) -> TransitionResult:
        dealer_slug = require_dealer(dealer)
        chassis = require_chassis(chassis)
        adapter = self._context.adapter

        pending = await adapter.get_unit(dealer_slug, chassis, UnitState.YARD_PENDING)
        if pending is None:
            raise ChassisNotFound(dealer_slug, chassis, "yardpending")
        await self._ensure_not_handed_over(dealer_slug, chassis)
        unit = replace(
            pending,
            state=UnitState.YARD_STOCK,
            source=UnitSource.MANUAL,
            received_at=pending.received_at or self._context.clock(),
        )
        await adapter.put_unit(unit)
        await adapter.delete_unit(dealer_slug, chassis, UnitState.YARD_PENDING)
        logger.info("Approved pending %s into %s yard stock", chassis, dealer_slug)
        return TransitionResult(chassis=chassis, dealer_slug=dealer_slug, unit=unit)

    async def dispatch(self, request: DispatchRequest) -> TransitionResult:
        """Move a yard unit to handover.

        The remove and the handover write are separate store calls, so the
        pending handover is first recorded as a dispatch intent. If either
        call fails the intent stays behind for :meth:`recover_dispatches`.
        """
        dealer_slug = require_dealer(request.dealer)
        chassis = require_chassis(request.chassis)
        adapter = self._context.adapter

        unit = await adapter.get_unit(dealer_slug, chassis, UnitState.YARD_STOCK)
        if unit is None:
            raise ChassisNotFound(dealer_slug, chassis, "yardstock")
        await self._ensure_not_handed_over(dealer_slug, chassis)

        now = self._context.clock()
        handover = HandoverRecord(
            chassis=chassis,
            dealer_slug=dealer_slug,
            dealer_name=request.dealer_name or prettify_dealer_name(dealer_slug),
            handover_at=request.handover_at or now,
            model=unit.model,
            customer=unit.customer,
        )
        intent = DispatchIntent(handover=handover, created_at=now)
        await adapter.put_intent(intent)
        await self._complete_dispatch(intent)
        logger.info("Dispatched %s from %s yard", chassis, dealer_slug)
        return TransitionResult(
            chassis=chassis,
            dealer_slug=dealer_slug,
            unit=replace(unit, state=UnitState.DISPATCHED, dispatched_at=now, handover_at=handover.handover_at),
            handover=handover,
        )

    async def recover_dispatches(self, dealer: str | None = None) -> list[TransitionResult]:
        """Roll every unfinished dispatch forward; safe to run repeatedly."""
        dealer_slug = require_dealer(dealer) if dealer is not None else None
        adapter = self._context.adapter
        recovered: list[TransitionResult] = []
        for intent in await adapter.list_intents(dealer_slug):
            logger.warning("Completing interrupted dispatch of %s/%s", intent.dealer_slug, intent.chassis)
            existing = await adapter.get_handover(intent.dealer_slug, intent.chassis)
            if existing is None:
                await self._complete_dispatch(intent)
                handover = intent.handover
            else:
                await adapter.delete_unit(intent.dealer_slug, intent.chassis, UnitState.YARD_STOCK)
                await adapter.delete_intent(intent.dealer_slug, intent.chassis)
                handover = existing
            recovered.append(TransitionResult(chassis=intent.chassis, dealer_slug=intent.dealer_slug, handover=handover))
        return recovered

    async def _ensure_not_handed_over(self, dealer_slug: str, chassis: str) -> None:
        """Handover records are final: a handed-over chassis cannot re-enter the dealer's yard."""
        previous = await self._context.adapter.get_handover(dealer_slug, chassis)
        if previous is not None:
            raise InvalidTransition(chassis, f"already handed over at {format_timestamp(previous.handover_at)}")

    async def _complete_dispatch(self, intent: DispatchIntent) -> None:
        adapter = self._context.adapter
        await adapter.delete_unit(intent.dealer_slug, intent.chassis, UnitState.YARD_STOCK)
        await adapter.put_handover(intent.handover)
        await adapter.delete_intent(intent.dealer_slug, intent.chassis)

    async def report_invalid(self, request: ReportRequest) -> TransitionResult:
        report = await self._reporter.upsert_report(
            request.dealer,
            request.chassis,
            request.reason,
            request.custom_reason,
            source=ReportSource.REPORT_INVALID_STOCK,
        )
        return TransitionResult(chassis=report.chassis, dealer_slug=report.dealer_slug, report=report)

    async def annotate(self, dealer: str, chassis: str, note: str | None) -> TransitionResult:
        report = await self._reporter.upsert_note(dealer, chassis, note)
        return TransitionResult(chassis=report.chassis, dealer_slug=report.dealer_slug, report=report)

    async def state_of(self, dealer: str, chassis: str) -> UnitState | None:
        dealer_slug = require_dealer(dealer)
        chassis = require_chassis(chassis)
        adapter = self._context.adapter
        for state in (UnitState.YARD_STOCK, UnitState.YARD_PENDING):
            if await adapter.get_unit(dealer_slug, chassis, state) is not None:
                return state
        if await adapter.get_handover(dealer_slug, chassis) is not None:
            return UnitState.DISPATCHED
        if await adapter.get_in_transit(chassis) is not None:
            return UnitState.IN_TRANSIT
        return None


class TierPreviewUseCase:
    def __init__(
        self,
        adapter: LifecycleStoreAdapter,
        capacity_source: YardCapacitySource,
        calculator: TierAllocationCalculator | None = None,
    ) -> None:
        self._adapter = adapter
        self._capacity_source = capacity_source
        self._calculator = calculator or TierAllocationCalculator()

    async def execute(
        self,
        dealer: str,
        on_hand: Mapping[str, int] | None = None,
        baseline_volume: int | None = None,
    ) -> TierAllocation:
        dealer_slug = require_dealer(dealer)
        config = await self._adapter.get_tier_config()
        if baseline_volume is None:
            baseline_volume = await self._capacity_source.min_volume(dealer_slug)
        return self._calculator.allocate(config, baseline_volume, on_hand=on_hand)


class AuditYardUseCase:
    def __init__(self, adapter: LifecycleStoreAdapter, auditor: YardAuditor | None = None) -> None:
        self._adapter = adapter
        self._auditor = auditor or YardAuditor()

    async def execute(self, dealer: str) -> AuditReport:
        dealer_slug = require_dealer(dealer)
        adapter = self._adapter
        snapshot = YardSnapshot(
            dealer_slug=dealer_slug,
            yard_stock=tuple(await adapter.list_units(dealer_slug, UnitState.YARD_STOCK)),
            yard_pending=tuple(await adapter.list_units(dealer_slug, UnitState.YARD_PENDING)),
            handovers=tuple(await adapter.list_handovers(dealer_slug)),
            in_transit=tuple(record.chassis for record in await adapter.list_in_transit()),
            intents=tuple(await adapter.list_intents(dealer_slug)),
        )
        report = self._auditor.audit(snapshot, now=utc_now())
        if report.has_issues():
            logger.warning("Audit of %s found %d discrepancies", dealer_slug, len(report.discrepancies))
        return report
