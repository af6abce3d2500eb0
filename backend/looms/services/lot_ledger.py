"""Lot ledger — the single owner of a lot's running totals and status.

Invariants (hold after every committed request):
  - total_meters   == sum(meters_produced) over the lot's production entries
  - total_earnings == total_meters × rate_per_meter
  - status only moves along STATUS_TRANSITIONS; Completed/Cancelled are final

Concurrency:
  Every mutation first takes a row lock on the lot (SELECT … FOR UPDATE) and
  then applies the delta as an in-database increment, so two requests
  touching the same lot serialize instead of overwriting each other.  The
  delta and the entry write that caused it share the request transaction;
  any failure rolls both back.
"""

import logging
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from looms.config import settings
from looms.middleware.exceptions import (
    ConflictError,
    ConsistencyError,
    InvalidStateError,
    ResourceNotFoundError,
)
from looms.models.machine import Machine
from looms.models.production import ProductionEntry
from looms.models.quality_grade import QualityGrade
from looms.models.taka import STATUS_TRANSITIONS, Taka, TakaStatus
from looms.schemas.taka import TakaCreate, TakaUpdate
from looms.services.events import LotClosed, dispatcher
from looms.utils.lookups import get_or_404
from looms.utils.money import to_decimal

# Registers the machine-side LotClosed handler.
import looms.services.machines  # noqa: F401

ledger_log = logging.getLogger("looms.ledger")


# ── Locking & status rules ───────────────────────────────────

async def lock_lot(db: AsyncSession, lot_id: str) -> Taka | None:
    """Row-lock a lot and return it with fresh column values (None if absent)."""
    result = await db.execute(
        select(Taka)
        .where(Taka.id == lot_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def check_transition(current: str, target: TakaStatus) -> None:
    """Reject every status move not listed in STATUS_TRANSITIONS."""
    current_status = TakaStatus(current)
    if target not in STATUS_TRANSITIONS[current_status]:
        if current_status == target:
            raise InvalidStateError(f"Lot is already {current_status.value}")
        raise InvalidStateError(
            f"Cannot move lot from {current_status.value} to {target.value}"
        )


def ensure_open(lot: Taka) -> None:
    """Refuse production writes against a Completed/Cancelled lot."""
    if settings.lock_closed_lots and lot.is_terminal:
        raise InvalidStateError(
            f"Lot {lot.taka_number} is {lot.status}; "
            "production can only be recorded against Active lots"
        )


# ── Ledger delta ─────────────────────────────────────────────

async def apply_delta(db: AsyncSession, lot_id: str, meter_delta) -> Taka:
    """Add meter_delta (may be negative) to a lot and re-derive its earnings.

    Raises ConsistencyError when the lot cannot absorb the delta; the
    caller's transaction is then rolled back together with the entry write.
    """
    delta = to_decimal(meter_delta)
    lot = await lock_lot(db, lot_id)
    if lot is None:
        ledger_log.error("Ledger delta %s for missing lot %s", delta, lot_id)
        raise ConsistencyError(f"Lot {lot_id} disappeared before its ledger could be updated")

    new_total = to_decimal(lot.total_meters) + delta
    if new_total < 0:
        ledger_log.error(
            "Ledger delta %s would drive lot %s below zero (%s)",
            delta, lot.taka_number, lot.total_meters,
        )
        raise ConsistencyError(
            f"Lot {lot.taka_number} total would become negative ({new_total})"
        )

    result = await db.execute(
        update(Taka)
        .where(Taka.id == lot_id)
        .values(
            total_meters=Taka.total_meters + delta,
            total_earnings=(Taka.total_meters + delta) * Taka.rate_per_meter,
        )
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        raise ConsistencyError(f"Lot {lot_id} ledger update touched {result.rowcount} rows")

    await db.refresh(lot)
    ledger_log.debug(
        "Lot %s %+f m → %s m / %s",
        lot.taka_number, delta, lot.total_meters, lot.total_earnings,
    )
    return lot


# ── Lifecycle ────────────────────────────────────────────────

async def open_lot(db: AsyncSession, body: TakaCreate) -> Taka:
    """Create an Active lot, snapshotting the grade's rate, and mount it on its machine."""
    existing = await db.scalar(
        select(func.count(Taka.id)).where(Taka.taka_number == body.taka_number)
    )
    if existing:
        raise ConflictError(
            f"Lot number {body.taka_number} already exists", error_code="DUPLICATE_RECORD"
        )

    quality = await get_or_404(db, QualityGrade, body.quality_id, "Quality grade", active_only=True)
    machine = await get_or_404(db, Machine, body.machine_id, "Machine", active_only=True)

    lot = Taka(
        taka_number=body.taka_number,
        machine_id=machine.id,
        quality_id=quality.id,
        rate_per_meter=quality.rate_per_meter,
        target_meters=body.target_meters,
        total_meters=Decimal("0"),
        total_earnings=Decimal("0"),
        status=TakaStatus.ACTIVE.value,
        start_date=body.start_date or date.today(),
        notes=body.notes,
    )
    db.add(lot)
    await db.flush()

    machine.current_taka_id = lot.id
    await db.flush()

    ledger_log.info(
        "Opened lot %s on %s at %s/m", lot.taka_number, machine.machine_code, lot.rate_per_meter
    )
    return lot


async def transition(db: AsyncSession, lot: Taka, target: TakaStatus) -> Taka:
    """Move a locked lot to target status and announce the close."""
    check_transition(lot.status, target)
    lot.status = target.value
    if target == TakaStatus.COMPLETED:
        lot.end_date = datetime.utcnow()
    await db.flush()

    reason = "completed" if target == TakaStatus.COMPLETED else "cancelled"
    await dispatcher.publish(db, LotClosed(lot_id=lot.id, reason=reason))
    ledger_log.info("Lot %s → %s", lot.taka_number, lot.status)
    return lot


async def complete(db: AsyncSession, lot_id: str) -> Taka:
    lot = await lock_lot(db, lot_id)
    if lot is None:
        raise ResourceNotFoundError("Lot", lot_id)
    return await transition(db, lot, TakaStatus.COMPLETED)


async def cancel(db: AsyncSession, lot_id: str) -> Taka:
    lot = await lock_lot(db, lot_id)
    if lot is None:
        raise ResourceNotFoundError("Lot", lot_id)
    return await transition(db, lot, TakaStatus.CANCELLED)


async def update_lot(db: AsyncSession, lot_id: str, body: TakaUpdate) -> Taka:
    """Edit descriptive lot fields; status changes go through the transition table."""
    lot = await lock_lot(db, lot_id)
    if lot is None:
        raise ResourceNotFoundError("Lot", lot_id)

    updates = body.model_dump(exclude_unset=True)

    if updates.get("machine_id") and updates["machine_id"] != lot.machine_id:
        if lot.is_terminal:
            raise InvalidStateError(f"Lot {lot.taka_number} is {lot.status}; it cannot change machine")
        new_machine = await get_or_404(db, Machine, updates["machine_id"], "Machine", active_only=True)
        await db.execute(
            update(Machine)
            .where(Machine.current_taka_id == lot.id)
            .values(current_taka_id=None)
            .execution_options(synchronize_session="fetch")
        )
        lot.machine_id = new_machine.id
        new_machine.current_taka_id = lot.id

    if updates.get("target_meters") is not None:
        lot.target_meters = updates["target_meters"]
    if "notes" in updates:
        lot.notes = updates["notes"]

    await db.flush()

    target = updates.get("status")
    if target is not None and TakaStatus(target) != TakaStatus(lot.status):
        await transition(db, lot, TakaStatus(target))

    return lot


async def delete_lot(db: AsyncSession, lot_id: str) -> None:
    """Delete a lot that has no production entries."""
    lot = await lock_lot(db, lot_id)
    if lot is None:
        raise ResourceNotFoundError("Lot", lot_id)

    entry_count = await db.scalar(
        select(func.count(ProductionEntry.id)).where(ProductionEntry.taka_id == lot.id)
    )
    if entry_count:
        raise ConflictError(
            f"Lot {lot.taka_number} still has {entry_count} production entr"
            f"{'y' if entry_count == 1 else 'ies'}; delete them first",
            error_code="LOT_HAS_ENTRIES",
        )

    await dispatcher.publish(db, LotClosed(lot_id=lot.id, reason="deleted"))
    await db.delete(lot)
    await db.flush()
    ledger_log.info("Deleted lot %s", lot.taka_number)
