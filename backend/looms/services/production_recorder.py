"""Production entry recorder — the only writer that moves a lot's ledger.

Every operation runs in the request transaction opened by get_db():

    create   insert entry            → apply_delta(lot, +meters)
    update   rewrite entry meters    → apply_delta(lot, new - old)
    delete   apply_delta(lot, -meters) → remove entry

The entry row is locked before it is read so two edits of the same entry
serialize; the lot row is locked by the ledger before its totals move.
"""

import logging
from datetime import date
from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from looms.middleware.exceptions import (
    ConsistencyError,
    InputValidationError,
    ResourceNotFoundError,
)
from looms.models.machine import Machine
from looms.models.production import ProductionEntry
from looms.models.quality_grade import QualityGrade
from looms.models.worker import Worker
from looms.schemas.production import ProductionCreate, ProductionUpdate
from looms.services import lot_ledger
from looms.utils.lookups import get_or_404
from looms.utils.money import to_decimal

logger = logging.getLogger(__name__)
ledger_log = logging.getLogger("looms.ledger")

ENTRY_SUMMARIES = (
    selectinload(ProductionEntry.machine),
    selectinload(ProductionEntry.worker),
    selectinload(ProductionEntry.taka),
    selectinload(ProductionEntry.quality),
)


async def load_entry(db: AsyncSession, entry_id: str) -> ProductionEntry:
    """Fetch one entry with machine/worker/lot/grade summaries populated."""
    result = await db.execute(
        select(ProductionEntry)
        .where(ProductionEntry.id == entry_id)
        .options(*ENTRY_SUMMARIES)
        .execution_options(populate_existing=True)
    )
    entry = result.scalar_one_or_none()
    if entry is None:
        raise ResourceNotFoundError("Production entry", entry_id)
    return entry


async def create_entry(db: AsyncSession, body: ProductionCreate) -> ProductionEntry:
    lot = await lot_ledger.lock_lot(db, body.taka_id)
    if lot is None:
        raise ResourceNotFoundError("Lot", body.taka_id)
    lot_ledger.ensure_open(lot)

    machine = await get_or_404(db, Machine, body.machine_id, "Machine", active_only=True)
    worker = await get_or_404(db, Worker, body.worker_id, "Worker", active_only=True)

    quality_id = body.quality_id or lot.quality_id
    if quality_id != lot.quality_id:
        await get_or_404(db, QualityGrade, quality_id, "Quality grade")
        raise InputValidationError(
            f"Quality grade does not match lot {lot.taka_number}'s grade"
        )

    entry = ProductionEntry(
        date=body.date or date.today(),
        machine_id=machine.id,
        worker_id=worker.id,
        taka_id=lot.id,
        quality_id=quality_id,
        shift=body.shift.value,
        # Rate always comes from the lot, never from the request
        rate_per_meter=lot.rate_per_meter,
        notes=body.notes,
    )
    entry.set_meters(body.meters_produced)
    db.add(entry)
    await db.flush()

    await lot_ledger.apply_delta(db, lot.id, entry.meters_produced)
    logger.info(
        "Recorded %s m on %s by %s for lot %s (%s)",
        entry.meters_produced, machine.machine_code, worker.worker_code,
        lot.taka_number, entry.shift,
    )
    return entry


async def update_entry(
    db: AsyncSession, entry_id: str, body: ProductionUpdate
) -> ProductionEntry:
    entry = await get_or_404(db, ProductionEntry, entry_id, "Production entry", for_update=True)
    updates = body.model_dump(exclude_unset=True)

    if updates.get("machine_id"):
        machine = await get_or_404(db, Machine, updates["machine_id"], "Machine", active_only=True)
        entry.machine_id = machine.id
    if updates.get("worker_id"):
        worker = await get_or_404(db, Worker, updates["worker_id"], "Worker", active_only=True)
        entry.worker_id = worker.id
    if updates.get("date"):
        entry.date = updates["date"]
    if updates.get("shift"):
        entry.shift = updates["shift"].value
    if "notes" in updates:
        entry.notes = updates["notes"]

    new_meters = updates.get("meters_produced")
    if new_meters is not None and to_decimal(new_meters) != to_decimal(entry.meters_produced):
        lot = await lot_ledger.lock_lot(db, entry.taka_id)
        if lot is None:
            raise ConsistencyError(
                f"Lot {entry.taka_id} of production entry {entry.id} no longer exists"
            )
        lot_ledger.ensure_open(lot)

        old_meters = to_decimal(entry.meters_produced)
        entry.set_meters(to_decimal(new_meters))
        await db.flush()
        await lot_ledger.apply_delta(db, lot.id, entry.meters_produced - old_meters)
    else:
        await db.flush()

    return entry


async def delete_entry(db: AsyncSession, entry_id: str) -> None:
    entry = await get_or_404(db, ProductionEntry, entry_id, "Production entry", for_update=True)
    meters = to_decimal(entry.meters_produced)

    lot = await lot_ledger.lock_lot(db, entry.taka_id)
    if lot is None:
        ledger_log.warning(
            "Lot %s of production entry %s is gone; skipping -%s m ledger delta",
            entry.taka_id, entry.id, meters,
        )
    elif meters != Decimal("0"):
        await lot_ledger.apply_delta(db, lot.id, -meters)

    await db.delete(entry)
    await db.flush()
    logger.info("Deleted production entry %s (%s m)", entry_id, meters)
