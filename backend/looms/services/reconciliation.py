"""Ledger reconciliation — compares each lot's stored totals with its entries.

find_ledger_drift() is read-only and powers GET /api/takas/ledger-check and
the ``check-ledger`` CLI command.  repair_ledger() rewrites drifted lots from
the entry sums; it is only reachable from ``check-ledger --fix``.
"""

import logging

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from looms.models.production import ProductionEntry
from looms.models.taka import Taka
from looms.schemas.taka import LedgerDrift
from looms.utils.money import compute_earnings, quantize, to_decimal

ledger_log = logging.getLogger("looms.ledger")


async def find_ledger_drift(db: AsyncSession) -> list[LedgerDrift]:
    """Return every lot whose stored meters/earnings disagree with its entries."""

    # Subquery: meters and entry count per lot
    entry_totals = (
        select(
            ProductionEntry.taka_id,
            func.coalesce(func.sum(ProductionEntry.meters_produced), 0).label("entry_meters"),
            func.count(ProductionEntry.id).label("entry_count"),
        )
        .group_by(ProductionEntry.taka_id)
        .subquery()
    )

    stmt = (
        select(
            Taka.id,
            Taka.taka_number,
            Taka.rate_per_meter,
            Taka.total_meters,
            Taka.total_earnings,
            entry_totals.c.entry_meters,
            entry_totals.c.entry_count,
        )
        .outerjoin(entry_totals, Taka.id == entry_totals.c.taka_id)
        .order_by(Taka.taka_number)
    )

    drifts = []
    for row in (await db.execute(stmt)).all():
        stored_meters = quantize(row.total_meters)
        entry_meters = quantize(row.entry_meters)
        stored_earnings = quantize(row.total_earnings)
        expected_earnings = compute_earnings(entry_meters, row.rate_per_meter)

        if stored_meters == entry_meters and stored_earnings == expected_earnings:
            continue

        drifts.append(LedgerDrift(
            taka_id=row.id,
            taka_number=row.taka_number,
            stored_meters=float(stored_meters),
            entry_meters=float(entry_meters),
            stored_earnings=float(stored_earnings),
            expected_earnings=float(expected_earnings),
            entry_count=row.entry_count or 0,
        ))

    if drifts:
        ledger_log.warning("Ledger check found %d drifted lot(s)", len(drifts))
    return drifts


async def repair_ledger(db: AsyncSession) -> list[LedgerDrift]:
    """Overwrite drifted lot totals with the sums of their entries.

    Returns the drift found before the repair.  The caller commits.
    """
    drifts = await find_ledger_drift(db)
    for drift in drifts:
        entry_meters = to_decimal(drift.entry_meters)
        await db.execute(
            update(Taka)
            .where(Taka.id == drift.taka_id)
            .values(
                total_meters=entry_meters,
                total_earnings=to_decimal(drift.expected_earnings),
            )
            .execution_options(synchronize_session=False)
        )
        ledger_log.warning(
            "Repaired lot %s: %s m → %s m",
            drift.taka_number, drift.stored_meters, drift.entry_meters,
        )
    await db.flush()
    return drifts
