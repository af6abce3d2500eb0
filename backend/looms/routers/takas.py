"""Lot (taka) router — lot lifecycle and the ledger check.

Endpoints:
    GET    /api/takas/                List lots with entry counts
    GET    /api/takas/ledger-check    Lots whose totals drift from their entries
    GET    /api/takas/{id}            Single lot
    POST   /api/takas/                Open a lot on a machine
    PUT    /api/takas/{id}            Update target / notes / machine / status
    DELETE /api/takas/{id}            Delete a lot with no entries
    PUT    /api/takas/{id}/complete   Active → Completed
    PUT    /api/takas/{id}/cancel     Active → Cancelled

Ledger figures (total_meters, total_earnings) and the rate are read-only
here; they move only through production entries.
"""

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from looms.database import get_db
from looms.middleware.exceptions import ResourceNotFoundError
from looms.models.production import ProductionEntry
from looms.models.taka import Taka
from looms.schemas.common import DataResponse, ListResponse
from looms.schemas.taka import LedgerDrift, TakaCreate, TakaOut, TakaUpdate
from looms.services import lot_ledger
from looms.services.reconciliation import find_ledger_drift
from looms.utils.money import to_decimal

router = APIRouter()

TAKA_SUMMARIES = (
    selectinload(Taka.machine),
    selectinload(Taka.quality),
)

SORTABLE = {
    "taka_number": Taka.taka_number,
    "start_date": Taka.start_date,
    "total_meters": Taka.total_meters,
    "created_at": Taka.created_at,
}


async def _load(db: AsyncSession, taka_id: str) -> Taka:
    result = await db.execute(
        select(Taka)
        .where(Taka.id == taka_id)
        .options(*TAKA_SUMMARIES)
        .execution_options(populate_existing=True)
    )
    taka = result.scalar_one_or_none()
    if taka is None:
        raise ResourceNotFoundError("Lot", taka_id)
    return taka


def _to_out(taka: Taka, production_count: int | None = None) -> TakaOut:
    out = TakaOut.model_validate(taka)
    remaining = to_decimal(taka.target_meters) - to_decimal(taka.total_meters)
    out.remaining_meters = float(max(remaining, 0))
    if production_count is not None:
        out.production_count = production_count
    return out


async def _entry_count(db: AsyncSession, taka_id: str) -> int:
    return await db.scalar(
        select(func.count(ProductionEntry.id)).where(ProductionEntry.taka_id == taka_id)
    ) or 0


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=ListResponse[TakaOut])
async def list_takas(
    taka_status: str | None = Query(None, alias="status"),
    machine_id: str | None = Query(None),
    quality_id: str | None = Query(None),
    sort_by: str = Query("created_at"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Taka).options(*TAKA_SUMMARIES)
    if taka_status and taka_status.lower() != "all":
        stmt = stmt.where(Taka.status == taka_status)
    if machine_id:
        stmt = stmt.where(Taka.machine_id == machine_id)
    if quality_id:
        stmt = stmt.where(Taka.quality_id == quality_id)

    sort_col = SORTABLE.get(sort_by, Taka.created_at)
    stmt = stmt.order_by(sort_col.desc() if order == "desc" else sort_col.asc())
    takas = (await db.execute(stmt)).scalars().all()

    # Entry counts per lot
    count_map: dict[str, int] = {}
    taka_ids = [t.id for t in takas]
    if taka_ids:
        count_result = await db.execute(
            select(ProductionEntry.taka_id, func.count(ProductionEntry.id))
            .where(ProductionEntry.taka_id.in_(taka_ids))
            .group_by(ProductionEntry.taka_id)
        )
        count_map = {row[0]: row[1] for row in count_result.all()}

    return ListResponse.of([_to_out(t, count_map.get(t.id, 0)) for t in takas])


# ── Ledger check (before /{taka_id}) ─────────────────────────

@router.get("/ledger-check", response_model=ListResponse[LedgerDrift])
async def ledger_check(db: AsyncSession = Depends(get_db)):
    """Read-only reconciliation: lots whose stored totals disagree with their entries."""
    return ListResponse.of(await find_ledger_drift(db))


# ── Single lot ───────────────────────────────────────────────

@router.get("/{taka_id}", response_model=DataResponse[TakaOut])
async def get_taka(taka_id: str, db: AsyncSession = Depends(get_db)):
    taka = await _load(db, taka_id)
    return DataResponse(data=_to_out(taka, await _entry_count(db, taka.id)))


@router.post("/", response_model=DataResponse[TakaOut], status_code=status.HTTP_201_CREATED)
async def create_taka(body: TakaCreate, db: AsyncSession = Depends(get_db)):
    taka = await lot_ledger.open_lot(db, body)
    return DataResponse(data=_to_out(await _load(db, taka.id), 0))


@router.put("/{taka_id}", response_model=DataResponse[TakaOut])
async def update_taka(
    taka_id: str,
    body: TakaUpdate,
    db: AsyncSession = Depends(get_db),
):
    taka = await lot_ledger.update_lot(db, taka_id, body)
    return DataResponse(data=_to_out(await _load(db, taka.id), await _entry_count(db, taka.id)))


@router.delete("/{taka_id}", response_model=DataResponse[dict])
async def delete_taka(taka_id: str, db: AsyncSession = Depends(get_db)):
    await lot_ledger.delete_lot(db, taka_id)
    return DataResponse(data={})


# ── Lifecycle ────────────────────────────────────────────────

@router.put("/{taka_id}/complete", response_model=DataResponse[TakaOut])
async def complete_taka(taka_id: str, db: AsyncSession = Depends(get_db)):
    """Close an Active lot; a second call, or a Cancelled lot, is a 409."""
    taka = await lot_ledger.complete(db, taka_id)
    return DataResponse(data=_to_out(await _load(db, taka.id), await _entry_count(db, taka.id)))


@router.put("/{taka_id}/cancel", response_model=DataResponse[TakaOut])
async def cancel_taka(taka_id: str, db: AsyncSession = Depends(get_db)):
    taka = await lot_ledger.cancel(db, taka_id)
    return DataResponse(data=_to_out(await _load(db, taka.id), await _entry_count(db, taka.id)))
