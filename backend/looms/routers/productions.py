"""Production router — daily entries and the ledger moves they cause.

Endpoints:
    GET    /api/productions/         List / filter entries
    GET    /api/productions/stats    Today / month / all-time totals and top performers
    GET    /api/productions/{id}     Single entry with summaries
    POST   /api/productions/         Record an entry (rate taken from the lot)
    PUT    /api/productions/{id}     Edit an entry; meter changes move the lot ledger
    DELETE /api/productions/{id}     Delete an entry; its meters leave the lot ledger
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from looms.config import settings
from looms.database import get_db
from looms.models.production import ProductionEntry, Shift
from looms.schemas.common import DataResponse, ListResponse
from looms.schemas.production import (
    ProductionCreate,
    ProductionOut,
    ProductionStats,
    ProductionUpdate,
)
from looms.services import production_recorder, reporting
from looms.services.reporting import GroupBy, ProductionFilter

router = APIRouter()


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=ListResponse[ProductionOut])
async def list_productions(
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    shift: Shift | None = Query(None),
    machine_id: str | None = Query(None),
    worker_id: str | None = Query(None),
    taka_id: str | None = Query(None),
    quality_id: str | None = Query(None),
    sort_by: str = Query("date", pattern="^(date|meters_produced|earnings|created_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    filt = ProductionFilter(
        start_date=start_date,
        end_date=end_date,
        shift=shift.value if shift else None,
        machine_id=machine_id,
        worker_id=worker_id,
        taka_id=taka_id,
        quality_id=quality_id,
    )
    entries = await reporting.filtered_entries(db, filt, sort_by=sort_by, order=order)
    return ListResponse.of([ProductionOut.model_validate(e) for e in entries])


# ── Stats (before /{entry_id}) ───────────────────────────────

@router.get("/stats", response_model=DataResponse[ProductionStats])
async def production_stats(db: AsyncSession = Depends(get_db)):
    today = date.today()
    today_filter = ProductionFilter.for_day(today)
    month_filter = ProductionFilter.for_month(today.year, today.month)
    limit = settings.top_performers_limit

    return DataResponse(data=ProductionStats(
        total_productions=await db.scalar(select(func.count(ProductionEntry.id))) or 0,
        today=await reporting.totals(db, today_filter),
        month=await reporting.totals(db, month_filter),
        all_time=await reporting.all_time_totals(db),
        shift_stats=await reporting.shift_totals(db, today_filter),
        top_machines=await reporting.top_performers(db, month_filter, GroupBy.MACHINE, limit),
        top_workers=await reporting.top_performers(db, month_filter, GroupBy.WORKER, limit),
    ))


# ── Single entry ─────────────────────────────────────────────

@router.get("/{entry_id}", response_model=DataResponse[ProductionOut])
async def get_production(entry_id: str, db: AsyncSession = Depends(get_db)):
    entry = await production_recorder.load_entry(db, entry_id)
    return DataResponse(data=ProductionOut.model_validate(entry))


@router.post("/", response_model=DataResponse[ProductionOut], status_code=status.HTTP_201_CREATED)
async def create_production(body: ProductionCreate, db: AsyncSession = Depends(get_db)):
    """Record one shift's meters against an Active lot.

    The entry's rate is the lot's snapshot; a rate in the payload is ignored.
    """
    entry = await production_recorder.create_entry(db, body)
    entry = await production_recorder.load_entry(db, entry.id)
    return DataResponse(data=ProductionOut.model_validate(entry))


@router.put("/{entry_id}", response_model=DataResponse[ProductionOut])
async def update_production(
    entry_id: str,
    body: ProductionUpdate,
    db: AsyncSession = Depends(get_db),
):
    entry = await production_recorder.update_entry(db, entry_id, body)
    entry = await production_recorder.load_entry(db, entry.id)
    return DataResponse(data=ProductionOut.model_validate(entry))


@router.delete("/{entry_id}", response_model=DataResponse[dict])
async def delete_production(entry_id: str, db: AsyncSession = Depends(get_db)):
    await production_recorder.delete_entry(db, entry_id)
    return DataResponse(data={})
