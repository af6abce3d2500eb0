"""Machine router — looms, their shift workers and current lot.

Endpoints:
    GET    /api/machines/                   List with today's production
    GET    /api/machines/{id}               Single machine
    POST   /api/machines/                   Create
    PUT    /api/machines/{id}               Update
    DELETE /api/machines/{id}               Soft delete
    POST   /api/machines/bulk-delete        Soft delete many
    PUT    /api/machines/{id}/assign-worker Put a worker on the Day or Night shift
    GET    /api/machines/{id}/production    Production history with totals
    GET    /api/machines/{id}/stats         Today / month / all-time / 7-day trend
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from looms.config import settings
from looms.database import get_db
from looms.middleware.exceptions import ConflictError
from looms.models.machine import Machine, MachineStatus
from looms.models.production import Shift
from looms.models.worker import Worker
from looms.schemas.common import DataResponse, IdList, ListResponse, MessageResponse, PeriodTotals
from looms.schemas.production import ProductionListOut, ProductionOut, ProductionTotals
from looms.schemas.reference import (
    AssignWorkerRequest,
    MachineCreate,
    MachineOut,
    MachineUpdate,
)
from looms.schemas.report import DailyPoint, MachineStats
from looms.services import reporting
from looms.services.reporting import GroupBy, ProductionFilter
from looms.utils.dates import last_n_days
from looms.utils.lookups import get_or_404

router = APIRouter()

MACHINE_SUMMARIES = (
    selectinload(Machine.day_shift_worker),
    selectinload(Machine.night_shift_worker),
    selectinload(Machine.current_taka),
)

SORTABLE = {
    "machine_code": Machine.machine_code,
    "machine_name": Machine.machine_name,
    "status": Machine.status,
    "created_at": Machine.created_at,
}


async def _ensure_unique_code(db: AsyncSession, code: str, exclude_id: str | None = None) -> None:
    stmt = select(func.count(Machine.id)).where(
        Machine.machine_code == code,
        Machine.is_active == True,  # noqa: E712
    )
    if exclude_id:
        stmt = stmt.where(Machine.id != exclude_id)
    if await db.scalar(stmt):
        raise ConflictError(f"Machine code {code} already exists", error_code="DUPLICATE_RECORD")


async def _check_workers(db: AsyncSession, *worker_ids: str | None) -> None:
    for worker_id in worker_ids:
        if worker_id:
            await get_or_404(db, Worker, worker_id, "Worker", active_only=True)


async def _load(db: AsyncSession, machine_id: str) -> Machine:
    return await get_or_404(
        db, Machine, machine_id, "Machine", options=MACHINE_SUMMARIES,
    )


async def _reload(db: AsyncSession, machine_id: str) -> Machine:
    """Re-query after a write so relationships reflect the flushed state."""
    result = await db.execute(
        select(Machine)
        .where(Machine.id == machine_id)
        .options(*MACHINE_SUMMARIES)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=ListResponse[MachineOut])
async def list_machines(
    machine_status: str | None = Query(None, alias="status"),
    search: str | None = Query(None),
    sort_by: str = Query("machine_code"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    stmt = (
        select(Machine)
        .where(Machine.is_active == True)  # noqa: E712
        .options(*MACHINE_SUMMARIES)
    )
    if machine_status and machine_status != "all":
        stmt = stmt.where(Machine.status == machine_status)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            Machine.machine_code.ilike(pattern) | Machine.machine_name.ilike(pattern)
        )

    sort_col = SORTABLE.get(sort_by, Machine.machine_code)
    stmt = stmt.order_by(sort_col.desc() if order == "desc" else sort_col.asc())
    machines = (await db.execute(stmt)).scalars().all()

    today_map = {
        g.key: g
        for g in await reporting.summarize(db, ProductionFilter.for_day(date.today()), GroupBy.MACHINE)
    }
    all_map = {g.key: g for g in await reporting.summarize(db, ProductionFilter(), GroupBy.MACHINE)}

    items = []
    for machine in machines:
        out = MachineOut.model_validate(machine)
        today = today_map.get(machine.id)
        out.today_production = PeriodTotals(
            count=today.count, total_meters=float(today.meters), total_earnings=float(today.earnings),
        ) if today else PeriodTotals()
        out.total_productions = all_map[machine.id].count if machine.id in all_map else 0
        items.append(out)

    return ListResponse.of(items)


# ── Bulk delete (before /{machine_id} routes) ────────────────

@router.post("/bulk-delete", response_model=MessageResponse)
async def bulk_delete_machines(body: IdList, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        update(Machine)
        .where(Machine.id.in_(body.ids))
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    return MessageResponse(
        message="Machines deleted successfully",
        data={"deleted": result.rowcount},
    )


# ── Single machine ───────────────────────────────────────────

@router.get("/{machine_id}", response_model=DataResponse[MachineOut])
async def get_machine(machine_id: str, db: AsyncSession = Depends(get_db)):
    machine = await _load(db, machine_id)
    return DataResponse(data=MachineOut.model_validate(machine))


@router.post("/", response_model=DataResponse[MachineOut], status_code=status.HTTP_201_CREATED)
async def create_machine(body: MachineCreate, db: AsyncSession = Depends(get_db)):
    await _ensure_unique_code(db, body.machine_code)
    await _check_workers(db, body.day_shift_worker_id, body.night_shift_worker_id)

    values = body.model_dump()
    values["status"] = body.status.value
    machine = Machine(**values)
    db.add(machine)
    await db.flush()

    return DataResponse(data=MachineOut.model_validate(await _reload(db, machine.id)))


@router.put("/{machine_id}", response_model=DataResponse[MachineOut])
async def update_machine(
    machine_id: str,
    body: MachineUpdate,
    db: AsyncSession = Depends(get_db),
):
    machine = await get_or_404(db, Machine, machine_id, "Machine")

    updates = body.model_dump(exclude_unset=True)
    if updates.get("machine_code"):
        await _ensure_unique_code(db, updates["machine_code"], exclude_id=machine.id)
    await _check_workers(db, updates.get("day_shift_worker_id"), updates.get("night_shift_worker_id"))

    for field, value in updates.items():
        if isinstance(value, MachineStatus):
            value = value.value
        setattr(machine, field, value)

    await db.flush()
    return DataResponse(data=MachineOut.model_validate(await _reload(db, machine.id)))


@router.delete("/{machine_id}", response_model=DataResponse[dict])
async def delete_machine(machine_id: str, db: AsyncSession = Depends(get_db)):
    machine = await get_or_404(db, Machine, machine_id, "Machine")
    machine.is_active = False
    await db.flush()
    return DataResponse(data={})


@router.put("/{machine_id}/assign-worker", response_model=DataResponse[MachineOut])
async def assign_worker(
    machine_id: str,
    body: AssignWorkerRequest,
    db: AsyncSession = Depends(get_db),
):
    """Put a worker on (or, with worker_id null, clear) one shift of a machine."""
    machine = await get_or_404(db, Machine, machine_id, "Machine", active_only=True)
    if body.worker_id:
        await get_or_404(db, Worker, body.worker_id, "Worker", active_only=True)

    if body.shift == Shift.DAY:
        machine.day_shift_worker_id = body.worker_id
    else:
        machine.night_shift_worker_id = body.worker_id

    await db.flush()
    return DataResponse(data=MachineOut.model_validate(await _reload(db, machine.id)))


# ── Production history & stats ───────────────────────────────

@router.get("/{machine_id}/production", response_model=ProductionListOut)
async def machine_production(
    machine_id: str,
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    shift: Shift | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    machine = await get_or_404(db, Machine, machine_id, "Machine")
    filt = ProductionFilter(
        start_date=start_date,
        end_date=end_date,
        shift=shift.value if shift else None,
        machine_id=machine.id,
    )
    entries = await reporting.filtered_entries(db, filt)
    totals = await reporting.totals(db, filt)

    return ProductionListOut(
        count=len(entries),
        totals=ProductionTotals(
            total_meters=totals.total_meters,
            total_earnings=totals.total_earnings,
        ),
        data=[ProductionOut.model_validate(e) for e in entries],
    )


@router.get("/{machine_id}/stats", response_model=DataResponse[MachineStats])
async def machine_stats(machine_id: str, db: AsyncSession = Depends(get_db)):
    machine = await get_or_404(db, Machine, machine_id, "Machine")
    today = date.today()

    week = ProductionFilter(
        start_date=last_n_days(today, settings.trend_days),
        end_date=today,
        machine_id=machine.id,
    )
    return DataResponse(data=MachineStats(
        today=await reporting.shift_totals(db, ProductionFilter.for_day(today, machine_id=machine.id)),
        month=await reporting.totals(
            db, ProductionFilter.for_month(today.year, today.month, machine_id=machine.id)
        ),
        all_time=await reporting.totals(db, ProductionFilter(machine_id=machine.id)),
        week_trend=[DailyPoint(**point) for point in await reporting.daily_trend(db, week)],
    ))
