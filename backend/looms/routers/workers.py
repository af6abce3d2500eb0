"""Worker router — weavers and their production.

Endpoints:
    GET    /api/workers/                  List with today/month production
    GET    /api/workers/{id}              Single worker
    POST   /api/workers/                  Create
    PUT    /api/workers/{id}              Update
    DELETE /api/workers/{id}              Soft delete
    POST   /api/workers/bulk-delete       Soft delete many
    GET    /api/workers/{id}/performance  One month of entries with day/night split
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from looms.database import get_db
from looms.middleware.exceptions import ConflictError
from looms.models.worker import Worker
from looms.schemas.common import DataResponse, IdList, ListResponse, MessageResponse, PeriodTotals
from looms.schemas.production import ProductionOut
from looms.schemas.reference import WorkerCreate, WorkerOut, WorkerUpdate
from looms.schemas.report import PerformanceReport, ReportTotals
from looms.services import reporting
from looms.services.reporting import EntryGroup, GroupBy, ProductionFilter
from looms.utils.lookups import get_or_404

router = APIRouter()

SORTABLE = {
    "worker_code": Worker.worker_code,
    "name": Worker.name,
    "joining_date": Worker.joining_date,
    "created_at": Worker.created_at,
}


async def _ensure_unique_code(db: AsyncSession, code: str, exclude_id: str | None = None) -> None:
    stmt = select(func.count(Worker.id)).where(
        Worker.worker_code == code,
        Worker.is_active == True,  # noqa: E712
    )
    if exclude_id:
        stmt = stmt.where(Worker.id != exclude_id)
    if await db.scalar(stmt):
        raise ConflictError(f"Worker code {code} already exists", error_code="DUPLICATE_RECORD")


def _column_values(values: dict) -> dict:
    """Enums to their stored strings."""
    out = {}
    for field, value in values.items():
        if hasattr(value, "value"):
            value = value.value
        out[field] = value
    return out


def _period(group) -> PeriodTotals:
    if group is None:
        return PeriodTotals()
    return PeriodTotals(
        count=group.count,
        total_meters=float(group.meters),
        total_earnings=float(group.earnings),
    )


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=ListResponse[WorkerOut])
async def list_workers(
    worker_type: str | None = Query(None),
    shift: str | None = Query(None),
    search: str | None = Query(None),
    sort_by: str = Query("worker_code"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(Worker).where(Worker.is_active == True)  # noqa: E712
    if worker_type and worker_type.lower() != "all":
        stmt = stmt.where(Worker.worker_type == worker_type)
    if shift and shift.lower() != "all":
        stmt = stmt.where(Worker.shift == shift)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            Worker.worker_code.ilike(pattern)
            | Worker.name.ilike(pattern)
            | Worker.phone.ilike(pattern)
        )

    sort_col = SORTABLE.get(sort_by, Worker.worker_code)
    stmt = stmt.order_by(sort_col.desc() if order == "desc" else sort_col.asc())
    workers = (await db.execute(stmt)).scalars().all()

    today = date.today()
    today_map = {g.key: g for g in await reporting.summarize(db, ProductionFilter.for_day(today), GroupBy.WORKER)}
    month_map = {
        g.key: g
        for g in await reporting.summarize(
            db, ProductionFilter.for_month(today.year, today.month), GroupBy.WORKER
        )
    }
    all_map = {g.key: g for g in await reporting.summarize(db, ProductionFilter(), GroupBy.WORKER)}

    items = []
    for worker in workers:
        out = WorkerOut.model_validate(worker)
        out.today_production = _period(today_map.get(worker.id))
        out.month_production = _period(month_map.get(worker.id))
        out.total_productions = all_map[worker.id].count if worker.id in all_map else 0
        items.append(out)

    return ListResponse.of(items)


@router.post("/bulk-delete", response_model=MessageResponse)
async def bulk_delete_workers(body: IdList, db: AsyncSession = Depends(get_db)):
    result = await db.execute(
        update(Worker)
        .where(Worker.id.in_(body.ids))
        .values(is_active=False)
        .execution_options(synchronize_session="fetch")
    )
    return MessageResponse(
        message="Workers deleted successfully",
        data={"deleted": result.rowcount},
    )


# ── Single worker ────────────────────────────────────────────

@router.get("/{worker_id}", response_model=DataResponse[WorkerOut])
async def get_worker(worker_id: str, db: AsyncSession = Depends(get_db)):
    worker = await get_or_404(db, Worker, worker_id, "Worker")
    return DataResponse(data=WorkerOut.model_validate(worker))


@router.post("/", response_model=DataResponse[WorkerOut], status_code=status.HTTP_201_CREATED)
async def create_worker(body: WorkerCreate, db: AsyncSession = Depends(get_db)):
    await _ensure_unique_code(db, body.worker_code)

    worker = Worker(**_column_values(body.model_dump()))
    if worker.joining_date is None:
        worker.joining_date = date.today()
    db.add(worker)
    await db.flush()
    await db.refresh(worker)
    return DataResponse(data=WorkerOut.model_validate(worker))


@router.put("/{worker_id}", response_model=DataResponse[WorkerOut])
async def update_worker(
    worker_id: str,
    body: WorkerUpdate,
    db: AsyncSession = Depends(get_db),
):
    worker = await get_or_404(db, Worker, worker_id, "Worker")

    updates = body.model_dump(exclude_unset=True)
    if updates.get("worker_code"):
        await _ensure_unique_code(db, updates["worker_code"], exclude_id=worker.id)

    for field, value in _column_values(updates).items():
        setattr(worker, field, value)

    await db.flush()
    await db.refresh(worker)
    return DataResponse(data=WorkerOut.model_validate(worker))


@router.delete("/{worker_id}", response_model=DataResponse[dict])
async def delete_worker(worker_id: str, db: AsyncSession = Depends(get_db)):
    worker = await get_or_404(db, Worker, worker_id, "Worker")
    worker.is_active = False
    await db.flush()
    return DataResponse(data={})


# ── Performance ──────────────────────────────────────────────

@router.get("/{worker_id}/performance", response_model=PerformanceReport)
async def worker_performance(
    worker_id: str,
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
):
    """A worker's entries for one month (default: current), newest first."""
    worker = await get_or_404(db, Worker, worker_id, "Worker")
    today = date.today()
    filt = ProductionFilter.for_month(year or today.year, month or today.month, worker_id=worker.id)

    entries = await reporting.filtered_entries(db, filt)
    group = EntryGroup(owner=worker, entries=[])
    for entry in entries:
        group.add(entry)

    return PerformanceReport(
        count=len(entries),
        totals=ReportTotals(**group.totals()),
        data=[ProductionOut.model_validate(e) for e in entries],
    )
