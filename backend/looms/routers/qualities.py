"""Quality grade router — per-meter weaving rates.

Endpoints:
    GET    /api/qualities/          List grades with production counts
    GET    /api/qualities/stats     Rate spread and entry counts
    GET    /api/qualities/{id}      Single grade
    POST   /api/qualities/          Create grade
    PUT    /api/qualities/{id}      Update grade (never touches existing lots)
    DELETE /api/qualities/{id}      Soft delete
"""

from datetime import date

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from looms.database import get_db
from looms.middleware.exceptions import ConflictError
from looms.models.production import ProductionEntry
from looms.models.quality_grade import QualityGrade
from looms.schemas.common import DataResponse, ListResponse, PeriodTotals
from looms.schemas.reference import QualityCreate, QualityOut, QualityStats, QualityUpdate
from looms.services.reporting import GroupBy, ProductionFilter, summarize
from looms.utils.dates import last_n_days
from looms.utils.lookups import get_or_404

router = APIRouter()

SORTABLE = {
    "name": QualityGrade.name,
    "rate_per_meter": QualityGrade.rate_per_meter,
    "created_at": QualityGrade.created_at,
}


async def _ensure_unique_name(db: AsyncSession, name: str, exclude_id: str | None = None) -> None:
    stmt = select(func.count(QualityGrade.id)).where(
        func.lower(QualityGrade.name) == name.lower(),
        QualityGrade.is_active == True,  # noqa: E712
    )
    if exclude_id:
        stmt = stmt.where(QualityGrade.id != exclude_id)
    if await db.scalar(stmt):
        raise ConflictError(
            "A quality grade with this name already exists", error_code="DUPLICATE_RECORD"
        )


def _period(group) -> PeriodTotals:
    if group is None:
        return PeriodTotals()
    return PeriodTotals(
        count=group.count,
        total_meters=float(group.meters),
        total_earnings=float(group.earnings),
    )


# ── List ─────────────────────────────────────────────────────

@router.get("/", response_model=ListResponse[QualityOut])
async def list_qualities(
    search: str | None = Query(None),
    sort_by: str = Query("name"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    db: AsyncSession = Depends(get_db),
):
    stmt = select(QualityGrade).where(QualityGrade.is_active == True)  # noqa: E712
    if search:
        stmt = stmt.where(QualityGrade.name.ilike(f"%{search}%"))

    sort_col = SORTABLE.get(sort_by, QualityGrade.name)
    stmt = stmt.order_by(sort_col.desc() if order == "desc" else sort_col.asc())
    qualities = (await db.execute(stmt)).scalars().all()

    today = date.today()
    today_map = {g.key: g for g in await summarize(db, ProductionFilter.for_day(today), GroupBy.QUALITY)}
    month_map = {
        g.key: g
        for g in await summarize(db, ProductionFilter.for_month(today.year, today.month), GroupBy.QUALITY)
    }
    all_map = {g.key: g for g in await summarize(db, ProductionFilter(), GroupBy.QUALITY)}

    items = []
    for quality in qualities:
        out = QualityOut.model_validate(quality)
        out.today_stats = _period(today_map.get(quality.id))
        out.month_stats = _period(month_map.get(quality.id))
        out.total_productions = all_map[quality.id].count if quality.id in all_map else 0
        items.append(out)

    return ListResponse.of(items)


# ── Stats ────────────────────────────────────────────────────

@router.get("/stats", response_model=DataResponse[QualityStats])
async def quality_stats(db: AsyncSession = Depends(get_db)):
    count, avg_rate, highest, lowest = (await db.execute(
        select(
            func.count(QualityGrade.id),
            func.avg(QualityGrade.rate_per_meter),
            func.max(QualityGrade.rate_per_meter),
            func.min(QualityGrade.rate_per_meter),
        ).where(QualityGrade.is_active == True)  # noqa: E712
    )).one()

    today = date.today()
    month_start = today.replace(day=1)

    async def entries_since(since: date | None) -> int:
        stmt = select(func.count(ProductionEntry.id))
        if since is not None:
            stmt = stmt.where(ProductionEntry.date >= since)
        return await db.scalar(stmt) or 0

    return DataResponse(data=QualityStats(
        total_qualities=count or 0,
        avg_rate=round(float(avg_rate or 0), 2),
        highest_rate=float(highest or 0),
        lowest_rate=float(lowest or 0),
        productions={
            "today": await entries_since(today),
            "month": await entries_since(month_start),
            "last_week": await entries_since(last_n_days(today, 7)),
            "all_time": await entries_since(None),
        },
    ))


# ── Single grade ─────────────────────────────────────────────

@router.get("/{quality_id}", response_model=DataResponse[QualityOut])
async def get_quality(quality_id: str, db: AsyncSession = Depends(get_db)):
    quality = await get_or_404(db, QualityGrade, quality_id, "Quality grade")
    return DataResponse(data=QualityOut.model_validate(quality))


@router.post("/", response_model=DataResponse[QualityOut], status_code=status.HTTP_201_CREATED)
async def create_quality(body: QualityCreate, db: AsyncSession = Depends(get_db)):
    await _ensure_unique_name(db, body.name)

    quality = QualityGrade(**body.model_dump())
    db.add(quality)
    await db.flush()
    await db.refresh(quality)
    return DataResponse(data=QualityOut.model_validate(quality))


@router.put("/{quality_id}", response_model=DataResponse[QualityOut])
async def update_quality(
    quality_id: str,
    body: QualityUpdate,
    db: AsyncSession = Depends(get_db),
):
    quality = await get_or_404(db, QualityGrade, quality_id, "Quality grade")

    updates = body.model_dump(exclude_unset=True)
    if updates.get("name"):
        await _ensure_unique_name(db, updates["name"], exclude_id=quality.id)

    # Lots keep the rate they were opened with
    for field, value in updates.items():
        if value is not None:
            setattr(quality, field, value)

    await db.flush()
    await db.refresh(quality)
    return DataResponse(data=QualityOut.model_validate(quality))


@router.delete("/{quality_id}", response_model=DataResponse[dict])
async def delete_quality(quality_id: str, db: AsyncSession = Depends(get_db)):
    quality = await get_or_404(db, QualityGrade, quality_id, "Quality grade")
    quality.is_active = False
    await db.flush()
    return DataResponse(data={})
