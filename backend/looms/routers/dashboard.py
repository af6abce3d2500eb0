"""Dashboard router — headline counts and this month's charts."""

from datetime import date

from fastapi import APIRouter, Depends
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from looms.config import settings
from looms.database import get_db
from looms.models.machine import Machine, MachineStatus
from looms.models.taka import Taka, TakaStatus
from looms.models.worker import Worker
from looms.schemas.common import DataResponse
from looms.schemas.report import (
    DashboardStats,
    QualityShare,
    ShiftBreakdown,
    TopPerformers,
    TrendPoint,
)
from looms.services import reporting
from looms.services.reporting import GroupBy, ProductionFilter

router = APIRouter()


def _this_month() -> ProductionFilter:
    today = date.today()
    return ProductionFilter.for_month(today.year, today.month)


@router.get("/stats", response_model=DataResponse[DashboardStats])
async def dashboard_stats(db: AsyncSession = Depends(get_db)):
    total_machines = await db.scalar(
        select(func.count(Machine.id)).where(Machine.is_active == True)  # noqa: E712
    ) or 0
    active_machines = await db.scalar(
        select(func.count(Machine.id)).where(
            Machine.is_active == True,  # noqa: E712
            Machine.status == MachineStatus.ACTIVE.value,
        )
    ) or 0
    total_workers = await db.scalar(
        select(func.count(Worker.id)).where(Worker.is_active == True)  # noqa: E712
    ) or 0
    active_takas = await db.scalar(
        select(func.count(Taka.id)).where(Taka.status == TakaStatus.ACTIVE.value)
    ) or 0

    today = await reporting.shift_breakdown(db, ProductionFilter.for_day(date.today()))

    return DataResponse(data=DashboardStats(
        machines={
            "total": total_machines,
            "active": active_machines,
            "inactive": total_machines - active_machines,
        },
        workers={"total": total_workers},
        takas={"active": active_takas},
        today_production=ShiftBreakdown(**today),
        month_production=await reporting.totals(db, _this_month()),
    ))


@router.get("/monthly-trends", response_model=DataResponse[list[TrendPoint]])
async def monthly_trends(db: AsyncSession = Depends(get_db)):
    """Last N calendar months, oldest first."""
    trends = await reporting.monthly_trends(db, date.today(), settings.trend_months)
    return DataResponse(data=[TrendPoint(**point) for point in trends])


@router.get("/top-performers", response_model=DataResponse[TopPerformers])
async def top_performers(db: AsyncSession = Depends(get_db)):
    filt = _this_month()
    limit = settings.top_performers_limit
    return DataResponse(data=TopPerformers(
        workers=await reporting.top_performers(db, filt, GroupBy.WORKER, limit),
        machines=await reporting.top_performers(db, filt, GroupBy.MACHINE, limit),
    ))


@router.get("/quality-distribution", response_model=DataResponse[list[QualityShare]])
async def quality_distribution(db: AsyncSession = Depends(get_db)):
    groups = await reporting.summarize(db, _this_month(), GroupBy.QUALITY, sort_by="meters", order="desc")
    return DataResponse(data=[
        QualityShare(id=g.key, name=g.name, meters=float(g.meters), count=g.count)
        for g in groups
    ])
