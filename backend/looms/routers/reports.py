"""Report router — worker, machine, salary and grouped summary reports.

All reports are read-only views over production entries; none of them
touch lot ledgers.
"""

from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from looms.database import get_db
from looms.models.production import Shift
from looms.schemas.common import DataResponse
from looms.schemas.production import ProductionOut
from looms.schemas.reference import MachineRef, WorkerRef
from looms.schemas.report import (
    GroupSummaryOut,
    MachineReportGroup,
    ReportTotals,
    SalaryRow,
    SummaryReport,
    WorkerReportGroup,
)
from looms.services import reporting
from looms.services.reporting import SORT_FIELDS, GroupBy, ProductionFilter

router = APIRouter()


def _window(
    start_date: date | None,
    end_date: date | None,
    shift: Shift | None,
    **kwargs,
) -> ProductionFilter:
    return ProductionFilter(
        start_date=start_date,
        end_date=end_date,
        shift=shift.value if shift else None,
        **kwargs,
    )


@router.get("/worker", response_model=DataResponse[list[WorkerReportGroup]])
async def worker_report(
    worker_id: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    shift: Shift | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    filt = _window(start_date, end_date, shift, worker_id=worker_id)
    groups = await reporting.grouped_entries(db, filt, GroupBy.WORKER)
    return DataResponse(data=[
        WorkerReportGroup(
            worker=WorkerRef.model_validate(g.owner) if g.owner is not None else None,
            productions=[ProductionOut.model_validate(e) for e in g.entries],
            totals=ReportTotals(**g.totals()),
        )
        for g in groups
    ])


@router.get("/machine", response_model=DataResponse[list[MachineReportGroup]])
async def machine_report(
    machine_id: str | None = Query(None),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    shift: Shift | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    filt = _window(start_date, end_date, shift, machine_id=machine_id)
    groups = await reporting.grouped_entries(db, filt, GroupBy.MACHINE)
    return DataResponse(data=[
        MachineReportGroup(
            machine=MachineRef.model_validate(g.owner) if g.owner is not None else None,
            productions=[ProductionOut.model_validate(e) for e in g.entries],
            totals=ReportTotals(**g.totals()),
        )
        for g in groups
    ])


@router.get("/salary", response_model=DataResponse[list[SalaryRow]])
async def salary_report(
    month: int | None = Query(None, ge=1, le=12),
    year: int | None = Query(None, ge=2000, le=2100),
    db: AsyncSession = Depends(get_db),
):
    """Per-worker totals for one month (default: current), ordered by worker code."""
    today = date.today()
    rows = await reporting.salary_report(db, year or today.year, month or today.month)
    return DataResponse(data=[SalaryRow(**row) for row in rows])


@router.get("/summary", response_model=SummaryReport)
async def summary_report(
    group_by: GroupBy = Query(GroupBy.WORKER),
    sort_by: str = Query("key", pattern=f"^({'|'.join(SORT_FIELDS)})$"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    start_date: date | None = Query(None),
    end_date: date | None = Query(None),
    shift: Shift | None = Query(None),
    machine_id: str | None = Query(None),
    worker_id: str | None = Query(None),
    taka_id: str | None = Query(None),
    quality_id: str | None = Query(None),
    db: AsyncSession = Depends(get_db),
):
    filt = _window(
        start_date, end_date, shift,
        machine_id=machine_id,
        worker_id=worker_id,
        taka_id=taka_id,
        quality_id=quality_id,
    )
    groups = [
        GroupSummaryOut.model_validate(g)
        for g in await reporting.summarize(db, filt, group_by, sort_by=sort_by, order=order)
    ]
    return SummaryReport(
        group_by=group_by.value,
        count=len(groups),
        totals=await reporting.totals(db, filt),
        data=groups,
    )
