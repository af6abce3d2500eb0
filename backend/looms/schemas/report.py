"""Pydantic schemas for dashboards and reports."""

import datetime as dt

from pydantic import BaseModel

from looms.schemas.common import PeriodTotals
from looms.schemas.production import ProductionOut, RankedTotals, ShiftTotals
from looms.schemas.reference import MachineRef, WorkerRef


class GroupSummaryOut(BaseModel):
    key: str | None
    name: str | None = None
    code: str | None = None
    rate: float | None = None
    first_date: dt.date | None = None
    last_date: dt.date | None = None
    count: int
    meters: float
    earnings: float
    day_shift_meters: float
    night_shift_meters: float
    avg_meters: float
    meters_pct: float
    earnings_pct: float

    model_config = {"from_attributes": True}


class SummaryReport(BaseModel):
    success: bool = True
    group_by: str
    count: int
    totals: PeriodTotals
    data: list[GroupSummaryOut]


class ReportTotals(BaseModel):
    meters: float = 0.0
    earnings: float = 0.0
    day_shift_meters: float = 0.0
    night_shift_meters: float = 0.0


class WorkerReportGroup(BaseModel):
    worker: WorkerRef | None
    productions: list[ProductionOut]
    totals: ReportTotals


class MachineReportGroup(BaseModel):
    machine: MachineRef | None
    productions: list[ProductionOut]
    totals: ReportTotals


class SalaryRow(BaseModel):
    worker: WorkerRef
    metrics: ReportTotals


class PerformanceReport(BaseModel):
    """One worker's month, newest entries first."""
    success: bool = True
    count: int
    totals: ReportTotals
    data: list[ProductionOut]


# ── Dashboard ────────────────────────────────────────────────

class ShiftBreakdown(BaseModel):
    day: PeriodTotals
    night: PeriodTotals
    total: PeriodTotals


class DashboardStats(BaseModel):
    machines: dict[str, int]
    workers: dict[str, int]
    takas: dict[str, int]
    today_production: ShiftBreakdown
    month_production: PeriodTotals


class TrendPoint(BaseModel):
    month: str
    meters: float
    earnings: float


class DailyPoint(BaseModel):
    date: dt.date
    meters: float
    earnings: float


class TopPerformers(BaseModel):
    workers: list[RankedTotals]
    machines: list[RankedTotals]


class QualityShare(BaseModel):
    id: str | None
    name: str | None
    meters: float
    count: int


class MachineStats(BaseModel):
    today: list[ShiftTotals]
    month: PeriodTotals
    all_time: PeriodTotals
    week_trend: list[DailyPoint]
