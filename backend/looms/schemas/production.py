"""Pydantic schemas for production entries and their statistics."""

import datetime as dt
from decimal import Decimal

from pydantic import BaseModel, Field

from looms.models.production import Shift
from looms.schemas.common import PeriodTotals
from looms.schemas.reference import MachineRef, QualityRef, WorkerRef
from looms.schemas.taka import TakaRef


class ProductionCreate(BaseModel):
    """Record one shift's output.

    No rate is accepted: the entry always takes the lot's snapshotted rate.
    """
    date: dt.date | None = None
    machine_id: str
    worker_id: str
    taka_id: str
    quality_id: str | None = None
    shift: Shift
    meters_produced: Decimal = Field(..., ge=0, max_digits=12, decimal_places=2)
    notes: str | None = None


class ProductionUpdate(BaseModel):
    date: dt.date | None = None
    machine_id: str | None = None
    worker_id: str | None = None
    shift: Shift | None = None
    meters_produced: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    notes: str | None = None


class ProductionOut(BaseModel):
    id: str
    date: dt.date
    machine_id: str
    worker_id: str
    taka_id: str
    quality_id: str
    shift: str
    meters_produced: float
    rate_per_meter: float
    earnings: float
    notes: str | None
    created_at: dt.datetime
    updated_at: dt.datetime

    machine: MachineRef | None = None
    worker: WorkerRef | None = None
    taka: TakaRef | None = None
    quality: QualityRef | None = None

    model_config = {"from_attributes": True}


class ProductionTotals(BaseModel):
    total_meters: float = 0.0
    total_earnings: float = 0.0


class AllTimeTotals(BaseModel):
    total_meters: float = 0.0
    total_earnings: float = 0.0
    avg_meters: float = 0.0


class ShiftTotals(PeriodTotals):
    shift: str


class RankedTotals(BaseModel):
    """A worker or machine ranked by meters."""
    id: str
    code: str | None
    name: str | None
    count: int = 0
    meters: float = 0.0
    earnings: float = 0.0


class ProductionStats(BaseModel):
    total_productions: int
    today: PeriodTotals
    month: PeriodTotals
    all_time: AllTimeTotals
    shift_stats: list[ShiftTotals]
    top_machines: list[RankedTotals]
    top_workers: list[RankedTotals]


class ProductionListOut(BaseModel):
    """List response with filter totals, used by machine history."""
    success: bool = True
    count: int
    totals: ProductionTotals
    data: list[ProductionOut]
