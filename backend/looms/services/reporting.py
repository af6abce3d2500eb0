"""Aggregate reporter — read-only grouping and summing of production entries.

Nothing here writes.  Every function takes a ProductionFilter so the same
window (date range, shift, machine, worker, lot, quality grade) can feed
dashboards, reports and list totals alike.

Empty windows are not an error: totals come back zeroed and groupings
come back empty.
"""

import enum
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import Iterator

from sqlalchemy import case, func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from looms.models.machine import Machine
from looms.models.production import ProductionEntry, Shift
from looms.models.quality_grade import QualityGrade
from looms.models.taka import Taka
from looms.models.worker import Worker
from looms.schemas.common import PeriodTotals
from looms.schemas.production import AllTimeTotals, RankedTotals, ShiftTotals
from looms.utils.dates import month_bounds, month_label, shift_month
from looms.utils.money import quantize, to_decimal

ZERO = Decimal("0")


@dataclass
class ProductionFilter:
    start_date: date | None = None
    end_date: date | None = None
    shift: str | None = None
    machine_id: str | None = None
    worker_id: str | None = None
    taka_id: str | None = None
    quality_id: str | None = None

    def apply(self, stmt):
        """Add this filter's WHERE clauses to a statement over production_entries."""
        if self.start_date:
            stmt = stmt.where(ProductionEntry.date >= self.start_date)
        if self.end_date:
            stmt = stmt.where(ProductionEntry.date <= self.end_date)
        if self.shift:
            stmt = stmt.where(ProductionEntry.shift == self.shift)
        if self.machine_id:
            stmt = stmt.where(ProductionEntry.machine_id == self.machine_id)
        if self.worker_id:
            stmt = stmt.where(ProductionEntry.worker_id == self.worker_id)
        if self.taka_id:
            stmt = stmt.where(ProductionEntry.taka_id == self.taka_id)
        if self.quality_id:
            stmt = stmt.where(ProductionEntry.quality_id == self.quality_id)
        return stmt

    @classmethod
    def for_month(cls, year: int, month: int, **kwargs) -> "ProductionFilter":
        start, end = month_bounds(year, month)
        return cls(start_date=start, end_date=end, **kwargs)

    @classmethod
    def for_day(cls, day: date, **kwargs) -> "ProductionFilter":
        return cls(start_date=day, end_date=day, **kwargs)


class GroupBy(str, enum.Enum):
    WORKER = "worker"
    MACHINE = "machine"
    QUALITY = "quality"
    TAKA = "taka"
    DAY = "day"
    SHIFT = "shift"


SORT_FIELDS = ("key", "name", "rate", "date", "meters", "earnings", "count")


@dataclass
class GroupSummary:
    key: str | None
    name: str | None
    code: str | None
    rate: Decimal | None
    first_date: date | None
    last_date: date | None
    count: int
    meters: Decimal
    earnings: Decimal
    day_shift_meters: Decimal
    night_shift_meters: Decimal
    avg_meters: Decimal
    meters_pct: float
    earnings_pct: float


# ── Column helpers ───────────────────────────────────────────

def _sum(column):
    return func.coalesce(func.sum(column), 0)


def _shift_meters(shift: Shift):
    return _sum(
        case(
            (ProductionEntry.shift == shift.value, ProductionEntry.meters_produced),
            else_=0,
        )
    )


def _pct(part: Decimal, whole: Decimal) -> float:
    if not whole:
        return 0.0
    return round(float(part / whole * 100), 2)


def _group_columns(group_by: GroupBy):
    """(key, name, code, fixed rate, label table, join condition) for one grouping."""
    if group_by == GroupBy.WORKER:
        return (ProductionEntry.worker_id, Worker.name, Worker.worker_code, None,
                Worker, Worker.id == ProductionEntry.worker_id)
    if group_by == GroupBy.MACHINE:
        return (ProductionEntry.machine_id, Machine.machine_name, Machine.machine_code, None,
                Machine, Machine.id == ProductionEntry.machine_id)
    if group_by == GroupBy.QUALITY:
        return (ProductionEntry.quality_id, QualityGrade.name, None, None,
                QualityGrade, QualityGrade.id == ProductionEntry.quality_id)
    if group_by == GroupBy.TAKA:
        return (ProductionEntry.taka_id, Taka.taka_number, Taka.taka_number, Taka.rate_per_meter,
                Taka, Taka.id == ProductionEntry.taka_id)
    if group_by == GroupBy.DAY:
        return (ProductionEntry.date, None, None, None, None, None)
    return (ProductionEntry.shift, None, None, None, None, None)


def _sort_value(row, sort_by: str):
    return row["first_date"] if sort_by == "date" else row[sort_by]


def _ordered(rows: list[dict], sort_by: str, descending: bool) -> list[dict]:
    """Key-ascending first; a requested field then re-sorts stably, None last."""
    rows = sorted(rows, key=lambda r: (r["key"] is None, r["key"] or ""))
    if sort_by == "key":
        return list(reversed(rows)) if descending else rows

    present = [r for r in rows if _sort_value(r, sort_by) is not None]
    missing = [r for r in rows if _sort_value(r, sort_by) is None]
    present.sort(key=lambda r: _sort_value(r, sort_by), reverse=descending)
    return present + missing


# ── Grouping ─────────────────────────────────────────────────

async def summarize(
    db: AsyncSession,
    filt: ProductionFilter,
    group_by: GroupBy,
    sort_by: str = "key",
    order: str = "asc",
) -> Iterator[GroupSummary]:
    """Group the filtered entries and return a lazy sequence of GroupSummary.

    Buckets are ordered by group key ascending unless sort_by names one of
    SORT_FIELDS; order is "asc" or "desc".
    """
    if sort_by not in SORT_FIELDS:
        raise ValueError(f"Unknown sort field: {sort_by}")
    key_col, name_col, code_col, rate_col, label_table, join_on = _group_columns(GroupBy(group_by))

    columns = [
        key_col.label("key"),
        func.count(ProductionEntry.id).label("count"),
        _sum(ProductionEntry.meters_produced).label("meters"),
        _sum(ProductionEntry.earnings).label("earnings"),
        _shift_meters(Shift.DAY).label("day_meters"),
        _shift_meters(Shift.NIGHT).label("night_meters"),
        func.min(ProductionEntry.date).label("first_date"),
        func.max(ProductionEntry.date).label("last_date"),
    ]
    group_cols = [key_col]
    for label, col in (("name", name_col), ("code", code_col), ("rate", rate_col)):
        if col is not None:
            columns.append(col.label(label))
            group_cols.append(col)

    stmt = select(*columns).select_from(ProductionEntry)
    if label_table is not None:
        stmt = stmt.outerjoin(label_table, join_on)
    stmt = filt.apply(stmt).group_by(*group_cols)

    rows = []
    for row in (await db.execute(stmt)).mappings().all():
        meters = quantize(row["meters"])
        earnings = quantize(row["earnings"])
        # Lots carry their snapshot rate; every other bucket reports earnings / meters
        rate = row.get("rate")
        if rate is not None:
            rate = quantize(rate)
        elif meters:
            rate = quantize(earnings / meters)

        key = row["key"]
        rows.append({
            "key": key.isoformat() if isinstance(key, date) else key,
            "name": row.get("name"),
            "code": row.get("code"),
            "rate": rate,
            "first_date": row["first_date"],
            "last_date": row["last_date"],
            "count": row["count"],
            "meters": meters,
            "earnings": earnings,
            "day_meters": quantize(row["day_meters"]),
            "night_meters": quantize(row["night_meters"]),
        })

    total_meters = sum((r["meters"] for r in rows), ZERO)
    total_earnings = sum((r["earnings"] for r in rows), ZERO)
    ordered = _ordered(rows, sort_by, descending=(order == "desc"))

    return (
        GroupSummary(
            key=r["key"],
            name=r["name"],
            code=r["code"],
            rate=r["rate"],
            first_date=r["first_date"],
            last_date=r["last_date"],
            count=r["count"],
            meters=r["meters"],
            earnings=r["earnings"],
            day_shift_meters=r["day_meters"],
            night_shift_meters=r["night_meters"],
            avg_meters=quantize(r["meters"] / r["count"]) if r["count"] else ZERO,
            meters_pct=_pct(r["meters"], total_meters),
            earnings_pct=_pct(r["earnings"], total_earnings),
        )
        for r in ordered
    )


# ── Totals ───────────────────────────────────────────────────

async def totals(db: AsyncSession, filt: ProductionFilter) -> PeriodTotals:
    stmt = filt.apply(
        select(
            func.count(ProductionEntry.id),
            _sum(ProductionEntry.meters_produced),
            _sum(ProductionEntry.earnings),
        ).select_from(ProductionEntry)
    )
    count, meters, earnings = (await db.execute(stmt)).one()
    return PeriodTotals(
        count=count or 0,
        total_meters=float(quantize(meters)),
        total_earnings=float(quantize(earnings)),
    )


async def all_time_totals(db: AsyncSession, filt: ProductionFilter | None = None) -> AllTimeTotals:
    stmt = select(
        _sum(ProductionEntry.meters_produced),
        _sum(ProductionEntry.earnings),
        func.avg(ProductionEntry.meters_produced),
    ).select_from(ProductionEntry)
    if filt is not None:
        stmt = filt.apply(stmt)
    meters, earnings, avg_meters = (await db.execute(stmt)).one()
    return AllTimeTotals(
        total_meters=float(quantize(meters)),
        total_earnings=float(quantize(earnings)),
        avg_meters=float(quantize(avg_meters)) if avg_meters is not None else 0.0,
    )


async def shift_totals(db: AsyncSession, filt: ProductionFilter) -> list[ShiftTotals]:
    """Per-shift totals, Day before Night; shifts with no entries are omitted."""
    stmt = filt.apply(
        select(
            ProductionEntry.shift,
            func.count(ProductionEntry.id),
            _sum(ProductionEntry.meters_produced),
            _sum(ProductionEntry.earnings),
        )
        .select_from(ProductionEntry)
        .group_by(ProductionEntry.shift)
        .order_by(ProductionEntry.shift)
    )
    return [
        ShiftTotals(
            shift=shift,
            count=count,
            total_meters=float(quantize(meters)),
            total_earnings=float(quantize(earnings)),
        )
        for shift, count, meters, earnings in (await db.execute(stmt)).all()
    ]


async def shift_breakdown(db: AsyncSession, filt: ProductionFilter) -> dict[str, PeriodTotals]:
    """Day / Night / total, always all three keys."""
    by_shift = {s.shift: s for s in await shift_totals(db, filt)}
    day = by_shift.get(Shift.DAY.value)
    night = by_shift.get(Shift.NIGHT.value)
    day_totals = PeriodTotals(**day.model_dump(exclude={"shift"})) if day else PeriodTotals()
    night_totals = PeriodTotals(**night.model_dump(exclude={"shift"})) if night else PeriodTotals()
    return {
        "day": day_totals,
        "night": night_totals,
        "total": PeriodTotals(
            count=day_totals.count + night_totals.count,
            total_meters=float(quantize(
                to_decimal(day_totals.total_meters) + to_decimal(night_totals.total_meters)
            )),
            total_earnings=float(quantize(
                to_decimal(day_totals.total_earnings) + to_decimal(night_totals.total_earnings)
            )),
        ),
    }


# ── Rankings & trends ────────────────────────────────────────

async def top_performers(
    db: AsyncSession, filt: ProductionFilter, by: GroupBy, limit: int = 5
) -> list[RankedTotals]:
    """Workers or machines ranked by meters; rows whose owner is gone are dropped."""
    if by == GroupBy.WORKER:
        owner, key_col, code_col, name_col = Worker, ProductionEntry.worker_id, Worker.worker_code, Worker.name
    elif by == GroupBy.MACHINE:
        owner, key_col, code_col, name_col = Machine, ProductionEntry.machine_id, Machine.machine_code, Machine.machine_name
    else:
        raise ValueError(f"Cannot rank by {by}")

    meters = _sum(ProductionEntry.meters_produced)
    stmt = filt.apply(
        select(
            key_col,
            code_col,
            name_col,
            func.count(ProductionEntry.id),
            meters.label("meters"),
            _sum(ProductionEntry.earnings),
        )
        .select_from(ProductionEntry)
        .join(owner, owner.id == key_col)
        .group_by(key_col, code_col, name_col)
        .order_by(meters.desc(), code_col)
        .limit(limit)
    )
    return [
        RankedTotals(
            id=ident,
            code=code,
            name=name,
            count=count,
            meters=float(quantize(total_meters)),
            earnings=float(quantize(earnings)),
        )
        for ident, code, name, count, total_meters, earnings in (await db.execute(stmt)).all()
    ]


async def monthly_trends(db: AsyncSession, today: date, months: int = 6) -> list[dict]:
    """Totals for the last `months` calendar months, oldest first."""
    trends = []
    for offset in range(months - 1, -1, -1):
        year, month = shift_month(today.year, today.month, -offset)
        month_totals = await totals(db, ProductionFilter.for_month(year, month))
        trends.append({
            "month": month_label(year, month),
            "meters": month_totals.total_meters,
            "earnings": month_totals.total_earnings,
        })
    return trends


async def daily_trend(db: AsyncSession, filt: ProductionFilter) -> list[dict]:
    """Meters and earnings per calendar day, oldest first."""
    return [
        {"date": date.fromisoformat(g.key), "meters": float(g.meters), "earnings": float(g.earnings)}
        for g in await summarize(db, filt, GroupBy.DAY)
    ]


# ── Entry-level reports ──────────────────────────────────────

@dataclass
class EntryGroup:
    owner: object
    entries: list
    meters: Decimal = ZERO
    earnings: Decimal = ZERO
    day_shift_meters: Decimal = ZERO
    night_shift_meters: Decimal = ZERO

    def add(self, entry: ProductionEntry) -> None:
        self.entries.append(entry)
        meters = to_decimal(entry.meters_produced)
        self.meters += meters
        self.earnings += to_decimal(entry.earnings)
        if entry.shift == Shift.DAY.value:
            self.day_shift_meters += meters
        else:
            self.night_shift_meters += meters

    def totals(self) -> dict:
        return {
            "meters": float(quantize(self.meters)),
            "earnings": float(quantize(self.earnings)),
            "day_shift_meters": float(quantize(self.day_shift_meters)),
            "night_shift_meters": float(quantize(self.night_shift_meters)),
        }


async def filtered_entries(
    db: AsyncSession,
    filt: ProductionFilter,
    sort_by: str = "date",
    order: str = "desc",
    limit: int | None = None,
) -> list[ProductionEntry]:
    """Entries in the window with machine/worker/lot/grade summaries loaded."""
    sort_col = {
        "date": ProductionEntry.date,
        "meters_produced": ProductionEntry.meters_produced,
        "earnings": ProductionEntry.earnings,
        "created_at": ProductionEntry.created_at,
    }.get(sort_by, ProductionEntry.date)
    primary = sort_col.desc() if order == "desc" else sort_col.asc()
    tiebreak = ProductionEntry.created_at.desc() if order == "desc" else ProductionEntry.created_at.asc()

    stmt = filt.apply(
        select(ProductionEntry)
        .options(
            selectinload(ProductionEntry.machine),
            selectinload(ProductionEntry.worker),
            selectinload(ProductionEntry.taka),
            selectinload(ProductionEntry.quality),
        )
        .order_by(primary, tiebreak)
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def grouped_entries(
    db: AsyncSession, filt: ProductionFilter, by: GroupBy
) -> list[EntryGroup]:
    """Entries (newest first) bucketed by worker or machine, in first-seen order."""
    if by not in (GroupBy.WORKER, GroupBy.MACHINE):
        raise ValueError(f"Cannot group entries by {by}")

    groups: dict[str, EntryGroup] = {}
    for entry in await filtered_entries(db, filt):
        key = entry.worker_id if by == GroupBy.WORKER else entry.machine_id
        if key not in groups:
            owner = entry.worker if by == GroupBy.WORKER else entry.machine
            groups[key] = EntryGroup(owner=owner, entries=[])
        groups[key].add(entry)
    return list(groups.values())


async def salary_report(db: AsyncSession, year: int, month: int) -> list[dict]:
    """Per-worker monthly totals with the day/night split, ordered by worker code."""
    filt = ProductionFilter.for_month(year, month)
    stmt = filt.apply(
        select(
            Worker.id,
            Worker.name,
            Worker.worker_code,
            Worker.worker_type,
            _sum(ProductionEntry.meters_produced).label("meters"),
            _sum(ProductionEntry.earnings).label("earnings"),
            _shift_meters(Shift.DAY).label("day_meters"),
            _shift_meters(Shift.NIGHT).label("night_meters"),
        )
        .select_from(ProductionEntry)
        .join(Worker, Worker.id == ProductionEntry.worker_id)
        .group_by(Worker.id, Worker.name, Worker.worker_code, Worker.worker_type)
        .order_by(Worker.worker_code)
    )
    return [
        {
            "worker": {
                "id": row.id,
                "name": row.name,
                "worker_code": row.worker_code,
                "worker_type": row.worker_type,
            },
            "metrics": {
                "meters": float(quantize(row.meters)),
                "earnings": float(quantize(row.earnings)),
                "day_shift_meters": float(quantize(row.day_meters)),
                "night_shift_meters": float(quantize(row.night_meters)),
            },
        }
        for row in (await db.execute(stmt)).all()
    ]
