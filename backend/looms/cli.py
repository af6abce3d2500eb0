"""Management CLI.

Usage:
    python -m looms.cli init-db              # Create all tables (development; use Alembic elsewhere)
    python -m looms.cli seed                 # Load sample grades, workers, machines, lots, entries
    python -m looms.cli check-ledger         # Print lots whose totals drift from their entries
    python -m looms.cli check-ledger --fix   # ...and rewrite them from the entry sums
"""

import asyncio
import sys
from datetime import date, timedelta
from decimal import Decimal

from sqlalchemy import func, select

from looms.database import Base, async_session, engine
from looms.models import Machine, QualityGrade, Worker
from looms.schemas.production import ProductionCreate
from looms.schemas.taka import TakaCreate
from looms.services import lot_ledger, production_recorder
from looms.services.reconciliation import find_ledger_drift, repair_ledger

GRADES = [
    ("Standard", "Basic quality fabric", "10"),
    ("Premium", "High quality fabric", "15"),
    ("Deluxe", "Luxury quality fabric", "20"),
    ("Economy", "Budget quality fabric", "7"),
]

WORKERS = [
    ("W001", "Rajesh Kumar", "Permanent", "9876543201", "Mumbai", "Day"),
    ("W002", "Amit Sharma", "Permanent", "9876543202", "Delhi", "Night"),
    ("W003", "Priya Patel", "Permanent", "9876543203", "Surat", "Day"),
    ("W004", "Vijay Singh", "Temporary", "9876543204", "Ahmedabad", "Night"),
    ("W005", "Sunita Reddy", "Permanent", "9876543205", "Bangalore", "Day"),
]

# code, name, type, status, location, day worker index, night worker index
MACHINES = [
    ("M001", "Loom Alpha", "Power Loom", "Active", "Floor 1", 0, 1),
    ("M002", "Loom Beta", "Power Loom", "Active", "Floor 1", 2, 3),
    ("M003", "Loom Gamma", "Power Loom", "Active", "Floor 2", 4, None),
    ("M004", "Loom Delta", "Hand Loom", "Maintenance", "Floor 2", None, None),
    ("M005", "Loom Epsilon", "Power Loom", "Active", "Floor 3", None, None),
]

# lot number, machine index, grade index, target
LOTS = [
    ("T001", 0, 0, 500),
    ("T002", 1, 1, 400),
    ("T003", 2, 2, 500),
    ("T004", 4, 0, 500),
]

SEED_DAYS = 14


async def init_db():
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    await engine.dispose()
    print("Tables created.")


async def seed():
    """Load sample data through the ledger services so lot totals stay reconciled."""
    async with async_session() as db:
        if await db.scalar(select(func.count(QualityGrade.id))):
            print("Database already has quality grades; refusing to seed.")
            return

        grades = [
            QualityGrade(name=name, description=desc, rate_per_meter=Decimal(rate))
            for name, desc, rate in GRADES
        ]
        workers = [
            Worker(
                worker_code=code, name=name, worker_type=wtype,
                phone=phone, address=address, shift=shift,
            )
            for code, name, wtype, phone, address, shift in WORKERS
        ]
        db.add_all(grades + workers)
        await db.flush()

        machines = []
        for code, name, mtype, status, location, day_idx, night_idx in MACHINES:
            machines.append(Machine(
                machine_code=code, machine_name=name, machine_type=mtype,
                status=status, location=location,
                day_shift_worker_id=workers[day_idx].id if day_idx is not None else None,
                night_shift_worker_id=workers[night_idx].id if night_idx is not None else None,
            ))
        db.add_all(machines)
        await db.flush()

        lots = []
        for number, machine_idx, grade_idx, target in LOTS:
            lots.append(await lot_ledger.open_lot(db, TakaCreate(
                taka_number=number,
                machine_id=machines[machine_idx].id,
                quality_id=grades[grade_idx].id,
                target_meters=Decimal(target),
                start_date=date.today() - timedelta(days=SEED_DAYS),
            )))

        # machine index, worker index, lot index, shift, base meters
        plan = [
            (0, 0, 0, "Day", 20),
            (0, 1, 0, "Night", 15),
            (1, 2, 1, "Day", 25),
            (2, 4, 2, "Day", 30),
        ]
        entry_count = 0
        for offset in range(SEED_DAYS):
            day = date.today() - timedelta(days=offset)
            for machine_idx, worker_idx, lot_idx, shift, base in plan:
                await production_recorder.create_entry(db, ProductionCreate(
                    date=day,
                    machine_id=machines[machine_idx].id,
                    worker_id=workers[worker_idx].id,
                    taka_id=lots[lot_idx].id,
                    shift=shift,
                    meters_produced=Decimal(base + (offset * 7) % 20),
                ))
                entry_count += 1

        # T004 was woven to target and closed
        for offset in range(10):
            await production_recorder.create_entry(db, ProductionCreate(
                date=date.today() - timedelta(days=SEED_DAYS + offset),
                machine_id=machines[4].id,
                worker_id=workers[3].id,
                taka_id=lots[3].id,
                shift="Night",
                meters_produced=Decimal("50"),
            ))
            entry_count += 1
        await lot_ledger.complete(db, lots[3].id)

        await db.commit()

    await engine.dispose()
    print("Database seeded:")
    print(f"  Quality grades:     {len(GRADES)}")
    print(f"  Workers:            {len(WORKERS)}")
    print(f"  Machines:           {len(MACHINES)}")
    print(f"  Lots:               {len(LOTS)}")
    print(f"  Production entries: {entry_count}")


async def check_ledger(fix: bool = False):
    async with async_session() as db:
        if fix:
            drifts = await repair_ledger(db)
            await db.commit()
        else:
            drifts = await find_ledger_drift(db)
    await engine.dispose()

    if not drifts:
        print("All lot ledgers match their entries.")
        return 0

    for d in drifts:
        print(
            f"  {d.taka_number}: stored {d.stored_meters} m / {d.stored_earnings}, "
            f"entries {d.entry_meters} m / {d.expected_earnings} ({d.entry_count} entries)"
        )
    if fix:
        print(f"\nRepaired {len(drifts)} lot(s)")
        return 0
    print(f"\n{len(drifts)} lot(s) drifted; run with --fix to repair")
    return 1


if __name__ == "__main__":
    cmd = sys.argv[1] if len(sys.argv) > 1 else ""
    if cmd == "init-db":
        asyncio.run(init_db())
    elif cmd == "seed":
        asyncio.run(seed())
    elif cmd == "check-ledger":
        sys.exit(asyncio.run(check_ledger(fix="--fix" in sys.argv[2:])))
    else:
        print("Usage: python -m looms.cli [init-db|seed|check-ledger [--fix]]")
