"""ProductionEntry — meters woven on one machine, by one worker, in one shift.

earnings is always meters_produced × rate_per_meter; the rate is the lot's
snapshot at the time the entry is recorded.
"""

import enum
import uuid
import datetime as dt
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint, Date, DateTime, ForeignKey, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from looms.database import Base
from looms.utils.money import compute_earnings


class Shift(str, enum.Enum):
    DAY = "Day"
    NIGHT = "Night"


class ProductionEntry(Base):
    __tablename__ = "production_entries"
    __table_args__ = (
        CheckConstraint("meters_produced >= 0", name="ck_production_meters_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    date: Mapped[dt.date] = mapped_column(Date, nullable=False, default=dt.date.today, index=True)

    # ── References ───────────────────────────────────────────
    machine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("machines.id"), nullable=False, index=True
    )
    worker_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("workers.id"), nullable=False, index=True
    )
    taka_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("takas.id"), nullable=False, index=True
    )
    quality_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quality_grades.id"), nullable=False, index=True
    )

    shift: Mapped[str] = mapped_column(String(10), nullable=False, index=True)

    # ── Quantities ───────────────────────────────────────────
    meters_produced: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    rate_per_meter: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    earnings: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[dt.datetime] = mapped_column(DateTime, default=dt.datetime.utcnow, index=True)
    updated_at: Mapped[dt.datetime] = mapped_column(
        DateTime, default=dt.datetime.utcnow, onupdate=dt.datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    # Lazy by default; load with selectinload() where summaries are needed.
    machine = relationship("Machine")
    worker = relationship("Worker")
    taka = relationship("Taka", back_populates="entries")
    quality = relationship("QualityGrade")

    def set_meters(self, meters: Decimal) -> None:
        """Set meters and re-derive earnings from the snapshotted rate."""
        self.meters_produced = meters
        self.earnings = compute_earnings(meters, self.rate_per_meter)
