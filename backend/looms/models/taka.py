"""Taka — a production lot woven on one machine in one quality grade.

The lot ledger (total_meters, total_earnings) is owned by the ledger
service and only moves as a side effect of production entry writes:

    total_meters   == sum(entry.meters_produced for its entries)
    total_earnings == total_meters × rate_per_meter

Lifecycle:  Active → Completed   (terminal, sets end_date)
            Active → Cancelled   (terminal)
"""

import enum
import uuid
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import (
    CheckConstraint, Date, DateTime, ForeignKey, Numeric, String, Text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from looms.database import Base


class TakaStatus(str, enum.Enum):
    ACTIVE = "Active"
    COMPLETED = "Completed"
    CANCELLED = "Cancelled"


# The only legal status moves; anything else is rejected by the ledger.
STATUS_TRANSITIONS: dict[TakaStatus, frozenset[TakaStatus]] = {
    TakaStatus.ACTIVE: frozenset({TakaStatus.COMPLETED, TakaStatus.CANCELLED}),
    TakaStatus.COMPLETED: frozenset(),
    TakaStatus.CANCELLED: frozenset(),
}


class Taka(Base):
    __tablename__ = "takas"
    __table_args__ = (
        CheckConstraint("total_meters >= 0", name="ck_takas_total_meters_non_negative"),
    )

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    taka_number: Mapped[str] = mapped_column(
        String(50), unique=True, nullable=False, index=True
    )
    machine_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("machines.id"), nullable=False, index=True
    )
    quality_id: Mapped[str] = mapped_column(
        String(36), ForeignKey("quality_grades.id"), nullable=False, index=True
    )

    # ── Rate snapshot (from the quality grade at creation) ───
    rate_per_meter: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)

    # ── Ledger ───────────────────────────────────────────────
    target_meters: Mapped[Decimal] = mapped_column(Numeric(12, 2), default=Decimal("0"))
    total_meters: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=Decimal("0"))
    total_earnings: Mapped[Decimal] = mapped_column(Numeric(16, 2), default=Decimal("0"))

    # ── Status ───────────────────────────────────────────────
    status: Mapped[str] = mapped_column(
        String(20), default=TakaStatus.ACTIVE.value, index=True
    )
    start_date: Mapped[date] = mapped_column(Date, default=date.today)
    end_date: Mapped[datetime | None] = mapped_column(DateTime)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    machine = relationship("Machine", foreign_keys=[machine_id])
    quality = relationship("QualityGrade")
    entries = relationship("ProductionEntry", back_populates="taka", passive_deletes=True)

    @property
    def is_terminal(self) -> bool:
        return not STATUS_TRANSITIONS[TakaStatus(self.status)]
