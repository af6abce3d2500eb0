"""Machine — a loom on the shop floor.

A machine carries at most one current lot.  The reference is cleared by the
lot-closed event handler when that lot is completed, cancelled or deleted.
"""

import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from looms.database import Base


class MachineStatus(str, enum.Enum):
    ACTIVE = "Active"
    INACTIVE = "Inactive"
    MAINTENANCE = "Maintenance"
    BROKEN = "Broken"


class Machine(Base):
    __tablename__ = "machines"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Unique among active machines only (soft-deleted codes may be reused)
    machine_code: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    machine_name: Mapped[str] = mapped_column(String(200), nullable=False)
    machine_type: Mapped[str | None] = mapped_column(String(100))
    status: Mapped[str] = mapped_column(
        String(20), default=MachineStatus.ACTIVE.value, index=True
    )
    installation_date: Mapped[date | None] = mapped_column(Date)
    location: Mapped[str | None] = mapped_column(String(200))
    notes: Mapped[str | None] = mapped_column(Text)

    # ── Assignments ──────────────────────────────────────────
    day_shift_worker_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("workers.id")
    )
    night_shift_worker_id: Mapped[str | None] = mapped_column(
        String(36), ForeignKey("workers.id")
    )
    # takas.machine_id points back here, so this FK is added after both tables exist
    current_taka_id: Mapped[str | None] = mapped_column(
        String(36),
        ForeignKey("takas.id", use_alter=True, name="fk_machines_current_taka_id"),
        index=True,
    )

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )

    # ── Relationships ────────────────────────────────────────
    day_shift_worker = relationship("Worker", foreign_keys=[day_shift_worker_id])
    night_shift_worker = relationship("Worker", foreign_keys=[night_shift_worker_id])
    current_taka = relationship("Taka", foreign_keys=[current_taka_id], post_update=True)
