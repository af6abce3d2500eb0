import enum
import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, JSON, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from looms.database import Base


class WorkerType(str, enum.Enum):
    PERMANENT = "Permanent"
    TEMPORARY = "Temporary"


class WorkerShift(str, enum.Enum):
    DAY = "Day"
    NIGHT = "Night"
    BOTH = "Both"
    NONE = "None"


class Worker(Base):
    __tablename__ = "workers"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    # Unique among active workers only (soft-deleted codes may be reused)
    worker_code: Mapped[str] = mapped_column(String(30), nullable=False, index=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    worker_type: Mapped[str] = mapped_column(
        String(20), default=WorkerType.PERMANENT.value, index=True
    )
    phone: Mapped[str | None] = mapped_column(String(20))
    address: Mapped[str | None] = mapped_column(Text)
    joining_date: Mapped[date | None] = mapped_column(Date, default=date.today)
    shift: Mapped[str] = mapped_column(
        String(10), default=WorkerShift.NONE.value, index=True
    )
    # {"name": ..., "phone": ..., "relation": ...}
    emergency_contact: Mapped[dict | None] = mapped_column(JSON)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
