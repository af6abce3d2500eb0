"""Pydantic schemas for the reference entities: quality grades, workers, machines."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from looms.models.machine import MachineStatus
from looms.models.production import Shift
from looms.models.worker import WorkerShift, WorkerType
from looms.schemas.common import PeriodTotals


def _upper_code(value: str | None) -> str | None:
    if value is None:
        return value
    value = value.strip().upper()
    if not value:
        raise ValueError("Code cannot be blank")
    return value


# ── Quality grades ───────────────────────────────────────────

class QualityCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str | None = None
    rate_per_meter: Decimal = Field(..., ge=0, max_digits=10, decimal_places=2)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        return v.strip()


class QualityUpdate(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    description: str | None = None
    rate_per_meter: Decimal | None = Field(None, ge=0, max_digits=10, decimal_places=2)


class QualityRef(BaseModel):
    id: str
    name: str
    rate_per_meter: float

    model_config = {"from_attributes": True}


class QualityOut(BaseModel):
    id: str
    name: str
    description: str | None
    rate_per_meter: float
    is_active: bool
    created_at: datetime
    updated_at: datetime

    # Filled on list responses
    today_stats: PeriodTotals | None = None
    month_stats: PeriodTotals | None = None
    total_productions: int | None = None

    model_config = {"from_attributes": True}


class QualityStats(BaseModel):
    total_qualities: int
    avg_rate: float
    highest_rate: float
    lowest_rate: float
    productions: dict[str, int]


# ── Workers ──────────────────────────────────────────────────

class EmergencyContact(BaseModel):
    name: str | None = None
    phone: str | None = None
    relation: str | None = None


class WorkerCreate(BaseModel):
    worker_code: str = Field(..., max_length=30)
    name: str = Field(..., min_length=1, max_length=200)
    worker_type: WorkerType = WorkerType.PERMANENT
    phone: str | None = Field(None, max_length=20)
    address: str | None = None
    joining_date: date | None = None
    shift: WorkerShift = WorkerShift.NONE
    emergency_contact: EmergencyContact | None = None
    notes: str | None = None

    @field_validator("worker_code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return _upper_code(v)


class WorkerUpdate(BaseModel):
    worker_code: str | None = Field(None, max_length=30)
    name: str | None = Field(None, min_length=1, max_length=200)
    worker_type: WorkerType | None = None
    phone: str | None = None
    address: str | None = None
    joining_date: date | None = None
    shift: WorkerShift | None = None
    emergency_contact: EmergencyContact | None = None
    notes: str | None = None

    @field_validator("worker_code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return _upper_code(v)


class WorkerRef(BaseModel):
    id: str
    name: str
    worker_code: str
    worker_type: str | None = None

    model_config = {"from_attributes": True}


class WorkerOut(BaseModel):
    id: str
    worker_code: str
    name: str
    worker_type: str
    phone: str | None
    address: str | None
    joining_date: date | None
    shift: str
    emergency_contact: dict | None
    is_active: bool
    notes: str | None
    created_at: datetime
    updated_at: datetime

    today_production: PeriodTotals | None = None
    month_production: PeriodTotals | None = None
    total_productions: int | None = None

    model_config = {"from_attributes": True}


# ── Machines ─────────────────────────────────────────────────

class MachineCreate(BaseModel):
    machine_code: str = Field(..., max_length=30)
    machine_name: str = Field(..., min_length=1, max_length=200)
    machine_type: str | None = None
    status: MachineStatus = MachineStatus.ACTIVE
    installation_date: date | None = None
    location: str | None = None
    notes: str | None = None
    day_shift_worker_id: str | None = None
    night_shift_worker_id: str | None = None

    @field_validator("machine_code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return _upper_code(v)


class MachineUpdate(BaseModel):
    machine_code: str | None = Field(None, max_length=30)
    machine_name: str | None = Field(None, min_length=1, max_length=200)
    machine_type: str | None = None
    status: MachineStatus | None = None
    installation_date: date | None = None
    location: str | None = None
    notes: str | None = None
    day_shift_worker_id: str | None = None
    night_shift_worker_id: str | None = None

    @field_validator("machine_code")
    @classmethod
    def normalize_code(cls, v: str | None) -> str | None:
        return _upper_code(v)


class AssignWorkerRequest(BaseModel):
    worker_id: str | None
    shift: Shift


class MachineRef(BaseModel):
    id: str
    machine_code: str
    machine_name: str

    model_config = {"from_attributes": True}


class CurrentTakaRef(BaseModel):
    id: str
    taka_number: str
    status: str
    total_meters: float
    target_meters: float

    model_config = {"from_attributes": True}


class MachineOut(BaseModel):
    id: str
    machine_code: str
    machine_name: str
    machine_type: str | None
    status: str
    installation_date: date | None
    location: str | None
    notes: str | None
    day_shift_worker_id: str | None
    night_shift_worker_id: str | None
    current_taka_id: str | None
    is_active: bool
    created_at: datetime
    updated_at: datetime

    day_shift_worker: WorkerRef | None = None
    night_shift_worker: WorkerRef | None = None
    current_taka: CurrentTakaRef | None = None

    today_production: PeriodTotals | None = None
    total_productions: int | None = None

    model_config = {"from_attributes": True}
