"""Pydantic schemas for lot (taka) CRUD and the ledger check."""

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

from looms.models.taka import TakaStatus
from looms.schemas.reference import MachineRef, QualityRef


class TakaCreate(BaseModel):
    taka_number: str = Field(..., max_length=50)
    machine_id: str
    quality_id: str
    target_meters: Decimal = Field(Decimal("0"), ge=0, max_digits=12, decimal_places=2)
    start_date: date | None = None
    notes: str | None = None

    @field_validator("taka_number")
    @classmethod
    def normalize_number(cls, v: str) -> str:
        v = v.strip().upper()
        if not v:
            raise ValueError("Lot number cannot be blank")
        return v


class TakaUpdate(BaseModel):
    """Editable lot fields.  Ledger totals and the rate are never accepted."""
    machine_id: str | None = None
    target_meters: Decimal | None = Field(None, ge=0, max_digits=12, decimal_places=2)
    status: TakaStatus | None = None
    notes: str | None = None


class TakaRef(BaseModel):
    id: str
    taka_number: str
    status: str | None = None

    model_config = {"from_attributes": True}


class TakaOut(BaseModel):
    id: str
    taka_number: str
    machine_id: str
    quality_id: str
    rate_per_meter: float
    target_meters: float
    total_meters: float
    total_earnings: float
    status: str
    start_date: date | None
    end_date: datetime | None
    notes: str | None
    created_at: datetime
    updated_at: datetime

    machine: MachineRef | None = None
    quality: QualityRef | None = None

    # Filled on list responses
    production_count: int | None = None
    remaining_meters: float | None = None

    model_config = {"from_attributes": True}


class LedgerDrift(BaseModel):
    """A lot whose stored totals disagree with the sum of its entries."""
    taka_id: str
    taka_number: str
    stored_meters: float
    entry_meters: float
    stored_earnings: float
    expected_earnings: float
    entry_count: int
