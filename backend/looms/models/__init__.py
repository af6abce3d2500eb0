"""Aggregate model imports for Alembic auto-detection."""

from looms.models.quality_grade import QualityGrade  # noqa: F401
from looms.models.worker import Worker, WorkerShift, WorkerType  # noqa: F401
from looms.models.machine import Machine, MachineStatus  # noqa: F401
from looms.models.taka import STATUS_TRANSITIONS, Taka, TakaStatus  # noqa: F401
from looms.models.production import ProductionEntry, Shift  # noqa: F401

__all__ = [
    "QualityGrade", "Worker", "WorkerShift", "WorkerType",
    "Machine", "MachineStatus", "Taka", "TakaStatus", "STATUS_TRANSITIONS",
    "ProductionEntry", "Shift",
]
