"""Response envelopes shared by every router."""

from typing import Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class DataResponse(BaseModel, Generic[T]):
    """Single-object wrapper.

    Returns:
        {"success": true, "data": {...}}
    """
    success: bool = True
    data: T


class ListResponse(BaseModel, Generic[T]):
    """List wrapper with an item count.

    Returns:
        {"success": true, "count": 3, "data": [...]}
    """
    success: bool = True
    count: int
    data: list[T]

    @classmethod
    def of(cls, items: list) -> "ListResponse":
        return cls(count=len(items), data=items)


class MessageResponse(BaseModel):
    success: bool = True
    message: str
    data: dict = {}


class IdList(BaseModel):
    """Payload for bulk endpoints."""
    ids: list[str]


class PeriodTotals(BaseModel):
    """count / meters / earnings over some window."""
    count: int = 0
    total_meters: float = 0.0
    total_earnings: float = 0.0
