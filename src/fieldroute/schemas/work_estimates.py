"""Work estimate request/response schemas."""

from __future__ import annotations

from typing import Any, List, Optional

from pydantic import BaseModel, Field, StrictInt

from ..config import settings
from .common import UUID_PATTERN


class WorkEstimateUpsert(BaseModel):
    ticket_id: str = Field(..., pattern=UUID_PATTERN)
    # Strict: "45" and 45.0 are rejected, matching bulk items.
    estimated_minutes: StrictInt = Field(
        ...,
        ge=settings.min_estimated_minutes,
        le=settings.max_estimated_minutes,
        description="Expected on-site work duration in minutes.",
    )
    notes: Optional[str] = None


class BulkUpsertRequest(BaseModel):
    # Items stay untyped so that one malformed entry is reported per index
    # instead of rejecting the whole batch.
    estimates: List[Any] = Field(..., min_length=1, max_length=settings.bulk_upsert_limit)


class WorkEstimateModel(BaseModel):
    id: str
    ticket_id: str
    estimated_minutes: int
    notes: Optional[str] = None
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class UpsertResponse(BaseModel):
    estimate: WorkEstimateModel
    is_new: bool


class EstimateResponse(BaseModel):
    estimate: WorkEstimateModel


class BulkUpsertError(BaseModel):
    index: int
    ticket_id: Optional[str] = None
    reason: str


class BulkUpsertResponse(BaseModel):
    created: int
    updated: int
    errors: List[BulkUpsertError]


class TicketEstimateModel(BaseModel):
    ticket_id: str
    ticket_code: Optional[str] = None
    site_name: Optional[str] = None
    work_type_name: Optional[str] = None
    appointment_time_start: Optional[str] = None
    appointment_time_end: Optional[str] = None
    work_estimate: Optional[WorkEstimateModel] = None


class DateEstimatesResponse(BaseModel):
    date: str
    estimates: List[TicketEstimateModel]


class DeleteResponse(BaseModel):
    message: str
