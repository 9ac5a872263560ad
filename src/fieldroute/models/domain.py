"""Domain models for garages, tickets, estimates and optimization jobs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Optional


@dataclass(slots=True)
class Garage:
    """A depot where technician vehicles start and end their day."""

    id: str
    name: str
    latitude: float
    longitude: float
    radius_meters: Optional[float] = None
    is_active: bool = True


@dataclass(slots=True)
class Appointment:
    date: Optional[date]
    time_start: Optional[str] = None
    time_end: Optional[str] = None
    type: Optional[str] = None


@dataclass(slots=True)
class Ticket:
    """A unit of field work, joined with its site and appointment."""

    ticket_id: str
    ticket_code: Optional[str] = None
    site_name: Optional[str] = None
    address: Optional[str] = None
    work_type_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    appointment: Optional[Appointment] = None

    @property
    def has_location(self) -> bool:
        return self.latitude is not None and self.longitude is not None


@dataclass(slots=True)
class WorkEstimate:
    id: str
    ticket_id: str
    estimated_minutes: int
    notes: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "estimated_minutes": self.estimated_minutes,
            "notes": self.notes,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }


class JobStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (JobStatus.COMPLETED, JobStatus.FAILED)


@dataclass(slots=True)
class OptimizationJob:
    """Queued optimize request together with its lifecycle state."""

    id: str
    status: JobStatus
    garage_id: str
    date: str
    input_params: dict = field(default_factory=dict)
    result: Optional[dict] = None
    error: Optional[dict] = None
    created_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    claimed_by: Optional[str] = None
