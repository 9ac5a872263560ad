"""Routing domain models."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from ...models.domain import Ticket


@dataclass(slots=True)
class Stop:
    """A ticket resolved for routing: location plus work duration."""

    ticket: Ticket
    estimated_minutes: int
    estimate_missing: bool = False

    @property
    def ticket_id(self) -> str:
        return self.ticket.ticket_id

    @property
    def location(self) -> Optional[tuple[float, float]]:
        if not self.ticket.has_location:
            return None
        return (self.ticket.latitude, self.ticket.longitude)


@dataclass(slots=True)
class Leg:
    seconds: float
    meters: float
    estimated: bool = False


@dataclass(slots=True)
class LunchBreak:
    start: str
    end: str
    duration: int


@dataclass(slots=True)
class PlannedStop:
    sequence: int
    ticket_id: str
    ticket_code: Optional[str]
    site_name: Optional[str]
    address: Optional[str]
    work_type_name: Optional[str]
    latitude: Optional[float]
    longitude: Optional[float]
    appointment_time_start: Optional[str]
    appointment_time_end: Optional[str]
    estimated_minutes: int
    travel_minutes_from_previous: float
    distance_meters_from_previous: float
    cumulative_travel_minutes: float
    cumulative_distance_meters: float
    arrival_time: str
    work_start: str
    departure_time: str
    wait_minutes: float
    is_overtime: bool
    appointment_status: str
    travel_estimated: bool = False
    estimate_missing: bool = False
    lunch_break: Optional[LunchBreak] = None


@dataclass(slots=True)
class PlannedRoute:
    route_number: int
    stops: List[PlannedStop]
    distance_meters: float
    travel_minutes: float
    work_minutes: float
    duration_minutes: float
    return_travel_minutes: float
    return_distance_meters: float
    start_time: str
    end_time: str
    overtime_stops: int

    @property
    def stop_count(self) -> int:
        return len(self.stops)


@dataclass(slots=True)
class SkippedTicket:
    ticket_id: str
    reason: str


@dataclass(slots=True)
class BalanceMetrics:
    coefficient_of_variation: float
    is_balanced: bool
    workloads: List[float] = field(default_factory=list)
    mean_workload: float = 0.0
    standard_deviation: float = 0.0
