"""Routing request/response schemas."""

from __future__ import annotations

from datetime import date as date_type
from typing import List, Literal, Optional

from pydantic import BaseModel, Field, field_validator

from ..config import settings
from .common import DATE_PATTERN, TIME_PATTERN, UUID_PATTERN, is_uuid

BalanceMode = Literal["geography", "workload", "balanced"]
AppointmentStatus = Literal["on_time", "early_wait", "late", "no_window"]


def _check_ticket_ids(value: Optional[List[str]]) -> Optional[List[str]]:
    if value is None:
        return value
    for index, ticket_id in enumerate(value):
        if not is_uuid(ticket_id):
            raise ValueError(f"ticket_ids[{index}] must be a valid UUID")
    return value


class OptimizeRequest(BaseModel):
    date: str = Field(..., pattern=DATE_PATTERN, description="Service date (YYYY-MM-DD).")
    garage_id: str = Field(..., pattern=UUID_PATTERN)
    ticket_ids: Optional[List[str]] = Field(
        default=None,
        description="Restrict optimization to these tickets. Omitted or empty means every ticket scheduled on the date.",
    )
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)
    max_per_route: Optional[int] = Field(
        default=None,
        ge=settings.min_per_route,
        le=settings.max_per_route,
        description="Hard ceiling of stops per route. Omit for a single route.",
    )
    balance_mode: BalanceMode = "balanced"

    @field_validator("date")
    @classmethod
    def _check_calendar_date(cls, value: str) -> str:
        try:
            date_type.fromisoformat(value)
        except ValueError as exc:
            raise ValueError("date is not a valid calendar date") from exc
        return value

    @field_validator("ticket_ids")
    @classmethod
    def _check_ticket_ids(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        return _check_ticket_ids(value)


class CalculateRequest(BaseModel):
    garage_id: str = Field(..., pattern=UUID_PATTERN)
    ticket_ids: List[str] = Field(..., min_length=1)
    start_time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)

    @field_validator("ticket_ids")
    @classmethod
    def _check_ticket_ids(cls, value: List[str]) -> List[str]:
        return _check_ticket_ids(value)


class LunchBreakModel(BaseModel):
    start: str
    end: str
    duration: int


class StopModel(BaseModel):
    sequence: int
    ticket_id: str
    ticket_code: Optional[str] = None
    site_name: Optional[str] = None
    address: Optional[str] = None
    work_type_name: Optional[str] = None
    latitude: Optional[float] = None
    longitude: Optional[float] = None
    appointment_time_start: Optional[str] = None
    appointment_time_end: Optional[str] = None
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
    appointment_status: AppointmentStatus
    travel_estimated: bool = False
    estimate_missing: bool = False
    lunch_break: Optional[LunchBreakModel] = None


class RouteModel(BaseModel):
    route_number: int
    stop_count: int
    stops: List[StopModel]
    distance_meters: float
    travel_minutes: float
    work_minutes: float
    duration_minutes: float
    return_travel_minutes: float
    return_distance_meters: float
    start_time: str
    end_time: str
    overtime_stops: int


class StartLocationModel(BaseModel):
    garage_id: str
    name: str
    latitude: float
    longitude: float


class SkippedTicketModel(BaseModel):
    ticket_id: str
    reason: Literal["no_location", "no_estimate", "not_found"]


class BalanceMetricsModel(BaseModel):
    coefficient_of_variation: float
    is_balanced: bool
    workloads: List[float]
    mean_workload: float
    standard_deviation: float


class RouteSummaryModel(BaseModel):
    total_routes: int
    total_stops: int
    total_distance: float
    total_duration: float
    total_travel_minutes: float
    total_work_minutes: float
    start_time: str
    end_time: str
    overtime_stops: int
    start_location: StartLocationModel
    skipped: List[SkippedTicketModel] = Field(default_factory=list)
    balance_mode: Optional[BalanceMode] = None
    balance: Optional[BalanceMetricsModel] = None


class OptimizeResponse(BaseModel):
    routes: List[RouteModel]
    summary: RouteSummaryModel


class CalculateResponse(BaseModel):
    route: RouteModel
    summary: RouteSummaryModel
