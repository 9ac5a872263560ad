"""Clock arithmetic and per-stop timing for an ordered route."""

from __future__ import annotations

from typing import Optional, Sequence

from ...config import settings
from .models import Leg, LunchBreak, PlannedRoute, PlannedStop, Stop


def parse_hhmm(value: str) -> int:
    hours, minutes = value.split(":")[:2]
    return int(hours) * 60 + int(minutes)


def format_minutes(total: float) -> str:
    """Render minutes since midnight; times past midnight keep counting hours."""
    rounded = int(round(total))
    return f"{rounded // 60:02d}:{rounded % 60:02d}"


def _appointment_window(stop: Stop) -> Optional[tuple[int, int]]:
    appointment = stop.ticket.appointment
    if appointment is None or not appointment.time_start or not appointment.time_end:
        return None
    return parse_hhmm(appointment.time_start), parse_hhmm(appointment.time_end)


def _appointment_status(arrival: float, window: Optional[tuple[int, int]]) -> str:
    if window is None:
        return "no_window"
    start, end = window
    if arrival < start:
        return "early_wait"
    if arrival <= end:
        return "on_time"
    return "late"


def _lunch_window() -> Optional[tuple[int, int]]:
    if not settings.lunch_break_enabled or settings.lunch_duration_minutes <= 0:
        return None
    start = parse_hhmm(settings.lunch_start_time)
    return start, start + settings.lunch_duration_minutes


def _place_lunch(
    ready: float, minutes: int, lunch: tuple[int, int]
) -> tuple[float, float, Optional[LunchBreak], bool]:
    """Fit the day's lunch around one job.

    Returns ``(work_start, departure, lunch_break, lunch_done)``. Arriving
    during lunch waits for its end. Work that would run into lunch is split
    around it, unless fewer than ``lunch_min_work_before_minutes`` remain
    before lunch, in which case the job starts after lunch.
    """
    lunch_start, lunch_end = lunch
    taken = LunchBreak(
        start=format_minutes(lunch_start),
        end=format_minutes(lunch_end),
        duration=lunch_end - lunch_start,
    )
    if lunch_start <= ready < lunch_end:
        return lunch_end, lunch_end + minutes, taken, True
    if ready >= lunch_end:
        return ready, ready + minutes, None, True
    if ready + minutes <= lunch_start:
        return ready, ready + minutes, None, False
    before = lunch_start - ready
    if before < settings.lunch_min_work_before_minutes:
        return lunch_end, lunch_end + minutes, taken, True
    return ready, lunch_end + (minutes - before), taken, True


def build_route(
    route_number: int,
    stops: Sequence[Stop],
    legs: Sequence[Leg],
    return_leg: Optional[Leg],
    start_time: str,
    work_end_time: str | None = None,
) -> PlannedRoute:
    """Walk the stops in order, accumulating travel, waiting and work.

    ``legs[i]`` is the hop into ``stops[i]``; ``return_leg`` is the hop back
    to the garage after the last stop.
    """
    if len(legs) != len(stops):
        raise ValueError("Each stop needs exactly one inbound leg.")
    work_end = parse_hhmm(work_end_time or settings.work_end_time)
    start = parse_hhmm(start_time)
    clock = float(start)
    travel_total = 0.0
    distance_total = 0.0
    work_total = 0.0
    overtime = 0
    lunch = _lunch_window()
    lunch_done = False
    planned: list[PlannedStop] = []

    for index, (stop, leg) in enumerate(zip(stops, legs), start=1):
        travel_minutes = leg.seconds / 60.0
        arrival = clock + travel_minutes
        window = _appointment_window(stop)
        ready = max(arrival, window[0]) if window else arrival
        lunch_break = None
        if lunch is not None and not lunch_done:
            work_start, departure, lunch_break, lunch_done = _place_lunch(ready, stop.estimated_minutes, lunch)
        else:
            work_start, departure = ready, ready + stop.estimated_minutes
        is_overtime = departure > work_end

        travel_total += travel_minutes
        distance_total += leg.meters
        work_total += stop.estimated_minutes
        overtime += int(is_overtime)

        appointment = stop.ticket.appointment
        planned.append(
            PlannedStop(
                sequence=index,
                ticket_id=stop.ticket_id,
                ticket_code=stop.ticket.ticket_code,
                site_name=stop.ticket.site_name,
                address=stop.ticket.address,
                work_type_name=stop.ticket.work_type_name,
                latitude=stop.ticket.latitude,
                longitude=stop.ticket.longitude,
                appointment_time_start=appointment.time_start if appointment else None,
                appointment_time_end=appointment.time_end if appointment else None,
                estimated_minutes=stop.estimated_minutes,
                travel_minutes_from_previous=round(travel_minutes, 1),
                distance_meters_from_previous=round(leg.meters, 1),
                cumulative_travel_minutes=round(travel_total, 1),
                cumulative_distance_meters=round(distance_total, 1),
                arrival_time=format_minutes(arrival),
                work_start=format_minutes(work_start),
                departure_time=format_minutes(departure),
                wait_minutes=round(work_start - arrival, 1),
                is_overtime=is_overtime,
                appointment_status=_appointment_status(arrival, window),
                travel_estimated=leg.estimated,
                estimate_missing=stop.estimate_missing,
                lunch_break=lunch_break,
            )
        )
        clock = departure

    return_minutes = return_leg.seconds / 60.0 if return_leg else 0.0
    return_meters = return_leg.meters if return_leg else 0.0
    clock += return_minutes
    travel_total += return_minutes
    distance_total += return_meters

    return PlannedRoute(
        route_number=route_number,
        stops=planned,
        distance_meters=round(distance_total, 1),
        travel_minutes=round(travel_total, 1),
        work_minutes=round(work_total, 1),
        duration_minutes=round(travel_total + work_total, 1),
        return_travel_minutes=round(return_minutes, 1),
        return_distance_meters=round(return_meters, 1),
        start_time=format_minutes(start),
        end_time=format_minutes(clock),
        overtime_stops=overtime,
    )
