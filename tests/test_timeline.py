from fieldroute.config import settings
from fieldroute.services.routing.models import Leg, Stop
from fieldroute.services.routing.timeline import build_route, format_minutes, parse_hhmm

from conftest import make_ticket


def _stop(n, minutes, time_start=None, time_end=None):
    return Stop(
        ticket=make_ticket(n, 13.7, 100.5, time_start=time_start, time_end=time_end),
        estimated_minutes=minutes,
    )


def test_clock_helpers():
    assert parse_hhmm("08:00") == 480
    assert parse_hhmm("7:05") == 425
    assert parse_hhmm("09:30:00") == 570
    assert format_minutes(481.6) == "08:02"
    assert format_minutes(25 * 60 + 10) == "25:10"


def test_build_route_accumulates_travel_and_work():
    stops = [_stop(1, 60), _stop(2, 30)]
    legs = [Leg(seconds=600, meters=5000), Leg(seconds=1200, meters=8000)]

    route = build_route(1, stops, legs, Leg(seconds=900, meters=6000), "08:00", "17:30")

    first, second = route.stops
    assert (first.arrival_time, first.departure_time) == ("08:10", "09:10")
    assert (second.arrival_time, second.departure_time) == ("09:30", "10:00")
    assert second.cumulative_travel_minutes == 30.0
    assert second.cumulative_distance_meters == 13000.0
    assert route.return_travel_minutes == 15.0
    assert route.travel_minutes == 45.0
    assert route.work_minutes == 90.0
    assert route.duration_minutes == 135.0
    assert route.distance_meters == 19000.0
    assert route.end_time == "10:15"
    assert route.overtime_stops == 0


def test_appointment_window_statuses():
    stops = [
        _stop(1, 30, "09:00", "10:00"),
        _stop(2, 30, "09:00", "10:00"),
        _stop(3, 30, "08:00", "08:30"),
        _stop(4, 30),
    ]
    legs = [Leg(seconds=600, meters=0)] * 4

    route = build_route(1, stops, legs, None, "08:00", "17:30")

    early, on_time, late, no_window = route.stops
    assert early.appointment_status == "early_wait"
    assert early.work_start == "09:00"
    assert early.wait_minutes == 50.0
    assert on_time.appointment_status == "on_time"
    assert late.appointment_status == "late"
    assert no_window.appointment_status == "no_window"


def test_overtime_flags_departures_after_work_end():
    stops = [_stop(1, 240), _stop(2, 240), _stop(3, 120)]
    legs = [Leg(seconds=0, meters=0)] * 3

    route = build_route(1, stops, legs, None, "08:00", "17:30")

    assert [stop.is_overtime for stop in route.stops] == [False, False, True]
    assert route.overtime_stops == 1


def test_arrival_during_lunch_waits_for_it_to_end():
    route = build_route(1, [_stop(1, 30)], [Leg(seconds=4 * 3600 + 600, meters=0)], None, "08:00", "17:30")

    stop = route.stops[0]
    assert stop.arrival_time == "12:10"
    assert stop.work_start == "13:00"
    assert stop.departure_time == "13:30"
    assert stop.lunch_break.start == "12:00"
    assert stop.lunch_break.end == "13:00"


def test_work_spanning_lunch_is_split_around_it():
    # 11:30 arrival leaves 30 minutes before lunch, the other 60 follow it
    stops = [_stop(1, 90), _stop(2, 30)]
    legs = [Leg(seconds=3.5 * 3600, meters=0), Leg(seconds=0, meters=0)]

    route = build_route(1, stops, legs, None, "08:00", "17:30")

    split, after = route.stops
    assert (split.arrival_time, split.work_start, split.departure_time) == ("11:30", "11:30", "14:00")
    assert split.lunch_break.duration == 60
    assert after.lunch_break is None
    assert after.departure_time == "14:30"


def test_short_slot_before_lunch_defers_the_job():
    route = build_route(1, [_stop(1, 60)], [Leg(seconds=3.75 * 3600 + 300, meters=0)], None, "08:00", "17:30")

    stop = route.stops[0]
    assert stop.arrival_time == "11:50"
    assert stop.work_start == "13:00"
    assert stop.departure_time == "14:00"
    assert stop.wait_minutes == 70.0


def test_lunch_is_taken_once_and_can_be_disabled(monkeypatch):
    stops = [_stop(1, 30), _stop(2, 30)]
    legs = [Leg(seconds=4 * 3600, meters=0), Leg(seconds=0, meters=0)]

    route = build_route(1, stops, legs, None, "08:00", "17:30")
    assert route.stops[0].work_start == "13:00"
    assert route.stops[1].lunch_break is None
    assert route.stops[1].work_start == "13:30"

    monkeypatch.setattr(settings, "lunch_break_enabled", False)
    route = build_route(1, stops, legs, None, "08:00", "17:30")
    assert route.stops[0].work_start == "12:00"
    assert route.stops[0].lunch_break is None
