import pytest

from fieldroute.errors import NotFound, ProviderError, ValidationError
from fieldroute.services.routing.optimizer import RouteOptimizer
from fieldroute.services.travel.provider import TravelMatrix, TravelTimeProvider

from conftest import GARAGE_ID, INACTIVE_GARAGE_ID, SERVICE_DATE, make_ticket, ticket_id


class CountingProvider(TravelTimeProvider):
    """Uniform 10 minute / 1 km legs; records how often it was called."""

    name = "dummy"

    def __init__(self):
        self.calls = 0

    def matrix(self, points, departure=None):
        self.calls += 1
        count = len(points)
        durations = [[0.0 if i == j else 600.0 for j in range(count)] for i in range(count)]
        distances = [[0.0 if i == j else 1000.0 for j in range(count)] for i in range(count)]
        return TravelMatrix(durations=durations, distances=distances)


class FailingProvider(TravelTimeProvider):
    def matrix(self, points, departure=None):
        raise ProviderError("rate limited")


def _request(**overrides):
    payload = {"date": SERVICE_DATE.isoformat(), "garage_id": GARAGE_ID}
    payload.update(overrides)
    return payload


def test_optimize_single_route_covers_all_stops(seeded_store, provider):
    result = RouteOptimizer(seeded_store, provider).optimize(_request())

    assert len(result.routes) == 1
    route = result.routes[0]
    assert route.stop_count == 6
    assert [stop.sequence for stop in route.stops] == [1, 2, 3, 4, 5, 6]
    assert result.summary.total_stops == 6
    assert result.summary.start_time == "08:00"
    assert result.summary.balance is None
    assert result.summary.start_location.garage_id == GARAGE_ID
    assert route.return_travel_minutes > 0


@pytest.mark.parametrize("max_per_route", [1, 2, 3, 4, 5, 6, 50])
def test_max_per_route_is_a_hard_ceiling(seeded_store, provider, max_per_route):
    result = RouteOptimizer(seeded_store, provider).optimize(_request(max_per_route=max_per_route))

    assert all(route.stop_count <= max_per_route for route in result.routes)
    visited = [stop.ticket_id for route in result.routes for stop in route.stops]
    assert sorted(visited) == sorted(ticket_id(n) for n in range(1, 7))
    assert len(visited) == len(set(visited))


@pytest.mark.parametrize("max_per_route", [0, 51])
def test_max_per_route_out_of_range_rejected(seeded_store, provider, max_per_route):
    with pytest.raises(ValidationError):
        RouteOptimizer(seeded_store, provider).optimize(_request(max_per_route=max_per_route))


def test_three_stops_with_max_two(store, provider):
    for n, (lat, lon) in enumerate([(13.76, 100.51), (13.761, 100.511), (13.90, 100.70)], start=1):
        store.add_ticket(make_ticket(n, lat, lon))
        store.upsert_estimate(ticket_id(n), 60, None)

    result = RouteOptimizer(store, provider).optimize(_request(max_per_route=2))

    assert sorted(route.stop_count for route in result.routes) == [1, 2]
    assert result.summary.balance is not None


def test_far_future_date_returns_empty_result(seeded_store, provider):
    counting = CountingProvider()

    result = RouteOptimizer(seeded_store, counting).optimize(_request(date="2099-01-01"))

    assert result.routes == []
    assert result.summary.total_stops == 0
    assert counting.calls == 0


def test_skips_tickets_without_location_or_estimate(seeded_store, provider):
    seeded_store.add_ticket(make_ticket(7, None, None))
    seeded_store.upsert_estimate(ticket_id(7), 30, None)
    seeded_store.add_ticket(make_ticket(8, 13.74, 100.49))

    result = RouteOptimizer(seeded_store, provider).optimize(_request())

    skipped = {item.ticket_id: item.reason for item in result.summary.skipped}
    assert skipped == {ticket_id(7): "no_location", ticket_id(8): "no_estimate"}
    assert result.summary.total_stops == 6


def test_explicit_ticket_ids_limit_candidates(seeded_store, provider):
    unknown = "30000000-0000-4000-8000-000000000001"

    result = RouteOptimizer(seeded_store, provider).optimize(
        _request(ticket_ids=[ticket_id(1), ticket_id(4), unknown])
    )

    visited = {stop.ticket_id for route in result.routes for stop in route.stops}
    assert visited == {ticket_id(1), ticket_id(4)}
    assert [(item.ticket_id, item.reason) for item in result.summary.skipped] == [(unknown, "not_found")]


def test_optimize_is_deterministic(seeded_store, provider):
    optimizer = RouteOptimizer(seeded_store, provider)

    first = optimizer.optimize(_request(max_per_route=2))
    second = optimizer.optimize(_request(max_per_route=2))

    assert first.model_dump() == second.model_dump()


def test_start_time_override(seeded_store, provider):
    result = RouteOptimizer(seeded_store, provider).optimize(_request(start_time="09:15"))

    assert result.routes[0].start_time == "09:15"
    assert result.routes[0].stops[0].arrival_time >= "09:15"


@pytest.mark.parametrize(
    "overrides",
    [
        {"date": "2025-02-30"},
        {"date": "10-03-2025"},
        {"garage_id": "garage-1"},
        {"start_time": "25:00"},
        {"ticket_ids": ["not-a-uuid"]},
        {"balance_mode": "random"},
    ],
)
def test_invalid_requests_raise_validation_error(seeded_store, provider, overrides):
    with pytest.raises(ValidationError):
        RouteOptimizer(seeded_store, provider).optimize(_request(**overrides))


@pytest.mark.parametrize("garage_id", [INACTIVE_GARAGE_ID, "00000000-0000-4000-8000-0000000000ff"])
def test_unknown_or_inactive_garage_is_not_found(seeded_store, provider, garage_id):
    with pytest.raises(NotFound):
        RouteOptimizer(seeded_store, provider).optimize(_request(garage_id=garage_id))


def test_provider_failure_surfaces(seeded_store):
    with pytest.raises(ProviderError):
        RouteOptimizer(seeded_store, FailingProvider()).optimize(_request())


def test_too_many_stops_rejected(store, provider, monkeypatch):
    from fieldroute.config import settings

    monkeypatch.setattr(settings, "max_stops_per_request", 3)
    for n in range(1, 5):
        store.add_ticket(make_ticket(n, 13.7 + n * 0.01, 100.5))
        store.upsert_estimate(ticket_id(n), 30, None)

    with pytest.raises(ValidationError, match="Too many stops"):
        RouteOptimizer(store, provider).optimize(_request())


def test_ortools_strategy_respects_ceiling(seeded_store, provider, monkeypatch):
    from fieldroute.config import settings

    monkeypatch.setattr(settings, "solver_time_limit_seconds", 1)

    result = RouteOptimizer(seeded_store, provider, strategy="ortools").optimize(_request(max_per_route=2))

    assert all(route.stop_count <= 2 for route in result.routes)
    assert result.summary.total_stops == 6


def test_empty_ticket_ids_means_whole_day(seeded_store, provider):
    result = RouteOptimizer(seeded_store, provider).optimize(_request(ticket_ids=[]))

    assert result.summary.total_stops == 6
    assert result.summary.skipped == []


def test_single_digit_hour_is_rejected(seeded_store, provider):
    with pytest.raises(ValidationError):
        RouteOptimizer(seeded_store, provider).optimize(_request(start_time="8:00"))
