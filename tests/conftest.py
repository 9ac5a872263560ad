from datetime import date

import pytest
from fastapi.testclient import TestClient

from fieldroute.api import deps
from fieldroute.main import create_app
from fieldroute.models.domain import Appointment, Garage, Ticket
from fieldroute.persistence.memory import InMemoryRouteStore
from fieldroute.services.travel.provider import HaversineProvider

GARAGE_ID = "00000000-0000-4000-8000-000000000001"
INACTIVE_GARAGE_ID = "00000000-0000-4000-8000-000000000002"
SERVICE_DATE = date(2025, 3, 10)


def ticket_id(n: int) -> str:
    return f"10000000-0000-4000-8000-{n:012d}"


def make_ticket(
    n: int,
    lat: float | None,
    lon: float | None,
    *,
    service_date: date = SERVICE_DATE,
    time_start: str | None = None,
    time_end: str | None = None,
) -> Ticket:
    return Ticket(
        ticket_id=ticket_id(n),
        ticket_code=f"TK-{n:04d}",
        site_name=f"Site {n}",
        address=f"{n} Main Road",
        work_type_name="PM",
        latitude=lat,
        longitude=lon,
        appointment=Appointment(date=service_date, time_start=time_start, time_end=time_end),
    )


@pytest.fixture
def store() -> InMemoryRouteStore:
    store = InMemoryRouteStore()
    store.add_garage(Garage(id=GARAGE_ID, name="Central Garage", latitude=13.75, longitude=100.50))
    store.add_garage(
        Garage(id=INACTIVE_GARAGE_ID, name="Closed Garage", latitude=13.80, longitude=100.55, is_active=False)
    )
    return store


@pytest.fixture
def seeded_store(store: InMemoryRouteStore) -> InMemoryRouteStore:
    """Six located tickets with estimates around the garage, all on SERVICE_DATE."""
    coordinates = [
        (13.76, 100.51),
        (13.77, 100.52),
        (13.78, 100.53),
        (13.70, 100.45),
        (13.69, 100.44),
        (13.68, 100.43),
    ]
    for n, (lat, lon) in enumerate(coordinates, start=1):
        store.add_ticket(make_ticket(n, lat, lon))
        store.upsert_estimate(ticket_id(n), 30 + n * 10, None)
    return store


@pytest.fixture
def provider() -> HaversineProvider:
    return HaversineProvider(speed_kmh=40.0)


@pytest.fixture
def api_client(seeded_store: InMemoryRouteStore, provider: HaversineProvider) -> TestClient:
    app = create_app()
    app.dependency_overrides[deps.get_route_store] = lambda: seeded_store
    app.dependency_overrides[deps.get_provider] = lambda: provider
    return TestClient(app)
