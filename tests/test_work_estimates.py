import pytest

from fieldroute.errors import NotFound, ValidationError
from fieldroute.services.work_estimates.service import WorkEstimateService

from conftest import SERVICE_DATE, make_ticket, ticket_id

UNKNOWN_TICKET = "20000000-0000-4000-8000-000000000099"


@pytest.fixture
def service(store):
    store.add_ticket(make_ticket(1, 13.76, 100.51))
    store.add_ticket(make_ticket(2, 13.77, 100.52))
    return WorkEstimateService(store)


@pytest.mark.parametrize("minutes", [1, 480])
def test_upsert_accepts_bounds(service, minutes):
    estimate, is_new = service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": minutes})

    assert is_new is True
    assert estimate.estimated_minutes == minutes


@pytest.mark.parametrize("minutes", [0, 481, -5, None, "30", 12.5])
def test_upsert_rejects_out_of_range_minutes(service, store, minutes):
    with pytest.raises(ValidationError):
        service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": minutes})

    assert store.get_estimate(ticket_id(1)) is None


def test_upsert_second_call_updates_in_place(service):
    first, created = service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": 45, "notes": "initial"})
    second, created_again = service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": 90})

    assert created is True
    assert created_again is False
    assert second.id == first.id
    assert second.estimated_minutes == 90
    assert second.notes is None


def test_upsert_validates_ticket_id(service):
    with pytest.raises(ValidationError, match="ticket_id is required"):
        service.upsert({"estimated_minutes": 30})
    with pytest.raises(ValidationError, match="invalid ticket_id"):
        service.upsert({"ticket_id": "not-a-uuid", "estimated_minutes": 30})


def test_upsert_unknown_ticket_is_not_found(service):
    with pytest.raises(NotFound):
        service.upsert({"ticket_id": UNKNOWN_TICKET, "estimated_minutes": 30})


@pytest.mark.parametrize("count", [0, 101])
def test_bulk_rejects_empty_and_oversized_batches(service, store, count):
    items = [{"ticket_id": ticket_id(1), "estimated_minutes": 30}] * count

    with pytest.raises(ValidationError):
        service.bulk_upsert(items)

    assert store.get_estimate(ticket_id(1)) is None


def test_bulk_mixed_batch_reports_invalid_item(service):
    service.upsert({"ticket_id": ticket_id(2), "estimated_minutes": 20})

    result = service.bulk_upsert([
        {"ticket_id": ticket_id(1), "estimated_minutes": 60},
        {"ticket_id": ticket_id(2), "estimated_minutes": 481},
        {"ticket_id": ticket_id(2), "estimated_minutes": 75},
    ])

    assert result.created == 1
    assert result.updated == 1
    assert len(result.errors) == 1
    assert result.errors[0].index == 1
    assert result.errors[0].ticket_id == ticket_id(2)
    assert "between 1 and 480" in result.errors[0].reason


def test_bulk_unknown_ticket_reported_as_not_found(service):
    result = service.bulk_upsert([
        {"ticket_id": ticket_id(1), "estimated_minutes": 60},
        {"ticket_id": UNKNOWN_TICKET, "estimated_minutes": 60},
    ])

    assert result.created == 1
    assert result.updated == 0
    assert [(error.index, error.reason) for error in result.errors] == [(1, "not found")]


def test_bulk_errors_are_ordered_by_index(service):
    result = service.bulk_upsert([
        {"ticket_id": UNKNOWN_TICKET, "estimated_minutes": 60},
        {"ticket_id": "bad", "estimated_minutes": 60},
        {"estimated_minutes": 60},
    ])

    assert [error.index for error in result.errors] == [0, 1, 2]
    assert [error.reason for error in result.errors] == ["not found", "invalid ticket_id", "ticket_id is required"]


def test_get_by_ticket(service):
    service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": 45})

    assert service.get_by_ticket(ticket_id(1)).estimated_minutes == 45
    with pytest.raises(NotFound):
        service.get_by_ticket(ticket_id(2))
    with pytest.raises(ValidationError):
        service.get_by_ticket("abc")


def test_delete_is_idempotent(service, store):
    service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": 45})

    first = service.delete_by_ticket(ticket_id(1))
    second = service.delete_by_ticket(ticket_id(1))

    assert first == second
    assert store.get_estimate(ticket_id(1)) is None


def test_get_by_date_includes_tickets_without_estimates(service):
    service.upsert({"ticket_id": ticket_id(1), "estimated_minutes": 45})

    rows = service.get_by_date(SERVICE_DATE.isoformat())

    assert [row.ticket_id for row in rows] == [ticket_id(1), ticket_id(2)]
    assert rows[0].work_estimate.estimated_minutes == 45
    assert rows[1].work_estimate is None


def test_get_by_date_empty_and_invalid(service):
    assert service.get_by_date("2099-12-31") == []
    with pytest.raises(ValidationError):
        service.get_by_date("2025-02-30")
    with pytest.raises(ValidationError):
        service.get_by_date("10/03/2025")
