import pytest

from fieldroute.services.routing import service as routing_service

from conftest import GARAGE_ID, INACTIVE_GARAGE_ID, SERVICE_DATE, make_ticket, ticket_id

API = "/api"


def _optimize_body(**overrides):
    body = {"date": SERVICE_DATE.isoformat(), "garage_id": GARAGE_ID, "max_per_route": 4}
    body.update(overrides)
    return body


def test_root_and_health(api_client):
    assert api_client.get("/").json()["status"] == "running"
    assert api_client.get(f"{API}/health").json() == {"status": "ok"}
    assert api_client.get(f"{API}/health/osrm").json() == {"service": "haversine", "healthy": True}
    assert api_client.get(f"{API}/health/database").json()["connected"] is True


def test_optimize_endpoint(api_client):
    response = api_client.post(f"{API}/optimize", json=_optimize_body())

    assert response.status_code == 200
    data = response.json()
    assert data["summary"]["total_stops"] == 6
    assert data["summary"]["total_routes"] == len(data["routes"]) == 2
    assert all(route["stop_count"] <= 4 for route in data["routes"])
    assert data["summary"]["balance"]["workloads"]


@pytest.mark.parametrize(
    "body",
    [
        _optimize_body(max_per_route=0),
        _optimize_body(max_per_route=51),
        _optimize_body(date="2025-13-01"),
        _optimize_body(garage_id="123"),
        {"garage_id": GARAGE_ID},
    ],
)
def test_optimize_validation_errors_are_400(api_client, body):
    response = api_client.post(f"{API}/optimize", json=body)

    assert response.status_code == 400
    assert response.json()["code"] == "validation_error"
    assert response.json()["errors"]


def test_optimize_inactive_garage_is_404(api_client):
    response = api_client.post(f"{API}/optimize", json=_optimize_body(garage_id=INACTIVE_GARAGE_ID))

    assert response.status_code == 404
    assert response.json()["code"] == "not_found"


def test_sync_optimize_timeout_is_504(api_client, monkeypatch):
    monkeypatch.setattr(routing_service.settings, "sync_optimize_timeout_seconds", 0)

    def slow_optimize(self, payload):
        import time

        time.sleep(0.2)

    monkeypatch.setattr(routing_service.RouteOptimizer, "optimize", slow_optimize)

    response = api_client.post(f"{API}/optimize", json=_optimize_body())

    assert response.status_code == 504
    assert response.json()["code"] == "timeout"


def test_sync_pool_size_comes_from_settings():
    assert routing_service._EXECUTOR._max_workers == routing_service.settings.sync_optimize_max_workers


def test_async_optimize_then_poll(api_client):
    accepted = api_client.post(f"{API}/optimize/async", json=_optimize_body())

    assert accepted.status_code == 200
    body = accepted.json()
    assert body["status"] == "pending"
    assert body["poll_url"] == f"{API}/jobs/{body['job_id']}"

    # TestClient runs background tasks before returning the response.
    status = api_client.get(body["poll_url"]).json()
    assert status["status"] == "completed"
    assert status["progress"] == 100
    assert "error" not in status

    sync = api_client.post(f"{API}/optimize", json=_optimize_body()).json()
    async_stops = sorted(stop["ticket_id"] for route in status["result"]["routes"] for stop in route["stops"])
    sync_stops = sorted(stop["ticket_id"] for route in sync["routes"] for stop in route["stops"])
    assert async_stops == sync_stops


def test_async_optimize_validates_synchronously(api_client):
    response = api_client.post(f"{API}/optimize/async", json=_optimize_body(max_per_route=0))

    assert response.status_code == 400


def test_failed_job_reports_error(api_client):
    accepted = api_client.post(f"{API}/optimize/async", json=_optimize_body(garage_id=INACTIVE_GARAGE_ID)).json()

    status = api_client.get(accepted["poll_url"]).json()

    assert status["status"] == "failed"
    assert status["error"]["code"] == "not_found"
    assert "result" not in status


def test_job_lookup_errors(api_client):
    assert api_client.get(f"{API}/jobs/not-a-uuid").status_code == 400
    missing = api_client.get(f"{API}/jobs/40000000-0000-4000-8000-000000000000")
    assert missing.status_code == 404
    assert missing.json()["code"] == "not_found"


def test_calculate_endpoint(api_client):
    ids = [ticket_id(3), ticket_id(1)]

    response = api_client.post(f"{API}/calculate", json={"garage_id": GARAGE_ID, "ticket_ids": ids})

    assert response.status_code == 200
    data = response.json()
    assert [stop["ticket_id"] for stop in data["route"]["stops"]] == ids
    assert data["summary"]["total_stops"] == 2


def test_calculate_requires_tickets(api_client):
    response = api_client.post(f"{API}/calculate", json={"garage_id": GARAGE_ID, "ticket_ids": []})

    assert response.status_code == 400


def test_work_estimate_lifecycle(api_client, seeded_store):
    seeded_store.add_ticket(make_ticket(9, 13.74, 100.49))
    tid = ticket_id(9)

    assert api_client.get(f"{API}/work-estimates/ticket/{tid}").status_code == 404

    created = api_client.post(f"{API}/work-estimates", json={"ticket_id": tid, "estimated_minutes": 45})
    assert created.status_code == 200
    assert created.json()["is_new"] is True

    updated = api_client.post(f"{API}/work-estimates", json={"ticket_id": tid, "estimated_minutes": 50})
    assert updated.json()["is_new"] is False
    assert updated.json()["estimate"]["id"] == created.json()["estimate"]["id"]

    fetched = api_client.get(f"{API}/work-estimates/ticket/{tid}").json()
    assert fetched["estimate"]["estimated_minutes"] == 50

    first = api_client.delete(f"{API}/work-estimates/ticket/{tid}")
    second = api_client.delete(f"{API}/work-estimates/ticket/{tid}")
    assert first.status_code == second.status_code == 200
    assert first.json() == second.json()


@pytest.mark.parametrize("minutes", [0, 481])
def test_work_estimate_out_of_range_is_400(api_client, minutes):
    response = api_client.post(
        f"{API}/work-estimates", json={"ticket_id": ticket_id(1), "estimated_minutes": minutes}
    )

    assert response.status_code == 400


@pytest.mark.parametrize("minutes", ["45", 45.0])
def test_work_estimate_minutes_must_be_integers(api_client, minutes):
    response = api_client.post(
        f"{API}/work-estimates", json={"ticket_id": ticket_id(1), "estimated_minutes": minutes}
    )

    assert response.status_code == 400


def test_bulk_upsert_endpoint(api_client):
    response = api_client.post(
        f"{API}/work-estimates/bulk",
        json={
            "estimates": [
                {"ticket_id": ticket_id(1), "estimated_minutes": 60},
                {"ticket_id": ticket_id(2), "estimated_minutes": 999},
                "oops",
            ]
        },
    )

    assert response.status_code == 200
    data = response.json()
    assert data["created"] == 0
    assert data["updated"] == 1
    assert [error["index"] for error in data["errors"]] == [1, 2]


def test_bulk_upsert_limits(api_client):
    assert api_client.post(f"{API}/work-estimates/bulk", json={"estimates": []}).status_code == 400
    oversized = [{"ticket_id": ticket_id(1), "estimated_minutes": 30}] * 101
    assert api_client.post(f"{API}/work-estimates/bulk", json={"estimates": oversized}).status_code == 400


def test_estimates_by_date(api_client):
    data = api_client.get(f"{API}/work-estimates/date/{SERVICE_DATE.isoformat()}").json()

    assert data["date"] == SERVICE_DATE.isoformat()
    assert [row["ticket_id"] for row in data["estimates"]] == [ticket_id(n) for n in range(1, 7)]
    assert api_client.get(f"{API}/work-estimates/date/2025-02-30").status_code == 400


def test_unknown_paths_and_methods_are_404(api_client):
    assert api_client.get(f"{API}/nope").status_code == 404
    response = api_client.put(f"{API}/optimize", json={})
    assert response.status_code == 404
    assert response.json()["code"] == "not_found"
