"""Tests for the HTTP API, with the orchestrator dependency overridden."""

import json

import pytest
from fastapi.testclient import TestClient
from google.api_core.exceptions import ServiceUnavailable

from display_update_service.app import main


@pytest.fixture
def orchestrator(build_orchestrator):
    return build_orchestrator()


@pytest.fixture
def client(orchestrator):
    # No context manager: the lifespan would connect to real Firestore
    main.app.dependency_overrides[main.get_orchestrator_dependency] = lambda: orchestrator
    yield TestClient(main.app)
    main.app.dependency_overrides.clear()


class TestCreateEvent:
    def test_creates_and_refreshes_display(self, client, device_calls):
        response = client.post("/api/events", json={"date": "2026/10/17", "text": "Dentist 9am"})

        assert response.status_code == 201
        data = response.json()
        assert data["date"] == "2026-10-17"
        assert data["text"] == "Dentist 9am"
        assert data["device_updated"] is True
        assert data["display_refreshed"] is True
        assert json.loads(device_calls[0].content)["message"] == "Dentist 9am\n\n"

    def test_second_post_updates_same_event(self, client):
        first = client.post("/api/events", json={"date": "2026-10-17", "text": "one"}).json()
        second = client.post("/api/events", json={"date": "2026-10-17", "event": "two"}).json()

        assert first["id"] == second["id"]
        listed = client.get("/api/events/2026-10-17").json()
        assert [e["text"] for e in listed] == ["two"]

    @pytest.mark.parametrize(
        "body",
        [{"text": "no date"}, {"date": "2026-10-17"}, {"date": "17/10/2026", "text": "x"}],
    )
    def test_bad_input_is_400(self, client, body, device_calls):
        assert client.post("/api/events", json=body).status_code == 400
        assert device_calls == []

    def test_text_over_display_budget_is_422(self, client):
        response = client.post("/api/events", json={"date": "2026-10-17", "text": "x" * 82})
        assert response.status_code == 422

    def test_text_at_display_budget_is_accepted(self, client):
        response = client.post("/api/events", json={"date": "2026-10-17", "text": "x" * 81})
        assert response.status_code == 201

    def test_store_failure_is_500(self, client, fake_db):
        fake_db.write_error = ServiceUnavailable("quota exceeded")

        response = client.post("/api/events", json={"date": "2026-10-17", "text": "x"})

        assert response.status_code == 500

    def test_device_failure_is_reported_in_flags(self, build_orchestrator):
        orchestrator = build_orchestrator(device_status=500)
        main.app.dependency_overrides[main.get_orchestrator_dependency] = lambda: orchestrator
        try:
            response = TestClient(main.app).post(
                "/api/events", json={"date": "2026-10-17", "text": "x"}
            )
        finally:
            main.app.dependency_overrides.clear()

        assert response.status_code == 201
        assert response.json()["device_updated"] is False
        assert response.json()["display_refreshed"] is True


class TestBatchAndQueries:
    def test_batch_upserts_each_item(self, client, device_calls):
        response = client.post(
            "/api/events/batch",
            json={
                "events": [
                    {"date": "2026/10/17", "text": "Bins out"},
                    {"date": "2026-10-18", "text": "Dentist"},
                ]
            },
        )

        assert response.status_code == 200
        summary = response.json()
        assert summary["total"] == 2
        assert summary["succeeded"] == 2
        assert summary["failed"] == 0
        assert len(device_calls) == 1

    def test_batch_rejects_invalid_item(self, client):
        response = client.post(
            "/api/events/batch", json={"events": [{"date": "tomorrow", "text": "x"}]}
        )
        assert response.status_code == 400

    def test_list_accepts_slash_dates(self, client):
        client.post("/api/events", json={"date": "2026-10-17", "text": "Dentist"})

        response = client.get("/api/events/2026/10/17")

        assert response.status_code == 200
        assert [e["text"] for e in response.json()] == ["Dentist"]

    def test_list_bad_date_is_400(self, client):
        assert client.get("/api/events/someday").status_code == 400

    def test_display_renders_stored_data(self, client):
        client.post("/api/events", json={"date": "2026-10-17", "text": "Dentist"})

        response = client.get("/api/display")

        assert response.status_code == 200
        assert response.json()["header_text"] == "2026/10/17"
        assert response.json()["body_text"] == "Dentist\n\n"


class TestScheduler:
    def test_successful_run_is_200(self, client):
        response = client.post("/scheduler/run-scheduled-update")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["trigger"] == "scheduled"
        assert data["metrics"]["collections_stored"] == 2

    def test_failed_run_is_500(self, client, fake_db):
        fake_db.query_error = ServiceUnavailable("firestore down")

        response = client.post("/scheduler/run-scheduled-update")

        assert response.status_code == 500
        assert response.json()["success"] is False
        assert "firestore down" in response.json()["error"]


class TestServiceEndpoints:
    def test_root(self, client):
        assert client.get("/").status_code == 200

    def test_health_degraded_before_startup(self, client):
        data = client.get("/health").json()

        assert data["status"] == "degraded"
        assert data["firestore_healthy"] is False

    def test_not_ready_without_orchestrator(self):
        main.app.dependency_overrides.clear()
        response = TestClient(main.app).get("/api/display")
        assert response.status_code == 503
