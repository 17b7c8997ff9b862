"""HTTP tests for the FastAPI app: identity headers, error mapping and the main flows."""
from __future__ import annotations

import time

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.exc import OperationalError

from api.app import create_app, status_for
from api.deps import get_db, get_readonly_db
from core.exceptions import (
    AddressRequiredError,
    ExternalServiceError,
    NotFoundError,
    PropBrainError,
    RateLimitError,
    ValidationError,
    VisitCompletionError,
)
from domain.intake import IntakeSessionStore

BUYER = {"X-User-Id": "user-buyer", "X-User-Email": "buyer@example.com"}
CONTRACTOR = {"X-User-Id": "user-contractor", "X-User-Email": "contractor@example.com", "X-User-Role": "Contractor"}


@pytest.fixture
def intake_store(stub_fetcher, failed_extractor, make_address_validator):
    return IntakeSessionStore(
        fetcher=stub_fetcher,
        extractor=failed_extractor,
        address_validator=make_address_validator(),
        debounce_seconds=0.01,
    )


@pytest.fixture
def client(db_session, intake_store):
    app = create_app(intake_store=intake_store)

    def override_db():
        yield db_session

    app.dependency_overrides[get_db] = override_db
    app.dependency_overrides[get_readonly_db] = override_db
    with TestClient(app) as test_client:
        yield test_client


@pytest.mark.parametrize(
    "error,status",
    [
        (ValidationError("x"), 400),
        (NotFoundError("x"), 404),
        (AddressRequiredError("x"), 409),
        (VisitCompletionError("x", "v", "p"), 409),
        (RateLimitError("x"), 429),
        (ExternalServiceError("x"), 502),
        (PropBrainError("x"), 500),
    ],
)
def test_status_for(error, status):
    assert status_for(error) == status


class TestIdentity:
    def test_missing_user_is_401(self, client):
        assert client.get("/folders").status_code == 401

    def test_unknown_role_is_400(self, client):
        response = client.get("/folders", headers={"X-User-Id": "u", "X-User-Role": "Landlord"})
        assert response.status_code == 400

    def test_health_needs_no_identity(self, client):
        response = client.get("/health/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestFoldersAndProperties:
    def test_create_folder_then_property_into_it(self, client):
        created = client.post("/folders", json={"name": "Chamberí", "budget": 400000}, headers=BUYER)
        assert created.status_code == 201
        folder_id = created.json()["folder"]["id"]
        assert [f["id"] for f in created.json()["folders"]] == [folder_id]

        prop = client.post(
            "/properties",
            json={"fields": {"title": "Ático", "price": 250000, "rooms": 3}, "active_folder_id": folder_id},
            headers=BUYER,
        )
        assert prop.status_code == 201
        assert prop.json()["property"]["folder_id"] == folder_id

        listing = client.get("/properties", params={"max_price": "300000", "min_rooms": "2"}, headers=BUYER).json()
        assert listing["total"] == 1
        assert listing["active_filters"] == 2

        metrics = client.get(f"/folders/{folder_id}", headers=BUYER).json()["metrics"]
        assert metrics["asset_count"] == 1
        assert metrics["budget_remaining"] == 150000

    def test_property_without_any_folder_is_409(self, client):
        response = client.post("/properties", json={"fields": {"title": "X"}}, headers=BUYER)
        assert response.status_code == 409
        assert response.json()["error"] == "folder_required"

    def test_bad_filter_is_400(self, client, folder):
        response = client.get("/properties", params={"max_price": "cheap"}, headers=BUYER)
        assert response.status_code == 400

    def test_delete_folder_requires_confirm(self, client, folder):
        assert client.delete(f"/folders/{folder.id}", headers=BUYER).status_code == 409

        response = client.delete(f"/folders/{folder.id}", params={"confirm": "true"}, headers=BUYER)
        assert response.status_code == 200
        assert response.json()["folders"] == []

    def test_contractor_is_forbidden(self, client, buyer, folder, make_property):
        client.post(f"/folders/{folder.id}/shares", json={"email": "contractor@example.com", "permission": "edit"}, headers=BUYER)
        prop = make_property()

        response = client.put(f"/properties/{prop.id}/status", json={"status": "Offered"}, headers=CONTRACTOR)
        assert response.status_code == 403
        assert response.json()["error"] == "permission_denied"

    def test_report(self, client, folder, make_property):
        make_property()
        report = client.get(f"/folders/{folder.id}/report", headers=BUYER).json()
        assert len(report["properties"]) == 1


class TestVisitsAndItinerary:
    def test_schedule_complete_and_share(self, client, folder, make_property):
        prop = make_property()
        visit = client.post(
            "/visits", json={"property_id": prop.id, "date": "2026-05-01", "time": "11:00"}, headers=BUYER
        ).json()["visit"]
        assert len(visit["checklist"]) == 3

        completed = client.post(f"/visits/{visit['id']}/complete", headers=BUYER)
        assert completed.json()["visit"]["status"] == "Completed"
        assert client.get(f"/properties/{prop.id}", headers=BUYER).json()["status"] == "Visited"

        itinerary = client.post("/itineraries", json={"folder_id": folder.id}, headers=BUYER)
        itinerary_id = itinerary.json()["itinerary"]["id"]

        public = client.get(f"/shared/{itinerary_id}")
        assert public.status_code == 200
        assert [stop["visit_id"] for stop in public.json()["visits"]] == [visit["id"]]

        feedback = client.post(
            f"/shared/{itinerary_id}/visits/{visit['id']}/feedback", json={"feedback": "Me gusta"}
        )
        assert feedback.json()["client_feedback"] == "Me gusta"

    def test_unknown_itinerary_is_404(self, client):
        assert client.get("/shared/missing").status_code == 404


class TestIntakeFlow:
    def _wait_for_verdict(self, client, session_id):
        for _ in range(100):
            session = client.get(f"/intake/sessions/{session_id}", headers=BUYER).json()
            if session["address_validation"]["status"] not in ("validating",):
                return session
            time.sleep(0.02)
        raise AssertionError("address validation never resolved")

    def test_link_to_property(self, client, folder):
        queued = client.post("/intake/links", json={"text": "Mira https://pisos.test/1", "folder_id": folder.id}, headers=BUYER)
        link_id = queued.json()["queued"][0]["id"]

        session = client.post("/intake/sessions", json={"link_id": link_id}, headers=BUYER).json()
        session_id = session["id"]
        assert session["stage"] == "inbox"

        selected = client.post(f"/intake/sessions/{session_id}/select", json={"mode": "ai"}, headers=BUYER).json()
        assert selected["stage"] == "verify"
        assert selected["degraded"] is True

        blocked = client.post(f"/intake/sessions/{session_id}/commit", json={}, headers=BUYER)
        assert blocked.status_code == 409
        assert blocked.json()["error"] == "address_required"

        client.patch(f"/intake/sessions/{session_id}", json={"exact_address": "Calle Mayor 1, Madrid"}, headers=BUYER)
        session = self._wait_for_verdict(client, session_id)
        assert session["address_validation"]["status"] == "valid"

        committed = client.post(f"/intake/sessions/{session_id}/commit", json={}, headers=BUYER)
        assert committed.status_code == 200
        body = committed.json()
        assert body["property"]["folder_id"] == folder.id
        assert body["links"] == []
        assert client.get(f"/intake/sessions/{session_id}", headers=BUYER).status_code == 404

    def test_failed_database_commit_keeps_the_session(self, client, db_session, folder, monkeypatch):
        link_id = client.post(
            "/intake/links", json={"text": "https://pisos.test/3", "folder_id": folder.id}, headers=BUYER
        ).json()["queued"][0]["id"]
        session_id = client.post("/intake/sessions", json={"link_id": link_id}, headers=BUYER).json()["id"]
        client.post(f"/intake/sessions/{session_id}/select", json={"mode": "manual"}, headers=BUYER)
        client.patch(f"/intake/sessions/{session_id}", json={"exact_address": "Calle Mayor 1, Madrid"}, headers=BUYER)
        self._wait_for_verdict(client, session_id)

        rollbacks = []

        def failing_commit():
            raise OperationalError("COMMIT", {}, Exception("disk I/O error"))

        monkeypatch.setattr(db_session, "commit", failing_commit)
        monkeypatch.setattr(db_session, "rollback", lambda: rollbacks.append(True))

        response = client.post(f"/intake/sessions/{session_id}/commit", json={}, headers=BUYER)

        assert response.status_code == 500
        assert response.json()["error"] == "database_error"
        assert rollbacks == [True]
        session = client.get(f"/intake/sessions/{session_id}", headers=BUYER).json()
        assert session["stage"] == "verify"
        assert session["property_id"] is None

    def test_open_session_needs_exactly_one_target(self, client):
        assert client.post("/intake/sessions", json={}, headers=BUYER).status_code == 422

    def test_abandon_keeps_link(self, client):
        link_id = client.post("/intake/links", json={"text": "https://pisos.test/2"}, headers=BUYER).json()["queued"][0]["id"]
        session_id = client.post("/intake/sessions", json={"link_id": link_id}, headers=BUYER).json()["id"]

        abandoned = client.delete(f"/intake/sessions/{session_id}", headers=BUYER)
        assert abandoned.json()["stage"] == "abandoned"
        assert [link["id"] for link in client.get("/intake/links", headers=BUYER).json()] == [link_id]
