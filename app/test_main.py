"""API tests against a temporary SQLite database."""
from datetime import datetime, timedelta, timezone

import pytest
from fastapi.testclient import TestClient

from attendance.memory import InMemoryAttendanceLogStore
from attendance.schemas import EventFilter
from capture import to_data_url
from conftest import make_event
from directory.models import BroadcastRecord, CrewMemberRecord, LocationRecord
from live import _stream
from main import create_app
from settings import Settings

PHOTO = to_data_url(b"\xff\xd8selfie")
ADMIN = {"X-API-Key": "secret"}


def clock_body(**overrides):
    body = {
        "crew_member_id": "crew-1",
        "latitude": 0.0,
        "longitude": 0.0001,
        "photo": PHOTO,
        "shift": "Shift 1",
    }
    body.update(overrides)
    return body


@pytest.fixture
def client(tmp_path):
    app_settings = Settings(
        database_url=f"sqlite:///{tmp_path / 'api.db'}",
        admin_api_key="secret",
        local_timezone="UTC",
    )
    app = create_app(app_settings)
    with TestClient(app) as test_client:
        with app.state.session_factory() as db:
            db.add_all(
                [
                    LocationRecord(id="store-1", name="Semarang Store", latitude=0.0, longitude=0.0),
                    LocationRecord(id="store-2", name="Jakarta Store", latitude=-6.2088, longitude=106.8456),
                ]
            )
            db.flush()
            db.add_all(
                [
                    CrewMemberRecord(id="crew-1", name="Alex Johnson", location_id="store-1"),
                    CrewMemberRecord(id="crew-2", name="Budi Santoso", location_id="store-1"),
                    CrewMemberRecord(id="crew-3", name="Citra Dewi", location_id="store-2"),
                    BroadcastRecord(
                        id="b1", message="Stock count tonight", timestamp=datetime(2024, 3, 4, 8, 0)
                    ),
                    BroadcastRecord(id="b2", message="New uniforms", timestamp=datetime(2024, 3, 5, 8, 0)),
                ]
            )
            db.commit()
        yield test_client


class TestDirectoryRoutes:
    """Test cases for reference data endpoints."""

    def test_root(self, client):
        assert client.get("/").json()["message"] == "CrewClock attendance API"

    def test_locations(self, client):
        response = client.get("/locations")
        assert response.status_code == 200
        assert [loc["name"] for loc in response.json()] == ["Jakarta Store", "Semarang Store"]

    def test_location_crew(self, client):
        response = client.get("/locations/store-1/crew")
        assert [c["id"] for c in response.json()] == ["crew-1", "crew-2"]
        assert client.get("/locations/nowhere/crew").status_code == 404

    def test_broadcasts_newest_first(self, client):
        assert [b["id"] for b in client.get("/broadcasts").json()] == ["b2", "b1"]

    def test_shifts(self, client):
        assert client.get("/clock/shifts").json() == ["Shift 1", "Shift 2"]


class TestClockRoutes:
    """Test cases for eligibility and submission."""

    def test_eligibility_ready(self, client):
        response = client.post("/clock/eligibility", json=clock_body())
        data = response.json()
        assert response.status_code == 200
        assert data["eligible"] is True
        assert data["state"] == "ready_in"
        assert data["next_action"] == "in"

    def test_eligibility_lists_every_blocker(self, client):
        response = client.post(
            "/clock/eligibility",
            json=clock_body(longitude=0.02, photo=None, shift=None),
        )
        data = response.json()
        assert data["eligible"] is False
        assert [b["code"] for b in data["blockers"]] == ["out_of_range", "photo_missing", "shift_missing"]
        assert data["blockers"][0]["message"] == "You are 2.22 km away. Please be within 1 km of the store."

    def test_clock_in_then_out(self, client):
        first = client.post("/clock", json=clock_body())
        assert first.status_code == 201
        assert first.json()["message"] == "Successfully Clocked In! Alex Johnson at Semarang Store"
        assert first.json()["event"]["photo"] == PHOTO

        second = client.post("/clock", json=clock_body(shift="Shift 2"))
        assert second.status_code == 201
        assert second.json()["event"]["type"] == "out"
        assert second.json()["message"].startswith("Successfully Clocked Out!")

    def test_blocked_submission(self, client):
        response = client.post("/clock", json=clock_body(latitude=None, longitude=None, location_error="timeout"))
        assert response.status_code == 422
        error = response.json()["error"]
        assert error["code"] == "blocked"
        assert error["reasons"][0] == {
            "code": "location_unavailable",
            "message": "Timed out waiting for a location fix.",
            "reason": "timeout",
        }
        assert client.get("/attendance").json()["total"] == 0

    def test_camera_denied(self, client):
        response = client.post("/clock", json=clock_body(photo=None, camera_error="denied"))
        assert response.status_code == 422
        assert response.json()["error"]["reasons"][0]["code"] == "camera_unavailable"

    def test_bad_photo(self, client):
        response = client.post("/clock", json=clock_body(photo="data:image/png;base64,AAAA"))
        assert response.status_code == 422

    def test_unknown_crew_member(self, client):
        assert client.post("/clock", json=clock_body(crew_member_id="ghost")).status_code == 404

    def test_metrics_exposed(self, client):
        client.post("/clock", json=clock_body())
        body = client.get("/metrics").text
        assert "clock_requests_total" in body
        assert "clock_success_total" in body


class TestAttendanceRoutes:
    """Test cases for the read side and admin edits."""

    def test_list_and_get(self, client):
        event_id = client.post("/clock", json=clock_body()).json()["event"]["id"]

        listing = client.get("/attendance", params={"location_id": "store-1"}).json()
        assert listing["total"] == 1
        assert listing["events"][0]["id"] == event_id

        assert client.get(f"/attendance/{event_id}").json()["crew_member_id"] == "crew-1"
        assert client.get("/attendance/missing").status_code == 404

    def test_summary(self, client):
        client.post("/clock", json=clock_body())
        client.post("/clock", json=clock_body())
        client.post("/clock", json=clock_body(crew_member_id="crew-2"))
        now = datetime.now(timezone.utc)

        response = client.get(
            "/attendance/summary",
            params={
                "start": (now - timedelta(hours=1)).isoformat(),
                "end": (now + timedelta(hours=1)).isoformat(),
            },
        )

        crew = response.json()["crew"]
        assert [c["crew_member_name"] for c in crew] == ["Alex Johnson", "Budi Santoso"]
        assert [c["clock_in_count"] for c in crew] == [1, 1]
        assert len(crew[0]["logs"]) == 2

    def test_summary_rejects_reversed_range(self, client):
        response = client.get(
            "/attendance/summary", params={"start": "2024-03-05T00:00:00", "end": "2024-03-04T00:00:00"}
        )
        assert response.status_code == 400

    def test_overview(self, client):
        client.post("/clock", json=clock_body())
        overview = client.get("/attendance/overview").json()
        assert overview["total_crew"] == 3
        assert overview["present_count"] == 1
        assert overview["present_by_location"] == {"store-1": ["crew-1"]}
        assert len(overview["recent"]) == 1

    def test_notes_require_admin_key(self, client):
        event_id = client.post("/clock", json=clock_body()).json()["event"]["id"]

        assert client.patch(f"/attendance/{event_id}/notes", json={"notes": "x"}).status_code == 401
        assert (
            client.patch(
                f"/attendance/{event_id}/notes", json={"notes": "x"}, headers={"X-API-Key": "wrong"}
            ).status_code
            == 401
        )

        response = client.patch(f"/attendance/{event_id}/notes", json={"notes": "late bus"}, headers=ADMIN)
        assert response.status_code == 200
        assert response.json()["notes"] == "late bus"
        assert client.patch("/attendance/missing/notes", json={"notes": "x"}, headers=ADMIN).status_code == 404

    def test_manual_entry_flags_alternation_break(self, client):
        client.post("/clock", json=clock_body())

        response = client.post(
            "/attendance/manual",
            json={"crew_member_id": "crew-1", "type": "in", "notes": "entered by supervisor"},
            headers=ADMIN,
        )

        assert response.status_code == 201
        assert response.json()["breaks_alternation"] is True
        assert response.json()["event"]["photo"] is None

    def test_manual_entry_unknown_crew(self, client):
        response = client.post(
            "/attendance/manual", json={"crew_member_id": "ghost", "type": "in"}, headers=ADMIN
        )
        assert response.status_code == 404


def test_admin_disabled_without_key(tmp_path):
    app = create_app(Settings(database_url=f"sqlite:///{tmp_path / 'noadmin.db'}", admin_api_key=None))
    with TestClient(app) as client:
        response = client.post(
            "/attendance/manual", json={"crew_member_id": "crew-1", "type": "in"}, headers=ADMIN
        )
    assert response.status_code == 403


def test_write_denied_maps_to_403(tmp_path):
    app = create_app(
        Settings(database_url=f"sqlite:///{tmp_path / 'denied.db'}"),
        store=InMemoryAttendanceLogStore(deny_writes=True),
    )
    with TestClient(app) as client:
        with app.state.session_factory() as db:
            db.add(LocationRecord(id="store-1", name="Semarang Store", latitude=0.0, longitude=0.0))
            db.flush()
            db.add(CrewMemberRecord(id="crew-1", name="Alex Johnson", location_id="store-1"))
            db.commit()

        response = client.post("/clock", json=clock_body())

    assert response.status_code == 403
    assert response.json()["error"]["code"] == "write_denied"


@pytest.mark.asyncio
async def test_live_stream_sends_snapshot_without_photos():
    store = InMemoryAttendanceLogStore([make_event("a")])
    subscription = store.subscribe(EventFilter(limit=5))
    stream = _stream(subscription)

    chunk = await stream.__anext__()
    await stream.aclose()

    assert chunk.startswith("data: ")
    assert '"id": "a"' in chunk
    assert '"photo"' not in chunk
    assert subscription.cancelled
    assert store.subscriber_count == 0
