from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timedelta, timezone

from fastapi import FastAPI
from fastapi.testclient import TestClient

from campus_rentals.controllers.auth_controller import router as auth_router
from campus_rentals.controllers.rentals_controller import router as rentals_router
from campus_rentals.controllers.rooms_controller import router as rooms_router
from campus_rentals.domain.models import UserRole
from campus_rentals.repository.data_repository import DataRepository
from campus_rentals.services.auth_service import AuthService
from campus_rentals.services.availability_service import AvailabilityService
from campus_rentals.services.rental_service import RentalService
from campus_rentals.services.room_service import RoomService
from campus_rentals.utils.config import get_settings
from campus_rentals.utils.locks import RoomLockArena


ADMIN_TOKEN = "secret-admin-token"
BASE_START = (datetime.now(timezone.utc) + timedelta(days=2)).replace(minute=0, second=0, microsecond=0)


def _build_test_settings(tmp_path, filename: str, admin_token: str | None):
    get_settings.cache_clear()
    base = get_settings()
    return replace(
        base,
        database_path=tmp_path / filename,
        admin_token=admin_token,
        seed_demo_data=False,
    )


def _build_test_app(tmp_path, admin_token: str | None = ADMIN_TOKEN) -> tuple[FastAPI, DataRepository]:
    settings = _build_test_settings(tmp_path, "api_flow.db", admin_token)
    repository = DataRepository(settings)
    repository.initialize_database()
    locks = RoomLockArena()

    app = FastAPI()
    app.include_router(auth_router)
    app.include_router(rooms_router)
    app.include_router(rentals_router)
    app.state.repository = repository
    app.state.room_service = RoomService(repository=repository, settings=settings, locks=locks)
    app.state.rental_service = RentalService(repository=repository, settings=settings, locks=locks)
    app.state.availability_service = AvailabilityService(repository=repository, settings=settings)
    app.state.auth_service = AuthService(settings=settings)
    return app, repository


def _as(user_id: int) -> dict[str, str]:
    return {"X-User-Id": str(user_id)}


def _admin_headers(client: TestClient) -> dict[str, str]:
    response = client.post("/login", json={"admin_token": ADMIN_TOKEN})
    assert response.status_code == 200
    return {"Authorization": f"Bearer {response.json()['access_token']}"}


def _slot(hours_from_now: float, length_hours: float = 2) -> tuple[str, str]:
    start = BASE_START + timedelta(hours=hours_from_now)
    return start.isoformat(), (start + timedelta(hours=length_hours)).isoformat()


def test_booking_flow_end_to_end(tmp_path):
    app, repository = _build_test_app(tmp_path)
    organizer = repository.create_user("Events Office", UserRole.ORGANIZER)
    renter_a = repository.create_user("Alex", UserRole.STUDENT)
    renter_b = repository.create_user("Sam", UserRole.STUDENT)

    with TestClient(app) as client:
        created = client.post(
            "/rooms",
            headers=_as(organizer),
            json={
                "name": "Seminar Room",
                "address": "Main Building",
                "capacity": 20,
                "hourly_rate": "15.00",
                "amenities": ["projector", "wifi"],
            },
        )
        assert created.status_code == 201
        room = created.json()
        assert room["status"] == "ENABLED"
        assert room["amenities"] == ["projector", "wifi"]

        start, end = _slot(0)
        first = client.post(
            "/rentals",
            headers=_as(renter_a),
            json={"room_id": room["room_id"], "start_time": start, "end_time": end, "expected_attendees": 12},
        )
        assert first.status_code == 201
        assert first.json()["status"] == "PENDING"

        pending = client.get("/rentals/pending", headers=_as(organizer))
        assert [item["rental_id"] for item in pending.json()] == [first.json()["rental_id"]]

        approved = client.post(f"/rentals/{first.json()['rental_id']}/approve", headers=_as(organizer))
        assert approved.status_code == 200
        assert approved.json()["status"] == "APPROVED"
        assert float(approved.json()["total_cost"]) == 30.0

        overlap_start, overlap_end = _slot(1)
        conflict = client.post(
            "/rentals",
            headers=_as(renter_b),
            json={"room_id": room["room_id"], "start_time": overlap_start, "end_time": overlap_end},
        )
        assert conflict.status_code == 409
        assert conflict.json()["detail"]["kind"] == "CONFLICT"

        available = client.get(
            "/rooms/available",
            params={"start_time": overlap_start, "end_time": overlap_end},
        )
        assert available.status_code == 200
        assert available.json() == []

        mine = client.get("/rentals/mine", headers=_as(renter_a))
        assert [item["rental_id"] for item in mine.json()] == [first.json()["rental_id"]]

        cancelled = client.post(f"/rentals/{first.json()['rental_id']}/cancel", headers=_as(renter_a))
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"

        available = client.get(
            "/rooms/available",
            params={"start_time": overlap_start, "end_time": overlap_end},
        )
        assert [item["room_id"] for item in available.json()] == [room["room_id"]]


def test_error_kinds_map_to_status_codes(tmp_path):
    app, repository = _build_test_app(tmp_path)
    organizer = repository.create_user("Events Office", UserRole.ORGANIZER)
    student = repository.create_user("Alex", UserRole.STUDENT)

    with TestClient(app) as client:
        forbidden = client.post(
            "/rooms",
            headers=_as(student),
            json={"name": "Hall", "address": "A", "capacity": 10},
        )
        assert forbidden.status_code == 403
        assert forbidden.json()["detail"]["kind"] == "FORBIDDEN"

        invalid = client.post(
            "/rooms",
            headers=_as(organizer),
            json={"name": "Hall", "address": "A", "capacity": 0},
        )
        assert invalid.status_code == 400
        assert invalid.json()["detail"]["reason"] == "capacity must be at least 1"

        missing = client.get("/rooms/999")
        assert missing.status_code == 404

        anonymous = client.post("/rooms", json={"name": "Hall", "address": "A", "capacity": 10})
        assert anonymous.status_code == 401

        room = client.post(
            "/rooms",
            headers=_as(organizer),
            json={"name": "Hall", "address": "A", "capacity": 10},
        ).json()
        start, end = _slot(0)
        too_many = client.post(
            "/rentals",
            headers=_as(student),
            json={"room_id": room["room_id"], "start_time": start, "end_time": end, "expected_attendees": 11},
        )
        assert too_many.status_code == 400
        assert "exceeds room capacity" in too_many.json()["detail"]["reason"]

        rental = client.post(
            "/rentals",
            headers=_as(student),
            json={"room_id": room["room_id"], "start_time": start, "end_time": end},
        ).json()
        not_owner = client.post(f"/rentals/{rental['rental_id']}/approve", headers=_as(student))
        assert not_owner.status_code == 403

        rejected = client.post(
            f"/rentals/{rental['rental_id']}/reject",
            headers=_as(organizer),
            json={"admin_notes": "Exam week"},
        )
        assert rejected.json()["admin_notes"] == "Exam week"
        again = client.post(f"/rentals/{rental['rental_id']}/approve", headers=_as(organizer))
        assert again.status_code == 400
        assert "not pending" in again.json()["detail"]["reason"]


def test_admin_disable_and_cancel_flow(tmp_path):
    app, repository = _build_test_app(tmp_path)
    organizer = repository.create_user("Events Office", UserRole.ORGANIZER)
    student = repository.create_user("Alex", UserRole.STUDENT)

    with TestClient(app) as client:
        room = client.post(
            "/rooms",
            headers=_as(organizer),
            json={"name": "Hall", "address": "A", "capacity": 10},
        ).json()
        start, end = _slot(0)
        rental = client.post(
            "/rentals",
            headers=_as(student),
            json={"room_id": room["room_id"], "start_time": start, "end_time": end},
        ).json()

        admin = _admin_headers(client)
        approved = client.post(f"/rentals/{rental['rental_id']}/approve", headers=admin)
        assert approved.status_code == 200

        no_session = client.post(f"/rooms/{room['room_id']}/disable", json={"reason": "Flooding"})
        assert no_session.status_code == 401

        disabled = client.post(f"/rooms/{room['room_id']}/disable", headers=admin, json={"reason": "Flooding"})
        assert disabled.status_code == 200
        assert disabled.json()["status"] == "DISABLED"
        assert disabled.json()["disabled_reason"] == "Flooding"

        later_start, later_end = _slot(5)
        refused = client.post(
            "/rentals",
            headers=_as(student),
            json={"room_id": room["room_id"], "start_time": later_start, "end_time": later_end},
        )
        assert refused.status_code == 400
        assert refused.json()["detail"]["reason"] == "room is disabled"

        still_booked = client.get(f"/rentals/{rental['rental_id']}", headers=_as(student))
        assert still_booked.json()["status"] == "APPROVED"

        cancelled = client.post(
            f"/rentals/{rental['rental_id']}/admin_cancel",
            headers=admin,
            json={"reason": "Flooding"},
        )
        assert cancelled.status_code == 200
        assert cancelled.json()["status"] == "CANCELLED"
        assert cancelled.json()["admin_notes"] == "Cancelled by admin: Flooding"

        ledger = client.get(f"/rooms/{room['room_id']}/rentals", headers=_as(organizer))
        assert [item["status"] for item in ledger.json()] == ["CANCELLED"]
        outsider = client.get(f"/rooms/{room['room_id']}/rentals", headers=_as(student))
        assert outsider.status_code == 403

        all_rooms = client.get("/rooms/all", headers=admin, params={"status": "DISABLED"})
        assert [item["room_id"] for item in all_rooms.json()] == [room["room_id"]]

        enabled = client.post(f"/rooms/{room['room_id']}/enable", headers=admin)
        assert enabled.json()["status"] == "ENABLED"
        assert enabled.json()["disabled_reason"] is None

        logout = client.post("/logout", headers=admin)
        assert logout.status_code == 204
        assert client.get("/rentals", headers=admin).status_code == 401


def test_login_rejects_bad_token_and_unconfigured_admin(tmp_path):
    app, _ = _build_test_app(tmp_path)
    with TestClient(app) as client:
        assert client.post("/login", json={"admin_token": "wrong"}).status_code == 401

    locked_app, _ = _build_test_app(tmp_path / "locked", admin_token=None)
    with TestClient(locked_app) as client:
        assert client.post("/login", json={"admin_token": "anything"}).status_code == 503
        assert client.get("/rentals", headers={"Authorization": "Bearer anything"}).status_code == 401


def test_update_room_via_patch(tmp_path):
    app, repository = _build_test_app(tmp_path)
    organizer = repository.create_user("Events Office", UserRole.ORGANIZER)
    other = repository.create_user("Student Union", UserRole.ORGANIZER)

    with TestClient(app) as client:
        room = client.post(
            "/rooms",
            headers=_as(organizer),
            json={"name": "Hall", "address": "A", "capacity": 10},
        ).json()

        denied = client.patch(f"/rooms/{room['room_id']}", headers=_as(other), json={"capacity": 12})
        assert denied.status_code == 403

        updated = client.patch(
            f"/rooms/{room['room_id']}",
            headers=_as(organizer),
            json={"capacity": 12, "room_info": "Ground floor"},
        )
        assert updated.status_code == 200
        assert updated.json()["capacity"] == 12
        assert updated.json()["room_info"] == "Ground floor"

        mine = client.get("/rooms/mine", headers=_as(organizer))
        assert [item["room_id"] for item in mine.json()] == [room["room_id"]]
        listed = client.get("/rooms", params={"min_capacity": 11})
        assert [item["name"] for item in listed.json()] == ["Hall"]


def test_user_header_never_grants_admin_rights(tmp_path):
    app, repository = _build_test_app(tmp_path)
    admin_user = repository.create_user("Campus Admin", UserRole.ADMIN)

    with TestClient(app) as client:
        # Claiming the id of an ADMIN user through the header is not an admin session.
        assert client.get("/rooms/all", headers=_as(admin_user)).status_code == 401
        assert client.get("/rentals", headers=_as(admin_user)).status_code == 401

        admin = _admin_headers(client)
        assert client.get("/rooms/all", headers=admin).status_code == 200
