# tests/api/test_makeup_api.py
from datetime import timedelta

from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from swim_makeup.constants.makeup import RequestStatus
from swim_makeup.utils.makeup_notifications import CONFIRMED

from tests.utils.slot import add_confirmed_request, add_waiting_request, create_slot, future_lesson_start


def _payload(slot, child_name="Aiko", **overrides):
    data = {
        "child_name": child_name,
        "declared_class_band": slot.class_band,
        "absent_date": (slot.date - timedelta(days=1)).isoformat(),
        "to_slot_id": slot.id,
        "contact_email": "parent@example.com",
    }
    data.update(overrides)
    return data


def test_root(client: TestClient):
    response = client.get("/")
    assert response.status_code == 200


def test_search_makeup_slots(client: TestClient, db_session: Session):
    # ARRANGE
    open_slot = create_slot(db_session, lesson_start_at=future_lesson_start(3), makeup_allowed=2)
    full_slot = create_slot(db_session, lesson_start_at=future_lesson_start(4), makeup_allowed=0)

    # ACT
    response = client.post(
        "/api/v1/makeup/search",
        json={
            "child_name": "Aiko",
            "declared_class_band": "BEGINNER",
            "absent_date": open_slot.date.isoformat(),
        },
    )

    # ASSERT
    assert response.status_code == 200
    data = response.json()
    assert [s["slot_id"] for s in data] == [open_slot.id, full_slot.id]
    assert data[0]["availability"] == "open"
    assert data[1]["availability"] == "full"


def test_list_class_slots_for_a_day(client: TestClient, db_session: Session):
    # ARRANGE: two beginner lessons that day, one advanced, one beginner the next day
    late = create_slot(db_session, lesson_start_at=future_lesson_start(3, hour=17))
    early = create_slot(db_session, lesson_start_at=future_lesson_start(3, hour=15))
    create_slot(db_session, lesson_start_at=future_lesson_start(3, hour=15), class_band="ADVANCED")
    create_slot(db_session, lesson_start_at=future_lesson_start(4, hour=15))

    # ACT
    response = client.get(
        "/api/v1/makeup/class-slots",
        params={"date": early.date.isoformat(), "class_band": "BEGINNER"},
    )

    # ASSERT
    assert response.status_code == 200
    data = response.json()
    assert [s["id"] for s in data] == [early.id, late.id]
    assert data[0]["start_time"] == "15:00"
    assert "makeup_used" not in data[0]


def test_list_class_slots_validates_query(client: TestClient):
    missing_band = client.get("/api/v1/makeup/class-slots", params={"date": "2030-06-03"})
    bad_band = client.get("/api/v1/makeup/class-slots", params={"date": "2030-06-03", "class_band": "DOLPHIN"})

    assert missing_band.status_code == 422
    assert bad_band.status_code == 422


def test_search_rejects_unknown_band(client: TestClient):
    response = client.post(
        "/api/v1/makeup/search",
        json={"child_name": "Aiko", "declared_class_band": "DOLPHIN", "absent_date": "2030-01-01"},
    )
    assert response.status_code == 422


def test_book_makeup_slot(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=1)

    response = client.post("/api/v1/makeup/book", json=_payload(slot))

    assert response.status_code == 201
    data = response.json()
    assert data["success"] is True
    assert data["status"] == RequestStatus.CONFIRMED
    assert data["decline_token"]
    assert data["request"]["to_slot_id"] == slot.id


def test_book_full_slot_returns_error_envelope(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=1, makeup_used=1)

    response = client.post("/api/v1/makeup/book", json=_payload(slot))

    assert response.status_code == 409
    data = response.json()
    assert data["success"] is False
    assert data["reason"] == "capacity_exhausted"
    assert data["detail"]


def test_book_band_mismatch(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=1)

    response = client.post("/api/v1/makeup/book", json=_payload(slot, declared_class_band="ADVANCED"))

    assert response.status_code == 422
    assert response.json()["reason"] == "class_band_mismatch"


def test_book_unknown_slot(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=1)

    response = client.post("/api/v1/makeup/book", json=_payload(slot, to_slot_id="2030-01-01_10:00_beginner"))

    assert response.status_code == 404
    assert response.json()["reason"] == "slot_not_found"


def test_join_waitlist(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=0)

    response = client.post("/api/v1/makeup/waitlist", json=_payload(slot))

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == RequestStatus.WAITING
    assert data["decline_token"] is None


def test_join_waitlist_requires_email(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=0)
    payload = _payload(slot)
    del payload["contact_email"]

    response = client.post("/api/v1/makeup/waitlist", json=payload)

    assert response.status_code == 422


def test_join_waitlist_of_open_slot(client: TestClient, db_session: Session):
    slot = create_slot(db_session, makeup_allowed=3)

    response = client.post("/api/v1/makeup/waitlist", json=_payload(slot))

    assert response.status_code == 409
    assert response.json()["reason"] == "slot_has_capacity"


class TestDeclinePage:

    def test_decline_promotes_next_waiter(self, client: TestClient, db_session: Session, notifier):
        # ARRANGE
        slot = create_slot(db_session, makeup_allowed=1)
        add_confirmed_request(db_session, slot, child_name="Booked", decline_token="tok-booked")
        waiter = add_waiting_request(db_session, slot, child_name="Aiko")

        # ACT
        response = client.get("/api/v1/makeup/decline", params={"token": "tok-booked"})

        # ASSERT
        assert response.status_code == 200
        assert "text/html" in response.headers["content-type"]
        assert "declined" in response.text
        db_session.refresh(waiter)
        assert waiter.status == RequestStatus.CONFIRMED
        assert notifier.kinds() == [CONFIRMED]

    def test_second_click_is_already_processed(self, client: TestClient, db_session: Session):
        slot = create_slot(db_session, makeup_allowed=1)
        add_confirmed_request(db_session, slot, child_name="Booked", decline_token="tok-booked")
        client.get("/api/v1/makeup/decline", params={"token": "tok-booked"})

        response = client.get("/api/v1/makeup/decline", params={"token": "tok-booked"})

        assert response.status_code == 409
        assert "Already processed" in response.text

    def test_unknown_token(self, client: TestClient):
        response = client.get("/api/v1/makeup/decline", params={"token": "nope"})
        assert response.status_code == 404

    def test_missing_token(self, client: TestClient):
        response = client.get("/api/v1/makeup/decline")
        assert response.status_code == 400


class TestAbsencesApi:

    def test_log_and_resume_absence(self, client: TestClient, db_session: Session):
        # ARRANGE
        original = create_slot(db_session, lesson_start_at=future_lesson_start(2), makeup_allowed=0)
        candidate = create_slot(db_session, lesson_start_at=future_lesson_start(5), makeup_allowed=1)

        # ACT
        created = client.post(
            "/api/v1/absences",
            json={
                "child_name": "Aiko",
                "declared_class_band": "BEGINNER",
                "original_slot_id": original.id,
                "contact_email": "parent@example.com",
            },
        )
        token = created.json()["resume_token"]
        resumed = client.get(f"/api/v1/absences/{token}")

        # ASSERT
        assert created.status_code == 201
        assert created.json()["status"] == "ABSENT_LOGGED"
        assert resumed.status_code == 200
        data = resumed.json()
        assert data["notice"]["child_name"] == "Aiko"
        assert data["active_request"] is None
        assert [s["slot_id"] for s in data["slots"]] == [candidate.id]

    def test_book_with_resume_token(self, client: TestClient, db_session: Session):
        original = create_slot(db_session, lesson_start_at=future_lesson_start(2), makeup_allowed=0)
        target = create_slot(db_session, lesson_start_at=future_lesson_start(5), makeup_allowed=1)
        created = client.post(
            "/api/v1/absences",
            json={"child_name": "Aiko", "declared_class_band": "BEGINNER", "original_slot_id": original.id},
        )
        token = created.json()["resume_token"]

        booked = client.post("/api/v1/makeup/book", json=_payload(target, resume_token=token))
        resumed = client.get(f"/api/v1/absences/{token}")

        assert booked.status_code == 201
        assert resumed.json()["notice"]["status"] == "MAKEUP_CONFIRMED"
        assert resumed.json()["active_request"]["to_slot_id"] == target.id

    def test_unknown_resume_token(self, client: TestClient):
        response = client.get("/api/v1/absences/nope")
        assert response.status_code == 404
        assert response.json()["reason"] == "absence_not_found"
