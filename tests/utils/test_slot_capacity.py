# tests/utils/test_slot_capacity.py
from datetime import datetime, timedelta

import pytest

from swim_makeup.constants.makeup import RequestStatus, SlotAvailability
from swim_makeup.core.errors import NotFound
from swim_makeup.core.locks import slot_lock
from swim_makeup.crud import makeup_request
from swim_makeup.schemas.slot import SlotCapacityUpdate
from swim_makeup.utils.makeup_notifications import CONFIRMED
from swim_makeup.utils.slot_capacity import (
    adjust_capacity,
    availability_text,
    classify_availability,
    promote_if_capacity_opened,
)

from tests.utils.notifier import RecordingNotifier
from tests.utils.slot import add_waiting_request, create_slot


@pytest.mark.parametrize(
    "remaining,expected",
    [
        (5, SlotAvailability.OPEN),
        (2, SlotAvailability.OPEN),
        (1, SlotAvailability.LAST_SLOT),
        (0, SlotAvailability.FULL),
        (-2, SlotAvailability.FULL),
    ],
)
def test_classify_availability(remaining, expected):
    assert classify_availability(remaining) == expected


def test_availability_text():
    assert availability_text(SlotAvailability.OPEN, 3, 0) == "Makeup available (3 places left)"
    assert availability_text(SlotAvailability.LAST_SLOT, 1, 0) == "Last place available"
    assert availability_text(SlotAvailability.FULL, 0, 4) == "Full - join the waitlist (4 waiting)"


class TestAdjustCapacity:

    def test_raising_allowance_promotes_waiters_in_order(self, db_session):
        # ARRANGE: full slot, two waiting
        slot = create_slot(db_session, makeup_allowed=1, makeup_used=1)
        base = datetime(2030, 1, 1, 9, 0)
        first = add_waiting_request(db_session, slot, child_name="Aiko", created_at=base)
        second = add_waiting_request(db_session, slot, child_name="Ben", created_at=base + timedelta(minutes=1))
        notifier = RecordingNotifier()

        # ACT
        updated = adjust_capacity(
            db_session, slot.id, SlotCapacityUpdate(makeup_allowed=2), notifier=notifier
        )

        # ASSERT
        db_session.refresh(first)
        db_session.refresh(second)
        assert first.status == RequestStatus.CONFIRMED
        assert second.status == RequestStatus.WAITING
        assert updated.makeup_allowed == 2
        assert updated.makeup_used == 2
        assert updated.waitlist_count == 1
        assert notifier.kinds() == [CONFIRMED]

    def test_lowering_used_counter_promotes(self, db_session):
        slot = create_slot(db_session, makeup_allowed=2, makeup_used=2)
        request = add_waiting_request(db_session, slot, child_name="Aiko")

        adjust_capacity(db_session, slot.id, SlotCapacityUpdate(makeup_used=1), notifier=RecordingNotifier())

        db_session.refresh(request)
        assert request.status == RequestStatus.CONFIRMED

    def test_allowance_below_used_is_accepted_as_given(self, db_session):
        slot = create_slot(db_session, makeup_allowed=3, makeup_used=3)
        request = add_waiting_request(db_session, slot, child_name="Aiko")

        updated = adjust_capacity(
            db_session, slot.id, SlotCapacityUpdate(makeup_allowed=1), notifier=RecordingNotifier()
        )

        assert updated.makeup_allowed == 1
        assert updated.remaining_makeup_slots == -2
        db_session.refresh(request)
        assert request.status == RequestStatus.WAITING

    def test_only_provided_fields_change(self, db_session):
        slot = create_slot(db_session, makeup_allowed=2, makeup_used=1, capacity_current=8)

        updated = adjust_capacity(
            db_session, slot.id, SlotCapacityUpdate(capacity_current=6), notifier=RecordingNotifier()
        )

        assert updated.capacity_current == 6
        assert updated.makeup_allowed == 2
        assert updated.makeup_used == 1

    def test_unknown_slot(self, db_session):
        with pytest.raises(NotFound):
            adjust_capacity(db_session, "2030-01-01_10:00_beginner", SlotCapacityUpdate(makeup_allowed=1))

    def test_ledger_conservation_after_promotion(self, db_session):
        # makeup_used always equals the CONFIRMED count when the slot started empty
        slot = create_slot(db_session, makeup_allowed=0, makeup_used=0)
        for name in ["Aiko", "Ben", "Chloe"]:
            add_waiting_request(db_session, slot, child_name=name)

        updated = adjust_capacity(
            db_session, slot.id, SlotCapacityUpdate(makeup_allowed=2), notifier=RecordingNotifier()
        )

        confirmed = makeup_request.count_by_status(db_session, slot_id=slot.id, status=RequestStatus.CONFIRMED)
        waiting = makeup_request.count_by_status(db_session, slot_id=slot.id, status=RequestStatus.WAITING)
        assert updated.makeup_used == confirmed == 2
        assert updated.waitlist_count == waiting == 1


def test_promote_if_capacity_opened_requires_a_free_place(db_session):
    slot = create_slot(db_session, makeup_allowed=1, makeup_used=1)
    add_waiting_request(db_session, slot, child_name="Aiko")

    assert promote_if_capacity_opened(db_session, slot.id, 1, 0, [], []) is False


def test_promote_if_capacity_opened_runs_when_waiters_exist(db_session):
    slot = create_slot(db_session, makeup_allowed=2, makeup_used=0)
    request = add_waiting_request(db_session, slot, child_name="Aiko")
    promoted, notifications = [], []

    with slot_lock(slot.id):
        ran = promote_if_capacity_opened(db_session, slot.id, 1, 2, promoted, notifications)

    assert ran is True
    assert [r.id for r in promoted] == [request.id]
    assert [n.kind for n in notifications] == [CONFIRMED]
    db_session.refresh(request)
    assert request.status == RequestStatus.CONFIRMED
