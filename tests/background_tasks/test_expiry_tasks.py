# tests/background_tasks/test_expiry_tasks.py
from datetime import timedelta
from unittest.mock import patch

import pytest

from swim_makeup.background_tasks import expiry_tasks
from swim_makeup.background_tasks.expiry_tasks import (
    close_waitlist,
    expire_stale_absences,
    run_expiry_sweep,
    sweep_expired_waitlists,
)
from swim_makeup.constants.makeup import AbsenceStatus, RequestStatus
from swim_makeup.core.config import settings
from swim_makeup.core.errors import NotFound, WaitlistCloseTooEarly
from swim_makeup.core.locks import slot_lock
from swim_makeup.models.absence_notice import AbsenceNotice
from swim_makeup.utils.makeup_notifications import UNABLE_TO_ACCOMMODATE

from tests.utils.notifier import FailingNotifier, RecordingNotifier
from tests.utils.slot import add_confirmed_request, add_waiting_request, create_slot, future_lesson_start


def _notice(db, original_slot, *, deadline_days=30, status=AbsenceStatus.WAITING, token="resume-aiko"):
    notice = AbsenceNotice(
        child_name="Aiko",
        declared_class_band=original_slot.class_band,
        absent_date=original_slot.date,
        original_slot_id=original_slot.id,
        resume_token=token,
        makeup_deadline=original_slot.lesson_start_at + timedelta(days=deadline_days),
        status=status,
    )
    db.add(notice)
    db.commit()
    db.refresh(notice)
    return notice


class TestSweepExpiredWaitlists:

    def test_expires_waiters_of_imminent_lessons(self, db_session):
        # ARRANGE: lesson starts in 30 minutes, close window is 60
        slot = create_slot(db_session, makeup_allowed=1, makeup_used=1)
        a = add_waiting_request(db_session, slot, child_name="Aiko")
        b = add_waiting_request(db_session, slot, child_name="Ben")
        now = slot.lesson_start_at - timedelta(minutes=30)
        notifier = RecordingNotifier()

        # ACT
        result = sweep_expired_waitlists(db_session, now=now, notifier=notifier)

        # ASSERT
        assert result.slots_closed == 1
        assert result.requests_expired == 2
        assert result.notifications_sent == 2
        for request in (a, b):
            db_session.refresh(request)
            assert request.status == RequestStatus.EXPIRED
            assert request.closed_at == now
        db_session.refresh(slot)
        assert slot.waitlist_count == 0
        assert slot.makeup_used == 1
        assert notifier.kinds() == [UNABLE_TO_ACCOMMODATE, UNABLE_TO_ACCOMMODATE]

    def test_second_run_changes_nothing(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)
        add_waiting_request(db_session, slot, child_name="Aiko")
        now = slot.lesson_start_at - timedelta(minutes=30)
        sweep_expired_waitlists(db_session, now=now, notifier=RecordingNotifier())
        notifier = RecordingNotifier()

        result = sweep_expired_waitlists(db_session, now=now, notifier=notifier)

        assert result.slots_closed == 0
        assert result.requests_expired == 0
        assert notifier.sent == []

    def test_leaves_lessons_outside_the_window(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)
        request = add_waiting_request(db_session, slot, child_name="Aiko")

        result = sweep_expired_waitlists(
            db_session, now=slot.lesson_start_at - timedelta(minutes=61), notifier=RecordingNotifier()
        )

        assert result.requests_expired == 0
        db_session.refresh(request)
        assert request.status == RequestStatus.WAITING

    def test_includes_lessons_that_already_started(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)
        request = add_waiting_request(db_session, slot, child_name="Aiko")

        sweep_expired_waitlists(
            db_session, now=slot.lesson_start_at + timedelta(minutes=5), notifier=RecordingNotifier()
        )

        db_session.refresh(request)
        assert request.status == RequestStatus.EXPIRED

    def test_confirmed_requests_are_untouched(self, db_session):
        slot = create_slot(db_session, makeup_allowed=1)
        confirmed = add_confirmed_request(db_session, slot, child_name="Booked", decline_token="tok-booked")
        add_waiting_request(db_session, slot, child_name="Aiko")

        sweep_expired_waitlists(
            db_session, now=slot.lesson_start_at - timedelta(minutes=10), notifier=RecordingNotifier()
        )

        db_session.refresh(confirmed)
        assert confirmed.status == RequestStatus.CONFIRMED

    def test_notice_returns_to_absent_logged_while_deadline_open(self, db_session):
        original = create_slot(db_session, lesson_start_at=future_lesson_start(1), makeup_allowed=0)
        target = create_slot(db_session, lesson_start_at=future_lesson_start(4), makeup_allowed=0)
        notice = _notice(db_session, original, deadline_days=30)
        add_waiting_request(db_session, target, child_name="Aiko", absence_notice_id=notice.id)

        sweep_expired_waitlists(
            db_session, now=target.lesson_start_at - timedelta(minutes=30), notifier=RecordingNotifier()
        )

        db_session.refresh(notice)
        assert notice.status == AbsenceStatus.ABSENT_LOGGED
        assert notice.makeup_slot_id is None

    def test_notice_expires_with_request_after_deadline(self, db_session):
        original = create_slot(db_session, lesson_start_at=future_lesson_start(1), makeup_allowed=0)
        target = create_slot(db_session, lesson_start_at=future_lesson_start(4), makeup_allowed=0)
        notice = _notice(db_session, original, deadline_days=1)
        add_waiting_request(db_session, target, child_name="Aiko", absence_notice_id=notice.id)

        sweep_expired_waitlists(
            db_session, now=target.lesson_start_at + timedelta(minutes=1), notifier=RecordingNotifier()
        )

        db_session.refresh(notice)
        assert notice.status == AbsenceStatus.EXPIRED

    def test_email_failure_does_not_block_expiry(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)
        request = add_waiting_request(db_session, slot, child_name="Aiko")

        result = sweep_expired_waitlists(
            db_session, now=slot.lesson_start_at - timedelta(minutes=30), notifier=FailingNotifier()
        )

        assert result.requests_expired == 1
        assert result.notifications_sent == 0
        db_session.refresh(request)
        assert request.status == RequestStatus.EXPIRED

    def test_one_failing_slot_does_not_stop_the_others(self, db_session):
        # ARRANGE
        broken = create_slot(db_session, makeup_allowed=0, lesson_start_at=future_lesson_start(3, hour=10))
        healthy = create_slot(db_session, makeup_allowed=0, lesson_start_at=future_lesson_start(3, hour=11))
        add_waiting_request(db_session, broken, child_name="Aiko")
        ok_request = add_waiting_request(db_session, healthy, child_name="Ben")
        now = healthy.lesson_start_at - timedelta(minutes=30)
        real_close = expiry_tasks._close_slot_locked

        def close_or_fail(db, slot, requests, now):
            if slot.id == broken.id:
                raise RuntimeError("database hiccup")
            return real_close(db, slot, requests, now)

        # ACT
        with patch.object(expiry_tasks, "_close_slot_locked", side_effect=close_or_fail):
            result = sweep_expired_waitlists(db_session, now=now, notifier=RecordingNotifier())

        # ASSERT
        assert result.slots_failed == 1
        assert result.slots_closed == 1
        db_session.refresh(ok_request)
        assert ok_request.status == RequestStatus.EXPIRED

    def test_locked_slot_is_skipped_and_the_rest_still_notified(self, db_session, monkeypatch):
        # ARRANGE: another worker holds the lock of one slot for the whole sweep
        monkeypatch.setattr(settings, "SLOT_LOCK_TIMEOUT_SECONDS", 0.05)
        free = create_slot(db_session, makeup_allowed=0, lesson_start_at=future_lesson_start(3, hour=10))
        busy = create_slot(db_session, makeup_allowed=0, lesson_start_at=future_lesson_start(3, hour=11))
        free_request = add_waiting_request(db_session, free, child_name="Aiko")
        busy_request = add_waiting_request(db_session, busy, child_name="Ben")
        stale = _notice(
            db_session,
            create_slot(db_session, makeup_allowed=0, lesson_start_at=future_lesson_start(3, hour=8)),
            deadline_days=-1,
            status=AbsenceStatus.ABSENT_LOGGED,
        )
        now = busy.lesson_start_at - timedelta(minutes=30)
        notifier = RecordingNotifier()

        # ACT
        with slot_lock(busy.id):
            result = sweep_expired_waitlists(db_session, now=now, notifier=notifier)

        # ASSERT
        assert result.slots_failed == 1
        assert result.slots_closed == 1
        assert result.notices_expired == 1
        assert [n.request_id for n in notifier.sent] == [free_request.id]
        db_session.refresh(free_request)
        db_session.refresh(busy_request)
        db_session.refresh(stale)
        assert free_request.status == RequestStatus.EXPIRED
        assert busy_request.status == RequestStatus.WAITING
        assert stale.status == AbsenceStatus.EXPIRED


class TestExpireStaleAbsences:

    def test_open_notices_past_deadline_expire(self, db_session):
        original = create_slot(db_session, makeup_allowed=0)
        open_notice = _notice(db_session, original, deadline_days=1, status=AbsenceStatus.ABSENT_LOGGED)
        confirmed = _notice(
            db_session,
            create_slot(db_session, lesson_start_at=future_lesson_start(4)),
            deadline_days=1,
            status=AbsenceStatus.MAKEUP_CONFIRMED,
            token="resume-other",
        )

        expired = expire_stale_absences(db_session, now=original.lesson_start_at + timedelta(days=10))

        assert expired == 1
        db_session.refresh(open_notice)
        db_session.refresh(confirmed)
        assert open_notice.status == AbsenceStatus.EXPIRED
        assert confirmed.status == AbsenceStatus.MAKEUP_CONFIRMED


class TestCloseWaitlist:

    def test_closes_inside_window(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)
        add_waiting_request(db_session, slot, child_name="Aiko")
        notifier = RecordingNotifier()

        expired = close_waitlist(
            db_session, slot.id, now=slot.lesson_start_at - timedelta(minutes=45), notifier=notifier
        )

        assert expired == 1
        assert notifier.kinds() == [UNABLE_TO_ACCOMMODATE]
        db_session.refresh(slot)
        assert slot.waitlist_count == 0

    def test_too_early(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)
        request = add_waiting_request(db_session, slot, child_name="Aiko")

        with pytest.raises(WaitlistCloseTooEarly):
            close_waitlist(db_session, slot.id, now=slot.lesson_start_at - timedelta(hours=3))

        db_session.refresh(request)
        assert request.status == RequestStatus.WAITING

    def test_unknown_slot(self, db_session):
        with pytest.raises(NotFound):
            close_waitlist(db_session, "2030-01-01_10:00_beginner")

    def test_empty_waitlist(self, db_session):
        slot = create_slot(db_session, makeup_allowed=0)

        assert close_waitlist(
            db_session, slot.id, now=slot.lesson_start_at - timedelta(minutes=10), notifier=RecordingNotifier()
        ) == 0


class TestRunExpirySweep:

    def test_owns_and_closes_its_session(self, db_session):
        with patch.object(expiry_tasks, "SessionLocal", return_value=db_session), patch.object(
            expiry_tasks, "sweep_expired_waitlists", return_value=expiry_tasks.SweepResult()
        ) as mock_sweep:
            result = run_expiry_sweep()

        mock_sweep.assert_called_once_with(db_session)
        assert result == expiry_tasks.SweepResult()

    def test_failure_is_logged_not_raised(self, db_session):
        with patch.object(expiry_tasks, "SessionLocal", return_value=db_session), patch.object(
            expiry_tasks, "sweep_expired_waitlists", side_effect=RuntimeError("boom")
        ):
            assert run_expiry_sweep() is None
