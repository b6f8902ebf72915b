"""Reminder dispatch records checkpoints only for delivered messages."""
import pytest

from scheduling.errors import EventNotActive
from scheduling.models.response_history import EntryKind, ResponseContext
from scheduling.services import event_service, participant_service, reminder_service
from tests.conftest import make_event, RecordingGateway, ORGANIZER, T0, hours


def _checkpoints(db, event, user_id):
    history = participant_service.get_participant_history(db, event.event_id, user_id)
    return [row for row in history if row.entry_kind == EntryKind.checkpoint]


class TestSendReminders:
    def test_only_pending_participants_are_nudged(self, db):
        event = make_event(db)
        participant_service.record_response(db, event.event_id, "alice", "ACCEPTED", now=T0 + hours(1))
        gateway = RecordingGateway()

        result = reminder_service.send_reminders(db, gateway, event.event_id, ORGANIZER, now=T0 + hours(24))

        assert result == {"delivered": 2, "failed": 0, "failed_user_ids": []}
        assert sorted(gateway.recipients()) == ["bob", "carol"]
        assert _checkpoints(db, event, "alice") == []
        [row] = _checkpoints(db, event, "bob")
        assert row.response_context == ResponseContext.after_reminder
        db.refresh(event)
        assert event.reminders_sent == 1

    def test_undelivered_reminders_leave_no_checkpoint(self, db):
        event = make_event(db)
        gateway = RecordingGateway(unreachable={"carol"})

        result = reminder_service.send_reminders(db, gateway, event.event_id, ORGANIZER, now=T0 + hours(24))

        assert result["delivered"] == 2
        assert result["failed"] == 1
        assert result["failed_user_ids"] == ["carol"]
        assert _checkpoints(db, event, "carol") == []
        assert len(_checkpoints(db, event, "alice")) == 1

    def test_nobody_pending(self, db):
        event = make_event(db, invitees=["alice"])
        participant_service.record_response(db, event.event_id, "alice", "DECLINED", now=T0)
        result = reminder_service.send_reminders(
            db, RecordingGateway(), event.event_id, ORGANIZER, now=T0 + hours(24)
        )
        assert result["delivered"] == 0
        db.refresh(event)
        assert event.reminders_sent == 0

    def test_closed_event_rejected(self, db):
        event = make_event(db)
        event_service.close_event(db, event.event_id, ORGANIZER)
        with pytest.raises(EventNotActive):
            reminder_service.send_reminders(db, RecordingGateway(), event.event_id, ORGANIZER)


class TestStartReminders:
    def test_attending_participants_only(self, db):
        event = make_event(db, invitees=["alice", "bob", "carol", "dave"])
        participant_service.record_response(db, event.event_id, "alice", "ACCEPTED", now=T0)
        participant_service.record_response(db, event.event_id, "bob", "OTHER_TIME", "21:30", now=T0)
        participant_service.record_response(db, event.event_id, "carol", "DECLINED", now=T0)
        gateway = RecordingGateway()

        result = reminder_service.send_start_reminders(db, gateway, event.event_id, ORGANIZER, now=T0 + hours(1))

        assert result["delivered"] == 2
        assert sorted(gateway.recipients()) == ["alice", "bob"]
        [row] = _checkpoints(db, event, "bob")
        assert row.response_context == ResponseContext.after_start_reminder
        db.refresh(event)
        assert event.start_reminders_sent == 1
        assert event.reminders_sent == 0


class TestNotifyCancellation:
    def test_attendees_get_reason(self, db):
        event = make_event(db)
        participant_service.record_response(db, event.event_id, "alice", "ACCEPTED", now=T0)
        event_service.cancel_event(db, event.event_id, ORGANIZER, "organizer sick")
        gateway = RecordingGateway()

        result = reminder_service.notify_cancellation(db, gateway, event.event_id)

        assert result["delivered"] == 1
        user_id, content = gateway.direct[0]
        assert user_id == "alice"
        assert "organizer sick" in content
        assert _checkpoints(db, event, "alice") == []
