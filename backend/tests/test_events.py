"""Event creation and the one-way event status machine."""
import pytest

from scheduling.errors import ValidationError, EventNotActive, EventNotFound
from scheduling.models.audit_log import AuditAction
from scheduling.models.event import EventStatus
from scheduling.models.participant import ParticipantStatus
from scheduling.models.response_history import EntryKind, ResponseContext
from scheduling.services import audit_service, event_service, identity_service
from scheduling.timeutils import ensure_utc
from tests.conftest import (
    make_event, RecordingGateway, COMMUNITY, ORGANIZER, EVENT_START_UTC, T0, hours,
)


class TestCreateEvent:
    """CreateEvent writes the event, its participants, their initial rows and the audit trail."""

    def test_creates_active_event_with_parsed_date(self, db):
        event = make_event(db)
        assert event.status == EventStatus.active
        assert event.event_id
        assert ensure_utc(event.parsed_date) == EVENT_START_UTC
        assert ensure_utc(event.created_at) == T0
        assert event.reminders_sent == 0
        assert event.start_reminders_sent == 0

    def test_invitees_start_pending_with_initial_row(self, db):
        event = make_event(db)
        assert [p.user_id for p in event.participants] == ["alice", "bob", "carol"]
        for participant in event.participants:
            assert participant.current_status == ParticipantStatus.pending
            assert len(participant.history) == 1
            row = participant.history[0]
            assert row.entry_kind == EntryKind.transition
            assert row.old_status is None
            assert row.new_status == ParticipantStatus.pending
            assert row.response_time_seconds == 0
            assert row.response_context == ResponseContext.initial
            assert row.hours_before_event == pytest.approx(343.0)

    def test_community_and_organizer_created_lazily(self, db):
        make_event(db, community_name="Test Guild", organizer_name="Organizer")
        organizer = identity_service.get_identity(db, COMMUNITY, ORGANIZER)
        assert organizer is not None
        assert organizer.username == "Organizer"
        assert organizer.total_invites == 0

    def test_invite_counters_updated(self, db):
        make_event(db)
        alice = identity_service.get_identity(db, COMMUNITY, "alice")
        assert alice.total_invites == 1
        assert alice.total_responses == 0

    def test_duplicate_invitees_are_invited_once(self, db):
        event = make_event(db, invitees=["alice", "alice", "bob"])
        assert len(event.participants) == 2

    def test_audit_trail_order(self, db):
        event = make_event(db, invitees=["alice", "bob"])
        actions = [entry.action for entry in audit_service.list_for_event(db, event.event_id)]
        assert actions == [
            AuditAction.event_created,
            AuditAction.participant_invited,
            AuditAction.participant_invited,
        ]
        created = audit_service.list_for_event(db, event.event_id)[0]
        assert created.performed_by == ORGANIZER
        assert created.details["title"] == "Raid Night"

    @pytest.mark.parametrize("field,value", [("title", ""), ("date", "   "), ("time", None)])
    def test_blank_fields_rejected(self, db, field, value):
        with pytest.raises(ValidationError) as exc:
            make_event(db, **{field: value})
        assert exc.value.field == field

    def test_unparsable_date_is_accepted(self, db):
        event = make_event(db, date="next friday", time="evening")
        assert event.parsed_date is None
        assert event.participants[0].history[0].hours_before_event == 0

    def test_optional_handles_stored(self, db):
        event = make_event(
            db, comment="Bring snacks", relative_date="in two weeks", channel_id="chan-1", message_id="m-1"
        )
        assert event.comment == "Bring snacks"
        assert event.relative_date == "in two weeks"
        assert event.channel_id == "chan-1"
        assert event.message_id == "m-1"

    def test_channel_announcement_sets_message_id(self, db):
        gateway = RecordingGateway()
        event = make_event(db, channel_id="chan-1", gateway=gateway)
        assert event.message_id == "msg-1"
        assert gateway.channel[0][0] == "chan-1"
        assert sorted(gateway.recipients()) == ["alice", "bob", "carol"]

    def test_unreachable_invitee_left_out(self, db):
        gateway = RecordingGateway(unreachable={"bob"})
        event = make_event(db, gateway=gateway)
        assert [p.user_id for p in event.participants] == ["alice", "carol"]
        bob = identity_service.get_identity(db, COMMUNITY, "bob")
        assert bob.total_invites == 0
        invited = [
            e.details["user_id"] for e in audit_service.list_for_event(db, event.event_id)
            if e.action == AuditAction.participant_invited
        ]
        assert invited == ["alice", "carol"]


class TestEventLifecycle:
    """ACTIVE -> CLOSED and ACTIVE -> CANCELLED are the only transitions."""

    def test_close_event(self, db):
        event = make_event(db)
        closed = event_service.close_event(db, event.event_id, ORGANIZER, now=T0 + hours(1))
        assert closed.status == EventStatus.closed
        assert ensure_utc(closed.closed_at) == T0 + hours(1)
        assert audit_service.list_for_event(db, event.event_id)[-1].action == AuditAction.event_closed

    def test_cancel_event_keeps_reason(self, db):
        event = make_event(db)
        cancelled = event_service.cancel_event(db, event.event_id, ORGANIZER, "organizer sick", now=T0)
        assert cancelled.status == EventStatus.cancelled
        assert cancelled.cancellation_reason == "organizer sick"
        assert ensure_utc(cancelled.cancelled_at) == T0
        entry = audit_service.list_for_event(db, event.event_id)[-1]
        assert entry.action == AuditAction.event_cancelled
        assert entry.details["reason"] == "organizer sick"

    def test_blank_reason_stored_as_none(self, db):
        event = make_event(db)
        cancelled = event_service.cancel_event(db, event.event_id, ORGANIZER, "  ", now=T0 + hours(1))
        assert cancelled.cancellation_reason is None

    @pytest.mark.parametrize("first", ["close", "cancel"])
    @pytest.mark.parametrize("second", ["close", "cancel"])
    def test_terminal_events_reject_transitions(self, db, first, second):
        event = make_event(db)
        ops = {
            "close": lambda: event_service.close_event(db, event.event_id, ORGANIZER, now=T0 + hours(1)),
            "cancel": lambda: event_service.cancel_event(db, event.event_id, ORGANIZER, "rain", now=T0 + hours(1)),
        }
        ops[first]()
        with pytest.raises(EventNotActive):
            ops[second]()
        db.expire_all()
        assert event_service.list_events(db, COMMUNITY)[0].status != EventStatus.active

    def test_unknown_event(self, db):
        with pytest.raises(EventNotFound):
            event_service.close_event(db, "does-not-exist", ORGANIZER)


class TestListEvents:
    def test_newest_first_and_status_filter(self, db):
        first = make_event(db, title="First", now=T0)
        second = make_event(db, title="Second", now=T0 + hours(1))
        event_service.close_event(db, first.event_id, ORGANIZER, now=T0 + hours(2))

        assert [e.title for e in event_service.list_events(db, COMMUNITY)] == ["Second", "First"]
        assert [e.event_id for e in event_service.list_events(db, COMMUNITY, EventStatus.active)] == [
            second.event_id
        ]
        assert event_service.list_events(db, "other-guild") == []

    def test_ids_follow_supplied_clock(self, db):
        later = make_event(db, title="Later", now=T0 + hours(1))
        earlier = make_event(db, title="Earlier", now=T0)
        assert earlier.event_id < later.event_id
        assert earlier.event_id.split("-")[0] == f"{int(T0.timestamp() * 1000):013d}"
        assert [e.event_id for e in event_service.list_events(db, COMMUNITY)] == sorted(
            [earlier.event_id, later.event_id], reverse=True
        )
