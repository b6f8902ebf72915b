"""Ledger invariants that must hold after any sequence of writes.

- current_status always mirrors the newest ledger row
- events never leave a terminal status
- ledger and audit rows are append-only
- identity counters can be rebuilt from the ledger
"""
import itertools
import pytest
from sqlalchemy.orm import sessionmaker

from scheduling.errors import EventNotActive, ValidationError
from scheduling.models.audit_log import AuditLogEntry
from scheduling.models.event import EventStatus, ALLOWED_TRANSITIONS
from scheduling.models.participant import ParticipantStatus, ANSWERED_STATUSES
from scheduling.models.response_history import ResponseHistory, EntryKind
from scheduling.services import event_service, identity_service, participant_service
from scheduling.services.lookup import get_event
from tests.conftest import make_event, COMMUNITY, ORGANIZER, T0, hours


class TestLedgerMirrorsStatus:
    def test_after_every_answer(self, db):
        event = make_event(db, invitees=["alice", "bob"])
        statuses = itertools.cycle(sorted(ANSWERED_STATUSES, key=lambda s: s.value))
        for step in range(12):
            user_id = "alice" if step % 3 else "bob"
            status = next(statuses)
            alternative = "18:00" if status == ParticipantStatus.other_time else None
            participant_service.record_response(
                db, event.event_id, user_id, status, alternative, now=T0 + hours(step)
            )
            for participant in participant_service.list_participants(db, event.event_id):
                assert participant_service.verify_ledger(db, participant)

    def test_checkpoints_keep_mirror(self, db):
        event = make_event(db)
        participant_service.record_response(db, event.event_id, "alice", "DECLINED", now=T0)
        ids = [p.participant_id for p in event.participants]
        participant_service.mark_reminder_sent(db, event.event_id, ids, "AFTER_REMINDER", ORGANIZER, now=T0 + hours(1))
        for participant in participant_service.list_participants(db, event.event_id):
            assert participant_service.verify_ledger(db, participant)

    def test_failed_answer_writes_nothing(self, db):
        event = make_event(db)
        before = db.query(ResponseHistory).count()
        with pytest.raises(ValidationError):
            participant_service.record_response(db, event.event_id, "alice", "OTHER_TIME", "99:99")
        assert db.query(ResponseHistory).count() == before


class TestWritesDuringReminderBatch:
    """A second session commits while a reminder batch is between its lookups and its writes."""

    def _interleave(self, monkeypatch, db_engine, write):
        other = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)()
        real_hours_until = participant_service.hours_until
        done = []

        def hours_until_after_write(moment, now):
            if not done:
                done.append(True)
                write(other)
            return real_hours_until(moment, now)

        monkeypatch.setattr(participant_service, "hours_until", hours_until_after_write)
        return other, done

    def test_checkpoint_sees_concurrent_answer(self, db, db_engine, monkeypatch):
        event = make_event(db, invitees=["alice", "bob"])
        event_id = event.event_id
        ids = [p.participant_id for p in event.participants]
        other, done = self._interleave(
            monkeypatch, db_engine,
            lambda session: participant_service.record_response(
                session, event_id, "alice", "ACCEPTED", now=T0 + hours(1)
            ),
        )
        try:
            participant_service.mark_reminder_sent(db, event_id, ids, "AFTER_REMINDER", ORGANIZER, now=T0 + hours(2))
        finally:
            other.close()

        assert done
        db.expire_all()
        alice = next(p for p in participant_service.list_participants(db, event_id) if p.user_id == "alice")
        assert alice.current_status == ParticipantStatus.accepted
        latest = participant_service.get_history(db, alice)[-1]
        assert latest.entry_kind == EntryKind.checkpoint
        assert latest.new_status == ParticipantStatus.accepted
        for participant in participant_service.list_participants(db, event_id):
            assert participant_service.verify_ledger(db, participant)

    def test_concurrent_batches_both_counted(self, db, db_engine, monkeypatch):
        event = make_event(db, invitees=["alice", "bob"])
        event_id = event.event_id
        ids = [p.participant_id for p in event.participants]
        other, done = self._interleave(
            monkeypatch, db_engine,
            lambda session: participant_service.mark_reminder_sent(
                session, event_id, ids[:1], "AFTER_REMINDER", "admin-2", now=T0 + hours(1)
            ),
        )
        try:
            participant_service.mark_reminder_sent(db, event_id, ids, "AFTER_REMINDER", ORGANIZER, now=T0 + hours(2))
        finally:
            other.close()

        assert done
        db.expire_all()
        assert get_event(db, event_id).reminders_sent == 2


class TestEventStatusMachine:
    def test_transition_table(self):
        assert ALLOWED_TRANSITIONS[EventStatus.active] == {EventStatus.closed, EventStatus.cancelled}
        assert not ALLOWED_TRANSITIONS[EventStatus.closed]
        assert not ALLOWED_TRANSITIONS[EventStatus.cancelled]

    def test_no_return_to_active(self, db):
        event = make_event(db)
        event_service.cancel_event(db, event.event_id, ORGANIZER, "organizer sick")
        with pytest.raises(EventNotActive) as exc:
            event_service.close_event(db, event.event_id, ORGANIZER)
        assert exc.value.status == "CANCELLED"
        assert exc.value.reason == "organizer sick"
        db.expire_all()
        assert event_service.list_events(db, COMMUNITY)[0].status == EventStatus.cancelled


class TestAppendOnly:
    def test_history_rows_cannot_be_updated(self, db):
        make_event(db)
        row = db.query(ResponseHistory).first()
        row.response_time_seconds = 99
        with pytest.raises(ValueError):
            db.flush()
        db.rollback()

    def test_audit_rows_cannot_be_updated(self, db):
        make_event(db)
        entry = db.query(AuditLogEntry).first()
        entry.performed_by = "someone-else"
        with pytest.raises(ValueError):
            db.flush()
        db.rollback()

    def test_answers_only_append(self, db):
        event = make_event(db)
        participant_service.record_response(db, event.event_id, "alice", "ACCEPTED", now=T0 + hours(1))
        first_ids = [r.entry_id for r in db.query(ResponseHistory).all()]
        participant_service.record_response(db, event.event_id, "alice", "DECLINED", now=T0 + hours(2))
        ids = [r.entry_id for r in db.query(ResponseHistory).all()]
        assert ids[: len(first_ids)] == first_ids
        assert len(ids) == len(first_ids) + 1


class TestCounterCache:
    def test_counters_match_ledger(self, db):
        first = make_event(db, invitees=["alice"])
        second = make_event(db, title="Second", invitees=["alice"])
        participant_service.record_response(db, first.event_id, "alice", "ACCEPTED", now=T0 + hours(1))
        participant_service.record_response(db, second.event_id, "alice", "DECLINED", now=T0 + hours(5))
        alice = identity_service.get_identity(db, COMMUNITY, "alice")
        assert identity_service.recompute_counters(db, alice)
        assert alice.total_invites == 2
        assert alice.total_responses == 2
        assert alice.avg_response_time_seconds == 3 * 3600

    def test_drift_is_repaired(self, db):
        event = make_event(db, invitees=["alice"])
        participant_service.record_response(db, event.event_id, "alice", "ACCEPTED", now=T0 + hours(1))
        alice = identity_service.get_identity(db, COMMUNITY, "alice")
        alice.total_invites = 7
        alice.total_responses = 0

        assert not identity_service.recompute_counters(db, alice)
        assert alice.total_invites == 1
        assert alice.total_responses == 1
        assert identity_service.recompute_counters(db, alice, repair=False)
