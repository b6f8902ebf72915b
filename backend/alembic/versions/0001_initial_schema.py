"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates all tables for the group scheduling ledger:
communities, identities, events, participants, response_history,
audit_log_entries.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

EVENT_STATUS = ("ACTIVE", "CLOSED", "CANCELLED")
PARTICIPANT_STATUS = (
    "PENDING",
    "ACCEPTED",
    "ACCEPTED_WITH_RESERVATION",
    "ACCEPTED_WITHOUT_TIME",
    "OTHER_TIME",
    "DECLINED",
)
ENTRY_KIND = ("TRANSITION", "CHECKPOINT")
RESPONSE_CONTEXT = ("INITIAL", "AFTER_REMINDER", "AFTER_START_REMINDER", "LAST_MINUTE")
AUDIT_ACTION = (
    "EVENT_CREATED",
    "EVENT_CLOSED",
    "EVENT_CANCELLED",
    "PARTICIPANT_INVITED",
    "PARTICIPANT_REMOVED",
    "REMINDER_SENT",
    "START_REMINDER_SENT",
)


def upgrade() -> None:
    # --- communities ---
    op.create_table(
        "communities",
        sa.Column("community_id", sa.String(64), primary_key=True),
        sa.Column("name", sa.String(150), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_activity_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    # --- identities ---
    op.create_table(
        "identities",
        sa.Column("identity_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "community_id", sa.String(64),
            sa.ForeignKey("communities.community_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("user_id", sa.String(64), nullable=False),
        sa.Column("username", sa.String(100), nullable=False),
        sa.Column("display_name", sa.String(100), nullable=True),
        sa.Column("first_seen_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("last_active_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("total_invites", sa.Integer, nullable=False, server_default="0"),
        sa.Column("total_responses", sa.Integer, nullable=False, server_default="0"),
        sa.Column("avg_response_time_seconds", sa.Integer, nullable=True),
        sa.UniqueConstraint("community_id", "user_id", name="uq_identities_community_user"),
    )
    op.create_index("ix_identities_user_id", "identities", ["user_id"])

    # --- events ---
    op.create_table(
        "events",
        sa.Column("event_id", sa.String(36), primary_key=True),
        sa.Column(
            "community_id", sa.String(64),
            sa.ForeignKey("communities.community_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("date", sa.String(20), nullable=False),
        sa.Column("time", sa.String(10), nullable=False),
        sa.Column("parsed_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("relative_date", sa.String(100), nullable=True),
        sa.Column("comment", sa.Text, nullable=True),
        sa.Column("channel_id", sa.String(64), nullable=True),
        sa.Column("message_id", sa.String(64), nullable=True),
        sa.Column("organizer_id", sa.String(64), nullable=False),
        sa.Column("status", sa.Enum(*EVENT_STATUS, name="event_status"), nullable=False, server_default="ACTIVE"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("closed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        sa.Column("reminders_sent", sa.Integer, nullable=False, server_default="0"),
        sa.Column("start_reminders_sent", sa.Integer, nullable=False, server_default="0"),
    )
    op.create_index("ix_events_organizer_id", "events", ["organizer_id"])
    op.create_index("ix_events_community_created_at", "events", ["community_id", "created_at"])
    op.create_index("ix_events_community_status", "events", ["community_id", "status"])

    # --- participants ---
    op.create_table(
        "participants",
        sa.Column("participant_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "event_id", sa.String(36),
            sa.ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column(
            "identity_id", sa.Integer,
            sa.ForeignKey("identities.identity_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("invited_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column(
            "current_status", sa.Enum(*PARTICIPANT_STATUS, name="participant_status"),
            nullable=False, server_default="PENDING",
        ),
        sa.Column("alternative_time", sa.String(20), nullable=True),
        sa.UniqueConstraint("event_id", "identity_id", name="uq_participants_event_identity"),
    )
    op.create_index("ix_participants_event_status", "participants", ["event_id", "current_status"])

    # --- response_history ---
    op.create_table(
        "response_history",
        sa.Column("entry_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "participant_id", sa.Integer,
            sa.ForeignKey("participants.participant_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("entry_kind", sa.Enum(*ENTRY_KIND, name="entry_kind"), nullable=False),
        sa.Column(
            "old_status", postgresql.ENUM(*PARTICIPANT_STATUS, name="participant_status", create_type=False),
            nullable=True,
        ),
        sa.Column(
            "new_status", postgresql.ENUM(*PARTICIPANT_STATUS, name="participant_status", create_type=False),
            nullable=False,
        ),
        sa.Column("changed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("response_time_seconds", sa.Integer, nullable=False, server_default="0"),
        sa.Column("alternative_time", sa.String(20), nullable=True),
        sa.Column("response_context", sa.Enum(*RESPONSE_CONTEXT, name="response_context"), nullable=False),
        sa.Column("reminder_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("hours_before_event", sa.Float, nullable=False, server_default="0"),
    )
    op.create_index("ix_response_history_changed_at", "response_history", ["changed_at"])
    op.create_index(
        "ix_response_history_participant_changed_at", "response_history", ["participant_id", "changed_at"]
    )

    # --- audit_log_entries ---
    op.create_table(
        "audit_log_entries",
        sa.Column("entry_id", sa.Integer, primary_key=True, autoincrement=True),
        sa.Column(
            "event_id", sa.String(36),
            sa.ForeignKey("events.event_id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("action", sa.Enum(*AUDIT_ACTION, name="audit_action"), nullable=False),
        sa.Column("performed_by", sa.String(64), nullable=False),
        sa.Column("performed_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("details", sa.JSON, nullable=True),
    )
    op.create_index("ix_audit_log_entries_performed_by", "audit_log_entries", ["performed_by"])
    op.create_index(
        "ix_audit_log_entries_event_performed_at", "audit_log_entries", ["event_id", "performed_at"]
    )


def downgrade() -> None:
    op.drop_table("audit_log_entries")
    op.drop_table("response_history")
    op.drop_table("participants")
    op.drop_table("events")
    op.drop_table("identities")
    op.drop_table("communities")
    for enum_name in ("audit_action", "response_context", "entry_kind", "participant_status", "event_status"):
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
