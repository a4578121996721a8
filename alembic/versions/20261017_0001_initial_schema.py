"""Initial schema

Revision ID: 20261017_0001
Revises:
Create Date: 2026-10-17 10:00:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "20261017_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


booking_status_enum = sa.Enum("confirmed", "cancelled", "completed", name="booking_status_enum", native_enum=False)
booking_request_status_enum = sa.Enum(
    "pending",
    "pending_host_approval",
    "confirmed",
    "cancelled",
    "expired",
    name="booking_request_status_enum",
    native_enum=False,
)
calendar_provider_enum = sa.Enum("google", "microsoft", name="calendar_provider_enum", native_enum=False)
notification_status_enum = sa.Enum("pending", "sent", "failed", name="notification_status_enum", native_enum=False)
outbox_status_enum = sa.Enum("pending", "processed", "failed", name="outbox_status_enum", native_enum=False)


def _id_col() -> sa.Column:
    return sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False)


def _created_col() -> sa.Column:
    return sa.Column("created_at", sa.DateTime(timezone=True), nullable=False)


def _updated_col() -> sa.Column:
    return sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False)


def _user_fk(table: str, column: str = "user_id", ondelete: str = "CASCADE") -> sa.ForeignKeyConstraint:
    return sa.ForeignKeyConstraint([column], ["users.id"], name=f"fk_{table}_{column}_users", ondelete=ondelete)


def upgrade() -> None:
    op.execute("CREATE EXTENSION IF NOT EXISTS btree_gist")

    op.create_table(
        "users",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("username", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=128), nullable=False),
        sa.Column("password_hash", sa.String(length=255), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_username", "users", ["username"], unique=True)

    op.create_table(
        "user_settings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("meeting_duration", sa.Integer(), nullable=True),
        sa.Column("buffer_minutes", sa.Integer(), nullable=True),
        sa.Column("booking_horizon_days", sa.Integer(), nullable=False),
        _user_fk("user_settings"),
        sa.UniqueConstraint("user_id", name="uq_user_settings_user_id"),
        sa.CheckConstraint(
            "meeting_duration IS NULL OR meeting_duration BETWEEN 15 AND 240",
            name="ck_user_settings_meeting_duration_range",
        ),
        sa.CheckConstraint(
            "buffer_minutes IS NULL OR buffer_minutes BETWEEN 0 AND 60",
            name="ck_user_settings_buffer_minutes_range",
        ),
    )

    op.create_table(
        "event_types",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(length=100), nullable=False),
        sa.Column("slug", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("duration_minutes", sa.Integer(), nullable=False),
        sa.Column("requires_confirmation", sa.Boolean(), nullable=False),
        sa.Column("minimum_notice_minutes", sa.Integer(), nullable=False),
        sa.Column("maximum_advance_minutes", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _user_fk("event_types"),
        sa.UniqueConstraint("user_id", "slug", name="uq_event_types_user_id_slug"),
        sa.CheckConstraint("duration_minutes BETWEEN 5 AND 480", name="ck_event_types_duration_range"),
    )
    op.create_index("ix_event_types_user_id", "event_types", ["user_id"], unique=False)
    op.create_index("ix_event_types_is_active", "event_types", ["is_active"], unique=False)

    op.create_table(
        "availability_rules",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("day_of_week", sa.SmallInteger(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("buffer_minutes", sa.Integer(), nullable=False),
        sa.Column("max_bookings_per_day", sa.Integer(), nullable=True),
        _user_fk("availability_rules"),
        sa.CheckConstraint("day_of_week BETWEEN 0 AND 6", name="ck_availability_rules_day_of_week_range"),
        sa.CheckConstraint("start_time < end_time", name="ck_availability_rules_time_order"),
        sa.CheckConstraint("buffer_minutes >= 0", name="ck_availability_rules_buffer_non_negative"),
        sa.CheckConstraint(
            "max_bookings_per_day IS NULL OR max_bookings_per_day >= 1",
            name="ck_availability_rules_max_bookings_positive",
        ),
    )
    op.create_index("ix_availability_rules_user_id", "availability_rules", ["user_id"], unique=False)
    op.create_index("ix_availability_rules_day_of_week", "availability_rules", ["day_of_week"], unique=False)

    op.create_table(
        "calendar_connections",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("provider", calendar_provider_enum, nullable=False),
        sa.Column("account_email", sa.String(length=255), nullable=True),
        sa.Column("access_token", sa.Text(), nullable=False),
        sa.Column("token_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        _user_fk("calendar_connections"),
        sa.UniqueConstraint(
            "user_id",
            "provider",
            "account_email",
            name="uq_calendar_connections_user_provider_account",
        ),
    )
    op.create_index("ix_calendar_connections_user_id", "calendar_connections", ["user_id"], unique=False)

    op.create_table(
        "bookings",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("host_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=25), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("status", booking_status_enum, nullable=False),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        _user_fk("bookings", column="host_id"),
        sa.ForeignKeyConstraint(
            ["event_type_id"],
            ["event_types.id"],
            name="fk_bookings_event_type_id_event_types",
            ondelete="SET NULL",
        ),
        sa.CheckConstraint("end_at > start_at", name="ck_bookings_time_range"),
    )
    op.create_index("ix_bookings_host_id", "bookings", ["host_id"], unique=False)
    op.create_index("ix_bookings_start_at", "bookings", ["start_at"], unique=False)
    op.create_index("ix_bookings_status", "bookings", ["status"], unique=False)
    op.execute(
        "ALTER TABLE bookings ADD CONSTRAINT ex_bookings_host_confirmed_overlap "
        "EXCLUDE USING gist (host_id WITH =, tstzrange(start_at, end_at, '[)') WITH &&) "
        "WHERE (status = 'confirmed')",
    )

    op.create_table(
        "booking_requests",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("host_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("event_type_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("customer_name", sa.String(length=100), nullable=False),
        sa.Column("customer_email", sa.String(length=255), nullable=False),
        sa.Column("customer_phone", sa.String(length=25), nullable=True),
        sa.Column("start_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("confirmation_token", sa.String(length=128), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("host_approval_token", sa.String(length=128), nullable=True),
        sa.Column("host_approval_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("status", booking_request_status_enum, nullable=False),
        sa.Column("customer_confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("host_decision_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancellation_reason", sa.String(length=512), nullable=True),
        sa.Column("booking_id", postgresql.UUID(as_uuid=True), nullable=True),
        _user_fk("booking_requests", column="host_id"),
        sa.ForeignKeyConstraint(
            ["event_type_id"],
            ["event_types.id"],
            name="fk_booking_requests_event_type_id_event_types",
            ondelete="SET NULL",
        ),
        sa.ForeignKeyConstraint(
            ["booking_id"],
            ["bookings.id"],
            name="fk_booking_requests_booking_id_bookings",
            ondelete="SET NULL",
        ),
        sa.UniqueConstraint("confirmation_token", name="uq_booking_requests_confirmation_token"),
        sa.UniqueConstraint("host_approval_token", name="uq_booking_requests_host_approval_token"),
        sa.CheckConstraint("end_at > start_at", name="ck_booking_requests_time_range"),
    )
    op.create_index(
        "ix_booking_requests_host_status_start",
        "booking_requests",
        ["host_id", "status", "start_at"],
        unique=False,
    )

    op.create_table(
        "notifications",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("recipient_email", sa.String(length=255), nullable=False),
        sa.Column("channel", sa.String(length=32), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("body", sa.Text(), nullable=False),
        sa.Column("source_event", sa.String(length=128), nullable=True),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        _user_fk("notifications"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"], unique=False)
    op.create_index("ix_notifications_status", "notifications", ["status"], unique=False)

    op.create_table(
        "audit_logs",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("actor_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("action", sa.String(length=128), nullable=False),
        sa.Column("entity_type", sa.String(length=64), nullable=False),
        sa.Column("entity_id", sa.String(length=64), nullable=True),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        _user_fk("audit_logs", column="actor_id", ondelete="SET NULL"),
    )
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"], unique=False)
    op.create_index("ix_audit_logs_action", "audit_logs", ["action"], unique=False)
    op.create_index("ix_audit_logs_entity", "audit_logs", ["entity_type", "entity_id"], unique=False)

    op.create_table(
        "outbox_events",
        _id_col(),
        _created_col(),
        _updated_col(),
        sa.Column("aggregate_type", sa.String(length=64), nullable=False),
        sa.Column("aggregate_id", sa.String(length=64), nullable=False),
        sa.Column("event_type", sa.String(length=128), nullable=False),
        sa.Column("payload", postgresql.JSONB(astext_type=sa.Text()), nullable=False),
        sa.Column("status", outbox_status_enum, nullable=False),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retries", sa.Integer(), nullable=False),
        sa.Column("error_message", sa.Text(), nullable=True),
    )
    op.create_index("ix_outbox_events_aggregate_id", "outbox_events", ["aggregate_id"], unique=False)
    op.create_index("ix_outbox_events_event_type", "outbox_events", ["event_type"], unique=False)
    op.create_index(
        "ix_outbox_events_status_occurred_at",
        "outbox_events",
        ["status", "occurred_at"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_outbox_events_status_occurred_at", table_name="outbox_events")
    op.drop_index("ix_outbox_events_event_type", table_name="outbox_events")
    op.drop_index("ix_outbox_events_aggregate_id", table_name="outbox_events")
    op.drop_table("outbox_events")

    op.drop_index("ix_audit_logs_entity", table_name="audit_logs")
    op.drop_index("ix_audit_logs_action", table_name="audit_logs")
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_table("audit_logs")

    op.drop_index("ix_notifications_status", table_name="notifications")
    op.drop_index("ix_notifications_user_id", table_name="notifications")
    op.drop_table("notifications")

    op.drop_index("ix_booking_requests_host_status_start", table_name="booking_requests")
    op.drop_table("booking_requests")

    op.execute("ALTER TABLE bookings DROP CONSTRAINT IF EXISTS ex_bookings_host_confirmed_overlap")
    op.drop_index("ix_bookings_status", table_name="bookings")
    op.drop_index("ix_bookings_start_at", table_name="bookings")
    op.drop_index("ix_bookings_host_id", table_name="bookings")
    op.drop_table("bookings")

    op.drop_index("ix_calendar_connections_user_id", table_name="calendar_connections")
    op.drop_table("calendar_connections")

    op.drop_index("ix_availability_rules_day_of_week", table_name="availability_rules")
    op.drop_index("ix_availability_rules_user_id", table_name="availability_rules")
    op.drop_table("availability_rules")

    op.drop_index("ix_event_types_is_active", table_name="event_types")
    op.drop_index("ix_event_types_user_id", table_name="event_types")
    op.drop_table("event_types")

    op.drop_table("user_settings")

    op.drop_index("ix_users_username", table_name="users")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
