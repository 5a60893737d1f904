"""Initial field reservation schema.

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None

_FIELD_STATUS = sa.Enum("AVAILABLE", "MAINTENANCE", "CLOSED", name="fieldstatus")
_RESERVATION_STATUS = sa.Enum(
    "PENDING", "CONFIRMED", "CANCELLED", "COMPLETED", name="reservationstatus"
)
_WAITLIST_STATUS = sa.Enum(
    "OPEN", "OFFERED", "CONVERTED", "WITHDRAWN", "EXPIRED", name="waitliststatus"
)
_LIVE_WAITLIST = sa.text("status IN ('OPEN', 'OFFERED')")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "accounts",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("slug", sa.String(length=255), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "fields",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("field_type", sa.String(length=64)),
        sa.Column("status", _FIELD_STATUS, nullable=False),
        sa.Column("address", sa.Text()),
        sa.Column("capacity", sa.Integer()),
        sa.Column("hourly_rate", sa.Numeric(10, 2)),
        *_timestamps(),
        sa.UniqueConstraint("account_id", "name", name="uq_fields_account_name"),
    )

    op.create_table(
        "reservations",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "field_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("fields.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("team_id", sa.Uuid(as_uuid=True)),
        sa.Column("series_id", sa.Uuid(as_uuid=True)),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.Time(), nullable=False),
        sa.Column("end_time", sa.Time(), nullable=False),
        sa.Column("status", _RESERVATION_STATUS, nullable=False),
        sa.Column("purpose", sa.String(length=255)),
        sa.Column("attendees", sa.Integer()),
        sa.Column("notes", sa.String(length=1024)),
        sa.Column("confirmed_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_at", sa.DateTime(timezone=True)),
        sa.Column("cancelled_by", sa.Uuid(as_uuid=True)),
        sa.Column("cancellation_reason", sa.String(length=1024)),
        *_timestamps(),
        sa.CheckConstraint(
            "start_time < end_time", name="ck_reservations_valid_reservation_time"
        ),
    )
    op.create_index(
        "ix_reservations_field_date", "reservations", ["field_id", "date"]
    )
    op.create_index("ix_reservations_series", "reservations", ["series_id"])
    op.create_index("ix_reservations_user", "reservations", ["user_id"])

    op.create_table(
        "waitlist_entries",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "field_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("fields.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True), nullable=False),
        sa.Column("desired_date", sa.Date(), nullable=False),
        sa.Column("desired_start_time", sa.Time(), nullable=False),
        sa.Column("desired_end_time", sa.Time(), nullable=False),
        sa.Column("priority", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("status", _WAITLIST_STATUS, nullable=False),
        sa.Column("notified_at", sa.DateTime(timezone=True)),
        sa.Column("expires_at", sa.DateTime(timezone=True)),
        sa.Column(
            "converted_reservation_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("reservations.id", ondelete="SET NULL"),
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "desired_start_time < desired_end_time",
            name="ck_waitlist_entries_valid_waitlist_time",
        ),
    )
    op.create_index(
        "ix_waitlist_queue",
        "waitlist_entries",
        [
            "field_id",
            "desired_date",
            "desired_start_time",
            "desired_end_time",
            "status",
        ],
    )
    op.create_index("ix_waitlist_user", "waitlist_entries", ["user_id"])
    op.create_index(
        "ux_waitlist_user_slot_live",
        "waitlist_entries",
        [
            "user_id",
            "field_id",
            "desired_date",
            "desired_start_time",
            "desired_end_time",
        ],
        unique=True,
        postgresql_where=_LIVE_WAITLIST,
        sqlite_where=_LIVE_WAITLIST,
    )

    op.create_table(
        "audit_events",
        sa.Column("id", sa.Uuid(as_uuid=True), primary_key=True),
        sa.Column(
            "account_id",
            sa.Uuid(as_uuid=True),
            sa.ForeignKey("accounts.id", ondelete="SET NULL"),
        ),
        sa.Column("user_id", sa.Uuid(as_uuid=True)),
        sa.Column("event_type", sa.String(length=120), nullable=False),
        sa.Column("description", sa.String(length=1024)),
        sa.Column("payload", sa.JSON()),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_index("ux_waitlist_user_slot_live", table_name="waitlist_entries")
    op.drop_index("ix_waitlist_user", table_name="waitlist_entries")
    op.drop_index("ix_waitlist_queue", table_name="waitlist_entries")
    op.drop_table("waitlist_entries")
    op.drop_index("ix_reservations_user", table_name="reservations")
    op.drop_index("ix_reservations_series", table_name="reservations")
    op.drop_index("ix_reservations_field_date", table_name="reservations")
    op.drop_table("reservations")
    op.drop_table("fields")
    op.drop_table("accounts")
    _WAITLIST_STATUS.drop(op.get_bind(), checkfirst=True)
    _RESERVATION_STATUS.drop(op.get_bind(), checkfirst=True)
    _FIELD_STATUS.drop(op.get_bind(), checkfirst=True)
