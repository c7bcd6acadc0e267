"""Initial schema: companies, memberships, trips, bookings, seat map, notifications.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "companies",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("logo", sa.String(500), nullable=True),
        sa.Column("owner_id", sa.String(128), nullable=True),
        sa.Column("created_by", sa.String(128), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_companies_id", "companies", ["id"])
    op.create_index("ix_companies_owner_id", "companies", ["owner_id"])
    op.create_index("ix_companies_created_by", "companies", ["created_by"])
    op.create_index("ix_companies_created_at", "companies", ["created_at"])

    # Single authoritative operator -> company linkage, whichever onboarding path wrote it
    op.create_table(
        "company_memberships",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("user_id", sa.String(128), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("source", sa.String(20), nullable=False),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "company_id", name="uq_membership_user_company"),
        sa.CheckConstraint("source IN ('owner', 'creator', 'profile')", name="check_membership_source"),
    )
    op.create_index("ix_company_memberships_id", "company_memberships", ["id"])
    op.create_index("ix_company_memberships_user_id", "company_memberships", ["user_id"])
    op.create_index("ix_company_memberships_company_id", "company_memberships", ["company_id"])
    op.create_index("ix_company_memberships_created_at", "company_memberships", ["created_at"])

    op.create_table(
        "trips",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("destination", sa.String(255), nullable=False),
        sa.Column("price_label", sa.String(100), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("transportation_type", sa.String(20), nullable=False, server_default=sa.text("'bus-48'")),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("version", sa.Integer(), nullable=False, server_default=sa.text("1")),
        *_timestamps(),
        sa.CheckConstraint(
            "transportation_type IN ('van-14', 'minibus-28', 'bus-48', 'bus-50')",
            name="check_trip_transportation_type",
        ),
    )
    op.create_index("ix_trips_id", "trips", ["id"])
    op.create_index("ix_trips_company_id", "trips", ["company_id"])
    op.create_index("ix_trips_created_at", "trips", ["created_at"])

    op.create_table(
        "bookings",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("reference", sa.String(40), nullable=False),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("company_id", sa.Integer(), sa.ForeignKey("companies.id"), nullable=False),
        sa.Column("trip_title", sa.String(255), nullable=False),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("requester_id", sa.String(128), nullable=False),
        sa.Column("requester_name", sa.String(255), nullable=False),
        sa.Column("requester_email", sa.String(255), nullable=True),
        sa.Column("requester_phone", sa.String(20), nullable=False),
        sa.Column("requested_seat_count", sa.Integer(), nullable=False),
        sa.Column("requested_seat_labels", sa.JSON(), nullable=False),
        sa.Column("requested_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("special_requests", sa.String(1000), nullable=False, server_default=sa.text("''")),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("total_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("commission", sa.Numeric(12, 2), nullable=False),
        sa.Column("net_to_operator", sa.Numeric(12, 2), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_status", sa.String(20), nullable=False, server_default=sa.text("'pending'")),
        sa.Column("payment_method", sa.String(20), nullable=False, server_default=sa.text("'cash'")),
        sa.Column("status_updated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.String(500), nullable=True),
        sa.Column("cancellation_reason", sa.String(500), nullable=True),
        *_timestamps(),
        sa.CheckConstraint("requested_seat_count > 0", name="check_booking_seat_count_positive"),
        sa.CheckConstraint(
            "status IN ('pending', 'accepted', 'rejected', 'cancelled')",
            name="check_booking_status",
        ),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'paid', 'refunded', 'partially_paid')",
            name="check_booking_payment_status",
        ),
    )
    op.create_index("ix_bookings_id", "bookings", ["id"])
    op.create_index("ix_bookings_reference", "bookings", ["reference"], unique=True)
    op.create_index("ix_bookings_trip_id", "bookings", ["trip_id"])
    op.create_index("ix_bookings_company_id", "bookings", ["company_id"])
    op.create_index("ix_bookings_requester_id", "bookings", ["requester_id"])
    op.create_index("ix_bookings_created_at", "bookings", ["created_at"])
    # "My bookings" and the active-booking-per-trip check
    op.create_index("ix_bookings_requester_status", "bookings", ["requester_id", "status"])
    # Operator dashboard and analytics windows
    op.create_index("ix_bookings_company_status_created", "bookings", ["company_id", "status", "created_at"])
    # Pending-seat scan in the conflict resolver
    op.create_index("ix_bookings_trip_status", "bookings", ["trip_id", "status"])

    op.create_table(
        "confirmed_seats",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("trip_id", sa.Integer(), sa.ForeignKey("trips.id"), nullable=False),
        sa.Column("seat_label", sa.String(20), nullable=False),
        sa.Column("occupant_name", sa.String(255), nullable=False),
        sa.Column("occupant_user_id", sa.String(128), nullable=False),
        sa.Column("booking_id", sa.Integer(), sa.ForeignKey("bookings.id"), nullable=False),
        *_timestamps(),
        # One slot per seat label per trip: a concurrent double claim fails here
        sa.UniqueConstraint("trip_id", "seat_label", name="uq_trip_seat_label"),
    )
    op.create_index("ix_confirmed_seats_id", "confirmed_seats", ["id"])
    op.create_index("ix_confirmed_seats_trip", "confirmed_seats", ["trip_id"])
    op.create_index("ix_confirmed_seats_booking_id", "confirmed_seats", ["booking_id"])
    op.create_index("ix_confirmed_seats_created_at", "confirmed_seats", ["created_at"])

    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column("recipient_id", sa.String(128), nullable=False),
        sa.Column("actor_id", sa.String(128), nullable=False),
        sa.Column("actor_name", sa.String(255), nullable=True),
        sa.Column("type", sa.String(20), nullable=False, server_default=sa.text("'system'")),
        sa.Column("message", sa.String(1000), nullable=False),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        *_timestamps(),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_recipient_id", "notifications", ["recipient_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_recipient_created", "notifications", ["recipient_id", "created_at"])
    op.create_index("ix_notifications_recipient_read", "notifications", ["recipient_id", "is_read"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("confirmed_seats")
    op.drop_table("bookings")
    op.drop_table("trips")
    op.drop_table("company_memberships")
    op.drop_table("companies")
