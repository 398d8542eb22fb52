"""initial_schema

Revision ID: 0001
Revises:
Create Date: 2026-10-18

Creates all tables for the hub core: users and the four role-profile
tables, events, event_tags, event_participations, liked_events,
saved_events, saved_posts, subscriptions, notifications.
"""
from typing import Sequence, Union
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

user_role = sa.Enum("STUDENT", "UNIVERSITY", "COMPANY", "ADMIN", name="user_role")
account_status = sa.Enum("ACTIVE", "VERIFIED", "SUSPENDED", "DELETED", name="account_status")
event_status = sa.Enum("PENDING", "ACTIVE", "COMPLETED", "CANCELED", name="event_status")
rsvp_status = sa.Enum("GOING", "MAYBE", "NOT_GOING", name="rsvp_status")
registration_status = sa.Enum("REGISTERED", "PENDING", "CANCELED", "WAITLISTED", name="registration_status")
subscription_plan = sa.Enum("FREE", "BASIC", "PREMIUM", "ENTERPRISE", name="subscription_plan")
payment_status = sa.Enum("PENDING", "COMPLETED", "FAILED", "REFUNDED", "CANCELED", name="payment_status")
notification_type = sa.Enum(
    "EVENT_UPDATE", "EVENT_REMINDER", "EVENT_CANCELED", "EVENT_INVITATION", "REGISTRATION_CONFIRMED",
    "WAITLISTED", "PAYMENT_SUCCESS", "PAYMENT_FAILED", "PAYMENT_REFUNDED", "SUBSCRIPTION_RENEWAL",
    "SUBSCRIPTION_CANCELED", "EVENT_LIKED", "POST_SAVED", "SYSTEM",
    name="notification_type",
)
notification_channel = sa.Enum("IN_APP", "EMAIL", "SMS", "PUSH", name="notification_channel")
notification_priority = sa.Enum("LOW", "NORMAL", "HIGH", "URGENT", name="notification_priority")
delivery_status = sa.Enum("PENDING", "SENT", "FAILED", name="delivery_status")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def _profile_pk() -> sa.Column:
    return sa.Column("id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), primary_key=True)


def upgrade() -> None:
    # --- users + role profiles ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("password_hash", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("role", user_role, nullable=False),
        sa.Column("status", account_status, nullable=False),
        sa.Column("login_history", sa.JSON, nullable=False),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)
    op.create_index("ix_users_role", "users", ["role"])

    op.create_table(
        "students",
        _profile_pk(),
        sa.Column("university_name", sa.String(255), nullable=True),
        sa.Column("specialization", sa.String(255), nullable=True),
        sa.Column("graduation_year", sa.Integer, nullable=True),
        sa.Column("student_number", sa.String(64), nullable=True),
        sa.Column("bio", sa.Text, nullable=True),
    )
    op.create_index("ix_students_university_name", "students", ["university_name"])
    op.create_index("ix_students_specialization", "students", ["specialization"])
    op.create_index("ix_students_graduation_year", "students", ["graduation_year"])

    op.create_table(
        "universities",
        _profile_pk(),
        sa.Column("institution_name", sa.String(255), nullable=False),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("address", sa.String(500), nullable=True),
        sa.Column("accreditation", sa.String(255), nullable=True),
    )
    op.create_index("ix_universities_institution_name", "universities", ["institution_name"])

    op.create_table(
        "companies",
        _profile_pk(),
        sa.Column("company_name", sa.String(255), nullable=False),
        sa.Column("industry", sa.String(150), nullable=True),
        sa.Column("website", sa.String(500), nullable=True),
        sa.Column("company_size", sa.String(50), nullable=True),
    )
    op.create_index("ix_companies_company_name", "companies", ["company_name"])
    op.create_index("ix_companies_industry", "companies", ["industry"])

    op.create_table(
        "admins",
        _profile_pk(),
        sa.Column("department", sa.String(150), nullable=True),
        sa.Column("permissions", sa.JSON, nullable=False),
    )

    # --- events ---
    op.create_table(
        "events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("creator_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text, nullable=True),
        sa.Column("category", sa.String(100), nullable=True),
        sa.Column("location", sa.String(500), nullable=True),
        sa.Column("latitude", sa.Float, nullable=True),
        sa.Column("longitude", sa.Float, nullable=True),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer, nullable=True),
        sa.Column("is_public", sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column("status", event_status, nullable=False),
        sa.Column("like_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("save_count", sa.Integer, nullable=False, server_default="0"),
        sa.Column("activated_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column(
            "canceled_by_user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
        ),
        *_timestamps(),
        sa.CheckConstraint("capacity IS NULL OR capacity > 0", name="ck_events_capacity_positive"),
        sa.CheckConstraint("like_count >= 0", name="ck_events_like_count_non_negative"),
        sa.CheckConstraint("save_count >= 0", name="ck_events_save_count_non_negative"),
    )
    op.create_index("ix_events_creator_id", "events", ["creator_id"])
    op.create_index("ix_events_category", "events", ["category"])
    op.create_index("ix_events_start_date", "events", ["start_date"])
    op.create_index("ix_events_status", "events", ["status"])

    op.create_table(
        "event_tags",
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("tag", sa.String(64), primary_key=True),
    )
    op.create_index("ix_event_tags_tag", "event_tags", ["tag"])

    # --- participation ---
    op.create_table(
        "event_participations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("rsvp_status", rsvp_status, nullable=True),
        sa.Column("registration_status", registration_status, nullable=True),
        sa.Column("registered_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("waitlisted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=True),
        sa.Column("feedback", sa.Text, nullable=True),
        sa.Column("rating", sa.Integer, nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("user_id", "event_id", name="uq_participation_user_event"),
        sa.CheckConstraint("rating IS NULL OR (rating >= 1 AND rating <= 5)", name="ck_participation_rating_range"),
    )
    op.create_index("ix_event_participations_user_id", "event_participations", ["user_id"])
    op.create_index("ix_event_participations_event_id", "event_participations", ["event_id"])
    op.create_index("ix_event_participations_rsvp_status", "event_participations", ["rsvp_status"])
    op.create_index(
        "ix_event_participations_registration_status", "event_participations", ["registration_status"],
    )

    # --- engagement ---
    op.create_table(
        "liked_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        # No FK: may reference a document-store id
        sa.Column("event_id", sa.String(64), nullable=False),
        sa.Column("is_external", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("liked_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "event_id", name="uq_liked_event_user_event"),
    )
    op.create_index("ix_liked_events_user_id", "liked_events", ["user_id"])
    op.create_index("ix_liked_events_event_id", "liked_events", ["event_id"])

    op.create_table(
        "saved_events",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=False),
        sa.Column("saved_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "event_id", name="uq_saved_event_user_event"),
    )
    op.create_index("ix_saved_events_user_id", "saved_events", ["user_id"])
    op.create_index("ix_saved_events_event_id", "saved_events", ["event_id"])

    op.create_table(
        "saved_posts",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("post_id", sa.String(64), nullable=False),
        sa.Column("saved_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.UniqueConstraint("user_id", "post_id", name="uq_saved_post_user_post"),
    )
    op.create_index("ix_saved_posts_user_id", "saved_posts", ["user_id"])
    op.create_index("ix_saved_posts_post_id", "saved_posts", ["post_id"])

    # --- subscriptions ---
    op.create_table(
        "subscriptions",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column(
            "user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, unique=True,
        ),
        sa.Column("plan", subscription_plan, nullable=False),
        sa.Column("payment_status", payment_status, nullable=False),
        sa.Column("last_renewal_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("next_renewal_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("billing_history", sa.JSON, nullable=False),
        sa.Column("provider_customer_id", sa.String(255), nullable=True, unique=True),
        sa.Column("canceled_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("user_id", sa.String(36), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("message", sa.Text, nullable=False),
        sa.Column("type", notification_type, nullable=False),
        sa.Column("channel", notification_channel, nullable=False),
        sa.Column("priority", notification_priority, nullable=False),
        sa.Column("status", delivery_status, nullable=False),
        sa.Column("read_status", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("event_id", sa.String(36), sa.ForeignKey("events.id", ondelete="CASCADE"), nullable=True),
        sa.Column(
            "subscription_id", sa.String(36), sa.ForeignKey("subscriptions.id", ondelete="CASCADE"), nullable=True,
        ),
        sa.Column("linked_entity_type", sa.String(50), nullable=True),
        sa.Column("linked_entity_id", sa.String(64), nullable=True),
        sa.Column("data", sa.JSON, nullable=True),
        sa.Column("metadata", sa.JSON, nullable=True),
        sa.Column("sender", sa.JSON, nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("failure_reason", sa.String(500), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_type", "notifications", ["type"])
    op.create_index("ix_notifications_status", "notifications", ["status"])
    op.create_index("ix_notifications_read_status", "notifications", ["read_status"])
    op.create_index("ix_notifications_linked_entity_id", "notifications", ["linked_entity_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])


def downgrade() -> None:
    for table in (
        "notifications",
        "subscriptions",
        "saved_posts",
        "saved_events",
        "liked_events",
        "event_participations",
        "event_tags",
        "events",
        "admins",
        "companies",
        "universities",
        "students",
        "users",
    ):
        op.drop_table(table)
    bind = op.get_bind()
    for enum_type in (
        delivery_status, notification_priority, notification_channel, notification_type, payment_status,
        subscription_plan, registration_status, rsvp_status, event_status, account_status, user_role,
    ):
        enum_type.drop(bind, checkfirst=True)
