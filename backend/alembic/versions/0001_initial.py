"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19
"""

import sqlalchemy as sa
from alembic import op

revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "organizations",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("created_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
    )

    op.create_table(
        "professionals",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("email", sa.Text),
        sa.Column("is_active", sa.Integer, nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "clients",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("phone", sa.Text),
        sa.Column("email", sa.Text),
    )

    op.create_table(
        "services",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("duration", sa.Integer, nullable=False),
        sa.Column("is_active", sa.Integer, nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "professional_services",
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("service_id", sa.Integer, sa.ForeignKey("services.id", ondelete="CASCADE"), primary_key=True),
    )

    op.create_table(
        "work_schedules",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day_of_week", sa.Integer),
        sa.Column("start_time", sa.Text, nullable=False),
        sa.Column("end_time", sa.Text, nullable=False),
        sa.Column("is_active", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("is_exception", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("date_exception", sa.Text),
        sa.Column("version", sa.Integer, nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "work_schedule_breaks",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("work_schedule_id", sa.Integer, sa.ForeignKey("work_schedules.id", ondelete="CASCADE"), nullable=False),
        sa.Column("break_name", sa.Text),
        sa.Column("start_time", sa.Text, nullable=False),
        sa.Column("end_time", sa.Text, nullable=False),
        sa.Column("is_active", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("version", sa.Integer, nullable=False, server_default=sa.text("1")),
    )

    op.create_table(
        "vacation_requests",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", sa.Text, nullable=False, server_default=sa.text("'vacation'")),
        sa.Column("start_date", sa.Text, nullable=False),
        sa.Column("end_date", sa.Text, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("reason", sa.Text),
    )

    op.create_table(
        "appointments",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("client_id", sa.Integer, sa.ForeignKey("clients.id", ondelete="CASCADE"), nullable=False),
        sa.Column("service_id", sa.Integer, sa.ForeignKey("services.id"), nullable=False),
        sa.Column("consultation_id", sa.Integer),
        sa.Column("date", sa.Text, nullable=False),
        sa.Column("start_time", sa.Text, nullable=False),
        sa.Column("end_time", sa.Text, nullable=False),
        sa.Column("duration", sa.Integer, nullable=False),
        sa.Column("status", sa.Text, nullable=False, server_default=sa.text("'pending'")),
        sa.Column("notes", sa.Text),
        sa.Column("is_group_activity", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("google_calendar_event_id", sa.Text),
        sa.Column("synced_with_google", sa.Integer, nullable=False, server_default=sa.text("0")),
        sa.Column("created_at", sa.Text, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.Text, nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
    )
    op.create_index(
        "uq_appointments_live_slot",
        "appointments",
        ["professional_id", "date", "start_time"],
        unique=True,
        sqlite_where=sa.text("status <> 'cancelled'"),
        postgresql_where=sa.text("status <> 'cancelled'"),
    )
    op.create_index("ix_appointments_professional_date", "appointments", ["professional_id", "date"])

    op.create_table(
        "group_activities",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("organization_id", sa.Integer, sa.ForeignKey("organizations.id", ondelete="CASCADE"), nullable=False),
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("name", sa.Text, nullable=False),
        sa.Column("date", sa.Text, nullable=False),
        sa.Column("start_time", sa.Text, nullable=False),
        sa.Column("end_time", sa.Text, nullable=False),
        sa.Column("max_participants", sa.Integer, nullable=False, server_default=sa.text("1")),
        sa.Column("status", sa.Text, nullable=False, server_default=sa.text("'active'")),
    )

    op.create_table(
        "booking_day_locks",
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("date", sa.Text, primary_key=True),
        sa.Column("version", sa.Integer, nullable=False, server_default=sa.text("0")),
    )

    op.create_table(
        "professional_google_tokens",
        sa.Column("id", sa.Integer, primary_key=True),
        sa.Column("professional_id", sa.Integer, sa.ForeignKey("professionals.id", ondelete="CASCADE"), nullable=False),
        sa.Column("access_token", sa.Text, nullable=False),
        sa.Column("refresh_token", sa.Text, nullable=False),
        sa.Column("expires_at", sa.Text),
        sa.Column("calendar_id", sa.Text, nullable=False, server_default=sa.text("'primary'")),
        sa.Column("updated_at", sa.Text, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("professional_id"),
    )


def downgrade():
    op.drop_table("professional_google_tokens")
    op.drop_table("booking_day_locks")
    op.drop_table("group_activities")
    op.drop_index("ix_appointments_professional_date", table_name="appointments")
    op.drop_index("uq_appointments_live_slot", table_name="appointments")
    op.drop_table("appointments")
    op.drop_table("vacation_requests")
    op.drop_table("work_schedule_breaks")
    op.drop_table("work_schedules")
    op.drop_table("professional_services")
    op.drop_table("services")
    op.drop_table("clients")
    op.drop_table("professionals")
    op.drop_table("organizations")
