"""reservations and audit records

Revision ID: 0001
Revises:
Create Date: 2026-10-17
"""
from alembic import op
import sqlalchemy as sa


revision = "0001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "reservations",
        sa.Column("id", sa.String(36), primary_key=True),
        sa.Column("date", sa.DateTime(), nullable=False),
        sa.Column("start_instant", sa.DateTime(), nullable=False),
        sa.Column("end_instant", sa.DateTime(), nullable=False),
        sa.Column("contact_encrypted", sa.Text(), nullable=False),
        sa.Column("contact_digest", sa.String(64), nullable=False),
        sa.Column(
            "contact_kind",
            sa.Enum("EMAIL", "HANDLE", name="contactkind", native_enum=False, length=16),
            nullable=False,
        ),
        sa.Column("consent_given", sa.Boolean(), nullable=False),
        sa.Column(
            "status",
            sa.Enum("CONFIRMED", "CANCELLED", name="reservationstatus", native_enum=False, length=16),
            nullable=False,
            server_default=sa.text("'CONFIRMED'"),
        ),
        sa.Column("external_event_id", sa.Text()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_reservations_contact_digest", "reservations", ["contact_digest"])
    op.create_index("ix_reservations_status_end", "reservations", ["status", "end_instant"])
    op.create_index(
        "uq_reservations_confirmed_start",
        "reservations",
        ["start_instant"],
        unique=True,
        sqlite_where=sa.text("status = 'CONFIRMED'"),
        postgresql_where=sa.text("status = 'CONFIRMED'"),
    )

    op.create_table(
        "audit_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "action",
            sa.Enum("CREATED", "CANCELLED", "PURGED", name="auditaction", native_enum=False, length=16),
            nullable=False,
        ),
        sa.Column(
            "reservation_id",
            sa.String(36),
            sa.ForeignKey("reservations.id", ondelete="SET NULL"),
        ),
        sa.Column("metadata", sa.JSON(), nullable=False),
        sa.Column("created_at", sa.DateTime(), nullable=False),
    )


def downgrade():
    op.drop_table("audit_records")
    op.drop_index("uq_reservations_confirmed_start", table_name="reservations")
    op.drop_index("ix_reservations_status_end", table_name="reservations")
    op.drop_index("ix_reservations_contact_digest", table_name="reservations")
    op.drop_table("reservations")
