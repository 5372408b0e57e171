"""create_identities_and_audit_logs

Create the identities table with verification and reset code columns,
and the audit_logs table.

Revision ID: a1f3c9e20b71
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "a1f3c9e20b71"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


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
            onupdate=sa.func.now(),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "identities",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("phone_number", sa.String(32), nullable=False),
        sa.Column("national_id", sa.String(64), nullable=False),
        sa.Column("first_name", sa.String(120), nullable=True),
        sa.Column("last_name", sa.String(120), nullable=True),
        sa.Column("roles", sa.JSON(), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="active"),
        sa.Column("email_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("phone_verified", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("password_hash", sa.String(255), nullable=True),
        sa.Column("email_otp", sa.String(6), nullable=True),
        sa.Column("email_otp_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("phone_otp", sa.String(6), nullable=True),
        sa.Column("phone_otp_expires", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reset_password_pin", sa.String(6), nullable=True),
        sa.Column("reset_password_expires", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_identities_email", "identities", ["email"], unique=True)
    op.create_index("ix_identities_phone_number", "identities", ["phone_number"], unique=True)
    op.create_index("ix_identities_national_id", "identities", ["national_id"], unique=True)
    op.create_index("ix_identities_status", "identities", ["status"])

    op.create_table(
        "audit_logs",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("severity", sa.String(20), nullable=False, server_default="info"),
        sa.Column("actor_id", sa.VARCHAR(21), nullable=True),
        sa.Column("ip_address", sa.String(64), nullable=True),
        sa.Column("user_agent", sa.String(512), nullable=True),
        sa.Column("method", sa.String(10), nullable=True),
        sa.Column("path", sa.String(512), nullable=True),
        sa.Column("request_id", sa.String(64), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_audit_logs_severity", "audit_logs", ["severity"])
    op.create_index("ix_audit_logs_actor_id", "audit_logs", ["actor_id"])


def downgrade() -> None:
    op.drop_index("ix_audit_logs_actor_id", table_name="audit_logs")
    op.drop_index("ix_audit_logs_severity", table_name="audit_logs")
    op.drop_table("audit_logs")
    op.drop_index("ix_identities_status", table_name="identities")
    op.drop_index("ix_identities_national_id", table_name="identities")
    op.drop_index("ix_identities_phone_number", table_name="identities")
    op.drop_index("ix_identities_email", table_name="identities")
    op.drop_table("identities")
