"""Add the user activity log."""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0002"
down_revision = "20261019_0001"
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None

ACTIONS = (
    "login",
    "login_failed",
    "logout",
    "create_record",
    "reactivate_user",
    "delete_user",
    "unlock_user",
    "reset_password",
    "change_password",
)


def upgrade() -> None:
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    if inspector.has_table("user_activity_log"):
        return

    uuid_type = sa.String(length=36)
    if bind.dialect.name == "postgresql":
        uuid_type = postgresql.UUID(as_uuid=True)

    op.create_table(
        "user_activity_log",
        sa.Column("activity_id", uuid_type, primary_key=True),
        sa.Column(
            "user_id",
            uuid_type,
            sa.ForeignKey("users.user_id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column(
            "action",
            sa.Enum(*ACTIONS, name="user_activity_action_enum", native_enum=False),
            nullable=False,
        ),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("performed_by", sa.String(length=120), nullable=True),
        sa.Column("ip_address", sa.String(length=45), nullable=True),
        sa.Column("user_agent", sa.String(length=255), nullable=True),
        sa.Column(
            "occurred_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_user_activity_log_user_id", "user_activity_log", ["user_id"])
    op.create_index("user_activity_log_action_idx", "user_activity_log", ["action"])


def downgrade() -> None:
    op.drop_index("user_activity_log_action_idx", table_name="user_activity_log")
    op.drop_index("ix_user_activity_log_user_id", table_name="user_activity_log")
    op.drop_table("user_activity_log")
