"""Create the port registry, console users and terminal inventory."""

from __future__ import annotations

from typing import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision = "20261019_0001"
down_revision = None
branch_labels: Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def _dialect_settings():
    bind = op.get_bind()
    dialect = bind.dialect.name if bind else "sqlite"

    uuid_type = sa.String(length=36)
    inet_type = sa.String(length=45)
    if dialect == "postgresql":
        uuid_type = postgresql.UUID(as_uuid=True)
        inet_type = postgresql.INET()
    return uuid_type, inet_type


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
    bind = op.get_bind()
    inspector = sa.inspect(bind)
    uuid_type, inet_type = _dialect_settings()

    if not inspector.has_table("ports"):
        op.create_table(
            "ports",
            sa.Column("port_id", sa.Integer(), primary_key=True, autoincrement=True),
            sa.Column("port_number", sa.Integer(), nullable=False, unique=True),
            sa.Column("port_capacity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("used_ports", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("description", sa.String(length=255), nullable=True),
            *_timestamps(),
            sa.CheckConstraint("port_capacity >= 0", name="ck_ports_capacity_non_negative"),
            sa.CheckConstraint("used_ports >= 0", name="ck_ports_used_non_negative"),
        )

    if not inspector.has_table("users"):
        op.create_table(
            "users",
            sa.Column("user_id", uuid_type, primary_key=True),
            sa.Column("first_name", sa.String(length=120), nullable=False),
            sa.Column("father_name", sa.String(length=120), nullable=False),
            sa.Column("grandfather_name", sa.String(length=120), nullable=True),
            sa.Column("email", sa.String(length=255), nullable=False, unique=True),
            sa.Column("department", sa.String(length=120), nullable=True),
            sa.Column(
                "role",
                sa.Enum(
                    "superadmin",
                    "admin",
                    "user",
                    "tempo_superadmin",
                    "tempo_admin",
                    "tempo_user",
                    name="user_role_enum",
                    native_enum=False,
                ),
                nullable=False,
                server_default="user",
            ),
            sa.Column("username", sa.String(length=120), nullable=False, unique=True),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column(
                "status",
                sa.Enum("New", "Active", "Deleted", name="user_status_enum", native_enum=False),
                nullable=False,
                server_default="New",
            ),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("wrong_password_count", sa.Integer(), nullable=False, server_default="0"),
            sa.Column(
                "created_by",
                uuid_type,
                sa.ForeignKey("users.user_id", ondelete="SET NULL"),
                nullable=True,
            ),
            *_timestamps(),
        )
        op.create_index("users_is_deleted_idx", "users", ["is_deleted"])

    if not inspector.has_table("terminals"):
        op.create_table(
            "terminals",
            sa.Column("terminal_pk", uuid_type, primary_key=True),
            sa.Column("unit_id", sa.String(length=64), nullable=False),
            sa.Column("type", sa.String(length=64), nullable=False),
            sa.Column("terminal_id", sa.String(length=64), nullable=False),
            sa.Column("terminal_name", sa.String(length=255), nullable=True),
            sa.Column("branch_name", sa.String(length=255), nullable=False),
            sa.Column("district", sa.String(length=255), nullable=False),
            sa.Column(
                "site",
                sa.Enum("Onsite", "Offsite", name="terminal_site_enum", native_enum=False),
                nullable=False,
            ),
            sa.Column("cbs_account", sa.String(length=64), nullable=False),
            sa.Column(
                "port",
                sa.Integer(),
                sa.ForeignKey("ports.port_number", onupdate="CASCADE"),
                nullable=False,
            ),
            sa.Column("ip_address", inet_type, nullable=False),
            sa.Column(
                "status",
                sa.Enum(
                    "New",
                    "Active",
                    "Stopped",
                    "Relocated",
                    "Deleted",
                    name="terminal_status_enum",
                    native_enum=False,
                ),
                nullable=False,
                server_default="New",
            ),
            sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column(
                "created_by",
                uuid_type,
                sa.ForeignKey("users.user_id", ondelete="SET NULL"),
                nullable=True,
            ),
            *_timestamps(),
        )

        active_only = sa.text("is_deleted = false")
        for name, columns in (
            ("uq_terminals_active_unit_type", ["unit_id", "type"]),
            ("uq_terminals_active_terminal_id", ["terminal_id"]),
            ("uq_terminals_active_cbs_account", ["cbs_account"]),
            ("uq_terminals_active_ip_address", ["ip_address"]),
        ):
            op.create_index(
                name,
                "terminals",
                columns,
                unique=True,
                sqlite_where=active_only,
                postgresql_where=active_only,
            )
        op.create_index("ix_terminals_port", "terminals", ["port"])
        op.create_index("terminals_type_site_idx", "terminals", ["type", "site"])


def downgrade() -> None:
    op.drop_index("terminals_type_site_idx", table_name="terminals")
    op.drop_index("ix_terminals_port", table_name="terminals")
    for name in (
        "uq_terminals_active_ip_address",
        "uq_terminals_active_cbs_account",
        "uq_terminals_active_terminal_id",
        "uq_terminals_active_unit_type",
    ):
        op.drop_index(name, table_name="terminals")
    op.drop_table("terminals")
    op.drop_index("users_is_deleted_idx", table_name="users")
    op.drop_table("users")
    op.drop_table("ports")
