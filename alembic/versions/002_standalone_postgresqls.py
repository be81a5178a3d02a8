"""Add standalone_postgresqls and the records they own.

Revision ID: 002
Revises: 001
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    ]


def upgrade() -> None:
    op.create_table(
        "standalone_postgresqls",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uuid", sa.String(32), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("status", sa.String(255), nullable=False, server_default="exited:unhealthy"),
        sa.Column("last_online_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("config_hash", sa.String(64), nullable=True),
        sa.Column("image", sa.String(255), nullable=False),
        sa.Column("ports_mappings", sa.String(1024), nullable=True),
        sa.Column("postgres_initdb_args", sa.Text(), nullable=True),
        sa.Column("postgres_host_auth_method", sa.String(63), nullable=True),
        sa.Column("init_scripts", sa.JSON(), nullable=True),
        sa.Column("postgres_user", sa.String(255), nullable=False),
        # Fernet ciphertext
        sa.Column("postgres_password", sa.Text(), nullable=False),
        sa.Column("postgres_db", sa.String(255), nullable=False),
        sa.Column("enable_ssl", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("ssl_mode", sa.String(20), nullable=False, server_default="require"),
        sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("public_port", sa.Integer(), nullable=True),
        sa.Column(
            "is_log_drain_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column(
            "destination_id",
            sa.Integer(),
            sa.ForeignKey("destinations.id", ondelete="RESTRICT"),
            nullable=False,
        ),
        *_timestamps(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
    )
    op.create_index(
        "ix_standalone_postgresqls_destination_id", "standalone_postgresqls", ["destination_id"]
    )

    op.create_table(
        "local_persistent_volumes",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("mount_path", sa.String(1024), nullable=False),
        sa.Column("host_path", sa.String(1024), nullable=True),
        sa.Column("is_readonly", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("resource_type", sa.String(63), nullable=False),
        sa.Column("resource_id", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_local_persistent_volumes_resource",
        "local_persistent_volumes",
        ["resource_type", "resource_id"],
    )

    op.create_table(
        "scheduled_database_backups",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uuid", sa.String(32), nullable=False, unique=True),
        sa.Column("frequency", sa.String(63), nullable=False, server_default="0 0 * * *"),
        sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.text("true")),
        sa.Column(
            "number_of_backups_locally", sa.Integer(), nullable=False, server_default=sa.text("7")
        ),
        sa.Column("resource_type", sa.String(63), nullable=False),
        sa.Column("resource_id", sa.Integer(), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        "ix_scheduled_database_backups_resource",
        "scheduled_database_backups",
        ["resource_type", "resource_id"],
    )

    op.create_table(
        "environment_variables",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("key", sa.String(255), nullable=False),
        sa.Column("value", sa.Text(), nullable=True),
        sa.Column("is_build_time", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("resource_type", sa.String(63), nullable=False),
        sa.Column("resource_id", sa.Integer(), nullable=False),
        *_timestamps(),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.UniqueConstraint(
            "resource_type", "resource_id", "key", name="uq_environment_variables"
        ),
    )

    op.create_table(
        "tags",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(63), nullable=False, unique=True),
        *_timestamps(),
    )

    op.create_table(
        "taggables",
        sa.Column(
            "tag_id",
            sa.Integer(),
            sa.ForeignKey("tags.id", ondelete="CASCADE"),
            primary_key=True,
        ),
        sa.Column("taggable_type", sa.String(63), primary_key=True),
        sa.Column("taggable_id", sa.Integer(), primary_key=True),
    )


def downgrade() -> None:
    op.drop_table("taggables")
    op.drop_table("tags")
    op.drop_table("environment_variables")
    op.drop_table("scheduled_database_backups")
    op.drop_table("local_persistent_volumes")
    op.drop_table("standalone_postgresqls")
