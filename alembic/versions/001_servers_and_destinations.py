"""Add servers, server_settings and destinations tables.

Revision ID: 001
Revises: None
Create Date: 2026-10-19
"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "servers",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uuid", sa.String(32), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("ip", sa.String(255), nullable=False),
        sa.Column("port", sa.Integer(), nullable=False, server_default=sa.text("22")),
        sa.Column("user", sa.String(63), nullable=False, server_default="root"),
        sa.Column("is_reachable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("is_usable", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column("force_disabled", sa.Boolean(), nullable=False, server_default=sa.text("false")),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.func.now(),
        ),
    )

    op.create_table(
        "server_settings",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "server_id",
            sa.Integer(),
            sa.ForeignKey("servers.id", ondelete="CASCADE"),
            nullable=False,
            unique=True,
        ),
        sa.Column(
            "is_metrics_enabled", sa.Boolean(), nullable=False, server_default=sa.text("false")
        ),
        sa.Column("sentinel_token", sa.Text(), nullable=True),
    )

    op.create_table(
        "destinations",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("uuid", sa.String(32), nullable=False, unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("kind", sa.String(32), nullable=False, server_default="standalone-docker"),
        sa.Column("network", sa.String(255), nullable=False, server_default="pgharbor"),
        sa.Column(
            "server_id",
            sa.Integer(),
            sa.ForeignKey("servers.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.CheckConstraint(
            "kind IN ('standalone-docker', 'swarm-docker', 'kubernetes')",
            name="ck_destinations_kind",
        ),
    )
    op.create_index("ix_destinations_server_id", "destinations", ["server_id"])


def downgrade() -> None:
    op.drop_table("destinations")
    op.drop_table("server_settings")
    op.drop_table("servers")
