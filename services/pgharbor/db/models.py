"""
SQLAlchemy database models for pgharbor.

All models use:
- Integer surrogate primary keys plus a short public `uuid`
- snake_case column names
- Plural table names
- TIMESTAMPTZ with UTC for all timestamps
- Soft deletes only on managed resources (`deleted_at`)

Records owned by a managed resource (volumes, backups, environment
variables, tag links) address their owner by `(resource_type, resource_id)`
so that other resource kinds can own them too.
"""

import secrets
import string
from datetime import UTC, datetime

import sqlalchemy as sa
from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from pgharbor.db.types import EncryptedString

POSTGRESQL_RESOURCE_TYPE = "standalone-postgresql"

_UUID_ALPHABET = string.ascii_lowercase + string.digits


def generate_resource_uuid() -> str:
    """Generate a 24-char public identifier.

    Used verbatim as container name, volume suffix, internal hostname and
    working-directory name, so it is restricted to lowercase DNS-safe
    characters and always starts with a letter.
    """
    head = secrets.choice(string.ascii_lowercase)
    return head + "".join(secrets.choice(_UUID_ALPHABET) for _ in range(23))


def utc_now() -> datetime:
    """Get current UTC datetime."""
    return datetime.now(UTC)


class Base(DeclarativeBase):
    """Base class for all models."""


class Server(Base):
    """A remote host reachable over SSH that runs managed containers."""

    __tablename__ = "servers"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, default=generate_resource_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    ip: Mapped[str] = mapped_column(String(255), nullable=False)
    port: Mapped[int] = mapped_column(Integer, nullable=False, default=22)
    user: Mapped[str] = mapped_column(String(63), nullable=False, default="root")

    is_reachable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    is_usable: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    force_disabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    settings: Mapped["ServerSetting"] = relationship(
        back_populates="server", lazy="joined", uselist=False
    )

    @property
    def is_functional(self) -> bool:
        return self.is_reachable and self.is_usable and not self.force_disabled


class ServerSetting(Base):
    """Per-server agent settings."""

    __tablename__ = "server_settings"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    server_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("servers.id", ondelete="CASCADE"), unique=True, nullable=False
    )
    is_metrics_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    # Bearer token for the sentinel metrics agent, encrypted at rest
    sentinel_token: Mapped[str | None] = mapped_column(EncryptedString, nullable=True)

    server: Mapped["Server"] = relationship(back_populates="settings")


class Destination(Base):
    """Where a resource's containers run.

    `kind` is the explicit discriminant; see
    pgharbor.resources.destinations for the closed set of variants.
    """

    __tablename__ = "destinations"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, default=generate_resource_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    kind: Mapped[str] = mapped_column(String(32), nullable=False, default="standalone-docker")
    network: Mapped[str] = mapped_column(String(255), nullable=False, default="pgharbor")
    server_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("servers.id", ondelete="CASCADE"), nullable=False
    )

    server: Mapped["Server"] = relationship(lazy="joined")

    __table_args__ = (
        sa.CheckConstraint(
            "kind IN ('standalone-docker', 'swarm-docker', 'kubernetes')",
            name="ck_destinations_kind",
        ),
    )


class StandalonePostgresql(Base):
    """A single PostgreSQL container managed on a destination server.

    `status` always holds the canonical "phase:health" form; write it through
    postgresql_service.set_status so last_online_at stays in step.
    """

    __tablename__ = "standalone_postgresqls"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, default=generate_resource_uuid
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[str] = mapped_column(String(255), nullable=False, default="exited:unhealthy")
    last_online_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    config_hash: Mapped[str | None] = mapped_column(String(64), nullable=True)

    # Configuration surface (fingerprinted)
    image: Mapped[str] = mapped_column(String(255), nullable=False)
    ports_mappings: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    postgres_initdb_args: Mapped[str | None] = mapped_column(Text, nullable=True)
    postgres_host_auth_method: Mapped[str | None] = mapped_column(String(63), nullable=True)
    init_scripts: Mapped[list[str] | None] = mapped_column(sa.JSON, nullable=True)

    # Credentials and network
    postgres_user: Mapped[str] = mapped_column(String(255), nullable=False)
    postgres_password: Mapped[str] = mapped_column(EncryptedString, nullable=False)
    postgres_db: Mapped[str] = mapped_column(String(255), nullable=False)
    enable_ssl: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    ssl_mode: Mapped[str] = mapped_column(String(20), default="require", nullable=False)
    is_public: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    public_port: Mapped[int | None] = mapped_column(Integer, nullable=True)
    is_log_drain_enabled: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    destination_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("destinations.id", ondelete="RESTRICT"), nullable=False
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    destination: Mapped["Destination"] = relationship(lazy="joined")

    @property
    def resource_type(self) -> str:
        return POSTGRESQL_RESOURCE_TYPE

    @property
    def ports_mappings_array(self) -> list[str]:
        if not self.ports_mappings:
            return []
        return self.ports_mappings.split(",")


class LocalPersistentVolume(Base):
    """A docker volume owned by a resource."""

    __tablename__ = "local_persistent_volumes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    mount_path: Mapped[str] = mapped_column(String(1024), nullable=False)
    host_path: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    is_readonly: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resource_type: Mapped[str] = mapped_column(String(63), nullable=False)
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_local_persistent_volumes_resource", "resource_type", "resource_id"),
    )


class ScheduledDatabaseBackup(Base):
    """A cron-scheduled dump of a managed database."""

    __tablename__ = "scheduled_database_backups"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    uuid: Mapped[str] = mapped_column(
        String(32), unique=True, nullable=False, default=generate_resource_uuid
    )
    frequency: Mapped[str] = mapped_column(String(63), nullable=False, default="0 0 * * *")
    enabled: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    number_of_backups_locally: Mapped[int] = mapped_column(Integer, default=7, nullable=False)
    resource_type: Mapped[str] = mapped_column(String(63), nullable=False)
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )

    __table_args__ = (
        Index("ix_scheduled_database_backups_resource", "resource_type", "resource_id"),
    )


class EnvironmentVariable(Base):
    """Container environment variable attached to a resource."""

    __tablename__ = "environment_variables"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    key: Mapped[str] = mapped_column(String(255), nullable=False)
    value: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_build_time: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    resource_type: Mapped[str] = mapped_column(String(63), nullable=False)
    resource_id: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, onupdate=utc_now, nullable=False
    )

    __table_args__ = (
        sa.UniqueConstraint("resource_type", "resource_id", "key", name="uq_environment_variables"),
    )


class Tag(Base):
    """Free-form label shared across resources."""

    __tablename__ = "tags"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(63), unique=True, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )


class Taggable(Base):
    """Association between a tag and any taggable resource."""

    __tablename__ = "taggables"

    tag_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("tags.id", ondelete="CASCADE"), primary_key=True
    )
    taggable_type: Mapped[str] = mapped_column(String(63), primary_key=True)
    taggable_id: Mapped[int] = mapped_column(Integer, primary_key=True)
