"""Standalone PostgreSQL lifecycle service.

Explicit lifecycle calls for managed PostgreSQL resources: creation with its
default data volume, status updates, configuration drift checks, connection
URLs, soft and permanent deletion with cascade, and cleanup of artifacts on
the destination server.

Every function operates on one resource inside the caller's session. Load
the row with get_postgresql(..., for_update=True) before mutating it so
concurrent transitions on the same resource are serialized.
"""

import secrets
import shlex
from dataclasses import dataclass, field
from typing import Any

import sqlalchemy as sa
from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from pgharbor.config import settings
from pgharbor.db.models import (
    POSTGRESQL_RESOURCE_TYPE,
    Destination,
    EnvironmentVariable,
    LocalPersistentVolume,
    ScheduledDatabaseBackup,
    StandalonePostgresql,
    Taggable,
    generate_resource_uuid,
    utc_now,
)
from pgharbor.logging_config import get_logger
from pgharbor.remote import (
    RemoteCleanupError,
    RemoteExecError,
    RemoteExecutor,
    get_remote_executor,
)
from pgharbor.resources.destinations import resource_server
from pgharbor.resources.fingerprint import ConfigSurface, compute_config_hash, has_drifted
from pgharbor.resources.status import ResourceStatus, decode_status, normalize_status
from pgharbor.resources.urls import build_external_url, build_internal_url

logger = get_logger(__name__)

UPDATABLE_FIELDS = frozenset(
    {
        "name",
        "description",
        "image",
        "ports_mappings",
        "postgres_initdb_args",
        "postgres_host_auth_method",
        "init_scripts",
        "postgres_user",
        "postgres_password",
        "postgres_db",
        "enable_ssl",
        "ssl_mode",
        "is_public",
        "public_port",
        "is_log_drain_enabled",
    }
)


class LifecycleError(Exception):
    """Raised for a lifecycle transition the resource is not in a state to make."""


class VolumeCleanupError(RemoteCleanupError):
    """Some volumes could not be removed.

    `removed_volumes` lists the ones that were removed before the failure was
    raised, since they are already gone from the server.
    """

    def __init__(
        self,
        commands: list[str],
        server_name: str,
        exit_code: int | None,
        output: str = "",
        removed_volumes: list[str] | None = None,
    ) -> None:
        super().__init__(commands, server_name, exit_code, output)
        self.removed_volumes = removed_volumes or []


@dataclass
class DeletionReport:
    """Outcome of a permanent deletion.

    The record is gone even when remote cleanup failed; failures are listed
    so the caller can retry them or tell the operator.
    """

    resource_uuid: str
    removed_volumes: list[str] = field(default_factory=list)
    configuration_removed: bool = False
    cleanup_errors: list[RemoteCleanupError] = field(default_factory=list)

    @property
    def clean(self) -> bool:
        return not self.cleanup_errors


def _ensure_not_destroyed(resource: StandalonePostgresql) -> None:
    state = sa.inspect(resource)
    if state.deleted or state.was_deleted:
        raise LifecycleError(f"Resource {resource.uuid} has been permanently deleted")


def _normalize_ports_mappings(value: str | None) -> str | None:
    return None if value == "" else value


def default_volume_name(resource: StandalonePostgresql) -> str:
    return f"postgres-data-{resource.uuid}"


def database_workdir(resource: StandalonePostgresql) -> str:
    """Per-resource configuration directory on the destination server."""
    return f"{settings.database_configuration_dir}/{resource.uuid}"


# --- Lookup ---


async def get_postgresql(
    db: AsyncSession,
    uuid: str,
    for_update: bool = False,
    include_deleted: bool = False,
) -> StandalonePostgresql | None:
    """Get a resource by uuid.

    With for_update the row is locked until the transaction ends.
    Soft-deleted resources are hidden unless include_deleted is set.
    """
    query = select(StandalonePostgresql).where(StandalonePostgresql.uuid == uuid)
    if not include_deleted:
        query = query.where(StandalonePostgresql.deleted_at.is_(None))
    if for_update:
        query = query.with_for_update(of=StandalonePostgresql)
    result = await db.execute(query)
    return result.scalar_one_or_none()


async def list_persistent_volumes(
    db: AsyncSession, resource: StandalonePostgresql
) -> list[LocalPersistentVolume]:
    result = await db.execute(
        select(LocalPersistentVolume)
        .where(
            LocalPersistentVolume.resource_type == resource.resource_type,
            LocalPersistentVolume.resource_id == resource.id,
        )
        .order_by(LocalPersistentVolume.id)
    )
    return list(result.scalars().all())


async def list_environment_variables(
    db: AsyncSession, resource: StandalonePostgresql
) -> list[EnvironmentVariable]:
    """Environment variables of a resource, ordered by key."""
    result = await db.execute(
        select(EnvironmentVariable)
        .where(
            EnvironmentVariable.resource_type == resource.resource_type,
            EnvironmentVariable.resource_id == resource.id,
        )
        .order_by(EnvironmentVariable.key)
    )
    return list(result.scalars().all())


async def set_environment_variable(
    db: AsyncSession,
    resource: StandalonePostgresql,
    key: str,
    value: str | None,
    is_build_time: bool = False,
) -> EnvironmentVariable:
    """Create or update an environment variable by key."""
    _ensure_not_destroyed(resource)
    result = await db.execute(
        select(EnvironmentVariable).where(
            EnvironmentVariable.resource_type == resource.resource_type,
            EnvironmentVariable.resource_id == resource.id,
            EnvironmentVariable.key == key,
        )
    )
    var = result.scalar_one_or_none()
    if var is None:
        var = EnvironmentVariable(
            key=key,
            value=value,
            is_build_time=is_build_time,
            resource_type=resource.resource_type,
            resource_id=resource.id,
        )
        db.add(var)
    else:
        var.value = value
        var.is_build_time = is_build_time
    await db.flush()
    return var


# --- Creation ---


async def create_postgresql(
    db: AsyncSession,
    destination: Destination,
    name: str,
    image: str | None = None,
    postgres_user: str | None = None,
    postgres_password: str | None = None,
    postgres_db: str | None = None,
    description: str | None = None,
    ports_mappings: str | None = None,
    postgres_initdb_args: str | None = None,
    postgres_host_auth_method: str | None = None,
    enable_ssl: bool = False,
    ssl_mode: str = "require",
    is_public: bool = False,
    public_port: int | None = None,
) -> StandalonePostgresql:
    """Create a resource record and run its creation side effects.

    The container is not started here; the resource begins as
    "exited:unhealthy" until the first observed status.
    """
    resource = StandalonePostgresql(
        uuid=generate_resource_uuid(),
        name=name,
        description=description,
        status=normalize_status("exited"),
        image=image or settings.postgres.default_image,
        ports_mappings=_normalize_ports_mappings(ports_mappings),
        postgres_initdb_args=postgres_initdb_args,
        postgres_host_auth_method=postgres_host_auth_method,
        postgres_user=postgres_user or settings.postgres.default_user,
        postgres_password=postgres_password or secrets.token_urlsafe(32),
        postgres_db=postgres_db or settings.postgres.default_db,
        enable_ssl=enable_ssl,
        ssl_mode=ssl_mode,
        is_public=is_public,
        public_port=public_port,
        destination=destination,
    )
    db.add(resource)
    await db.flush()

    await on_created(db, resource)

    logger.info(
        "PostgreSQL resource created",
        resource_uuid=resource.uuid,
        name=name,
        destination=destination.name,
    )
    return resource


async def on_created(db: AsyncSession, resource: StandalonePostgresql) -> LocalPersistentVolume:
    """Provision the default data volume for a new resource.

    Returns the existing volume when it was already provisioned.
    """
    _ensure_not_destroyed(resource)
    name = default_volume_name(resource)
    result = await db.execute(
        select(LocalPersistentVolume).where(
            LocalPersistentVolume.resource_type == resource.resource_type,
            LocalPersistentVolume.resource_id == resource.id,
            LocalPersistentVolume.name == name,
        )
    )
    existing = result.scalar_one_or_none()
    if existing is not None:
        return existing

    volume = LocalPersistentVolume(
        name=name,
        mount_path=settings.postgres.data_mount_path,
        host_path=None,
        is_readonly=True,
        resource_type=resource.resource_type,
        resource_id=resource.id,
    )
    db.add(volume)
    await db.flush()
    logger.debug("Default data volume provisioned", resource_uuid=resource.uuid, volume=name)
    return volume


async def update_postgresql(
    db: AsyncSession, resource: StandalonePostgresql, **changes: Any
) -> StandalonePostgresql:
    """Apply field changes. Call is_configuration_changed afterwards to detect drift."""
    _ensure_not_destroyed(resource)
    unknown = set(changes) - UPDATABLE_FIELDS
    if unknown:
        raise ValueError(f"Cannot update fields: {', '.join(sorted(unknown))}")
    if "ports_mappings" in changes:
        changes["ports_mappings"] = _normalize_ports_mappings(changes["ports_mappings"])
    for key, value in changes.items():
        setattr(resource, key, value)
    await db.flush()
    return resource


# --- Status ---


def set_status(resource: StandalonePostgresql, raw: str) -> bool:
    """Store a normalized status; return True when it changed.

    last_online_at is stamped on every change, whichever direction.
    """
    _ensure_not_destroyed(resource)
    canonical = normalize_status(raw)
    if canonical == resource.status:
        return False

    previous = resource.status
    resource.status = canonical
    resource.last_online_at = utc_now()
    logger.debug(
        "Status changed",
        resource_uuid=resource.uuid,
        from_status=previous,
        to_status=canonical,
    )
    return True


def get_status(resource: StandalonePostgresql) -> ResourceStatus:
    return decode_status(resource.status)


def is_running(resource: StandalonePostgresql) -> bool:
    return get_status(resource).is_running


def is_exited(resource: StandalonePostgresql) -> bool:
    return get_status(resource).is_exited


def real_status(resource: StandalonePostgresql) -> str:
    """The stored value without decoding, for diagnostics."""
    return resource.status


# --- Configuration drift ---


async def is_configuration_changed(
    db: AsyncSession, resource: StandalonePostgresql, persist: bool = False
) -> bool:
    """Compare the current configuration with the last committed fingerprint.

    With persist, a drifted (or never fingerprinted) resource gets its
    config_hash updated and flushed before returning.
    """
    env_vars = await list_environment_variables(db, resource)
    surface = ConfigSurface.from_resource(resource, (var.value for var in env_vars))
    digest = compute_config_hash(surface)
    drifted = has_drifted(resource.config_hash, digest)

    if drifted and persist:
        resource.config_hash = digest
        await db.flush()
        logger.info("Configuration fingerprint committed", resource_uuid=resource.uuid)

    return drifted


# --- Connection URLs ---


def internal_connection_url(resource: StandalonePostgresql) -> str:
    return build_internal_url(resource)


def external_connection_url(resource: StandalonePostgresql) -> str | None:
    if not (resource.is_public and resource.public_port):
        return None
    return build_external_url(resource, resource_server(resource).ip)


# --- Remote cleanup ---


async def delete_configurations(
    resource: StandalonePostgresql, executor: RemoteExecutor | None = None
) -> bool:
    """Remove the resource's working directory on its server.

    Nothing is run unless the computed path ends with the resource uuid.
    Returns True when the removal command was issued.
    """
    workdir = database_workdir(resource)
    if not resource.uuid or not workdir.endswith(resource.uuid):
        logger.warning(
            "Refusing to remove configuration directory",
            resource_uuid=resource.uuid,
            workdir=workdir,
        )
        return False

    executor = executor or get_remote_executor()
    server = resource_server(resource)
    command = f"rm -rf {shlex.quote(workdir)}"
    try:
        await executor.run([command], server)
    except RemoteExecError as e:
        raise RemoteCleanupError([command], server.name, e.exit_code, e.output) from e

    logger.info("Configuration directory removed", resource_uuid=resource.uuid, server=server.name)
    return True


async def delete_volumes(
    db: AsyncSession,
    resource: StandalonePostgresql,
    executor: RemoteExecutor | None = None,
) -> list[str]:
    """Remove every volume the resource owns from its server.

    All volumes are attempted; failures are raised together afterwards as a
    VolumeCleanupError carrying the names that were removed.
    Returns the names of removed volumes.
    """
    volumes = await list_persistent_volumes(db, resource)
    if not volumes:
        return []

    executor = executor or get_remote_executor()
    server = resource_server(resource)
    removed: list[str] = []
    failed: list[tuple[str, RemoteExecError]] = []

    for volume in volumes:
        command = f"docker volume rm -f {shlex.quote(volume.name)}"
        try:
            await executor.run([command], server)
        except RemoteExecError as e:
            logger.warning(
                "Volume removal failed",
                resource_uuid=resource.uuid,
                volume=volume.name,
                error=str(e),
            )
            failed.append((command, e))
            continue
        removed.append(volume.name)

    if failed:
        raise VolumeCleanupError(
            [command for command, _ in failed],
            server.name,
            failed[0][1].exit_code,
            "\n".join(e.output for _, e in failed),
            removed_volumes=removed,
        )

    logger.info("Volumes removed", resource_uuid=resource.uuid, count=len(removed))
    return removed


# --- Deletion ---


async def soft_delete_postgresql(db: AsyncSession, resource: StandalonePostgresql) -> None:
    """Mark a resource deleted. Reversible with restore_postgresql."""
    _ensure_not_destroyed(resource)
    if resource.deleted_at is None:
        resource.deleted_at = utc_now()
        await db.flush()
        logger.info("PostgreSQL resource soft-deleted", resource_uuid=resource.uuid)


async def restore_postgresql(db: AsyncSession, resource: StandalonePostgresql) -> None:
    _ensure_not_destroyed(resource)
    if resource.deleted_at is not None:
        resource.deleted_at = None
        await db.flush()
        logger.info("PostgreSQL resource restored", resource_uuid=resource.uuid)


async def on_permanently_deleted(db: AsyncSession, resource: StandalonePostgresql) -> None:
    """Remove every record the resource owns and detach its tags.

    Only valid for a soft-deleted resource.
    """
    _ensure_not_destroyed(resource)
    if resource.deleted_at is None:
        raise LifecycleError(
            f"Resource {resource.uuid} must be soft-deleted before it can be permanently deleted"
        )

    resource_type = resource.resource_type
    counts: dict[str, int] = {}
    for model in (LocalPersistentVolume, ScheduledDatabaseBackup, EnvironmentVariable):
        result = await db.execute(
            delete(model).where(
                model.resource_type == resource_type,
                model.resource_id == resource.id,
            )
        )
        counts[model.__tablename__] = result.rowcount

    result = await db.execute(
        delete(Taggable).where(
            Taggable.taggable_type == resource_type,
            Taggable.taggable_id == resource.id,
        )
    )
    counts["taggables"] = result.rowcount
    await db.flush()

    logger.info("Owned records removed", resource_uuid=resource.uuid, **counts)


async def force_delete_postgresql(
    db: AsyncSession,
    resource: StandalonePostgresql,
    executor: RemoteExecutor | None = None,
    cleanup_configurations: bool = True,
    cleanup_volumes: bool = True,
) -> DeletionReport:
    """Permanently delete a soft-deleted resource.

    Remote volumes are removed before their records are cascaded away.
    Remote cleanup failures are recorded on the report; the record is
    deleted regardless.
    """
    _ensure_not_destroyed(resource)
    if resource.deleted_at is None:
        raise LifecycleError(
            f"Resource {resource.uuid} must be soft-deleted before it can be permanently deleted"
        )

    report = DeletionReport(resource_uuid=resource.uuid)
    if cleanup_volumes or cleanup_configurations:
        executor = executor or get_remote_executor()

    if cleanup_volumes:
        try:
            report.removed_volumes = await delete_volumes(db, resource, executor)
        except VolumeCleanupError as e:
            report.removed_volumes = e.removed_volumes
            report.cleanup_errors.append(e)

    if cleanup_configurations:
        try:
            report.configuration_removed = await delete_configurations(resource, executor)
        except RemoteCleanupError as e:
            logger.warning(
                "Configuration directory removal failed",
                resource_uuid=resource.uuid,
                error=str(e),
            )
            report.cleanup_errors.append(e)

    await on_permanently_deleted(db, resource)
    await db.delete(resource)
    await db.flush()

    logger.info(
        "PostgreSQL resource permanently deleted",
        resource_uuid=report.resource_uuid,
        cleanup_errors=len(report.cleanup_errors),
    )
    return report


# --- Serialization ---


def serialize_postgresql(resource: StandalonePostgresql) -> dict[str, Any]:
    """Public representation with derived fields; never includes the password."""
    status = get_status(resource)
    server = resource_server(resource)
    return {
        "id": resource.id,
        "uuid": resource.uuid,
        "name": resource.name,
        "description": resource.description,
        "database_type": POSTGRESQL_RESOURCE_TYPE,
        "status": status.canonical,
        "phase": status.phase,
        "health": status.health,
        "last_online_at": resource.last_online_at.isoformat() if resource.last_online_at else None,
        "config_hash": resource.config_hash,
        "image": resource.image,
        "ports_mappings": resource.ports_mappings,
        "ports_mappings_array": resource.ports_mappings_array,
        "postgres_initdb_args": resource.postgres_initdb_args,
        "postgres_host_auth_method": resource.postgres_host_auth_method,
        "postgres_user": resource.postgres_user,
        "postgres_db": resource.postgres_db,
        "enable_ssl": resource.enable_ssl,
        "ssl_mode": resource.ssl_mode,
        "is_public": resource.is_public,
        "public_port": resource.public_port,
        "is_log_drain_enabled": resource.is_log_drain_enabled,
        "internal_db_url": internal_connection_url(resource),
        "external_db_url": external_connection_url(resource),
        "server_status": server.is_functional,
        "created_at": resource.created_at.isoformat() if resource.created_at else None,
        "updated_at": resource.updated_at.isoformat() if resource.updated_at else None,
    }
