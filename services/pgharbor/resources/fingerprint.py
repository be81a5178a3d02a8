"""Configuration fingerprinting for drift detection.

The fingerprint covers only the fields that require the container to be
recreated when they change. Field order and serialization must stay stable
across releases: a different digest for the same configuration restarts
every managed database on the next deploy.
"""

import hashlib
import json
from collections.abc import Iterable
from dataclasses import dataclass, field


@dataclass(frozen=True)
class ConfigSurface:
    """The mutable configuration of a database container."""

    image: str | None
    ports_mappings: str | None
    postgres_initdb_args: str | None
    postgres_host_auth_method: str | None
    env_values: tuple[str | None, ...] = field(default_factory=tuple)

    @classmethod
    def from_resource(cls, resource, env_values: Iterable[str | None]) -> "ConfigSurface":
        return cls(
            image=resource.image,
            ports_mappings=resource.ports_mappings,
            postgres_initdb_args=resource.postgres_initdb_args,
            postgres_host_auth_method=resource.postgres_host_auth_method,
            env_values=tuple(env_values),
        )


def _sorted_env_json(values: Iterable[str | None]) -> str:
    # Only values are hashed, never keys. Sorting makes row order irrelevant.
    ordered = sorted(values, key=lambda v: (v is not None, v or ""))
    return json.dumps(ordered, separators=(",", ":"))


def compute_config_hash(surface: ConfigSurface) -> str:
    """Return the MD5 hex digest of a configuration surface."""
    content = "".join(
        part or ""
        for part in (
            surface.image,
            surface.ports_mappings,
            surface.postgres_initdb_args,
            surface.postgres_host_auth_method,
        )
    )
    content += _sorted_env_json(surface.env_values)
    return hashlib.md5(content.encode(), usedforsecurity=False).hexdigest()


def has_drifted(previous_hash: str | None, digest: str) -> bool:
    """A missing previous hash always counts as drift."""
    if previous_hash is None:
        return True
    return previous_hash != digest
