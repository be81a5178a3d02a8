"""Host targets a resource can be deployed to.

A destination's `kind` column selects one of a closed set of variants.
Every variant ultimately runs commands on one server; this module is the
only place that knows how each kind maps to that server.
"""

from enum import StrEnum
from typing import Protocol, runtime_checkable

from pgharbor.db.models import Destination, Server


class DestinationKind(StrEnum):
    """Supported destination variants."""

    STANDALONE_DOCKER = "standalone-docker"
    SWARM_DOCKER = "swarm-docker"
    KUBERNETES = "kubernetes"


class UnknownDestinationError(ValueError):
    """Raised when a destination carries a kind outside the supported set."""

    def __init__(self, kind: str) -> None:
        self.kind = kind
        super().__init__(f"Unknown destination kind: {kind!r}")


@runtime_checkable
class HostTarget(Protocol):
    """Anything that can name the server commands should run on."""

    @property
    def server(self) -> Server: ...


def destination_kind(destination: Destination) -> DestinationKind:
    try:
        return DestinationKind(destination.kind)
    except ValueError:
        raise UnknownDestinationError(destination.kind) from None


def resolve_server(destination: Destination) -> Server:
    """Return the server a destination executes on.

    Swarm destinations point at the manager node and kubernetes destinations at
    the control-plane node that hosts the sentinel agent and local volumes, so
    every supported kind resolves through its own server column.
    """
    destination_kind(destination)
    return destination.server


def resource_server(resource) -> Server:
    """Server hosting a resource, via its destination."""
    return resolve_server(resource.destination)
