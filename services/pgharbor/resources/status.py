"""Container status codec.

Runtime status is persisted as a single "phase:health" string. Docker and
older records report other shapes ("running (healthy)", bare "exited"), so
the same parser is applied whenever a value is written or read, which makes
normalization idempotent.
"""

from dataclasses import dataclass

DEFAULT_HEALTH = "unhealthy"


@dataclass(frozen=True)
class ResourceStatus:
    """Decoded container status."""

    phase: str
    health: str = DEFAULT_HEALTH

    @property
    def canonical(self) -> str:
        return encode_status(self)

    @property
    def is_running(self) -> bool:
        return "running" in self.phase

    @property
    def is_exited(self) -> bool:
        return self.phase.startswith("exited")


def decode_status(value: str) -> ResourceStatus:
    """Parse any status string into a (phase, health) pair.

    Accepted shapes, checked in order:
    - "running (healthy)": phase before "(", health up to the next ")"
    - "running:healthy": split on the first ":"
    - anything else: the whole value is the phase

    An empty or missing health is reported as "unhealthy".
    """
    if "(" in value:
        phase, _, rest = value.partition("(")
        health = rest.partition(")")[0]
    elif ":" in value:
        phase, _, health = value.partition(":")
    else:
        return ResourceStatus(phase=value, health=DEFAULT_HEALTH)

    return ResourceStatus(phase=phase.strip(), health=health.strip() or DEFAULT_HEALTH)


def encode_status(status: ResourceStatus) -> str:
    """Render the stored form of a status."""
    return f"{status.phase}:{status.health}"


def normalize_status(value: str) -> str:
    """Canonical stored form of an arbitrary status string."""
    return encode_status(decode_status(value))
