"""Container metrics from the sentinel agent.

The sentinel runs on every destination server and keeps a short history of
per-container CPU and memory usage. It is queried over the remote executor
with curl from inside its own container, so no port is exposed publicly.
"""

import json
import shlex
from datetime import timedelta
from enum import StrEnum

from pgharbor.config import settings
from pgharbor.db.models import StandalonePostgresql, utc_now
from pgharbor.logging_config import get_logger
from pgharbor.remote import RemoteExecError, RemoteExecutor, get_remote_executor
from pgharbor.resources.destinations import resource_server

logger = get_logger(__name__)

DEFAULT_ERROR_MESSAGE = "Sentinel returned an error without a message."
EMPTY_RESPONSE_MESSAGE = "Sentinel returned an empty response."
UNAUTHORIZED_MESSAGE = (
    "Unauthorized, please check your metrics token or restart Sentinel to set a new token."
)


class MetricKind(StrEnum):
    CPU = "cpu"
    MEMORY = "memory"


# Field holding the sample value in each history entry
_VALUE_FIELD = {
    MetricKind.CPU: "percent",
    MetricKind.MEMORY: "used",
}


class MetricsError(Exception):
    """Raised when the sentinel reports an error."""

    def __init__(self, message: str, resource_uuid: str = "", metric: str = "") -> None:
        self.resource_uuid = resource_uuid
        self.metric = metric
        super().__init__(message)


class MetricsUnauthorizedError(MetricsError):
    """The server's sentinel token was rejected."""


def _history_command(
    container_name: str, metric: MetricKind, token: str, since: str
) -> str:
    url = (
        f"http://localhost:{settings.metrics.sentinel_port}"
        f"/api/container/{container_name}/{metric}/history?from={since}"
    )
    curl = f'curl -H "Authorization: Bearer {token}" {url}'
    return f"docker exec {settings.metrics.sentinel_container} sh -c {shlex.quote(curl)}"


def _raise_for_error(output: str, resource_uuid: str, metric: MetricKind) -> None:
    try:
        payload = json.loads(output)
    except json.JSONDecodeError:
        raise MetricsError(output.strip(), resource_uuid, metric) from None

    message = DEFAULT_ERROR_MESSAGE
    if isinstance(payload, dict):
        message = payload.get("error") or DEFAULT_ERROR_MESSAGE
    if message == "Unauthorized":
        raise MetricsUnauthorizedError(UNAUTHORIZED_MESSAGE, resource_uuid, metric)
    raise MetricsError(str(message), resource_uuid, metric)


async def get_metrics(
    resource: StandalonePostgresql,
    metric: MetricKind,
    mins: int | None = None,
    executor: RemoteExecutor | None = None,
) -> list[tuple[int, float]]:
    """Return (timestamp, value) samples for the last `mins` minutes."""
    if mins is None:
        mins = settings.metrics.default_window_minutes
    metric = MetricKind(metric)

    server = resource_server(resource)
    token = server.settings.sentinel_token if server.settings else None
    since = (utc_now() - timedelta(minutes=mins)).strftime("%Y-%m-%dT%H:%M:%SZ")

    executor = executor or get_remote_executor()
    try:
        output = await executor.run(
            [_history_command(resource.uuid, metric, token or "", since)],
            server,
        )
    except RemoteExecError as e:
        logger.warning(
            "Sentinel query could not run",
            resource_uuid=resource.uuid,
            metric=str(metric),
            server=server.name,
            exit_code=e.exit_code,
        )
        raise MetricsError(str(e), resource.uuid, metric) from e

    if "error" in output:
        logger.warning(
            "Sentinel query failed",
            resource_uuid=resource.uuid,
            metric=str(metric),
            server=server.name,
        )
        _raise_for_error(output, resource.uuid, metric)

    if not output.strip():
        raise MetricsError(EMPTY_RESPONSE_MESSAGE, resource.uuid, metric)

    samples = json.loads(output)
    value_field = _VALUE_FIELD[metric]
    return [(int(sample["time"]), float(sample[value_field])) for sample in samples or []]


async def get_cpu_metrics(
    resource: StandalonePostgresql,
    mins: int | None = None,
    executor: RemoteExecutor | None = None,
) -> list[tuple[int, float]]:
    return await get_metrics(resource, MetricKind.CPU, mins, executor)


async def get_memory_metrics(
    resource: StandalonePostgresql,
    mins: int | None = None,
    executor: RemoteExecutor | None = None,
) -> list[tuple[int, float]]:
    return await get_metrics(resource, MetricKind.MEMORY, mins, executor)
