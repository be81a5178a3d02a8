"""
Remote execution layer for pgharbor.

Provides init_remote() / close_remote() for service startup and shutdown and
get_remote_executor() for callers that need to run commands on a server.
"""

from __future__ import annotations

from pgharbor.config import settings
from pgharbor.logging_config import get_logger
from pgharbor.remote.protocol import (
    RemoteCleanupError,
    RemoteExecError,
    RemoteExecutor,
)

logger = get_logger(__name__)

__all__ = [
    "RemoteCleanupError",
    "RemoteExecError",
    "RemoteExecutor",
    "close_remote",
    "get_remote_executor",
    "init_remote",
]

_executor: RemoteExecutor | None = None


def init_remote(executor: RemoteExecutor | None = None) -> None:
    """Install the remote executor, defaulting to SSH from configuration."""
    global _executor  # noqa: PLW0603
    if executor is None:
        from pgharbor.remote.ssh import SSHExecutor

        executor = SSHExecutor(
            private_key_path=settings.ssh.private_key_path,
            connect_timeout_seconds=settings.ssh.connect_timeout_seconds,
            command_timeout_seconds=settings.ssh.command_timeout_seconds,
        )
    _executor = executor
    logger.info("Remote executor initialized", transport=type(executor).__name__)


async def close_remote() -> None:
    global _executor  # noqa: PLW0603
    if _executor is not None:
        await _executor.close()
        _executor = None
        logger.info("Remote executor closed")


def get_remote_executor() -> RemoteExecutor:
    """Return the installed executor.

    Raises RuntimeError if init_remote() has not been called.
    """
    if _executor is None:
        raise RuntimeError("Remote executor not initialized — call init_remote() first")
    return _executor
