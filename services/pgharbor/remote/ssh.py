"""SSH transport for remote commands.

Thin adapter over paramiko. Connections are short-lived (one per call);
blocking paramiko calls run in the default thread pool executor.
"""

import asyncio
import select
import socket
import time

import paramiko

from pgharbor.db.models import Server
from pgharbor.logging_config import get_logger
from pgharbor.remote.protocol import RemoteExecError, join_commands

logger = get_logger(__name__)

_CHUNK_SIZE = 32768
_POLL_INTERVAL_SECONDS = 1.0


def _drain_channel(channel: paramiko.Channel, timeout: float) -> tuple[int, str, str]:
    """Read stdout and stderr together until the command exits.

    Both streams are consumed as data arrives so neither can fill its window
    and stall the remote process.
    """
    out: list[bytes] = []
    err: list[bytes] = []
    deadline = time.monotonic() + timeout
    while True:
        if channel.recv_ready():
            out.append(channel.recv(_CHUNK_SIZE))
        if channel.recv_stderr_ready():
            err.append(channel.recv_stderr(_CHUNK_SIZE))
        if (
            channel.exit_status_ready()
            and not channel.recv_ready()
            and not channel.recv_stderr_ready()
        ):
            break
        remaining = deadline - time.monotonic()
        if remaining <= 0:
            raise TimeoutError(f"Command did not finish within {timeout}s")
        select.select([channel], [], [], min(remaining, _POLL_INTERVAL_SECONDS))

    return (
        channel.recv_exit_status(),
        b"".join(out).decode("utf-8", errors="replace"),
        b"".join(err).decode("utf-8", errors="replace"),
    )


class SSHExecutor:
    """RemoteExecutor backed by paramiko."""

    def __init__(
        self,
        private_key_path: str,
        connect_timeout_seconds: int = 10,
        command_timeout_seconds: int = 300,
    ) -> None:
        self._private_key_path = private_key_path
        self._connect_timeout = connect_timeout_seconds
        self._command_timeout = command_timeout_seconds

    def _connect(self, server: Server) -> paramiko.SSHClient:
        client = paramiko.SSHClient()
        client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
        try:
            client.connect(
                hostname=server.ip,
                port=server.port,
                username=server.user,
                key_filename=self._private_key_path,
                timeout=self._connect_timeout,
                allow_agent=False,
                look_for_keys=False,
            )
        except Exception:
            client.close()
            raise
        return client

    def _execute(self, command: str, server: Server) -> tuple[int, str, str]:
        client = self._connect(server)
        try:
            _, stdout, _ = client.exec_command(command, timeout=self._command_timeout)
            return _drain_channel(stdout.channel, self._command_timeout)
        finally:
            client.close()

    async def run(
        self,
        commands: list[str],
        server: Server,
        raise_on_error: bool = True,
    ) -> str:
        command = join_commands(commands)
        loop = asyncio.get_event_loop()
        try:
            exit_code, out, err = await loop.run_in_executor(
                None, lambda: self._execute(command, server)
            )
        except (paramiko.SSHException, socket.error) as e:
            logger.error("SSH connection failed", server=server.name, error=str(e))
            raise RemoteExecError(commands, server.name, None, str(e)) from e

        if exit_code != 0:
            logger.warning(
                "Remote command exited non-zero",
                server=server.name,
                exit_code=exit_code,
            )
            if raise_on_error:
                raise RemoteExecError(commands, server.name, exit_code, err or out)
        return out

    async def close(self) -> None:
        """Nothing is pooled."""
