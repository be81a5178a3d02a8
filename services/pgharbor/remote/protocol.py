"""
Remote execution protocol and errors for pgharbor.

Defines the RemoteExecutor Protocol that every transport must satisfy,
along with the exceptions raised when a remote command fails.
"""

from typing import Protocol, runtime_checkable

from pgharbor.db.models import Server

# --- Exceptions ---


class RemoteExecError(Exception):
    """Raised when a command on a destination server fails."""

    def __init__(
        self,
        commands: list[str],
        server_name: str,
        exit_code: int | None,
        output: str = "",
    ) -> None:
        self.commands = commands
        self.server_name = server_name
        self.exit_code = exit_code
        self.output = output
        detail = output.strip() or "no output"
        super().__init__(
            f"Remote command failed on {server_name} (exit {exit_code}): {detail}"
        )


class RemoteCleanupError(RemoteExecError):
    """Raised when removing a remote artifact (directory, volume) fails.

    Recoverable: the local record can still be deleted.
    """


# --- Protocol ---


@runtime_checkable
class RemoteExecutor(Protocol):
    """Runs shell commands on a destination server."""

    async def run(
        self,
        commands: list[str],
        server: Server,
        raise_on_error: bool = True,
    ) -> str:
        """Run commands sequentially, stopping at the first failure.

        Args:
            commands: Shell commands, joined with `&&`.
            server: Target server.
            raise_on_error: Raise RemoteExecError on a non-zero exit instead of
                returning the captured output.

        Returns:
            Captured stdout.

        Raises:
            RemoteExecError: If the command exits non-zero and raise_on_error
                is set, or the connection cannot be established.
        """
        ...

    async def close(self) -> None:
        """Release any pooled connections."""
        ...


def join_commands(commands: list[str]) -> str:
    return " && ".join(commands)
