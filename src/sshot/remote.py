"""Remote executor interface.

The task runner never talks to SSH directly. It goes through a
:class:`RemoteExecutor`, which the host runner opens once per host:
:class:`~sshot.ssh.SSHRemoteExecutor` for real runs and
:class:`DryRunExecutor` for dry runs. Tests substitute their own fakes.

Failures are reported as :class:`~sshot.exceptions.TaskExecutionError`
carrying whatever output was captured and, when known, the exit status.
"""

import asyncio
import logging
import re
import shlex
from abc import ABC, abstractmethod

from .exceptions import TaskExecutionError

logger = logging.getLogger(__name__)

# Free-text exit status patterns, tried in order
EXIT_STATUS_PATTERNS = (
    re.compile(r"Process exited with status\s+(-?\d+)"),
    re.compile(r"exit status\s+(-?\d+)"),
    re.compile(r"exited with code\s+(-?\d+)"),
)


def extract_exit_code(error: BaseException) -> int | None:
    """Find the exit status of a failed command.

    The structured ``exit_status`` attribute wins; otherwise the error text
    is searched for the patterns ``Process exited with status N``,
    ``exit status N`` and ``exited with code N``.

    Args:
        error: The failure raised by an executor

    Returns:
        The exit status, or None when none can be determined

    Example:
        >>> extract_exit_code(TaskExecutionError("command failed: exit status 2"))
        2
    """
    status = getattr(error, "exit_status", None)
    if isinstance(status, int):
        return status

    text = str(error)
    for pattern in EXIT_STATUS_PATTERNS:
        match = pattern.search(text)
        if match:
            return int(match.group(1))
    return None


def is_allowed_exit(error: BaseException, allowed_exit_codes: list[int]) -> bool:
    """True if ``error`` carries an exit status listed in ``allowed_exit_codes``."""
    if not allowed_exit_codes:
        return False
    code = extract_exit_code(error)
    return code is not None and code in allowed_exit_codes


def combine_output(stdout: str, stderr: str) -> str:
    """Join stdout and stderr the way task output is displayed."""
    if stderr:
        return f"{stdout}\nSTDERR: {stderr}"
    return stdout


def sudo_prefix(command: str, sudo: bool) -> str:
    return f"sudo -S {command}" if sudo else command


class RemoteExecutor(ABC):
    """Command execution capability for one host.

    Implementations are async context managers; leaving the context closes
    the underlying session.
    """

    host_name: str = ""

    @abstractmethod
    async def run_remote(self, command: str, sudo: bool = False) -> str:
        """Run ``command`` on the host and return its output.

        Raises:
            TaskExecutionError: If the command fails
        """

    @abstractmethod
    async def upload_and_run(self, script: str, sudo: bool = False) -> str:
        """Upload ``script`` to a temporary file, execute it, then remove it."""

    @abstractmethod
    async def upload_file(self, content: str | bytes, dest: str, mode: str = "") -> None:
        """Write ``content`` to ``dest`` and apply ``mode`` if given."""

    async def run_local(self, command: str) -> str:
        """Run ``command`` on the control machine without a shell.

        The command is split with shell quoting rules and executed directly.

        Raises:
            TaskExecutionError: If the command is empty, cannot be started or
                exits non-zero
        """
        try:
            argv = shlex.split(command)
        except ValueError as e:
            raise TaskExecutionError(f"local command failed: {e}", host=self.host_name) from e
        if not argv:
            raise TaskExecutionError("local command failed: empty command", host=self.host_name)

        logger.debug(f"[{self.host_name}] Executing locally: {command}")
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise TaskExecutionError(f"local command failed: {e}", host=self.host_name) from e

        stdout, stderr = await proc.communicate()
        output = combine_output(
            stdout.decode(errors="replace"),
            stderr.decode(errors="replace"),
        )
        if proc.returncode != 0:
            raise TaskExecutionError(
                f"local command failed: exit status {proc.returncode}",
                output=output,
                exit_status=proc.returncode,
                host=self.host_name,
            )
        return output

    async def connect(self) -> object:
        """Open the session ahead of the first command.

        Raises:
            ConnectionFailed: If the host cannot be reached or authenticated
        """
        return None

    async def close(self) -> None:
        """Release the session. The default has nothing to release."""

    async def __aenter__(self) -> "RemoteExecutor":
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()


class DryRunExecutor(RemoteExecutor):
    """Executor used in dry-run mode.

    Nothing is executed. Every call is recorded so a dry run can be
    inspected, and returns empty output.
    """

    def __init__(self, host_name: str = "") -> None:
        self.host_name = host_name
        self.calls: list[tuple[str, str]] = []

    async def run_remote(self, command: str, sudo: bool = False) -> str:
        self.calls.append(("run_remote", sudo_prefix(command, sudo)))
        return ""

    async def upload_and_run(self, script: str, sudo: bool = False) -> str:
        self.calls.append(("upload_and_run", script))
        return ""

    async def upload_file(self, content: str | bytes, dest: str, mode: str = "") -> None:
        self.calls.append(("upload_file", dest))

    async def run_local(self, command: str) -> str:
        self.calls.append(("run_local", command))
        return ""
