"""Async SSH transport for sshot.

Implements :class:`~sshot.remote.RemoteExecutor` on top of asyncssh. One
:class:`SSHRemoteExecutor` is opened per host and keeps a single connection
for the whole run; every command runs in its own channel.

Authentication follows the inventory settings:

- ``use_agent`` uses ssh-agent (``SSH_AUTH_SOCK`` must be set)
- ``key_file`` (with optional ``key_password``) uses that private key
- ``password`` uses password authentication
- with none of the above, ssh-agent is used if it is available

Host keys are verified against ``~/.ssh/known_hosts`` unless
``strict_host_key_check`` is false.
"""

import asyncio
import logging
import os
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

import asyncssh

from .exceptions import AuthenticationFailed, ConnectionFailed, TaskExecutionError
from .remote import RemoteExecutor, combine_output, sudo_prefix
from .types import HostConfig

logger = logging.getLogger(__name__)

# Called with each streamed output line and whether it came from stderr
StreamCallback = Callable[[str, bool], None]


@dataclass
class SSHConfig:
    """SSH connection configuration.

    Attributes:
        hostname: Remote hostname or IP
        port: SSH port (default 22)
        username: SSH username (default current user)
        password: Password for authentication (optional)
        client_keys: List of private key paths (optional)
        passphrase: Passphrase for the private keys (optional)
        use_agent: Offer ssh-agent keys
        known_hosts: Path to known_hosts file (None to disable checking)
        connect_timeout: Connection timeout in seconds
        keepalive_interval: Keepalive interval (0 to disable)
    """

    hostname: str
    port: int = 22
    username: str | None = None
    password: str | None = None
    client_keys: list[str] | None = None
    passphrase: str | None = None
    use_agent: bool = True
    known_hosts: str | None = ()  # Empty tuple = use default known_hosts
    connect_timeout: float = 10.0
    keepalive_interval: float = 30.0

    @classmethod
    def from_host(cls, host: HostConfig) -> "SSHConfig":
        """Build connection settings from an inventory host.

        Raises:
            ConnectionFailed: If the host has no target or no usable
                authentication method
        """
        if not host.target:
            raise ConnectionFailed("no address or hostname provided", host=host.name)

        agent_available = bool(os.environ.get("SSH_AUTH_SOCK"))
        if host.use_agent and not agent_available:
            raise ConnectionFailed(
                "use_agent is true but ssh-agent is not available", host=host.name
            )
        use_agent = host.use_agent or (
            not host.key_file and not host.password and agent_available
        )
        if not use_agent and not host.key_file and not host.password:
            raise ConnectionFailed(
                "no authentication method provided (try: use_agent: true, key_file, or password)",
                host=host.name,
            )

        client_keys = None
        if host.key_file:
            client_keys = [str(Path(host.key_file).expanduser())]

        return cls(
            hostname=host.target,
            port=host.ssh_port,
            username=host.user or None,
            password=host.password or None,
            client_keys=client_keys,
            passphrase=host.key_password or None,
            use_agent=use_agent,
            known_hosts=() if host.strict_host_keys else None,
        )

    def to_asyncssh_options(self) -> dict[str, Any]:
        """Convert to asyncssh.connect() kwargs."""
        options: dict[str, Any] = {
            "host": self.hostname,
            "port": self.port,
            "connect_timeout": self.connect_timeout,
            "keepalive_interval": self.keepalive_interval,
        }

        if self.username:
            options["username"] = self.username
        if self.password:
            options["password"] = self.password
        if self.client_keys:
            options["client_keys"] = self.client_keys
        if self.passphrase:
            options["passphrase"] = self.passphrase
        if not self.use_agent:
            options["agent_path"] = None
        if self.known_hosts is None:
            options["known_hosts"] = None  # Disable host key checking
        elif self.known_hosts != ():
            options["known_hosts"] = self.known_hosts

        return options


class SSHRemoteExecutor(RemoteExecutor):
    """Remote executor backed by one asyncssh connection.

    The connection is opened by :meth:`connect` (or on first use) and closed
    by :meth:`close`. When ``stream`` is given, command output is passed to it
    line by line while the command runs.

    Example:
        executor = SSHRemoteExecutor(HostConfig(name="web01", address="10.0.0.5"))
        async with executor:
            print(await executor.run_remote("uptime"))
    """

    def __init__(self, host: HostConfig, stream: StreamCallback | None = None):
        self.host = host
        self.host_name = host.name
        self.stream = stream
        self._config: SSHConfig | None = None
        self._conn: asyncssh.SSHClientConnection | None = None
        self._lock = asyncio.Lock()

    @property
    def config(self) -> SSHConfig:
        if self._config is None:
            self._config = SSHConfig.from_host(self.host)
        return self._config

    async def connect(self) -> asyncssh.SSHClientConnection:
        """Establish the SSH connection.

        Returns the cached connection if available.

        Raises:
            AuthenticationFailed: If the server rejected every credential
            ConnectionFailed: If the connection could not be established
        """
        async with self._lock:
            if self._conn is None or self._conn.is_closed():
                config = self.config
                logger.debug(f"[{self.host_name}] Dialing {config.hostname}:{config.port}")
                try:
                    self._conn = await asyncssh.connect(**config.to_asyncssh_options())
                except asyncssh.PermissionDenied as e:
                    raise AuthenticationFailed(
                        f"authentication failed: {e}", host=self.host_name
                    ) from e
                except asyncssh.KeyImportError as e:
                    raise AuthenticationFailed(
                        f"unable to load private key: {e}", host=self.host_name
                    ) from e
                except (OSError, asyncssh.Error, asyncio.TimeoutError) as e:
                    raise ConnectionFailed(
                        f"failed to dial {config.hostname}:{config.port}: {e}",
                        host=self.host_name,
                    ) from e
                logger.info(f"Connected to {self.host_name}")
            return self._conn

    async def close(self) -> None:
        """Close the SSH connection."""
        async with self._lock:
            if self._conn is not None and not self._conn.is_closed():
                self._conn.close()
                await self._conn.wait_closed()
                logger.debug(f"Disconnected from {self.host_name}")
            self._conn = None

    async def __aenter__(self) -> "SSHRemoteExecutor":
        await self.connect()
        return self

    async def _exec(self, command: str, stdin: str | None = None) -> tuple[str, str, int | None, str]:
        conn = await self.connect()
        try:
            result = await conn.run(command, input=stdin, check=False)
        except (OSError, asyncssh.Error) as e:
            raise TaskExecutionError(
                f"failed to create session: {e}", host=self.host_name
            ) from e
        return (
            str(result.stdout or ""),
            str(result.stderr or ""),
            result.exit_status,
            result.exit_signal[0] if result.exit_signal else "",
        )

    async def _exec_streaming(self, command: str) -> tuple[str, int | None, str]:
        conn = await self.connect()
        chunks: list[str] = []

        async def pump(reader: Any, is_stderr: bool) -> None:
            async for line in reader:
                chunks.append(line)
                self.stream(line.rstrip("\r\n"), is_stderr)

        try:
            async with conn.create_process(command) as process:
                process.stdin.write_eof()
                await asyncio.gather(
                    pump(process.stdout, False),
                    pump(process.stderr, True),
                )
                completed = await process.wait(check=False)
        except (OSError, asyncssh.Error) as e:
            raise TaskExecutionError(
                f"failed to start command: {e}", output="".join(chunks), host=self.host_name
            ) from e
        signal = completed.exit_signal[0] if completed.exit_signal else ""
        return "".join(chunks), completed.exit_status, signal

    async def run_remote(self, command: str, sudo: bool = False) -> str:
        """Run a command on the host.

        Args:
            command: Command line, already templated
            sudo: Prefix the command with ``sudo -S``

        Returns:
            stdout, followed by ``STDERR: ...`` when stderr is not empty

        Raises:
            TaskExecutionError: If the command exits non-zero
        """
        command = sudo_prefix(command, sudo)
        logger.debug(f"[{self.host_name}] Executing: {command}")

        if self.stream is not None:
            output, status, signal = await self._exec_streaming(command)
        else:
            stdout, stderr, status, signal = await self._exec(command)
            output = combine_output(stdout, stderr)

        logger.debug(f"[{self.host_name}] Command output length: {len(output)} bytes")

        if status is None or status < 0:
            raise TaskExecutionError(
                f"command failed: terminated by signal {signal or 'unknown'}",
                output=output,
                host=self.host_name,
            )
        if status != 0:
            raise TaskExecutionError(
                f"command failed: Process exited with status {status}",
                output=output,
                exit_status=status,
                host=self.host_name,
            )
        return output

    async def upload_and_run(self, script: str, sudo: bool = False) -> str:
        """Upload ``script`` to ``/tmp/script_<ts>.sh``, run it, then remove it."""
        path = f"/tmp/script_{int(time.time())}.sh"

        _, stderr, status, _ = await self._exec(f"cat > {path} && chmod +x {path}", stdin=script)
        if status != 0:
            raise TaskExecutionError(
                f"failed to upload script: {stderr.strip() or f'exit status {status}'}",
                exit_status=status,
                host=self.host_name,
            )

        try:
            output = await self.run_remote(f"sudo {path}" if sudo else path)
        except TaskExecutionError as e:
            await self._remove(path)
            raise TaskExecutionError(
                f"failed to execute script: {e}",
                output=e.output,
                exit_status=e.exit_status,
                host=self.host_name,
            ) from e

        _, stderr, status, _ = await self._exec(f"rm -f {path}")
        if status != 0:
            raise TaskExecutionError(
                f"failed to cleanup script: {stderr.strip()}",
                output=output,
                exit_status=status,
                host=self.host_name,
            )
        return output

    async def _remove(self, path: str) -> None:
        _, stderr, status, _ = await self._exec(f"rm -f {path}")
        if status != 0:
            logger.warning(f"[{self.host_name}] Could not remove {path}: {stderr.strip()}")

    async def upload_file(self, content: str | bytes, dest: str, mode: str = "") -> None:
        """Write ``content`` to ``dest`` over SFTP and apply ``mode``.

        Args:
            content: File content; text is sent UTF-8 encoded
            dest: Remote destination path
            mode: Octal permission string such as ``"0644"`` (optional)
        """
        conn = await self.connect()
        data = content.encode() if isinstance(content, str) else content

        logger.debug(f"[{self.host_name}] Writing {len(data)} bytes to {dest}")

        try:
            permissions = int(mode, 8) if mode else None
        except ValueError as e:
            raise TaskExecutionError(f"invalid file mode: {mode}", host=self.host_name) from e

        try:
            async with conn.start_sftp_client() as sftp:
                async with sftp.open(dest, "wb") as f:
                    await f.write(data)
                if permissions is not None:
                    await sftp.chmod(dest, permissions)
        except (OSError, asyncssh.Error) as e:
            raise TaskExecutionError(f"failed to copy file: {e}", host=self.host_name) from e
