"""Type definitions for the sshot orchestrator.

This module defines the typed records exchanged between the configuration
loader, the scheduler, the host runner and the task runner. Inventory and
playbook YAML are turned into these dataclasses once, at load time, so the
execution core never touches raw dictionaries.
"""

from dataclasses import dataclass, field
from typing import Any


@dataclass
class SSHDefaults:
    """Inventory-wide SSH settings applied to hosts that do not set their own.

    Attributes:
        user: Default SSH username
        password: Default password for password authentication
        key_file: Default private key path (``~/`` is expanded)
        key_password: Passphrase for ``key_file``
        use_agent: Authenticate through ssh-agent
        port: Default SSH port (0 means unset)
        strict_host_key_check: Verify host keys against known_hosts
            (None means unset, which resolves to True)
    """

    user: str = ""
    password: str = ""
    key_file: str = ""
    key_password: str = ""
    use_agent: bool = False
    port: int = 0
    strict_host_key_check: bool | None = None


@dataclass
class HostConfig:
    """A single target host.

    The host name is both the display label and the identity used for
    delegation. When no explicit name is configured the loader falls back to
    the hostname and then to the address.

    Attributes:
        name: Host identity (e.g. "web01")
        address: IP address used as connection target
        hostname: DNS name used as connection target when no address is set
        port: SSH port (0 means unset, resolves to 22)
        user: SSH username
        password: Password for password authentication
        key_file: Private key path
        key_password: Passphrase for the private key
        use_agent: Authenticate through ssh-agent
        strict_host_key_check: Verify host keys (None resolves to True)
        vars: Host variables, an arbitrary nested mapping

    Example:
        >>> host = HostConfig(name="web01", address="192.168.1.10")
        >>> host.target
        '192.168.1.10'
        >>> host.ssh_port
        22
    """

    name: str = ""
    address: str = ""
    hostname: str = ""
    port: int = 0
    user: str = ""
    password: str = ""
    key_file: str = ""
    key_password: str = ""
    use_agent: bool = False
    strict_host_key_check: bool | None = None
    vars: dict[str, Any] = field(default_factory=dict)

    @property
    def target(self) -> str:
        """Connection target: the address, or the hostname if no address."""
        return self.address or self.hostname

    @property
    def display_name(self) -> str:
        """Name to show to the operator."""
        return self.name or self.hostname or self.address

    @property
    def ssh_port(self) -> int:
        return self.port or 22

    @property
    def strict_host_keys(self) -> bool:
        return True if self.strict_host_key_check is None else self.strict_host_key_check


@dataclass
class GroupConfig:
    """An ordered, dependency-aware set of hosts executed as a unit.

    Attributes:
        name: Group name (e.g. "databases")
        hosts: Hosts in declaration order
        order: Ascending execution order; ties keep declaration order
        parallel: Run the group's hosts concurrently
        depends_on: Names of groups that must have completed successfully
    """

    name: str
    hosts: list[HostConfig] = field(default_factory=list)
    order: int = 0
    parallel: bool = False
    depends_on: list[str] = field(default_factory=list)


@dataclass
class CopySpec:
    """Source, destination and optional mode for a file copy task."""

    src: str
    dest: str
    mode: str = ""


# Priority used when a task declares more than one primary action.
ACTION_KINDS = ("command", "shell", "script", "local_action", "copy", "wait_for")


@dataclass
class Task:
    """A playbook task: one primary action plus execution modifiers.

    Task names double as dependency and run-once keys, so they must be unique
    within a playbook.

    Attributes:
        name: Display label and dependency/run-once key
        command: Remote command
        shell: Remote shell command
        script: Path of a local script uploaded and executed remotely
        local_action: Command executed on the control machine
        copy: File copy specification
        wait_for: Poll condition in ``type:value`` form (port, service, file, http)
        sudo: Run with elevated privileges
        when: Condition controlling whether the task runs
        vars: Variables merged into the host environment before ``when``
        depends_on: Task names that must have completed on this host
        retries: Number of retries after the first attempt
        retry_delay: Seconds between attempts
        timeout: Seconds after which the retry loop gives up
        until_success: Retry until success (60 retries unless ``retries`` set)
        allowed_exit_codes: Exit statuses treated as success
        ignore_error: Report failures but keep going
        register: Variable name that receives the task output
        run_once: Execute on at most one host per run
        delegate_to: Host name (or "localhost") that actually runs the task
        only_groups: Run only on hosts of these groups
        skip_groups: Never run on hosts of these groups
    """

    name: str
    command: str = ""
    shell: str = ""
    script: str = ""
    local_action: str = ""
    copy: CopySpec | None = None
    wait_for: str = ""
    sudo: bool = False
    when: str = ""
    vars: dict[str, Any] = field(default_factory=dict)
    depends_on: list[str] = field(default_factory=list)
    retries: int = 0
    retry_delay: float = 0
    timeout: float = 0
    until_success: bool = False
    allowed_exit_codes: list[int] = field(default_factory=list)
    ignore_error: bool = False
    register: str = ""
    run_once: bool = False
    delegate_to: str = ""
    only_groups: list[str] = field(default_factory=list)
    skip_groups: list[str] = field(default_factory=list)

    @property
    def action_kind(self) -> str | None:
        """Name of the primary action, or None if the task declares none."""
        for kind in ACTION_KINDS:
            if getattr(self, kind):
                return kind
        return None


@dataclass
class FactCollector:
    """A command whose JSON output is merged into the host environment."""

    name: str
    command: str
    sudo: bool = False


@dataclass
class Playbook:
    name: str = ""
    parallel: bool = False
    facts: list[FactCollector] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)


@dataclass
class Inventory:
    hosts: list[HostConfig] = field(default_factory=list)
    groups: list[GroupConfig] = field(default_factory=list)
    ssh_config: SSHDefaults | None = None


@dataclass
class Config:
    """Inventory plus playbook, as produced by :mod:`sshot.config`."""

    inventory: Inventory = field(default_factory=Inventory)
    playbook: Playbook = field(default_factory=Playbook)


@dataclass
class RunOptions:
    """Operator options for one run.

    Attributes:
        dry_run: Report intended actions without contacting hosts
        verbose: Report every task duration and condition evaluation
        parallel: Run ungrouped hosts in parallel regardless of the playbook
        progress: Stream remote command output live
        no_color: Disable colored console output
        full_output: Never truncate task output
    """

    dry_run: bool = False
    verbose: bool = False
    parallel: bool = False
    progress: bool = False
    no_color: bool = False
    full_output: bool = False


@dataclass(frozen=True)
class HostResult:
    """Outcome of running the playbook on one host.

    Attributes:
        host: The host the result belongs to
        success: Whether every task succeeded (or was skipped/ignored)
        error: Terminal error, if any
        output: Captured transcript
        duration: Seconds spent on the host

    Example:
        >>> result = HostResult(host=HostConfig(name="web01"), success=True)
        >>> result.is_failure
        False
    """

    host: HostConfig
    success: bool
    error: BaseException | None = None
    output: str = ""
    duration: float = 0.0

    @property
    def is_success(self) -> bool:
        return self.success

    @property
    def is_failure(self) -> bool:
        return not self.success


@dataclass
class PlaybookResult:
    """Aggregated outcome of a playbook run.

    Attributes:
        results: Host results in execution order
        error: Run-level error (group dependency not met, group failed)
        duration: Total run time in seconds
        dry_run: Whether the run was a simulation
    """

    results: list[HostResult] = field(default_factory=list)
    error: BaseException | None = None
    duration: float = 0.0
    dry_run: bool = False

    @property
    def successful(self) -> int:
        return sum(1 for r in self.results if r.success)

    @property
    def failed(self) -> int:
        return len(self.results) - self.successful

    @property
    def success(self) -> bool:
        """True when no host failed and no run-level error occurred."""
        return self.error is None and self.failed == 0
