"""Tests for sshot type definitions."""

from sshot.exceptions import GroupFailed, TaskExecutionError
from sshot.types import CopySpec, HostConfig, HostResult, PlaybookResult, RunOptions, Task


class TestHostConfig:
    """Tests for HostConfig dataclass."""

    def test_minimal_host_config(self):
        """Test creating a host with only an address."""
        host = HostConfig(name="web01", address="192.168.1.10")

        assert host.target == "192.168.1.10"
        assert host.ssh_port == 22
        assert host.strict_host_keys is True
        assert host.vars == {}

    def test_hostname_is_target_without_address(self):
        """Test the hostname is used when no address is set."""
        host = HostConfig(name="db01", hostname="db01.example.com")
        assert host.target == "db01.example.com"

    def test_display_name_fallback(self):
        """Test display name falls back to hostname then address."""
        assert HostConfig(hostname="db01.example.com").display_name == "db01.example.com"
        assert HostConfig(address="10.0.0.5").display_name == "10.0.0.5"

    def test_explicit_port_and_host_keys(self):
        host = HostConfig(name="web01", address="10.0.0.1", port=2222, strict_host_key_check=False)
        assert host.ssh_port == 2222
        assert host.strict_host_keys is False

    def test_vars_are_independent(self):
        """Test each host gets its own vars mapping."""
        a = HostConfig(name="a")
        b = HostConfig(name="b")
        a.vars["role"] = "web"
        assert b.vars == {}


class TestTask:
    """Tests for Task dataclass."""

    def test_action_kind(self):
        assert Task(name="t", command="uptime").action_kind == "command"
        assert Task(name="t", shell="ls | wc -l").action_kind == "shell"
        assert Task(name="t", script="deploy.sh").action_kind == "script"
        assert Task(name="t", local_action="make").action_kind == "local_action"
        assert Task(name="t", copy=CopySpec("a", "/b")).action_kind == "copy"
        assert Task(name="t", wait_for="port:80").action_kind == "wait_for"

    def test_no_action(self):
        assert Task(name="t").action_kind is None

    def test_command_wins_over_later_kinds(self):
        """Test the first declared kind in priority order is used."""
        task = Task(name="t", command="uptime", wait_for="port:80")
        assert task.action_kind == "command"

    def test_defaults(self):
        task = Task(name="t")
        assert task.retries == 0
        assert task.depends_on == []
        assert task.allowed_exit_codes == []
        assert not task.run_once


class TestResults:
    """Tests for HostResult and PlaybookResult."""

    def test_host_result(self):
        host = HostConfig(name="web01")
        ok = HostResult(host=host, success=True)
        bad = HostResult(host=host, success=False, error=TaskExecutionError("boom"))

        assert ok.is_success and not ok.is_failure
        assert bad.is_failure
        assert str(bad.error) == "boom"

    def test_playbook_result_counts(self):
        result = PlaybookResult(
            results=[
                HostResult(host=HostConfig(name="a"), success=True),
                HostResult(host=HostConfig(name="b"), success=False),
                HostResult(host=HostConfig(name="c"), success=True),
            ]
        )
        assert result.successful == 2
        assert result.failed == 1
        assert not result.success

    def test_empty_result_is_success(self):
        assert PlaybookResult().success

    def test_run_error_fails_result(self):
        """Test a run-level error fails the run even without failed hosts."""
        result = PlaybookResult(error=GroupFailed("group 'web' failed"))
        assert not result.success

    def test_run_options_defaults(self):
        options = RunOptions()
        assert not options.dry_run
        assert not options.parallel
        assert not options.full_output
