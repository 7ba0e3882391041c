"""Test CLI functionality."""

import pytest
from click.testing import CliRunner

from sshot import __version__
from sshot.cli import main

pytestmark = pytest.mark.usefixtures("restore_root_logger")

SITE = """
inventory:
  hosts:
    - name: web01
      address: 10.0.0.1
    - name: web02
      address: 10.0.0.2
playbook:
  name: Smoke test
  tasks:
    - name: Check uptime
      command: uptime
    - name: Restart app
      command: systemctl restart app
      sudo: true
      run_once: true
"""


@pytest.fixture
def site(tmp_path):
    path = tmp_path / "site.yml"
    path.write_text(SITE)
    return path


def test_cli_version():
    """Test CLI version output."""
    result = CliRunner().invoke(main, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_cli_help():
    result = CliRunner().invoke(main, ["-h"])
    assert result.exit_code == 0
    assert "--dry-run" in result.output
    assert "--inventory" in result.output


def test_cli_missing_playbook_argument():
    result = CliRunner().invoke(main, [])
    assert result.exit_code != 0


def test_dry_run(site):
    """Test a dry run succeeds without contacting any host."""
    result = CliRunner().invoke(main, ["--dry-run", "--no-color", str(site)])

    assert result.exit_code == 0, result.output
    assert "DRY-RUN MODE" in result.output
    assert "PLAYBOOK: Smoke test" in result.output
    assert "Command: uptime" in result.output
    assert "Skipped (run_once already executed)" in result.output
    assert "DRY-RUN COMPLETED" in result.output


def test_dry_run_parallel(site):
    result = CliRunner().invoke(main, ["-n", "-p", str(site)])
    assert result.exit_code == 0, result.output
    assert "MODE: Parallel Execution" in result.output


def test_separate_inventory(tmp_path):
    inventory = tmp_path / "hosts.yml"
    inventory.write_text("hosts:\n  - {name: db01, address: 10.0.0.5}\n")
    playbook = tmp_path / "deploy.yml"
    playbook.write_text("name: Deploy\ntasks:\n  - {name: Ping, command: 'true'}\n")

    result = CliRunner().invoke(main, ["-n", "-i", str(inventory), str(playbook)])

    assert result.exit_code == 0, result.output
    assert "Host: db01 (10.0.0.5)" in result.output


def test_missing_file(tmp_path):
    result = CliRunner().invoke(main, [str(tmp_path / "missing.yml")])
    assert result.exit_code == 1
    assert "failed to read config file" in result.output


def test_empty_inventory(tmp_path):
    path = tmp_path / "empty.yml"
    path.write_text("playbook:\n  tasks:\n    - {name: t, command: 'true'}\n")

    result = CliRunner().invoke(main, ["-n", str(path)])

    assert result.exit_code == 1
    assert "no hosts or groups defined in inventory" in result.output


def test_invalid_log_level(site):
    result = CliRunner().invoke(main, ["--log-level", "loud", str(site)])
    assert result.exit_code == 2


def test_failed_run_exits_nonzero(site, monkeypatch):
    """Test a host that cannot authenticate fails the run with exit code 1."""
    monkeypatch.delenv("SSH_AUTH_SOCK", raising=False)

    result = CliRunner().invoke(main, ["--no-color", str(site)])

    assert result.exit_code == 1
    assert "Connection failed: no authentication method provided" in result.output
    assert "PLAYBOOK FAILED" in result.output


def test_log_file(site, tmp_path):
    log_file = tmp_path / "sshot.log"
    result = CliRunner().invoke(main, ["-n", "--log-file", str(log_file), str(site)])

    assert result.exit_code == 0, result.output
    assert log_file.exists()


def test_verbose_dry_run(site):
    result = CliRunner().invoke(main, ["-n", "-v", str(site)])

    assert result.exit_code == 0, result.output
    assert "[VERBOSE] Executing task: Check uptime" in result.output
