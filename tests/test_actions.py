"""Tests for primary task actions."""

import pytest

from conftest import FakeExecutor, failure
from sshot import actions
from sshot.actions import describe_action, execute_action, wait_for, wait_for_command
from sshot.exceptions import NoExecutableTaskType, TaskExecutionError
from sshot.types import CopySpec, Task
from sshot.variables import VariableEnvironment


@pytest.fixture
def fast_wait_for(monkeypatch):
    monkeypatch.setattr(actions, "WAIT_FOR_ATTEMPTS", 3)
    monkeypatch.setattr(actions, "WAIT_FOR_INTERVAL", 0.001)


@pytest.fixture
def env():
    return VariableEnvironment({"app": "web", "port": 8080})


class TestWaitForCommand:
    """Tests for wait_for condition parsing."""

    @pytest.mark.parametrize(
        "condition,command",
        [
            ("port:8080", "nc -z localhost 8080"),
            ("service:nginx", "systemctl is-active nginx"),
            ("file:/var/run/app.pid", "test -f /var/run/app.pid"),
            ("http:http://localhost/health", "curl -sf http://localhost/health"),
        ],
    )
    def test_commands(self, condition, command):
        assert wait_for_command(condition) == command

    def test_malformed(self):
        with pytest.raises(TaskExecutionError, match="invalid wait_for format"):
            wait_for_command("8080")

    def test_unknown_type(self):
        with pytest.raises(TaskExecutionError, match="unknown wait_for type: socket"):
            wait_for_command("socket:/tmp/s")


class TestWaitFor:
    """Tests for wait_for polling."""

    @pytest.mark.asyncio
    async def test_condition_met_after_polling(self, fast_wait_for):
        executor = FakeExecutor(responses={"nc -z localhost 80": [failure(), ""]})
        assert await wait_for(executor, "port:80") == "Condition met: port:80"
        assert len(executor.calls) == 2

    @pytest.mark.asyncio
    async def test_gives_up(self, fast_wait_for):
        executor = FakeExecutor(responses={"systemctl is-active app": failure()})
        with pytest.raises(TaskExecutionError, match="timeout waiting for: service:app"):
            await wait_for(executor, "service:app")
        assert len(executor.calls) == 3


class TestExecuteAction:
    """Tests for execute_action dispatch."""

    @pytest.mark.asyncio
    async def test_command_is_templated(self, executor, env):
        await execute_action(Task(name="t", command="systemctl restart {{.app}}", sudo=True), executor, env)
        assert executor.calls == [("run_remote", "systemctl restart web", True)]

    @pytest.mark.asyncio
    async def test_shell_local(self, executor, env):
        await execute_action(Task(name="t", shell="echo {{.port}}"), executor, env, local=True)
        assert executor.calls == [("run_local", "echo 8080", False)]

    @pytest.mark.asyncio
    async def test_local_action(self, executor, env):
        await execute_action(Task(name="t", local_action="make {{.app}}"), executor, env)
        assert executor.calls == [("run_local", "make web", False)]

    @pytest.mark.asyncio
    async def test_script(self, executor, env, tmp_path):
        script = tmp_path / "deploy.sh"
        script.write_text("#!/bin/sh\necho {{.app}}\n")

        await execute_action(Task(name="t", script=str(script)), executor, env)

        assert executor.calls == [("upload_and_run", "#!/bin/sh\necho web\n", False)]

    @pytest.mark.asyncio
    async def test_missing_script(self, executor, env, tmp_path):
        with pytest.raises(TaskExecutionError, match="failed to read script"):
            await execute_action(Task(name="t", script=str(tmp_path / "nope.sh")), executor, env)

    @pytest.mark.asyncio
    async def test_copy(self, executor, env, tmp_path):
        """Test copy templates content and destination."""
        src = tmp_path / "app.conf"
        src.write_text("listen {{.port}}\n")
        task = Task(name="t", copy=CopySpec(src=str(src), dest="/etc/{{.app}}.conf", mode="0644"))

        output = await execute_action(task, executor, env)

        assert output == f"Copied {src} to /etc/web.conf"
        assert executor.uploads == {"/etc/web.conf": "listen 8080\n"}
        assert executor.calls == [("upload_file", "/etc/web.conf", "0644")]

    @pytest.mark.asyncio
    async def test_copy_binary_file_uploaded_as_bytes(self, executor, env, tmp_path):
        """Test a non UTF-8 source is copied byte for byte without templating."""
        data = b"\xff\xfe{{.app}}\x00\x01"
        src = tmp_path / "logo.bin"
        src.write_bytes(data)

        await execute_action(Task(name="t", copy=CopySpec(src=str(src), dest="/srv/logo.bin")), executor, env)

        assert executor.uploads == {"/srv/logo.bin": data}

    @pytest.mark.asyncio
    async def test_copy_keeps_crlf_and_shell_syntax(self, executor, env, tmp_path):
        src = tmp_path / "run.sh"
        src.write_bytes(b"n=${#items[@]}\r\necho {{.app}}\r\n")

        await execute_action(Task(name="t", copy=CopySpec(src=str(src), dest="/srv/run.sh")), executor, env)

        assert executor.uploads == {"/srv/run.sh": "n=${#items[@]}\r\necho web\r\n"}

    @pytest.mark.asyncio
    async def test_binary_script_is_task_error(self, executor, env, tmp_path):
        script = tmp_path / "deploy.sh"
        script.write_bytes(b"\xff\xfe\x00")

        with pytest.raises(TaskExecutionError, match="script is not valid UTF-8 text"):
            await execute_action(Task(name="t", script=str(script)), executor, env)
        assert executor.calls == []

    @pytest.mark.asyncio
    async def test_wait_for(self, executor, env, fast_wait_for):
        output = await execute_action(Task(name="t", wait_for="port:{{.port}}"), executor, env)
        assert output == "Condition met: port:8080"

    @pytest.mark.asyncio
    async def test_no_action(self, executor, env):
        with pytest.raises(NoExecutableTaskType):
            await execute_action(Task(name="t"), executor, env)


class TestDescribeAction:
    """Tests for dry-run descriptions."""

    def test_descriptions(self, env):
        assert describe_action(Task(name="t", command="echo {{.app}}"), env) == ["Command: echo web"]
        assert describe_action(Task(name="t", shell="ls | wc"), env) == ["Shell: ls | wc"]
        assert describe_action(Task(name="t", script="x.sh"), env) == ["Script: x.sh"]
        assert describe_action(Task(name="t", local_action="make"), env) == ["Local Action: make"]
        assert describe_action(Task(name="t", wait_for="port:80"), env) == ["Wait for: port:80"]
        assert describe_action(Task(name="t", copy=CopySpec("a", "/b")), env) == ["Copy: a → /b"]

    def test_delegated_command(self, env):
        task = Task(name="t", command="reload", delegate_to="lb01")
        assert describe_action(task, env) == ["Command: reload (delegated to: lb01)"]
