"""Primary task actions.

Each task declares one primary action. :func:`execute_action` templates the
action through the host's variable environment and hands it to the remote
executor; :func:`describe_action` renders the same action for dry runs.
"""

import asyncio
import logging
from pathlib import Path

from .exceptions import NoExecutableTaskType, TaskExecutionError
from .remote import RemoteExecutor
from .types import Task
from .variables import VariableEnvironment

logger = logging.getLogger(__name__)

# wait_for polling
WAIT_FOR_ATTEMPTS = 30
WAIT_FOR_INTERVAL = 2.0

WAIT_FOR_COMMANDS = {
    "port": "nc -z localhost {}",
    "service": "systemctl is-active {}",
    "file": "test -f {}",
    "http": "curl -sf {}",
}


def _read_local(path: str, what: str) -> bytes:
    try:
        return Path(path).read_bytes()
    except OSError as e:
        raise TaskExecutionError(f"failed to read {what}: {e}") from e


def _decode(data: bytes, what: str) -> str:
    try:
        return data.decode()
    except UnicodeDecodeError as e:
        raise TaskExecutionError(f"{what} is not valid UTF-8 text: {e}") from e


def copy_content(data: bytes, env: VariableEnvironment) -> str | bytes:
    """Template a copy source, or pass it through untouched if it is binary."""
    try:
        text = data.decode()
    except UnicodeDecodeError:
        return data
    if "\x00" in text:
        return data
    return env.render(text)


def wait_for_command(condition: str) -> str:
    """Build the probe command for a ``type:value`` wait condition.

    Raises:
        TaskExecutionError: If the condition is malformed or the type unknown

    Example:
        >>> wait_for_command("port:8080")
        'nc -z localhost 8080'
    """
    kind, sep, value = condition.partition(":")
    if not sep:
        raise TaskExecutionError(f"invalid wait_for format: {condition} (expected type:value)")
    template = WAIT_FOR_COMMANDS.get(kind)
    if template is None:
        raise TaskExecutionError(f"unknown wait_for type: {kind}")
    return template.format(value)


async def wait_for(executor: RemoteExecutor, condition: str) -> str:
    """Poll ``condition`` on the host until it holds.

    Probes up to ``WAIT_FOR_ATTEMPTS`` times, ``WAIT_FOR_INTERVAL`` seconds
    apart.

    Raises:
        TaskExecutionError: If the condition never holds
    """
    command = wait_for_command(condition)
    for attempt in range(1, WAIT_FOR_ATTEMPTS + 1):
        try:
            await executor.run_remote(command)
        except TaskExecutionError as e:
            logger.debug(f"wait_for {condition} probe {attempt}/{WAIT_FOR_ATTEMPTS}: {e}")
        else:
            return f"Condition met: {condition}"
        if attempt < WAIT_FOR_ATTEMPTS:
            await asyncio.sleep(WAIT_FOR_INTERVAL)
    raise TaskExecutionError(f"timeout waiting for: {condition}")


async def execute_action(
    task: Task,
    executor: RemoteExecutor,
    env: VariableEnvironment,
    local: bool = False,
) -> str:
    """Run one attempt of the task's primary action.

    Args:
        task: Task to execute
        executor: Remote executor of the current host
        env: Variable environment used for templating
        local: Run ``command``/``shell`` on the control machine
            (task delegated to localhost)

    Returns:
        The action output

    Raises:
        NoExecutableTaskType: If the task has no primary action
        TaskExecutionError: If the action fails
    """
    kind = task.action_kind

    if kind in ("command", "shell"):
        command = env.render(getattr(task, kind))
        if local:
            return await executor.run_local(command)
        return await executor.run_remote(command, task.sudo)

    if kind == "script":
        script = env.render(_decode(_read_local(task.script, "script"), "script"))
        return await executor.upload_and_run(script, task.sudo)

    if kind == "local_action":
        return await executor.run_local(env.render(task.local_action))

    if kind == "copy":
        content = copy_content(_read_local(task.copy.src, "source file"), env)
        dest = env.render(task.copy.dest)
        await executor.upload_file(content, dest, task.copy.mode)
        return f"Copied {task.copy.src} to {dest}"

    if kind == "wait_for":
        return await wait_for(executor, env.render(task.wait_for))

    raise NoExecutableTaskType("no executable task type defined", task=task.name)


def describe_action(task: Task, env: VariableEnvironment) -> list[str]:
    """Describe what the task would do, for dry runs."""
    kind = task.action_kind
    if kind == "command":
        line = f"Command: {env.render(task.command)}"
        if task.delegate_to:
            line += f" (delegated to: {task.delegate_to})"
        return [line]
    if kind == "shell":
        return [f"Shell: {env.render(task.shell)}"]
    if kind == "script":
        return [f"Script: {task.script}"]
    if kind == "local_action":
        return [f"Local Action: {env.render(task.local_action)}"]
    if kind == "copy":
        return [f"Copy: {task.copy.src} → {env.render(task.copy.dest)}"]
    if kind == "wait_for":
        return [f"Wait for: {env.render(task.wait_for)}"]
    return ["(no executable action)"]
