"""Per-host task state machine.

:meth:`TaskRunner.run_task` takes one task through these states, in order:

1. group filter (``only_groups`` / ``skip_groups``)
2. delegation (``delegate_to`` another host skips the task here)
3. run-once claim
4. dependency check
5. task vars merge
6. ``when`` condition
7. dry-run simulation, or execution under the retry policy
8. output registration
9. failure handling (``ignore_error``)

A skipped, simulated, successful or ignored task is marked completed and
``run_task`` returns normally. Any other outcome raises, which ends the
host's run.
"""

from .actions import describe_action, execute_action
from .conditions import evaluate_condition
from .exceptions import DependencyNotMet, NoExecutableTaskType, SshotError, TaskExecutionError, TaskTimeout
from .logging import get_logger
from .output import Transcript
from .remote import RemoteExecutor, extract_exit_code, is_allowed_exit
from .retry import RetryPolicy, RetryState, run_with_retry
from .runonce import RunOnceRegistry
from .types import HostConfig, RunOptions, Task
from .variables import VariableEnvironment

LOCALHOST = "localhost"


def _seconds(value: float) -> str:
    return f"{value:g}s"


class TaskRunner:
    """Executes playbook tasks for one host.

    Created once per host per run; owns the host's variable environment,
    completed-task set and registered outputs.

    Attributes:
        host: Host the tasks run for
        executor: Remote executor of the host
        registry: Run-once registry shared by every host of the run
        transcript: Where task progress is written
        options: Run options
        group_name: Group of the host ("" for ungrouped hosts)
        env: Variable environment, seeded from the host vars
        completed: Names of tasks completed on this host
        registers: Outputs stored by ``register``
    """

    def __init__(
        self,
        host: HostConfig,
        executor: RemoteExecutor,
        registry: RunOnceRegistry,
        transcript: Transcript,
        options: RunOptions | None = None,
        group_name: str = "",
        env: VariableEnvironment | None = None,
    ) -> None:
        self.host = host
        self.executor = executor
        self.registry = registry
        self.transcript = transcript
        self.options = options or RunOptions()
        self.group_name = group_name
        self.env = env if env is not None else VariableEnvironment(host.vars)
        self.completed: set[str] = set()
        self.registers: dict[str, str] = {}
        self.log = get_logger(__name__, host=host.name)

    def _verbose(self, message: str) -> None:
        self.log.debug(message)
        if self.options.verbose:
            self.transcript.write(f"  [VERBOSE] {message}", "dim")

    def _complete(self, task: Task) -> None:
        self.completed.add(task.name)

    def _skip(self, task: Task, message: str) -> None:
        self.transcript.write(f"  {message}", "yellow")
        self._complete(task)

    async def run_task(self, task: Task) -> None:
        """Run one task on this host.

        Raises:
            DependencyNotMet: If a task in ``depends_on`` has not completed
            NoExecutableTaskType: If the task declares no primary action
            TaskExecutionError: If the action failed and errors are not ignored
            TaskTimeout: If retrying exceeded the timeout and errors are not ignored
        """
        if task.only_groups and self.group_name not in task.only_groups:
            self._skip(task, "↷ Skipped (group filter)")
            return
        if self.group_name and self.group_name in task.skip_groups:
            self._skip(task, "↷ Skipped (group filter)")
            return

        if task.delegate_to and task.delegate_to not in (self.host.name, LOCALHOST):
            self._skip(task, f"↷ Skipped (delegated to: {task.delegate_to})")
            return
        local = task.delegate_to == LOCALHOST

        if task.run_once and not self.registry.claim(task.name):
            self._skip(task, "↷ Skipped (run_once already executed)")
            return

        self._verbose(f"Executing task: {task.name}")

        for dependency in task.depends_on:
            if dependency not in self.completed:
                raise DependencyNotMet(
                    f"dependency not met: task '{task.name}' depends on '{dependency}' "
                    f"which has not completed",
                    host=self.host.name,
                    task=task.name,
                )

        if task.vars:
            self.env.update(task.vars)

        if task.when:
            self._verbose(f"Evaluating condition: {task.when}")
            if not evaluate_condition(task.when, self.env):
                self._skip(task, f"⊘ Skipped (when: {task.when})")
                return

        if self.options.dry_run:
            self._simulate(task, local)
            self._complete(task)
            return

        await self._execute(task, local)

    def _simulate(self, task: Task, local: bool) -> None:
        write = self.transcript.write
        write("  🔍 DRY-RUN: Would execute", "cyan")
        for line in describe_action(task, self.env):
            write(f"      {line}")
        if local and task.action_kind in ("command", "shell"):
            write("      (on the control machine)")
        if task.run_once:
            write("      (run once)")
        if task.sudo:
            write("      (with sudo)")
        if task.allowed_exit_codes:
            write(f"      Allowed exit codes: {task.allowed_exit_codes}")
        if task.depends_on:
            write(f"      Dependencies: {task.depends_on}")
        policy = RetryPolicy.from_task(task)
        if policy.retries > 0:
            write(f"      Retries: {policy.retries} (delay: {_seconds(policy.delay)})")
        if policy.timeout > 0:
            write(f"      Timeout: {_seconds(policy.timeout)}")

    def _accept_exit(self, task: Task, error: TaskExecutionError) -> bool:
        if not task.allowed_exit_codes:
            return False
        self._verbose(f"Command failed with error: {error}")
        self._verbose(f"Checking against allowed exit codes: {task.allowed_exit_codes}")
        if is_allowed_exit(error, task.allowed_exit_codes):
            self._verbose(f"Exit code {extract_exit_code(error)} is in allowed list, treating as success")
            return True
        return False

    def _report_retry(self, policy: RetryPolicy, state: RetryState, delay: float) -> None:
        message = f"Attempt {state.attempts}/{policy.max_attempts} failed, retrying in {_seconds(delay)}"
        if self.options.verbose:
            self._verbose(f"{message}: {state.last_error}")
        else:
            self.transcript.write(f"  ⟳ {message}...", "yellow")

    async def _execute(self, task: Task, local: bool) -> None:
        if task.action_kind is None:
            raise NoExecutableTaskType(
                "no executable task type defined", host=self.host.name, task=task.name
            )

        policy = RetryPolicy.from_task(task)
        state = await run_with_retry(
            lambda: execute_action(task, self.executor, self.env, local=local),
            policy,
            task_name=task.name,
            accept=lambda e: self._accept_exit(task, e),
            on_retry=lambda s, d: self._report_retry(policy, s, d),
        )

        if state.succeeded:
            if state.attempts > 1:
                self.transcript.write(f"  ✓ Success (after {state.attempts} attempts)", "green")
            else:
                self.transcript.write("  ✓ Success", "green")
            self._register(task, state.output)
            self.transcript.output(state.output)
            self._complete(task)
            return

        error: SshotError
        if state.timed_out:
            self.transcript.write(
                f"  ✗ Timeout after {policy.timeout:g} seconds (attempted {state.attempts} times)", "red"
            )
            error = TaskTimeout(
                f"timeout after {policy.timeout:g} seconds: {state.last_error}",
                last_error=state.last_error,
                host=self.host.name,
                task=task.name,
            )
        else:
            error = state.last_error
            error.context.host = error.context.host or self.host.name
            error.context.task = error.context.task or task.name

        if task.ignore_error:
            self._register(task, state.output)
            self.transcript.write(f"  ⚠ Failed (ignored): {error}", "yellow")
            self.transcript.output(state.output)
            self._complete(task)
            self.log.info("Task failed, error ignored", task=task.name, error=error)
            return

        self.transcript.output(state.output)
        raise error

    def _register(self, task: Task, output: str) -> None:
        if not task.register:
            return
        self.registers[task.register] = output
        self.env.register(task.register, output)
        self._verbose(f"Registered output to: {task.register}")
