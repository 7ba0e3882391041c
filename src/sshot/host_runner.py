"""Runs the playbook on a single host.

The host runner opens the host's remote executor, gathers facts, runs every
task in order through a :class:`~sshot.task_runner.TaskRunner` and stops at
the first task that raises. Whatever happens, the executor is closed and
the outcome comes back as a :class:`~sshot.types.HostResult`; exceptions
never escape :meth:`HostRunner.run`.
"""

import time
from typing import Callable

from rich.console import Console

from .exceptions import ConnectionFailed, FactCollectionFailed, SshotError
from .facts import gather_facts
from .logging import get_logger
from .output import Transcript, format_duration
from .remote import DryRunExecutor, RemoteExecutor
from .runonce import RunOnceRegistry
from .ssh import SSHRemoteExecutor, StreamCallback
from .task_runner import TaskRunner
from .types import FactCollector, HostConfig, HostResult, RunOptions, Task

logger = get_logger(__name__)

# Tasks slower than this report their duration
SLOW_TASK_SECONDS = 1.0

ExecutorFactory = Callable[[HostConfig, StreamCallback | None], RemoteExecutor]


def default_executor_factory(options: RunOptions) -> ExecutorFactory:
    """SSH executors for real runs, dry-run executors otherwise."""

    def factory(host: HostConfig, stream: StreamCallback | None) -> RemoteExecutor:
        if options.dry_run:
            return DryRunExecutor(host.name)
        return SSHRemoteExecutor(host, stream=stream)

    return factory


class HostRunner:
    """Executes the task list on one host at a time.

    Attributes:
        tasks: Playbook tasks, in order
        facts: Fact collectors run before the first task
        registry: Run-once registry of the current run
        options: Run options
        console: Console for live transcripts
        executor_factory: Creates the remote executor for a host
    """

    def __init__(
        self,
        tasks: list[Task],
        facts: list[FactCollector],
        registry: RunOnceRegistry,
        options: RunOptions | None = None,
        console: Console | None = None,
        executor_factory: ExecutorFactory | None = None,
    ) -> None:
        self.tasks = tasks
        self.facts = facts
        self.registry = registry
        self.options = options or RunOptions()
        self.console = console
        self.executor_factory = executor_factory or default_executor_factory(self.options)

    async def run(
        self,
        host: HostConfig,
        group_name: str = "",
        transcript: Transcript | None = None,
    ) -> HostResult:
        """Run every task on ``host``.

        Args:
            host: Target host
            group_name: Group the host belongs to ("" when ungrouped)
            transcript: Where to write progress (a live transcript if None)

        Returns:
            HostResult with the transcript, duration and terminal error
        """
        if transcript is None:
            transcript = Transcript(self.console, full_output=self.options.full_output)
        log = logger.bind(host=host.name)
        start = time.monotonic()

        def result(success: bool, error: BaseException | None = None) -> HostResult:
            return HostResult(
                host=host,
                success=success,
                error=error,
                output=transcript.text,
                duration=time.monotonic() - start,
            )

        def failed(error: BaseException, footer: str) -> HostResult:
            transcript.write(footer, "red")
            transcript.write("")
            return result(False, error)

        transcript.write(f"┌─ Host: {host.display_name} ({host.target})", "bold cyan")
        transcript.write("│", "cyan")

        stream = transcript.stream if self.options.progress and not self.options.dry_run else None
        executor = self.executor_factory(host, stream)
        try:
            try:
                await executor.connect()
            except ConnectionFailed as e:
                log.warning(f"Connection failed: {e}")
                transcript.write(f"│ ✗ Connection failed: {e}", "red")
                return failed(e, "└─ ✗ Connection Failed")

            runner = TaskRunner(
                host,
                executor,
                self.registry,
                transcript,
                options=self.options,
                group_name=group_name,
            )

            if self.facts:
                if self.options.dry_run:
                    transcript.write("│ Gathering system facts... (skipped in dry-run)", "cyan")
                else:
                    transcript.write("│ Gathering system facts...", "cyan")
                    try:
                        with log.performance("Fact collection"):
                            await gather_facts(executor, self.facts, runner.env)
                    except FactCollectionFailed as e:
                        transcript.write(f"  ✗ Facts collection failed: {e}", "red")
                        return failed(e, f"└─ ✗ Failed (total time: {format_duration(time.monotonic() - start)})")

            total = len(self.tasks)
            for index, task in enumerate(self.tasks, 1):
                transcript.write(f"│ [{index}/{total}] {task.name}", "bold")
                task_start = time.monotonic()
                try:
                    await runner.run_task(task)
                except SshotError as e:
                    log.info(f"Task failed: {e}", task=task.name)
                    error: BaseException = e
                except Exception as e:
                    log.exception(f"Unexpected error: {e}", task=task.name)
                    error = e
                else:
                    elapsed = time.monotonic() - task_start
                    if self.options.verbose or elapsed > SLOW_TASK_SECONDS:
                        transcript.write(f"│         ⏱  Task took {format_duration(elapsed)}", "bright_black")
                    continue

                transcript.write(
                    f"  ✗ Task failed after {format_duration(time.monotonic() - task_start)}: {error}", "red"
                )
                return failed(error, f"└─ ✗ Failed (total time: {format_duration(time.monotonic() - start)})")

            transcript.write(f"└─ ✓ Completed (total time: {format_duration(time.monotonic() - start)})", "green")
            transcript.write("")
            return result(True)
        finally:
            await executor.close()
