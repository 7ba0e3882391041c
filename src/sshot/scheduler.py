"""Group and host orchestration.

:class:`Scheduler` decides which hosts run, in which order and with what
concurrency:

- With groups, they run one after another by ascending ``order`` (ties
  keep declaration order). A group starts only when every group in its
  ``depends_on`` has completed, and any failed host stops the run.
- Without groups, the flat host list runs as one set.

Within a set, hosts run sequentially (stopping at the first failed host) or
in parallel, one asyncio task per host. Parallel transcripts are buffered
and printed in host-list order once every host has finished.
"""

import asyncio
import time

from rich.console import Console

from .exceptions import ConfigurationError, GroupDependencyNotMet, GroupFailed
from .host_runner import ExecutorFactory, HostRunner
from .logging import get_logger
from .output import CONSOLE_LOCK, Transcript, make_console, render_group_header
from .runonce import RunOnceRegistry
from .types import Config, GroupConfig, HostConfig, HostResult, PlaybookResult, RunOptions

logger = get_logger(__name__)


def order_groups(groups: list[GroupConfig]) -> list[GroupConfig]:
    """Groups sorted by ascending ``order``, ties in declaration order."""
    return sorted(groups, key=lambda g: g.order)


class Scheduler:
    """Runs a playbook across the inventory.

    Attributes:
        options: Run options
        console: Console receiving transcripts and group headers
        registry: Run-once registry, reset at the start of every run
        executor_factory: Creates remote executors (SSH by default)

    Example:
        >>> config = load_config(Path("site.yml"))
        >>> result = await Scheduler(RunOptions(dry_run=True)).run(config)
        >>> result.success
        True
    """

    def __init__(
        self,
        options: RunOptions | None = None,
        console: Console | None = None,
        registry: RunOnceRegistry | None = None,
        executor_factory: ExecutorFactory | None = None,
    ) -> None:
        self.options = options or RunOptions()
        self.console = console or make_console(no_color=self.options.no_color)
        self.registry = registry or RunOnceRegistry()
        self.executor_factory = executor_factory

    async def run(self, config: Config) -> PlaybookResult:
        """Run the playbook of ``config`` on its inventory.

        Returns:
            PlaybookResult with host results in execution order. A group
            dependency or group failure is reported in ``error``.

        Raises:
            ConfigurationError: If the inventory has no hosts and no groups
        """
        inventory = config.inventory
        if not inventory.groups and not inventory.hosts:
            raise ConfigurationError("no hosts or groups defined in inventory")

        self.registry.reset()
        start = time.monotonic()
        runner = HostRunner(
            config.playbook.tasks,
            config.playbook.facts,
            self.registry,
            options=self.options,
            console=self.console,
            executor_factory=self.executor_factory,
        )

        result = PlaybookResult(dry_run=self.options.dry_run)
        if inventory.groups:
            result.error = await self._run_groups(runner, inventory.groups, result.results)
        else:
            parallel = config.playbook.parallel or self.options.parallel
            result.results.extend(await self.dispatch(runner, inventory.hosts, parallel))

        result.duration = time.monotonic() - start
        logger.info(
            f"Playbook finished: {result.successful} succeeded, {result.failed} failed",
            duration=f"{result.duration:.3f}s",
        )
        return result

    async def _run_groups(
        self,
        runner: HostRunner,
        groups: list[GroupConfig],
        results: list[HostResult],
    ) -> GroupDependencyNotMet | GroupFailed | None:
        completed: set[str] = set()
        ordered = order_groups(groups)
        logger.debug(f"Executing {len(ordered)} groups in order: {[g.name for g in ordered]}")

        for group in ordered:
            for dependency in group.depends_on:
                if dependency not in completed:
                    return GroupDependencyNotMet(
                        f"group '{group.name}' depends on '{dependency}' which has not completed",
                        group=group.name,
                        dependency=dependency,
                    )

            with CONSOLE_LOCK:
                self.console.print()
                self.console.print(render_group_header(group))
                self.console.print()

            group_results = await self.dispatch(runner, group.hosts, group.parallel, group.name)
            results.extend(group_results)

            if any(r.is_failure for r in group_results):
                return GroupFailed(f"group '{group.name}' failed", group=group.name)
            completed.add(group.name)

        return None

    async def dispatch(
        self,
        runner: HostRunner,
        hosts: list[HostConfig],
        parallel: bool,
        group_name: str = "",
    ) -> list[HostResult]:
        """Run ``hosts`` sequentially or in parallel.

        Returns:
            Results in host-list order. Sequential runs stop after the first
            failed host, so later hosts have no result.
        """
        if parallel:
            return await self._dispatch_parallel(runner, hosts, group_name)

        results: list[HostResult] = []
        for host in hosts:
            result = await runner.run(host, group_name)
            results.append(result)
            if result.is_failure:
                break
        return results

    async def _dispatch_parallel(
        self,
        runner: HostRunner,
        hosts: list[HostConfig],
        group_name: str,
    ) -> list[HostResult]:
        transcripts = [
            Transcript(self.console, live=False, full_output=self.options.full_output)
            for _ in hosts
        ]
        tasks = [
            asyncio.create_task(runner.run(host, group_name, transcript))
            for host, transcript in zip(hosts, transcripts)
        ]
        results = list(await asyncio.gather(*tasks))

        with CONSOLE_LOCK:
            for transcript in transcripts:
                transcript.flush()
        return results
