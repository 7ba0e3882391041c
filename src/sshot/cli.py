"""Command-line interface for sshot."""

import asyncio
from typing import Optional

import click

from sshot import __version__
from sshot.config import load_config
from sshot.exceptions import ConfigurationError
from sshot.logging import configure_logging, get_level_from_name, get_level_from_verbosity, get_logger
from sshot.output import make_console, render_banner, render_summary
from sshot.scheduler import Scheduler
from sshot.types import RunOptions

logger = get_logger(__name__)


@click.command(context_settings={"help_option_names": ["-h", "--help"]})
@click.argument("playbook", type=click.Path(dir_okay=False))
@click.option("-i", "--inventory", type=click.Path(dir_okay=False), default=None,
              help="Separate inventory file (PLAYBOOK then holds only the playbook)")
@click.option("-n", "--dry-run", is_flag=True,
              help="Show what would run without connecting to any host")
@click.option("-v", "--verbose", count=True,
              help="Report every task's timing and decisions; -vv/-vvv add debug/trace logs")
@click.option("-p", "--parallel", is_flag=True,
              help="Run ungrouped hosts in parallel")
@click.option("--progress", is_flag=True,
              help="Stream remote command output while it runs")
@click.option("--no-color", is_flag=True, help="Disable colored output")
@click.option("--full-output", is_flag=True, help="Never truncate task output")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None,
              help="Write debug logs to file")
@click.option("--log-level", type=click.Choice(["trace", "debug", "info", "warning", "error"]),
              default=None, help="Set log level explicitly (overrides -v)")
@click.version_option(__version__, prog_name="sshot")
@click.pass_context
def main(
    ctx: click.Context,
    playbook: str,
    inventory: Optional[str],
    dry_run: bool,
    verbose: int,
    parallel: bool,
    progress: bool,
    no_color: bool,
    full_output: bool,
    log_file: Optional[str],
    log_level: Optional[str],
) -> None:
    """Run PLAYBOOK against its inventory over SSH.

    PLAYBOOK is a YAML file with ``inventory`` and ``playbook`` sections, or
    just a playbook when --inventory is given.

    Examples:

        sshot site.yml

        sshot -n site.yml                    # Dry-run

        sshot -p --progress site.yml         # Parallel, streaming output

        sshot -i hosts.yml deploy.yml        # Separate inventory
    """
    level = get_level_from_name(log_level) if log_level else get_level_from_verbosity(verbose)
    configure_logging(level=level, log_file=log_file)

    options = RunOptions(
        dry_run=dry_run,
        verbose=verbose > 0,
        parallel=parallel,
        progress=progress,
        no_color=no_color,
        full_output=full_output,
    )
    logger.info(
        "Starting sshot",
        playbook=playbook,
        dry_run=dry_run,
        parallel=parallel,
        progress=progress,
    )

    try:
        config = load_config(playbook, inventory)
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    console = make_console(no_color=no_color)
    console.print(render_banner(
        config.playbook.name,
        parallel=config.playbook.parallel or parallel,
        dry_run=dry_run,
    ))

    scheduler = Scheduler(options, console=console)
    try:
        result = asyncio.run(scheduler.run(config))
    except ConfigurationError as e:
        raise click.ClickException(str(e)) from e

    console.print(render_summary(result))

    if not result.success:
        if result.error is not None:
            logger.info(f"Playbook failed: {result.error}")
        ctx.exit(1)


if __name__ == "__main__":
    main()
