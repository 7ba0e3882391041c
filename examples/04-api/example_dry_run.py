#!/usr/bin/env python3
"""sshot as a library - dry runs from Python.

Loads the grouped example playbook, simulates it, then builds a small
configuration in code and simulates that too.

Run from the repository root:

    python examples/04-api/example_dry_run.py
"""

import asyncio

from sshot import RunOptions, Scheduler, load_config
from sshot.output import render_summary
from sshot.types import Config, HostConfig, Inventory, Playbook, Task


async def example_from_file():
    """Simulate examples/02-groups/site.yml."""
    print("\n" + "=" * 60)
    print("EXAMPLE: Dry run of a playbook file")
    print("=" * 60)

    config = load_config("examples/02-groups/site.yml")
    scheduler = Scheduler(RunOptions(dry_run=True))
    result = await scheduler.run(config)
    scheduler.console.print(render_summary(result))


async def example_in_code():
    """Build a configuration without YAML."""
    print("\n" + "=" * 60)
    print("EXAMPLE: Dry run of a configuration built in code")
    print("=" * 60)

    config = Config(
        inventory=Inventory(
            hosts=[
                HostConfig(name="app01", address="10.1.0.1", vars={"release": "2.4.1"}),
                HostConfig(name="app02", address="10.1.0.2", vars={"release": "2.4.1"}),
            ]
        ),
        playbook=Playbook(
            name="Release",
            tasks=[
                Task(name="Fetch release", command="app-fetch {{.release}}", retries=2),
                Task(name="Announce", local_action="echo released {{.release}}", run_once=True),
            ],
        ),
    )
    result = await Scheduler(RunOptions(dry_run=True, verbose=True)).run(config)
    print(f"\nSuccessful hosts: {result.successful}, failed: {result.failed}")


async def main():
    await example_from_file()
    await example_in_code()


if __name__ == "__main__":
    asyncio.run(main())
