"""sshot - Ansible-style playbooks over plain SSH.

Runs an ordered list of tasks on every host of an inventory, with host
groups, dependencies, conditions, retries and run-once tasks.

Quick Start:
    from sshot import Scheduler, RunOptions, load_config

    config = load_config("site.yml")
    result = asyncio.run(Scheduler(RunOptions(dry_run=True)).run(config))
    print(result.success)
"""

__version__ = "0.1.0"

from sshot.config import load_config
from sshot.scheduler import Scheduler
from sshot.types import PlaybookResult, RunOptions

__all__ = ["__version__", "load_config", "Scheduler", "RunOptions", "PlaybookResult"]
