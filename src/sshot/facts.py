"""System fact collection.

A fact collector is a command that prints a JSON object. Its result is
stored in the host environment under the collector name, both as the nested
object and as flattened ``name.a.b`` keys, so templates can use either
``{{.system.os.family}}`` or the flat key directly.
"""

import json
import logging
from typing import Any

from .exceptions import FactCollectionFailed, TaskExecutionError
from .remote import RemoteExecutor
from .types import FactCollector
from .variables import VariableEnvironment

logger = logging.getLogger(__name__)

STDERR_MARKER = "\nSTDERR: "


async def collect_facts(executor: RemoteExecutor, collector: FactCollector) -> dict[str, Any]:
    """Run one collector and decode its JSON output.

    Args:
        executor: Remote executor of the host
        collector: Collector to run

    Returns:
        The decoded JSON object

    Raises:
        FactCollectionFailed: If the command fails or does not print a JSON object
    """
    try:
        output = await executor.run_remote(collector.command, collector.sudo)
    except TaskExecutionError as e:
        raise FactCollectionFailed(
            f"fact collector '{collector.name}' failed: {e}",
            host=executor.host_name,
            collector=collector.name,
        ) from e

    stdout = output.split(STDERR_MARKER, 1)[0]
    try:
        data = json.loads(stdout)
    except json.JSONDecodeError as e:
        raise FactCollectionFailed(
            f"fact collector '{collector.name}' returned invalid JSON: {e}",
            host=executor.host_name,
            collector=collector.name,
        ) from e

    if not isinstance(data, dict):
        raise FactCollectionFailed(
            f"fact collector '{collector.name}' must return a JSON object, got {type(data).__name__}",
            host=executor.host_name,
            collector=collector.name,
        )
    return data


async def gather_facts(
    executor: RemoteExecutor,
    collectors: list[FactCollector],
    env: VariableEnvironment,
) -> None:
    """Run every collector in order and merge the results into ``env``.

    Stops at the first failing collector.
    """
    for collector in collectors:
        data = await collect_facts(executor, collector)
        env.merge_facts(collector.name, data)
        logger.debug(f"[{executor.host_name}] Collected {len(data)} facts from '{collector.name}'")
