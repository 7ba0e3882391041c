"""Run-once task registry."""

import threading


class RunOnceRegistry:
    """Names of run-once tasks already claimed in the current run.

    One registry is shared by every host runner of a run. :meth:`claim`
    checks and records a task name in a single critical section, so exactly
    one caller wins even when hosts run concurrently.

    Example:
        >>> registry = RunOnceRegistry()
        >>> registry.claim("migrate database")
        True
        >>> registry.claim("migrate database")
        False
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._claimed: set[str] = set()

    def claim(self, task_name: str) -> bool:
        """Claim ``task_name``; True only for the first caller."""
        with self._lock:
            if task_name in self._claimed:
                return False
            self._claimed.add(task_name)
            return True

    def reset(self) -> None:
        """Forget every claim; called at the start of each run."""
        with self._lock:
            self._claimed.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._claimed)
