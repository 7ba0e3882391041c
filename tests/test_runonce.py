"""Tests for the run-once registry."""

import threading

from sshot.runonce import RunOnceRegistry


def test_first_claim_wins():
    registry = RunOnceRegistry()
    assert registry.claim("migrate")
    assert not registry.claim("migrate")
    assert registry.claim("seed")
    assert len(registry) == 2


def test_reset():
    """Test reset allows a task to run again in the next run."""
    registry = RunOnceRegistry()
    registry.claim("migrate")
    registry.reset()
    assert len(registry) == 0
    assert registry.claim("migrate")


def test_concurrent_claims_from_threads():
    """Test exactly one of many concurrent claimers wins."""
    registry = RunOnceRegistry()
    barrier = threading.Barrier(16)
    wins = []

    def worker():
        barrier.wait()
        if registry.claim("migrate"):
            wins.append(threading.get_ident())

    threads = [threading.Thread(target=worker) for _ in range(16)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(wins) == 1
