from __future__ import annotations

import threading
import time
from concurrent.futures import ThreadPoolExecutor

import pytest

from services.inflight import InFlightRegistry


def test_concurrent_callers_share_leader_result() -> None:
    registry: InFlightRegistry[int] = InFlightRegistry("test")
    started = threading.Event()
    release = threading.Event()
    calls: list[int] = []

    def resolve() -> int:
        calls.append(1)
        started.set()
        release.wait(timeout=5)
        return 42

    with ThreadPoolExecutor(max_workers=5) as pool:
        leader = pool.submit(registry.run, "k", resolve)
        assert started.wait(timeout=5)
        followers = [pool.submit(registry.run, "k", resolve) for _ in range(4)]
        time.sleep(0.2)
        assert registry.is_pending("k")
        release.set()
        results = [leader.result(timeout=5)] + [f.result(timeout=5) for f in followers]

    assert results == [42] * 5
    assert calls == [1]
    assert not registry.is_pending("k")


def test_failure_is_propagated_and_entry_removed() -> None:
    registry: InFlightRegistry[int] = InFlightRegistry()

    def boom() -> int:
        raise RuntimeError("upstream down")

    with pytest.raises(RuntimeError, match="upstream down"):
        registry.run("k", boom)

    assert len(registry) == 0
    assert registry.run("k", lambda: 7) == 7


def test_distinct_keys_resolve_independently() -> None:
    registry: InFlightRegistry[str] = InFlightRegistry()

    assert registry.run(("gold", "USD"), lambda: "gold") == "gold"
    assert registry.run(("silver", "USD"), lambda: "silver") == "silver"
