from __future__ import annotations

import logging
import threading
from concurrent.futures import Future
from typing import Callable, Generic, Hashable, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")


class InFlightRegistry(Generic[T]):
    """At most one running resolution per key; concurrent callers share its outcome.

    The first caller for a key becomes the leader and runs ``resolve``. Callers
    arriving while it runs block on the same future and receive the same result
    (or exception). The entry is removed once the leader finishes, whatever the
    outcome.
    """

    def __init__(self, name: str = "in-flight") -> None:
        self.name = name
        self._pending: dict[Hashable, Future[T]] = {}
        self._lock = threading.Lock()

    def run(self, key: Hashable, resolve: Callable[[], T]) -> T:
        with self._lock:
            future = self._pending.get(key)
            leader = future is None
            if future is None:
                future = Future()
                self._pending[key] = future

        if not leader:
            logger.debug("%s: joining pending resolution for %s", self.name, key)
            return future.result()

        try:
            result = resolve()
        except BaseException as exc:
            future.set_exception(exc)
            raise
        else:
            future.set_result(result)
            return result
        finally:
            with self._lock:
                self._pending.pop(key, None)

    def is_pending(self, key: Hashable) -> bool:
        with self._lock:
            return key in self._pending

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)


__all__ = ["InFlightRegistry"]
