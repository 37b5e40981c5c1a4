"""Two-tier cache: in-process memory store layered over a durable SQL store.

Both layers are written on every ``set``. Reads check memory first, then the
durable store; a durable hit warms the memory store for a short local TTL.
The durable layer is optional and every failure in it degrades to a miss.
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable

from sqlalchemy import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from db.db import create_cache_engine, init_cache_db
from db.repositories import CacheEntryRepository

logger = logging.getLogger(__name__)

Clock = Callable[[], float]


@dataclass(frozen=True)
class DurableHit:
    value: str
    remaining_seconds: float


class MemoryCacheStore:
    def __init__(self, *, clock: Clock = time.monotonic, sweep_interval_seconds: float = 60.0) -> None:
        self._clock = clock
        self._sweep_interval = sweep_interval_seconds
        self._entries: dict[str, tuple[str, float]] = {}
        self._lock = threading.Lock()
        self._last_sweep = clock()

    def get(self, key: str) -> str | None:
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            value, expires_at = entry
            if expires_at <= self._clock():
                del self._entries[key]
                return None
            return value

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        now = self._clock()
        with self._lock:
            self._entries[key] = (value, now + ttl_seconds)
            if now - self._last_sweep >= self._sweep_interval:
                self._purge_locked(now)

    def delete(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def purge_expired(self) -> int:
        with self._lock:
            return self._purge_locked(self._clock())

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)

    def _purge_locked(self, now: float) -> int:
        expired = [key for key, (_, expires_at) in self._entries.items() if expires_at <= now]
        for key in expired:
            del self._entries[key]
        self._last_sweep = now
        return len(expired)


class SqlCacheStore:
    """Durable cache rows in any SQLAlchemy database.

    The engine is created lazily on first use. After a failure the store
    reports misses without touching the database until ``retry_cooldown_seconds``
    have passed.
    """

    def __init__(
        self,
        *,
        url: str | None = None,
        engine: Engine | None = None,
        connect_timeout: float = 0.5,
        retry_cooldown_seconds: float = 30.0,
        clock: Clock = time.time,
    ) -> None:
        if url is None and engine is None:
            msg = "url or engine must be provided"
            raise ValueError(msg)

        self.url = url
        self.connect_timeout = connect_timeout
        self.retry_cooldown_seconds = retry_cooldown_seconds
        self._clock = clock
        self._engine = engine
        self._session_factory: sessionmaker[Session] | None = None
        self._unavailable_until = 0.0
        self._init_lock = threading.Lock()

    @property
    def available(self) -> bool:
        return self._clock() >= self._unavailable_until

    def get(self, key: str) -> DurableHit | None:
        factory = self._sessions()
        if factory is None:
            return None
        now = self._clock()
        try:
            with factory() as session:
                row = CacheEntryRepository(session).get(key, now=now)
                if row is None:
                    return None
                return DurableHit(value=row.payload, remaining_seconds=row.expires_at - now)
        except (SQLAlchemyError, OSError) as exc:
            self._mark_unavailable(exc)
            return None

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        factory = self._sessions()
        if factory is None:
            return
        try:
            with factory() as session:
                CacheEntryRepository(session).upsert(key, value, expires_at=self._clock() + ttl_seconds)
        except (SQLAlchemyError, OSError) as exc:
            self._mark_unavailable(exc)

    def delete(self, key: str) -> None:
        factory = self._sessions()
        if factory is None:
            return
        try:
            with factory() as session:
                CacheEntryRepository(session).delete(key)
        except (SQLAlchemyError, OSError) as exc:
            self._mark_unavailable(exc)

    def purge_expired(self) -> int:
        factory = self._sessions()
        if factory is None:
            return 0
        try:
            with factory() as session:
                return CacheEntryRepository(session).purge_expired(now=self._clock())
        except (SQLAlchemyError, OSError) as exc:
            self._mark_unavailable(exc)
            return 0

    def _sessions(self) -> sessionmaker[Session] | None:
        if not self.available:
            return None
        if self._session_factory is not None:
            return self._session_factory

        with self._init_lock:
            if self._session_factory is not None:
                return self._session_factory
            try:
                if self._engine is None:
                    self._engine = create_cache_engine(str(self.url), connect_timeout=self.connect_timeout)
                self._session_factory = init_cache_db(self._engine)
                logger.info("Durable cache connected (%s)", self._engine.url.render_as_string(hide_password=True))
            except (SQLAlchemyError, OSError, ImportError) as exc:
                self._mark_unavailable(exc)
                return None
        return self._session_factory

    def _mark_unavailable(self, exc: Exception) -> None:
        if self.available:
            logger.warning(
                "Durable cache unavailable, using memory only for %.0fs: %s", self.retry_cooldown_seconds, exc
            )
        self._unavailable_until = self._clock() + self.retry_cooldown_seconds


class TwoTierCache:
    def __init__(
        self,
        *,
        memory: MemoryCacheStore | None = None,
        durable: SqlCacheStore | None = None,
        warm_ttl_seconds: float = 60.0,
    ) -> None:
        self.memory = memory if memory is not None else MemoryCacheStore()
        self.durable = durable
        self.warm_ttl_seconds = warm_ttl_seconds

    def get(self, key: str) -> str | None:
        value = self.memory.get(key)
        if value is not None:
            return value
        if self.durable is None:
            return None

        hit = self.durable.get(key)
        if hit is None:
            return None
        self.memory.set(key, hit.value, min(self.warm_ttl_seconds, hit.remaining_seconds))
        return hit.value

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        self.memory.set(key, value, ttl_seconds)
        if self.durable is not None:
            self.durable.set(key, value, ttl_seconds)

    def delete(self, key: str) -> None:
        self.memory.delete(key)
        if self.durable is not None:
            self.durable.delete(key)


def build_cache(
    *,
    durable_url: str | None,
    connect_timeout: float = 0.5,
    retry_cooldown_seconds: float = 30.0,
    warm_ttl_seconds: float = 60.0,
) -> TwoTierCache:
    durable = (
        SqlCacheStore(url=durable_url, connect_timeout=connect_timeout, retry_cooldown_seconds=retry_cooldown_seconds)
        if durable_url
        else None
    )
    return TwoTierCache(memory=MemoryCacheStore(), durable=durable, warm_ttl_seconds=warm_ttl_seconds)


__all__ = ["DurableHit", "MemoryCacheStore", "SqlCacheStore", "TwoTierCache", "build_cache"]
