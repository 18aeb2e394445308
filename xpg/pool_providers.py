"""Connection providers backed by a PoolManager."""

from __future__ import annotations

import time
from typing import Any

from xpg.acquire import AcquireConfig, ConnOwnership, bound_conn_acquire_meta
from xpg.mode import ConnMode
from xpg.pool_manager import PoolManager

_ONE_TIME_TYPE = "onetime_from_pool"
_PERSISTENT_TYPE = "persistent_from_pool"


def _may_fall_back(error: BaseException, mode: ConnMode, config: AcquireConfig) -> bool:
    return config.rw_fallback and mode != ConnMode.RW and not isinstance(error, TimeoutError)


class NoManagedConnsError(RuntimeError):
    """Raised when a provider cannot hand out managed connections."""

    def __init__(self, mode: ConnMode) -> None:
        super().__init__("no managed conns")
        self.mode = mode


class OneTimePoolProvider:
    """Provides the pool itself: every command takes a connection and returns it."""

    def __init__(self, pool_manager: PoolManager) -> None:
        self._pool_manager = pool_manager

    def acquire(
        self, mode: ConnMode, config: AcquireConfig | None = None
    ) -> tuple[Any, ConnOwnership | None]:
        """Return the pool for the mode; there is nothing for the caller to own."""
        return self.acquire_managed(mode, config), None

    def acquire_managed(self, mode: ConnMode, config: AcquireConfig | None = None) -> Any:
        """Return the pool for the mode, falling back to read-write if allowed."""
        config = config or AcquireConfig()
        with bound_conn_acquire_meta(config.meta):
            try:
                return self._pool_manager.get_pool(mode)
            except Exception as error:
                if not _may_fall_back(error, mode, config):
                    raise
                return self._pool_manager.get_pool(ConnMode.RW)

    def type(self) -> str:
        return _ONE_TIME_TYPE

    def generic_type(self) -> str:
        return _ONE_TIME_TYPE

    def acquire_type(self) -> str | None:
        return _ONE_TIME_TYPE


class PersistentPoolProvider:
    """Acquires a dedicated connection from the pool, owned by the caller."""

    def __init__(self, pool_manager: PoolManager) -> None:
        self._pool_manager = pool_manager

    def acquire(
        self, mode: ConnMode, config: AcquireConfig | None = None
    ) -> tuple[Any, ConnOwnership]:
        """Acquire a connection; the ownership releases it back to its pool.

        ``timeout`` bounds the whole call and ``attempt_timeout`` each attempt.
        """
        config = config or AcquireConfig()
        deadline = None if config.timeout is None else time.monotonic() + config.timeout
        with bound_conn_acquire_meta(config.meta):
            try:
                conn = self._acquire(mode, deadline, config.attempt_timeout)
            except Exception as error:
                if not _may_fall_back(error, mode, config):
                    raise
                conn = self._acquire(ConnMode.RW, deadline, config.attempt_timeout)
        return conn, ConnOwnership(conn, conn.release)

    def acquire_managed(self, mode: ConnMode, config: AcquireConfig | None = None) -> Any:
        """Always fails: persistent connections are never managed."""
        requested = ConnMode(mode)
        raise NoManagedConnsError(requested)

    def _acquire(self, mode: ConnMode, deadline: float | None, attempt_timeout: float | None) -> Any:
        timeout = attempt_timeout
        if deadline is not None:
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                raise TimeoutError("connection acquire timed out")
            timeout = remaining if timeout is None else min(timeout, remaining)
        pool = self._pool_manager.get_pool(mode)
        if timeout is None:
            return pool.acquire()
        return pool.acquire(timeout=timeout)

    def type(self) -> str:
        return _PERSISTENT_TYPE

    def generic_type(self) -> str:
        return _PERSISTENT_TYPE

    def acquire_type(self) -> str | None:
        return _PERSISTENT_TYPE


def as_one_time_conn_provider(pool_manager: PoolManager) -> OneTimePoolProvider:
    """Provider handing out pools, one connection per command."""
    return OneTimePoolProvider(pool_manager)


def as_persistent_conn_provider(pool_manager: PoolManager) -> PersistentPoolProvider:
    """Provider handing out dedicated, caller-owned connections."""
    return PersistentPoolProvider(pool_manager)