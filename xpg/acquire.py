"""Connection acquisition: tracing metadata, ownership and context-bound connections."""

from __future__ import annotations

import contextvars
import threading
import uuid
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Any, Callable, Iterator, Mapping

from xpg.mode import ConnMode


@dataclass(frozen=True)
class ConnAcquireMeta:
    """Describes a connection acquisition for tracing."""

    name: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class QueryMeta:
    """Describes a query for tracing."""

    name: str | None = None
    labels: Mapping[str, str] = field(default_factory=dict)


_conn_acquire_meta: contextvars.ContextVar[ConnAcquireMeta | None] = contextvars.ContextVar(
    "xpg_conn_acquire_meta", default=None
)
_query_meta: contextvars.ContextVar[QueryMeta | None] = contextvars.ContextVar(
    "xpg_query_meta", default=None
)


def current_conn_acquire_meta() -> ConnAcquireMeta | None:
    """Return the acquisition metadata bound in the current context."""
    return _conn_acquire_meta.get()


@contextmanager
def bound_conn_acquire_meta(meta: ConnAcquireMeta | None) -> Iterator[ConnAcquireMeta | None]:
    """Bind acquisition metadata for the block; ``None`` keeps the current one."""
    if meta is None:
        yield current_conn_acquire_meta()
        return
    token = _conn_acquire_meta.set(meta)
    try:
        yield meta
    finally:
        _conn_acquire_meta.reset(token)


def current_query_meta() -> QueryMeta | None:
    """Return the query metadata bound in the current context."""
    return _query_meta.get()


@contextmanager
def bound_query_meta(meta: QueryMeta | None) -> Iterator[QueryMeta | None]:
    """Bind query metadata for the block; ``None`` keeps the current one."""
    if meta is None:
        yield current_query_meta()
        return
    token = _query_meta.set(meta)
    try:
        yield meta
    finally:
        _query_meta.reset(token)


@dataclass(frozen=True)
class AcquireConfig:
    """Options for acquiring a connection; timeouts are in seconds."""

    meta: ConnAcquireMeta | None = None
    rw_fallback: bool = False
    timeout: float | None = None
    attempt_timeout: float | None = None


class _OwnedConn:
    """A connection whose release is the holder's duty."""

    def __init__(self, conn: Any, release: Callable[[], None]) -> None:
        self.conn = conn
        self._release = release
        self._released = False

    def release(self) -> None:
        if not self._released:
            self._released = True
            self._release()

    def __enter__(self) -> Any:
        return self.conn

    def __exit__(self, *exc_info: object) -> None:
        self.release()


class ConnOwnership:
    """The right to release an acquired connection; it can be taken once."""

    def __init__(self, conn: Any, release: Callable[[], None]) -> None:
        self._conn = conn
        self._release = release
        self._taken = False
        self._lock = threading.Lock()

    def take(self) -> _OwnedConn:
        """Take ownership; raise RuntimeError if it was already taken."""
        with self._lock:
            if self._taken:
                raise RuntimeError("connection ownership already taken")
            self._taken = True
        return _OwnedConn(self._conn, self._release)


class NoCtxConnError(LookupError):
    """No connection of the requested mode is bound in the current context."""


_ctx_conns: dict[ConnMode, contextvars.ContextVar[Any]] = {
    mode: contextvars.ContextVar(f"xpg_conn_{mode.value}", default=None) for mode in ConnMode
}


@contextmanager
def bound_conn(mode: ConnMode, conn: Any) -> Iterator[Any]:
    """Bind a connection of the given mode for the block."""
    var = _ctx_conns[ConnMode(mode)]
    token = var.set(conn)
    try:
        yield conn
    finally:
        var.reset(token)


def ctx_conn(mode: ConnMode) -> Any:
    """Return the connection of the given mode bound in the context, or None."""
    return _ctx_conns[ConnMode(mode)].get()


def acquire_conn(pool: Any, meta: ConnAcquireMeta | None = None) -> Any:
    """Acquire a connection from the pool with the metadata bound meanwhile."""
    with bound_conn_acquire_meta(meta):
        return pool.acquire()


def _new_event_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class EventContext:
    """Context of a hook event; the id links the hooks of one operation."""

    context: contextvars.Context = field(default_factory=contextvars.copy_context)
    event_id: str = field(default_factory=_new_event_id)


def _may_fall_back(error: BaseException, mode: ConnMode, config: AcquireConfig) -> bool:
    return config.rw_fallback and mode != ConnMode.RW and not isinstance(error, TimeoutError)


class CtxConnProvider:
    """Provides the connection bound in the current context."""

    def acquire(
        self, mode: ConnMode, config: AcquireConfig | None = None
    ) -> tuple[Any, ConnOwnership | None]:
        """Return the context connection; it is never owned by the caller."""
        return self.acquire_managed(mode, config), None

    def acquire_managed(self, mode: ConnMode, config: AcquireConfig | None = None) -> Any:
        """Return the context connection, falling back to read-write if allowed."""
        config = config or AcquireConfig()
        with bound_conn_acquire_meta(config.meta):
            try:
                return self._acquire(mode)
            except Exception as error:
                if not _may_fall_back(error, mode, config):
                    raise
                return self._acquire(ConnMode.RW)

    def _acquire(self, mode: ConnMode) -> Any:
        conn = ctx_conn(mode)
        if conn is None:
            raise NoCtxConnError(f"no {mode} connection in context")
        return conn

    def type(self) -> str:
        return "ctx_conn"

    def generic_type(self) -> str:
        return "ctx_conn"

    def acquire_type(self) -> str | None:
        return "context"