import pytest

from xpg.acquire import (
    AcquireConfig,
    ConnAcquireMeta,
    ConnOwnership,
    CtxConnProvider,
    EventContext,
    NoCtxConnError,
    QueryMeta,
    acquire_conn,
    bound_conn,
    bound_conn_acquire_meta,
    bound_query_meta,
    ctx_conn,
    current_conn_acquire_meta,
    current_query_meta,
)
from xpg.mode import ConnMode


def test_conn_acquire_meta_bound_and_restored():
    meta = ConnAcquireMeta(name="load")
    assert current_conn_acquire_meta() is None
    with bound_conn_acquire_meta(meta):
        assert current_conn_acquire_meta() is meta
    assert current_conn_acquire_meta() is None


def test_binding_none_keeps_outer_meta():
    meta = ConnAcquireMeta(name="outer")
    with bound_conn_acquire_meta(meta):
        with bound_conn_acquire_meta(None):
            assert current_conn_acquire_meta() is meta


def test_query_meta_bound_and_restored():
    meta = QueryMeta(name="select_users")
    with bound_query_meta(meta):
        assert current_query_meta() is meta
    assert current_query_meta() is None


def test_ctx_conn_per_mode():
    conn = object()
    with bound_conn(ConnMode.RW, conn):
        assert ctx_conn(ConnMode.RW) is conn
        assert ctx_conn(ConnMode.RO) is None
    assert ctx_conn(ConnMode.RW) is None


def test_acquire_conn_exposes_meta_to_pool():
    class Pool:
        seen = None

        def acquire(self):
            Pool.seen = current_conn_acquire_meta()
            return "conn"

    meta = ConnAcquireMeta(name="acq")
    assert acquire_conn(Pool(), meta) == "conn"
    assert Pool.seen is meta
    assert current_conn_acquire_meta() is None


def test_ownership_taken_once():
    released = []
    own = ConnOwnership("conn", lambda: released.append(True))
    owned = own.take()
    assert owned.conn == "conn"
    with pytest.raises(RuntimeError):
        own.take()
    owned.release()
    owned.release()
    assert released == [True]


def test_owned_conn_releases_on_exit():
    released = []
    own = ConnOwnership("conn", lambda: released.append(True))
    with own.take() as conn:
        assert conn == "conn"
        assert released == []
    assert released == [True]


def test_ctx_provider_without_conn_raises():
    with pytest.raises(NoCtxConnError):
        CtxConnProvider().acquire_managed(ConnMode.RO)


def test_ctx_provider_returns_bound_conn():
    conn = object()
    provider = CtxConnProvider()
    with bound_conn(ConnMode.RO, conn):
        assert provider.acquire_managed(ConnMode.RO) is conn
        assert provider.acquire(ConnMode.RO) == (conn, None)


def test_ctx_provider_rw_fallback():
    conn = object()
    provider = CtxConnProvider()
    with bound_conn(ConnMode.RW, conn):
        assert provider.acquire_managed(ConnMode.RO, AcquireConfig(rw_fallback=True)) is conn
        with pytest.raises(NoCtxConnError):
            provider.acquire_managed(ConnMode.RO)


def test_ctx_provider_types():
    provider = CtxConnProvider()
    assert provider.type() == "ctx_conn"
    assert provider.generic_type() == "ctx_conn"
    assert provider.acquire_type() == "context"


def test_event_context_ids_unique_and_context_captured():
    conn = object()
    with bound_conn(ConnMode.RW, conn):
        event = EventContext()
    assert event.context.run(ctx_conn, ConnMode.RW) is conn
    assert EventContext().event_id != EventContext().event_id