import logging

import pytest

from xpg.acquire import bound_conn
from xpg.fallbacked import AttemptMetrics, FallbackedError
from xpg.mode import ConnMode
from xpg.pool_manager import PoolManager
from xpg.storage_base import FALLBACK_LOG_MESSAGE, new_storage_base


class _ListHandler(logging.Handler):
    def __init__(self):
        super().__init__()
        self.records = []

    def emit(self, record):
        self.records.append(record)


@pytest.fixture
def logged():
    logger = logging.getLogger("tests.xpg.storage_base")
    logger.setLevel(logging.INFO)
    logger.propagate = False
    handler = _ListHandler()
    logger.addHandler(handler)
    yield logger, handler
    logger.removeHandler(handler)


class FakeConn:
    def __init__(self):
        self.begun = []

    def begin(self):
        self.begun.append(None)
        return "tx"

    def begin_tx(self, options):
        self.begun.append(options)
        return "custom-tx"


class FailingManager:
    def get_pool(self, mode):
        raise RuntimeError("no pool")


def test_log_fallback(logged):
    logger, handler = logged
    base = new_storage_base(PoolManager(pool_ro=None, pool_rw=None), logger)
    assert base.rw_conn() is None
    assert len(handler.records) == 1
    record = handler.records[0]
    assert record.getMessage() == FALLBACK_LOG_MESSAGE
    assert record.ind == 1
    assert record.acquire_type == "onetime_from_pool"


def test_no_log_when_no_fallback(logged):
    logger, handler = logged
    base = new_storage_base(PoolManager(pool_ro=None, pool_rw=None), logger)
    conn = FakeConn()
    with bound_conn(ConnMode.RW, conn):
        assert base.rw_conn() is conn
    assert handler.records == []


def test_pools_by_mode(logged):
    logger, _ = logged
    ro_pool, rw_pool = object(), object()
    base = new_storage_base(PoolManager(pool_ro=ro_pool, pool_rw=rw_pool), logger)
    assert base.ro_conn() is ro_pool
    assert base.rw_conn() is rw_pool
    assert base.r_conn() is ro_pool
    assert base.ownable_ro_conn() == (ro_pool, None)
    assert base.ownable_rw_conn() == (rw_pool, None)
    assert base.ownable_r_conn() == (ro_pool, None)


def test_r_conn_uses_rw_ctx_conn(logged):
    logger, handler = logged
    base = new_storage_base(PoolManager(pool_ro=object(), pool_rw=object()), logger)
    conn = FakeConn()
    with bound_conn(ConnMode.RW, conn):
        assert base.r_conn() is conn
        assert base.ownable_r_conn() == (conn, None)
    assert handler.records == []


def test_begin_tx(logged):
    logger, _ = logged
    base = new_storage_base(PoolManager(pool_ro=None, pool_rw=None), logger)
    conn = FakeConn()
    with bound_conn(ConnMode.RW, conn):
        assert base.begin_tx() == "tx"
        assert base.begin_custom_tx({"isolation": "serializable"}) == "custom-tx"
    assert conn.begun == [None, {"isolation": "serializable"}]


def test_errors_are_raised(logged):
    logger, _ = logged
    base = new_storage_base(FailingManager(), logger)
    with pytest.raises(FallbackedError) as info:
        base.rw_conn()
    assert len(info.value.errors) == 2


def test_metrics_registered(logged):
    logger, _ = logged
    metrics = AttemptMetrics()
    base = new_storage_base(PoolManager(pool_ro=None, pool_rw=None), logger, [metrics])
    base.ro_conn()
    assert metrics.starts[("0", "context")] == 1
    assert metrics.starts[("1", "onetime_from_pool")] == 1
    assert metrics.finishes == metrics.starts