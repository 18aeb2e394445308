# xpg

Building blocks for applications that reach PostgreSQL through a pair of
read-only and read-write connection pools. The package depends only on the
standard library. Pools, connections and metric objects are supplied by the
caller and are used through a few plain methods.

## Modules

### `xpg.mode`

- `ConnMode`: `RO` and `RW`.
- `TargetSessionAttrs`: `ANY`, `READ_WRITE`, `READ_ONLY`, `PRIMARY`,
  `STANDBY`, `PREFER_STANDBY`.
- `try_extract_conn_mode(attrs)`: gives `RW` for `read-write` and `primary`,
  `RO` for `read-only` and `standby`, and `None` for anything else or for
  `None`.

### `xpg.tsquery`

- `TsQuery` is a `str` subclass for `to_tsquery` input. `raw()` returns the
  text unchanged. `escaped()` doubles every backslash.

### `xpg.pool_manager`

- `PoolManager(pool_ro, pool_rw)` is a frozen dataclass. `get_pool(mode)`
  returns the pool for the mode and raises `ValueError` for any other value.

### `xpg.pool_config`

- `PoolConfig` holds `min_conns`, `max_conns`, `max_conn_lifetime_s`,
  `max_conn_lifetime_jitter_s`, `connect_timeout_ms` and `tracers`.
- `PoolTracersConfig` groups `logging` and `prometheus` (`TracerOption`) and
  `debug_vars` (`DebugVarsTracerConfig`).
- `DebugVarsTracerConfig.validate()` raises `ValueError` when
  `vars_root_name_format` has no `%s`.
- `build_pool_settings(pool_config)` returns a frozen `PoolSettings`:
  - the connect timeout defaults to 2000 ms;
  - lifetimes are converted to `timedelta`;
  - the enabled tracer names are listed in `tracers`;
  - when the debug-vars tracer is on, `debug_vars_root_name` is the format
    with a fresh anonymous pool name in place of `%s`;
  - `target_session_attrs` is `READ_WRITE`.

  When `tracers` is `None`, the logging and prometheus tracers are enabled.
- `lookup_ipv4_only(host)` resolves a host to IPv4 addresses only. An IP
  literal is returned as is. An empty host raises `socket.gaierror`.
- `new_anon_pool_name()` returns `anon00`, `anon01`, and so on, and is
  thread-safe.

### `xpg.shortcuts`

- `NoRowsError`, `UniqueViolationError` and `CommandTag(rows_affected, text)`.
- `is_no_rows(error)` and `is_unique_violation(error)` look through the
  `__cause__` chain. A unique violation is also recognised by a `sqlstate` or
  `pgcode` of `23505`.
- `try_get(fn)` returns `None` when there are no rows.
- `has(fn)` returns whether a row was found.
- `add(fn)` returns whether `rows_affected` is non-zero. `add_batch(fn)`
  returns whether the row count is non-zero. Both return `False` on a unique
  violation.

In all four, other errors propagate.

### `xpg.for_each`

- `for_each_pg(fn, pgs, until=None)` calls `fn` on each database in turn and
  returns the last result. If the last call raised, that error is raised.
- `until(value, error)` stops the loop early; `until_found` is a ready-made
  stop condition.
- `for_each_pg_lazy(fn, lazy_pgs, until=None)` works the same way, but first
  calls a factory for each database. An error from a factory is raised
  straight away.

### `xpg.queries`

- `multi_tx_delete(conn, MultiTxDeleteParams(...))` runs a bounded `DELETE`
  repeatedly through `conn.execute(sql)`, which must return a `CommandTag`.
  - It stops once a run deletes fewer than `max_rows_per_tx` rows.
  - It sleeps `tx_interval` seconds between runs.
  - It calls `query_finish_hook` after each run, if one is given.
  - Names and the condition are inserted into the query verbatim.
- `gen_order_by(options)` takes the `ColSortOption`s that have a `SortKey`,
  sorts them by `index` and returns terms such as `"name ASC"`.
- `search(db, query, offset, make_sql_query, row_factory)` returns
  `(rows, total_count)`.
  - Rows come from `db.query(sql, *args)`. The total is read from the first
    row's `total_count` attribute.
  - An empty page with offset 0 gives a total of 0.
  - An empty page further on fetches the count with `db.query_row`, using an
    `OffsetLimitPagination(0, 1)`. "No rows" from that call gives a total
    of 0.

### `xpg.acquire`

- `ConnAcquireMeta` and `QueryMeta` hold tracing metadata:
  - `bound_conn_acquire_meta(meta)` and `bound_query_meta(meta)` are context
    managers that bind them;
  - `current_conn_acquire_meta()` and `current_query_meta()` read them.
- `AcquireConfig(meta, rw_fallback, timeout, attempt_timeout)`: timeouts are
  in seconds.
- `ConnOwnership.take()` can be called once. It returns an owned connection
  that releases on `release()` or on leaving a `with` block. A second call
  raises `RuntimeError`.
- `bound_conn(mode, conn)` binds a connection for a block.
  `ctx_conn(mode)` reads it back.
- `acquire_conn(pool, meta=None)` calls `pool.acquire()` with the metadata
  bound.
- `EventContext` carries a context copy and a unique `event_id`.
- `CtxConnProvider` hands out the bound connection. When none is bound it
  raises `NoCtxConnError`, or falls back to read-write if `rw_fallback` is
  set.

### `xpg.pool_providers`

- `as_one_time_conn_provider(pool_manager)` returns a `OneTimePoolProvider`.
  It hands out the pool itself and never an ownership.
- `as_persistent_conn_provider(pool_manager)` returns a
  `PersistentPoolProvider`.
  - `acquire` calls `pool.acquire()`, passing `timeout=` when a timeout
    applies, and returns the connection with a `ConnOwnership` that calls
    `conn.release()`.
  - `acquire_managed` always raises.

Every provider has `type()`, `generic_type()` and `acquire_type()`.

### `xpg.sugar`

- `silence(provider, on_error)` passes errors to `on_error`. It then returns
  `(None, None)` from `acquire`, or `None` from `acquire_managed`.
- `sugar(provider)` and `sugar_silent(silenced)` add `r()`, `ro()`, `rw()`,
  `managed_r()`, `managed_ro()` and `managed_rw()`. The `r` variants ask for
  read-only with read-write fallback.

### `xpg.fallbacked`

- `new_fallbacked(*providers)` returns a `FallbackedProvider` that tries the
  providers in order.
  - A `TimeoutError` ends the chain at once.
  - If every provider fails, a `FallbackedError` is raised with all the
    errors in `errors`.
  - `config.timeout` limits the whole chain.
- `with_hooks(FallbackedHooks(...))` returns a copy with hooks set:
  - `on_attempt_start`,
  - `on_attempt_finish_ok`,
  - `on_attempt_finish_fail`, which receives a `FallbackedFail`.
- `shallow_clone()` returns a copy without hooks and with cloned stats.
- `stats()` returns a `FallbackedStats`:
  - `snapshot()` gives the attempt count;
  - `register_export(AttemptMetrics(...))` makes every attempt counted and
    timed under `(ind, acquire_type)` labels. Indexes of 100 and above are
    recorded as `high_cardinality`.

### `xpg.storage_base`

- `new_storage_base(pool_manager, logger, conn_provider_metrics=())` builds a
  `StorageBase`.
  - It prefers the connection bound with `bound_conn` and falls back to the
    pools of the `PoolManager`.
  - Each fallback is logged at INFO with the message
    `"PG Conn Acquire fallbacks to next conn provider"`.
  - Acquisition errors are raised.
- Methods:
  - `ro_conn()`, `rw_conn()` and `r_conn()`;
  - `ownable_ro_conn()`, `ownable_rw_conn()` and `ownable_r_conn()`;
  - `begin_tx()`, which calls `begin()` on the read-write connection;
  - `begin_custom_tx(options)`, which calls `begin_tx(options)` on it.

### `xpg.pool_metrics`

- `ConnPoolMetrics(ConnPoolMetricsStruct(...))` records pool configuration
  and statistics into metric vectors.
  - Gauges are set; counters are increased by the growth since the last
    record.
  - `UnitScaledMetric` converts durations into units.
- Meta labels (`ConnPoolMetaLabels(pool_name, conn_mode)`):
  - `set_meta_labels` adds them to every record;
  - `precompile_meta_labels` curries them into the metrics once;
  - `with_meta_labels` and `with_precompiled_meta_labels` work on a clone.
- `bind(pool).record()` takes a snapshot of `pool.config()` and
  `pool.stat()`. It raises `RecordError` if some metrics failed.

## Example

```python
import logging

from xpg.acquire import bound_conn
from xpg.mode import ConnMode
from xpg.pool_manager import PoolManager
from xpg.storage_base import new_storage_base

pool_manager = PoolManager(pool_ro=my_ro_pool, pool_rw=my_rw_pool)
base = new_storage_base(pool_manager, logging.getLogger("storage"))

with bound_conn(ConnMode.RW, my_conn):
    conn = base.rw_conn()   # my_conn, nothing logged

conn = base.rw_conn()       # my_rw_pool, fallback logged
```

`my_ro_pool`, `my_rw_pool` and `my_conn` stand for your own pool and
connection objects.

## What the package does not do

The package does not speak the PostgreSQL protocol and does not open
connections or create pools. `build_pool_settings` only resolves settings.
Using them to build a pool, and supplying tracers, a host load balancer and
metric objects, is left to the application.

## Running the tests

```
pip install -e ".[test]"
pytest
```