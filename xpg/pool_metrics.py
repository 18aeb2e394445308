"""Export of connection pool configuration and statistics into metrics.

Metric objects are duck-typed vectors: ``with_labels(labels)`` returns a
child with ``set(value)`` (gauges) or ``add(value)`` (counters), and
``curry_with(labels)`` returns a vector with those labels fixed.
The pool must offer ``config()`` (``min_conns``, ``max_conns``) and
``stat()`` (``acquire_count``, ``acquire_duration``,
``canceled_acquire_count``, ``empty_acquire_wait_time``,
``constructing_conns``, ``acquired_conns``, ``idle_conns``,
``total_conns``); durations are timedeltas.
"""

from __future__ import annotations

import dataclasses
import threading
from dataclasses import dataclass
from datetime import timedelta
from typing import Any, Callable

_GAUGE_FIELDS = (
    "config_min_conns_count",
    "config_max_conns_count",
    "current_constructing_conns_count",
    "current_acquired_conns_count",
    "current_idle_conns_count",
    "current_total_conns_count",
)
_COUNTER_FIELDS = ("conn_acquire_count", "conn_acquire_cancelled_count")
_UNIT_FIELDS = (
    "conn_acquire_duration_total",
    "conn_acquire_conn_availability_wait_time_total",
)


class RecordError(Exception):
    """Some metrics could not be recorded; ``errors`` holds the causes."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(str(error) for error in self.errors))


@dataclass(frozen=True)
class ConnPoolMetaLabels:
    """Labels describing a pool; unset labels are left out."""

    pool_name: str | None = None
    conn_mode: str | None = None

    def to_labels(self) -> dict[str, str]:
        fields = {"pool_name": self.pool_name, "conn_mode": self.conn_mode}
        return {name: value for name, value in fields.items() if value is not None}


@dataclass(frozen=True)
class UnitScaledMetric:
    """A counter vector whose durations are expressed in multiples of ``unit``."""

    metric: Any
    unit: timedelta = timedelta(seconds=1)

    def scale(self, duration: timedelta) -> float:
        """Convert a duration into units; raise ValueError for a non-positive unit."""
        if self.unit <= timedelta(0):
            raise ValueError(f"invalid metric unit: {self.unit}")
        return duration / self.unit


@dataclass
class ConnPoolMetricsStruct:
    """The metrics a pool is exported to; any of them may be left out.

    Metrics have no variable labels of their own; they may carry the meta
    labels ``pool_name`` and ``conn_mode``.
    """

    config_min_conns_count: Any = None
    config_max_conns_count: Any = None

    current_constructing_conns_count: Any = None
    current_acquired_conns_count: Any = None
    current_idle_conns_count: Any = None
    # total = constructing + acquired + idle
    current_total_conns_count: Any = None

    conn_acquire_count: Any = None
    conn_acquire_duration_total: UnitScaledMetric | None = None
    conn_acquire_cancelled_count: Any = None
    conn_acquire_conn_availability_wait_time_total: UnitScaledMetric | None = None


class ConnPoolMetrics:
    """A set of pool metrics together with the state needed to turn totals into increments."""

    def __init__(
        self,
        metrics: ConnPoolMetricsStruct,
        meta_labels: ConnPoolMetaLabels | None = None,
        precompiled: bool = False,
    ) -> None:
        self.metrics = metrics
        self._meta_labels = meta_labels
        self._precompiled = precompiled
        self._lock = threading.Lock()
        self._acquire_count = 0
        self._acquire_duration_total = timedelta(0)
        self._acquire_cancelled_count = 0
        self._availability_wait_total = timedelta(0)

    def bind(self, pool: Any) -> BoundConnPoolMetrics:
        """Tie these metrics to a pool for recording."""
        return BoundConnPoolMetrics(self, pool)

    def clone(self) -> ConnPoolMetrics:
        """Copy exporting to the same metrics but keeping its own state."""
        return ConnPoolMetrics(
            dataclasses.replace(self.metrics),
            meta_labels=self._meta_labels,
            precompiled=self._precompiled,
        )

    def set_meta_labels(self, labels: ConnPoolMetaLabels) -> None:
        """Set labels added on every record; raise RuntimeError once precompiled."""
        if self._precompiled:
            raise RuntimeError("meta labels are precompiled")
        self._meta_labels = labels

    def meta_labels(self) -> ConnPoolMetaLabels | None:
        """Return the meta labels set on these metrics, if any."""
        return self._meta_labels

    def precompile_meta_labels(self) -> None:
        """Curry the meta labels into every metric; allowed at most once."""
        if self._meta_labels is None:
            raise RuntimeError("meta labels not set")
        if self._precompiled:
            raise RuntimeError("meta labels already precompiled")
        self._precompiled = True
        labels = self._meta_labels.to_labels()
        curried = dataclasses.replace(self.metrics)
        for name in _GAUGE_FIELDS + _COUNTER_FIELDS:
            metric = getattr(curried, name)
            if metric is not None:
                setattr(curried, name, metric.curry_with(labels))
        for name in _UNIT_FIELDS:
            metric = getattr(curried, name)
            if metric is not None:
                setattr(
                    curried,
                    name,
                    UnitScaledMetric(metric.metric.curry_with(labels), metric.unit),
                )
        self.metrics = curried

    def with_meta_labels(self, labels: ConnPoolMetaLabels) -> ConnPoolMetrics:
        """Clone and set meta labels; a precompiled clone keeps its labels."""
        copy = self.clone()
        if not copy._precompiled:
            copy.set_meta_labels(labels)
        return copy

    def with_precompiled_meta_labels(self, labels: ConnPoolMetaLabels) -> ConnPoolMetrics:
        """Clone, set meta labels and precompile them."""
        copy = self.clone()
        if not copy._precompiled:
            copy.set_meta_labels(labels)
        copy.precompile_meta_labels()
        return copy

    def _take_increments(self, stats: Any) -> tuple[int, timedelta, int, timedelta]:
        with self._lock:
            acquire_inc = 0
            if stats.acquire_count > self._acquire_count:
                acquire_inc = stats.acquire_count - self._acquire_count
                self._acquire_count = stats.acquire_count
            duration_inc = timedelta(0)
            if stats.acquire_duration > self._acquire_duration_total:
                duration_inc = stats.acquire_duration - self._acquire_duration_total
                self._acquire_duration_total = stats.acquire_duration
            cancelled_inc = 0
            if stats.canceled_acquire_count > self._acquire_cancelled_count:
                cancelled_inc = stats.canceled_acquire_count - self._acquire_cancelled_count
                self._acquire_cancelled_count = stats.canceled_acquire_count
            wait_inc = timedelta(0)
            if stats.empty_acquire_wait_time > self._availability_wait_total:
                wait_inc = stats.empty_acquire_wait_time - self._availability_wait_total
                self._availability_wait_total = stats.empty_acquire_wait_time
        return acquire_inc, duration_inc, cancelled_inc, wait_inc

    def _record_labels(self) -> dict[str, str]:
        if self._meta_labels is not None and not self._precompiled:
            return self._meta_labels.to_labels()
        return {}


class BoundConnPoolMetrics:
    """Pool metrics tied to one pool."""

    def __init__(self, metrics: ConnPoolMetrics, pool: Any) -> None:
        self.metrics = metrics
        self.pool = pool

    def record(self) -> None:
        """Export a snapshot of the pool; raise RecordError if some metrics failed."""
        config = self.pool.config()
        stats = self.pool.stat()
        acquire_inc, duration_inc, cancelled_inc, wait_inc = self.metrics._take_increments(stats)

        s = self.metrics.metrics
        labels = self.metrics._record_labels()
        errors: list[Exception] = []

        def gauge_set(gauge: Any, value: float) -> None:
            if gauge is not None:
                gauge.with_labels(labels).set(float(value))

        def counter_add(counter: Any, inc: float) -> None:
            if counter is not None:
                counter.with_labels(labels).add(float(inc))

        def unit_add(metric: UnitScaledMetric | None, inc: timedelta) -> None:
            if metric is None:
                return
            try:
                value = metric.scale(inc)
            except Exception as error:
                errors.append(error)
            else:
                metric.metric.with_labels(labels).add(value)

        gauge_set(s.config_min_conns_count, config.min_conns)
        gauge_set(s.config_max_conns_count, config.max_conns)

        gauge_set(s.current_constructing_conns_count, stats.constructing_conns)
        gauge_set(s.current_acquired_conns_count, stats.acquired_conns)
        gauge_set(s.current_idle_conns_count, stats.idle_conns)
        gauge_set(s.current_total_conns_count, stats.total_conns)

        counter_add(s.conn_acquire_count, acquire_inc)
        unit_add(s.conn_acquire_duration_total, duration_inc)
        counter_add(s.conn_acquire_cancelled_count, cancelled_inc)
        unit_add(s.conn_acquire_conn_availability_wait_time_total, wait_inc)

        if errors:
            raise RecordError(errors)


MetricRecorder = Callable[[], None]