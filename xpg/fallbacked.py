"""A connection provider that tries several providers in turn."""

from __future__ import annotations

import dataclasses
import threading
import time
from collections import Counter, defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, TypeVar

from xpg.acquire import AcquireConfig, ConnOwnership, EventContext, bound_conn_acquire_meta
from xpg.mode import ConnMode

T = TypeVar("T")

LABEL_UNKNOWN = "unknown"
LABEL_HIGH_CARDINALITY = "high_cardinality"

_MAX_INDEX_LABEL = 100
_TYPE_BASE = "fallbacked"
_ACQUIRE_TYPE_BASE = "fallbacked"


def _has_meta(provider: Any) -> bool:
    return all(
        callable(getattr(provider, name, None))
        for name in ("type", "generic_type", "acquire_type")
    )


class FallbackedError(Exception):
    """Every provider failed; ``errors`` holds their errors in order."""

    def __init__(self, errors: list[Exception]) -> None:
        self.errors = list(errors)
        if self.errors:
            message = "; ".join(str(error) for error in self.errors)
        else:
            message = "no conn providers"
        super().__init__(message)


@dataclass(frozen=True)
class FallbackedAttemptState:
    """Which provider an attempt uses and its position in the chain."""

    index: int
    provider: Any

    def acquire_type_or(self, fallback: str) -> str:
        """Return the provider's acquire type, or ``fallback`` if it has none."""
        if _has_meta(self.provider):
            acquire_type = self.provider.acquire_type()
            if acquire_type is not None:
                return acquire_type
        return fallback


@dataclass(frozen=True)
class FallbackedFail:
    """The error that ended an attempt."""

    error: BaseException


AttemptHook = Callable[[EventContext, FallbackedAttemptState], None]
FailHook = Callable[[EventContext, FallbackedAttemptState, FallbackedFail], None]


@dataclass(frozen=True)
class FallbackedHooks:
    """Callbacks around each attempt; a start or ok hook that raises fails the attempt."""

    on_attempt_start: AttemptHook | None = None
    on_attempt_finish_ok: AttemptHook | None = None
    on_attempt_finish_fail: FailHook | None = None


@dataclass
class AttemptMetrics:
    """Counts of attempt starts and finishes and their durations.

    Keys are ``(ind, acquire_type)`` label pairs; durations are expressed
    in units of ``unit`` seconds.
    """

    unit: float = 1.0
    starts: Counter = field(default_factory=Counter)
    finishes: Counter = field(default_factory=Counter)
    durations: defaultdict = field(default_factory=lambda: defaultdict(list))
    _lock: threading.Lock = field(default_factory=threading.Lock, repr=False, compare=False)

    def _start(self, labels: tuple[str, str]) -> None:
        with self._lock:
            self.starts[labels] += 1

    def _finish(self, labels: tuple[str, str], elapsed: float) -> None:
        with self._lock:
            self.finishes[labels] += 1
            self.durations[labels].append(elapsed / self.unit)


@dataclass(frozen=True)
class FallbackedStatsSnapshot:
    acquire_attempt_count_total: int


class FallbackedStats:
    """Attempt statistics of a fallbacked provider and where they are exported."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._attempt_count = 0
        self._exports: list[AttemptMetrics] = []

    def snapshot(self) -> FallbackedStatsSnapshot:
        with self._lock:
            return FallbackedStatsSnapshot(acquire_attempt_count_total=self._attempt_count)

    def register_export(self, metrics: AttemptMetrics) -> None:
        """Export every following attempt into ``metrics`` as well."""
        with self._lock:
            self._exports.append(metrics)

    def record_attempt(self, attempt: FallbackedAttemptState, fn: Callable[[], T]) -> T:
        """Count an attempt, run fn, record its duration and return its result."""
        with self._lock:
            self._attempt_count += 1
            exports = list(self._exports)

        if attempt.index < _MAX_INDEX_LABEL:
            labels = (str(attempt.index), attempt.acquire_type_or(LABEL_UNKNOWN))
        else:
            labels = (LABEL_HIGH_CARDINALITY, LABEL_HIGH_CARDINALITY)

        for metrics in exports:
            metrics._start(labels)
        started = time.monotonic()
        try:
            return fn()
        finally:
            elapsed = time.monotonic() - started
            for metrics in exports:
                metrics._finish(labels, elapsed)

    def clone(self) -> FallbackedStats:
        """Copy with the current count and the same exports."""
        copy = FallbackedStats()
        with self._lock:
            copy._attempt_count = self._attempt_count
            copy._exports = list(self._exports)
        return copy


class FallbackedProvider:
    """Tries each provider in order until one yields a connection.

    A timeout error ends the chain at once; otherwise, if all fail,
    a FallbackedError carrying every error is raised.
    """

    def __init__(
        self,
        providers: tuple[Any, ...],
        hooks: FallbackedHooks | None = None,
        stats: FallbackedStats | None = None,
    ) -> None:
        self._providers = tuple(providers)
        self._hooks = hooks or FallbackedHooks()
        self._stats = stats if stats is not None else FallbackedStats()

    def acquire(
        self, mode: ConnMode, config: AcquireConfig | None = None
    ) -> tuple[Any, ConnOwnership | None]:
        config = config or AcquireConfig()
        with bound_conn_acquire_meta(config.meta):
            return self._run(lambda prov, cfg: prov.acquire(mode, cfg), config)

    def acquire_managed(self, mode: ConnMode, config: AcquireConfig | None = None) -> Any:
        config = config or AcquireConfig()
        return self._run(lambda prov, cfg: prov.acquire_managed(mode, cfg), config)

    def with_hooks(self, hooks: FallbackedHooks) -> FallbackedProvider:
        """Shallow copy with the given hooks set."""
        copy = self.shallow_clone()
        copy._hooks = hooks
        return copy

    def shallow_clone(self) -> FallbackedProvider:
        """Copy sharing the providers, with cloned stats and no hooks."""
        return FallbackedProvider(self._providers, stats=self._stats.clone())

    def stats(self) -> FallbackedStats:
        return self._stats

    def type(self) -> str:
        params = (
            prov.type() if _has_meta(prov) else f"<{type(prov).__name__}>"
            for prov in self._providers
        )
        return f"{_TYPE_BASE}[{','.join(params)}]"

    def generic_type(self) -> str:
        return f"{_TYPE_BASE}[...ConnProvider]"

    def acquire_type(self) -> str | None:
        params = (
            FallbackedAttemptState(index, prov).acquire_type_or(f"<{type(prov).__name__}>")
            for index, prov in enumerate(self._providers)
        )
        return f"{_ACQUIRE_TYPE_BASE}[{','.join(params)}]"

    def _run(self, call: Callable[[Any, AcquireConfig], T], config: AcquireConfig) -> T:
        deadline = None if config.timeout is None else time.monotonic() + config.timeout
        errors: list[Exception] = []
        for index, provider in enumerate(self._providers):
            attempt_config = config
            if deadline is not None:
                remaining = deadline - time.monotonic()
                if remaining <= 0:
                    raise TimeoutError("connection acquire timed out") from (
                        FallbackedError(errors) if errors else None
                    )
                attempt_config = dataclasses.replace(config, timeout=remaining)
            attempt = FallbackedAttemptState(index=index, provider=provider)
            try:
                return self._attempt(
                    attempt,
                    lambda p=provider, c=attempt_config: self._stats.record_attempt(
                        attempt, lambda: call(p, c)
                    ),
                )
            except TimeoutError:
                raise
            except Exception as error:
                errors.append(error)
        raise FallbackedError(errors)

    def _attempt(self, attempt: FallbackedAttemptState, payload: Callable[[], T]) -> T:
        hooks = self._hooks
        event = EventContext()
        try:
            if hooks.on_attempt_start is not None:
                hooks.on_attempt_start(event, attempt)
            result = payload()
            if hooks.on_attempt_finish_ok is not None:
                hooks.on_attempt_finish_ok(event, attempt)
        except BaseException as error:
            if hooks.on_attempt_finish_fail is not None:
                hooks.on_attempt_finish_fail(event, attempt, FallbackedFail(error))
            raise
        return result


def new_fallbacked(*args: Any) -> FallbackedProvider:
    """Provider trying the given providers in order."""
    return FallbackedProvider(args)