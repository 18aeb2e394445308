"""Base for storages: connections from the context first, pools second."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from xpg.acquire import ConnOwnership, CtxConnProvider, EventContext
from xpg.fallbacked import (
    LABEL_UNKNOWN,
    AttemptMetrics,
    FallbackedAttemptState,
    FallbackedHooks,
    new_fallbacked,
)
from xpg.pool_providers import as_one_time_conn_provider
from xpg.sugar import SugaredSilentProvider, silence, sugar_silent

FALLBACK_LOG_MESSAGE = "PG Conn Acquire fallbacks to next conn provider"


def _raise_acquire_error(error: object) -> None:
    """Re-raise an acquire failure; non-exception values are wrapped."""
    if isinstance(error, BaseException):
        raise error
    raise RuntimeError(f"connection acquire failed: {error!r}")


@dataclass(frozen=True)
class StorageBase:
    """Gives storages connections of the needed mode."""

    conn: SugaredSilentProvider
    pool_manager: Any

    def ro_conn(self) -> Any:
        return self.conn.managed_ro()

    def rw_conn(self) -> Any:
        return self.conn.managed_rw()

    def r_conn(self) -> Any:
        """Read-only connection first, read-write second."""
        return self.conn.managed_r()

    def ownable_ro_conn(self) -> tuple[Any, ConnOwnership | None]:
        return self.conn.ro()

    def ownable_rw_conn(self) -> tuple[Any, ConnOwnership | None]:
        return self.conn.rw()

    def ownable_r_conn(self) -> tuple[Any, ConnOwnership | None]:
        """Read-only connection first, read-write second."""
        return self.conn.r()

    def begin_tx(self) -> Any:
        """Begin a transaction on a read-write connection."""
        return self.rw_conn().begin()

    def begin_custom_tx(self, options: Any) -> Any:
        """Begin a transaction with options on a read-write connection."""
        return self.rw_conn().begin_tx(options)


def new_storage_base(
    pool_manager: Any,
    logger: logging.Logger,
    conn_provider_metrics: Iterable[AttemptMetrics] = (),
) -> StorageBase:
    """Build a StorageBase; every fallback past the context connection is logged."""

    def on_attempt_start(event: EventContext, attempt: FallbackedAttemptState) -> None:
        if attempt.index > 0:
            logger.info(
                FALLBACK_LOG_MESSAGE,
                extra={
                    "ind": attempt.index,
                    "acquire_type": attempt.acquire_type_or(LABEL_UNKNOWN),
                },
            )

    provider = new_fallbacked(
        CtxConnProvider(),
        as_one_time_conn_provider(pool_manager),
    ).with_hooks(FallbackedHooks(on_attempt_start=on_attempt_start))
    for metrics in conn_provider_metrics:
        provider.stats().register_export(metrics)
    return StorageBase(
        conn=sugar_silent(silence(provider, _raise_acquire_error)),
        pool_manager=pool_manager,
    )