"""Pool configuration and the settings derived from it."""

from __future__ import annotations

import ipaddress
import itertools
import socket
import threading
from dataclasses import dataclass, field
from datetime import timedelta

from xpg.mode import TargetSessionAttrs

DEFAULT_CONNECT_TIMEOUT_MS = 2000

TRACER_LOGGING = "logging"
TRACER_PROMETHEUS = "prometheus"
TRACER_DEBUG_VARS = "debug_vars"


@dataclass
class TracerOption:
    """Enables or disables a tracer."""

    enabled: bool = True


@dataclass
class DebugVarsTracerConfig:
    """Debug-vars tracer; the root name format holds ``%s`` for the pool name."""

    vars_root_name_format: str
    enabled: bool = True

    def validate(self) -> None:
        """Raise ValueError if the format has no place for the pool name."""
        if "%s" not in self.vars_root_name_format:
            raise ValueError("vars root name format must contain '%s' for pool name")


@dataclass
class PoolTracersConfig:
    logging: TracerOption | None = None
    prometheus: TracerOption | None = None
    debug_vars: DebugVarsTracerConfig | None = None


def _default_tracers() -> PoolTracersConfig:
    return PoolTracersConfig(logging=TracerOption(), prometheus=TracerOption())


@dataclass
class PoolConfig:
    """User-facing pool configuration; ``None`` leaves a setting at its default."""

    min_conns: int | None = None
    max_conns: int | None = None
    max_conn_lifetime_s: int | None = None
    max_conn_lifetime_jitter_s: int | None = None
    connect_timeout_ms: int | None = None
    tracers: PoolTracersConfig | None = None


@dataclass(frozen=True)
class PoolSettings:
    """Effective pool settings built from a PoolConfig."""

    connect_timeout: timedelta
    min_conns: int | None = None
    max_conns: int | None = None
    max_conn_lifetime: timedelta | None = None
    max_conn_lifetime_jitter: timedelta | None = None
    tracers: tuple[str, ...] = ()
    debug_vars_root_name: str | None = None
    target_session_attrs: TargetSessionAttrs = TargetSessionAttrs.READ_WRITE


def build_pool_settings(pool_config: PoolConfig) -> PoolSettings:
    """Resolve a PoolConfig into effective settings.

    Without a tracers section, logging and prometheus tracers are enabled.
    Connections are read-write by default.
    """
    tracers_cfg = pool_config.tracers if pool_config.tracers is not None else _default_tracers()

    tracers: list[str] = []
    if tracers_cfg.logging is not None and tracers_cfg.logging.enabled:
        tracers.append(TRACER_LOGGING)
    if tracers_cfg.prometheus is not None and tracers_cfg.prometheus.enabled:
        tracers.append(TRACER_PROMETHEUS)
    debug_vars_root_name = None
    if tracers_cfg.debug_vars is not None and tracers_cfg.debug_vars.enabled:
        tracers.append(TRACER_DEBUG_VARS)
        debug_vars_root_name = tracers_cfg.debug_vars.vars_root_name_format.replace(
            "%s", new_anon_pool_name(), 1
        )

    connect_timeout_ms = (
        pool_config.connect_timeout_ms
        if pool_config.connect_timeout_ms is not None
        else DEFAULT_CONNECT_TIMEOUT_MS
    )
    return PoolSettings(
        connect_timeout=timedelta(milliseconds=connect_timeout_ms),
        min_conns=pool_config.min_conns,
        max_conns=pool_config.max_conns,
        max_conn_lifetime=(
            timedelta(seconds=pool_config.max_conn_lifetime_s)
            if pool_config.max_conn_lifetime_s is not None
            else None
        ),
        max_conn_lifetime_jitter=(
            timedelta(seconds=pool_config.max_conn_lifetime_jitter_s)
            if pool_config.max_conn_lifetime_jitter_s is not None
            else None
        ),
        tracers=tuple(tracers),
        debug_vars_root_name=debug_vars_root_name,
    )


def lookup_ipv4_only(host: str) -> list[str]:
    """Resolve a host to its IPv4 addresses only.

    An IP literal is returned unchanged; an empty host raises ``socket.gaierror``.
    """
    if not host:
        raise socket.gaierror(socket.EAI_NONAME, "no such host")
    try:
        ipaddress.ip_address(host)
    except ValueError:
        pass
    else:
        return [host]

    found: dict[str, None] = {}
    for family, _, _, _, sockaddr in socket.getaddrinfo(host, None):
        address = ipaddress.ip_address(sockaddr[0].split("%", 1)[0])
        if isinstance(address, ipaddress.IPv6Address):
            address = address.ipv4_mapped
        if address is not None:
            found.setdefault(str(address))
    return list(found)


_anon_pool_counter = itertools.count()
_anon_pool_lock = threading.Lock()


def new_anon_pool_name() -> str:
    """Return a fresh name for an unnamed pool."""
    with _anon_pool_lock:
        index = next(_anon_pool_counter)
    return f"anon{index:02d}"