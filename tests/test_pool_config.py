import re
import socket
from datetime import timedelta
from unittest import mock

import pytest

from xpg.mode import TargetSessionAttrs
from xpg.pool_config import (
    DebugVarsTracerConfig,
    PoolConfig,
    PoolTracersConfig,
    TracerOption,
    build_pool_settings,
    lookup_ipv4_only,
    new_anon_pool_name,
)


def test_defaults():
    settings = build_pool_settings(PoolConfig())
    assert settings.connect_timeout == timedelta(milliseconds=2000)
    assert settings.tracers == ("logging", "prometheus")
    assert settings.min_conns is None
    assert settings.max_conn_lifetime is None
    assert settings.target_session_attrs is TargetSessionAttrs.READ_WRITE


def test_values_passed_through():
    cfg = PoolConfig(
        min_conns=2,
        max_conns=9,
        max_conn_lifetime_s=60,
        max_conn_lifetime_jitter_s=5,
        connect_timeout_ms=150,
    )
    settings = build_pool_settings(cfg)
    assert settings.min_conns == 2
    assert settings.max_conns == 9
    assert settings.max_conn_lifetime == timedelta(seconds=60)
    assert settings.max_conn_lifetime_jitter == timedelta(seconds=5)
    assert settings.connect_timeout == timedelta(milliseconds=150)


def test_explicit_tracers_only_enabled_ones():
    cfg = PoolConfig(
        tracers=PoolTracersConfig(
            logging=TracerOption(enabled=False), prometheus=TracerOption()
        )
    )
    settings = build_pool_settings(cfg)
    assert settings.tracers == ("prometheus",)
    assert settings.debug_vars_root_name is None


def test_debug_vars_root_name_uses_anon_pool_name():
    cfg = PoolConfig(
        tracers=PoolTracersConfig(debug_vars=DebugVarsTracerConfig("pg_%s_vars"))
    )
    settings = build_pool_settings(cfg)
    assert settings.tracers == ("debug_vars",)
    assert re.fullmatch(r"pg_anon\d{2,}_vars", settings.debug_vars_root_name)


def test_debug_vars_validate():
    DebugVarsTracerConfig("root_%s").validate()
    with pytest.raises(ValueError, match="must contain"):
        DebugVarsTracerConfig("root").validate()


def test_anon_pool_names_increase():
    first = new_anon_pool_name()
    second = new_anon_pool_name()
    assert first.startswith("anon") and second.startswith("anon")
    assert int(second[4:]) == int(first[4:]) + 1


def test_lookup_ip_literal():
    assert lookup_ipv4_only("127.0.0.1") == ["127.0.0.1"]
    assert lookup_ipv4_only("::1") == ["::1"]


def test_lookup_empty_host():
    with pytest.raises(socket.gaierror):
        lookup_ipv4_only("")


def test_lookup_filters_ipv6():
    infos = [
        (socket.AF_INET6, socket.SOCK_STREAM, 0, "", ("2001:db8::1", 0, 0, 0)),
        (socket.AF_INET, socket.SOCK_STREAM, 0, "", ("192.0.2.7", 0)),
        (socket.AF_INET, socket.SOCK_DGRAM, 0, "", ("192.0.2.7", 0)),
        (socket.AF_INET6, socket.SOCK_STREAM, 0, "", ("::ffff:192.0.2.8", 0, 0, 0)),
    ]
    with mock.patch("socket.getaddrinfo", return_value=infos):
        assert lookup_ipv4_only("db.example.com") == ["192.0.2.7", "192.0.2.8"]