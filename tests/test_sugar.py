import pytest

from xpg.acquire import CtxConnProvider, bound_conn
from xpg.mode import ConnMode
from xpg.sugar import silence, sugar, sugar_silent


class RecordingProvider:
    def __init__(self):
        self.calls = []

    def acquire(self, mode, config=None):
        self.calls.append(("acquire", mode, config))
        return "conn", None

    def acquire_managed(self, mode, config=None):
        self.calls.append(("managed", mode, config))
        return "managed-conn"

    def type(self):
        return "rec"

    def generic_type(self):
        return "rec"

    def acquire_type(self):
        return "rec_acq"


class BareProvider:
    def acquire(self, mode, config=None):
        return "conn", None

    def acquire_managed(self, mode, config=None):
        return "conn"


class FailingProvider:
    def acquire(self, mode, config=None):
        raise ConnectionError("acquire failed")

    def acquire_managed(self, mode, config=None):
        raise ConnectionError("managed failed")


def test_sugared_r_uses_rw_fallback():
    provider = RecordingProvider()
    assert sugar(provider).r() == ("conn", None)
    kind, mode, config = provider.calls[-1]
    assert (kind, mode) == ("acquire", ConnMode.RO)
    assert config.rw_fallback is True


@pytest.mark.parametrize(
    "method, expected",
    [
        ("ro", ("acquire", ConnMode.RO, None)),
        ("rw", ("acquire", ConnMode.RW, None)),
        ("managed_ro", ("managed", ConnMode.RO, None)),
        ("managed_rw", ("managed", ConnMode.RW, None)),
    ],
)
def test_sugared_plain_modes(method, expected):
    provider = RecordingProvider()
    getattr(sugar(provider), method)()
    assert provider.calls == [expected]


def test_sugared_managed_r():
    provider = RecordingProvider()
    assert sugar(provider).managed_r() == "managed-conn"
    assert provider.calls[-1][2].rw_fallback is True


def test_sugared_types_with_meta():
    sugared = sugar(RecordingProvider())
    assert sugared.type() == "sugared[rec]"
    assert sugared.generic_type() == "sugared[ConnProvider]"
    assert sugared.acquire_type() == "rec_acq"


def test_sugared_types_without_meta():
    sugared = sugar(BareProvider())
    assert sugared.type() == "sugared[<BareProvider>]"
    assert sugared.acquire_type() is None


def test_silence_reports_errors():
    errors = []
    silent = silence(FailingProvider(), errors.append)
    assert silent.acquire(ConnMode.RO) == (None, None)
    assert silent.acquire_managed(ConnMode.RW) is None
    assert [str(e) for e in errors] == ["acquire failed", "managed failed"]


def test_silence_passes_success_through():
    errors = []
    silent = silence(RecordingProvider(), errors.append)
    assert silent.acquire(ConnMode.RW) == ("conn", None)
    assert silent.acquire_managed(ConnMode.RW) == "managed-conn"
    assert errors == []


def test_silence_handler_may_raise():
    def boom(error):
        raise RuntimeError("fatal") from error

    with pytest.raises(RuntimeError, match="fatal"):
        silence(FailingProvider(), boom).acquire_managed(ConnMode.RO)


def test_sugar_silent_shortcuts():
    provider = RecordingProvider()
    sugared = sugar_silent(silence(provider, lambda e: None))
    assert sugared.r() == ("conn", None)
    assert provider.calls[-1][2].rw_fallback is True
    assert sugared.managed_rw() == "managed-conn"
    assert provider.calls[-1] == ("managed", ConnMode.RW, None)
    assert sugared.ro() == ("conn", None)
    assert sugared.managed_ro() == "managed-conn"


def test_sugared_ctx_provider_falls_back_to_rw():
    conn = object()
    with bound_conn(ConnMode.RW, conn):
        assert sugar(CtxConnProvider()).managed_r() is conn
    assert sugar(CtxConnProvider()).acquire_type() == CtxConnProvider().acquire_type()