"""Wrappers that make connection providers quieter or more convenient."""

from __future__ import annotations

from typing import Any, Callable

from xpg.acquire import AcquireConfig, ConnOwnership
from xpg.mode import ConnMode

_SUGARED_TYPE_BASE = "sugared"
_R_CONFIG = AcquireConfig(rw_fallback=True)


def _has_meta(provider: Any) -> bool:
    return all(
        callable(getattr(provider, name, None))
        for name in ("type", "generic_type", "acquire_type")
    )


class SilencedProvider:
    """Passes acquisition errors to a handler instead of raising them."""

    def __init__(self, provider: Any, on_error: Callable[[Exception], None]) -> None:
        self._provider = provider
        self._on_error = on_error

    def acquire(
        self, mode: ConnMode, config: AcquireConfig | None = None
    ) -> tuple[Any, ConnOwnership | None]:
        """Acquire; on failure report the error and return ``(None, None)``."""
        try:
            return self._provider.acquire(mode, config)
        except Exception as error:
            self._on_error(error)
            return None, None

    def acquire_managed(self, mode: ConnMode, config: AcquireConfig | None = None) -> Any:
        """Acquire a managed connection; on failure report and return None."""
        try:
            return self._provider.acquire_managed(mode, config)
        except Exception as error:
            self._on_error(error)
            return None


class SugaredProvider:
    """Shortcuts for the usual acquisition modes of a provider."""

    def __init__(self, provider: Any) -> None:
        self._provider = provider

    def r(self) -> tuple[Any, ConnOwnership | None]:
        """Read-only connection, or read-write if none is available."""
        return self._provider.acquire(ConnMode.RO, _R_CONFIG)

    def ro(self) -> tuple[Any, ConnOwnership | None]:
        return self._provider.acquire(ConnMode.RO, None)

    def rw(self) -> tuple[Any, ConnOwnership | None]:
        return self._provider.acquire(ConnMode.RW, None)

    def managed_r(self) -> Any:
        """Managed read-only connection, or read-write if none is available."""
        return self._provider.acquire_managed(ConnMode.RO, _R_CONFIG)

    def managed_ro(self) -> Any:
        return self._provider.acquire_managed(ConnMode.RO, None)

    def managed_rw(self) -> Any:
        return self._provider.acquire_managed(ConnMode.RW, None)

    def type(self) -> str:
        if _has_meta(self._provider):
            inner = self._provider.type()
        else:
            inner = f"<{type(self._provider).__name__}>"
        return f"{_SUGARED_TYPE_BASE}[{inner}]"

    def generic_type(self) -> str:
        return f"{_SUGARED_TYPE_BASE}[ConnProvider]"

    def acquire_type(self) -> str | None:
        if _has_meta(self._provider):
            return self._provider.acquire_type()
        return None


class SugaredSilentProvider:
    """Shortcuts for the usual acquisition modes of a silenced provider."""

    def __init__(self, provider: SilencedProvider) -> None:
        self._provider = provider

    def r(self) -> tuple[Any, ConnOwnership | None]:
        """Read-only connection, or read-write if none is available."""
        return self._provider.acquire(ConnMode.RO, _R_CONFIG)

    def ro(self) -> tuple[Any, ConnOwnership | None]:
        return self._provider.acquire(ConnMode.RO, None)

    def rw(self) -> tuple[Any, ConnOwnership | None]:
        return self._provider.acquire(ConnMode.RW, None)

    def managed_r(self) -> Any:
        """Managed read-only connection, or read-write if none is available."""
        return self._provider.acquire_managed(ConnMode.RO, _R_CONFIG)

    def managed_ro(self) -> Any:
        return self._provider.acquire_managed(ConnMode.RO, None)

    def managed_rw(self) -> Any:
        return self._provider.acquire_managed(ConnMode.RW, None)


def silence(provider: Any, on_error: Callable[[Exception], None]) -> SilencedProvider:
    """Wrap a provider so that its errors go to ``on_error``."""
    return SilencedProvider(provider, on_error)


def sugar(provider: Any) -> SugaredProvider:
    return SugaredProvider(provider)


def sugar_silent(provider: SilencedProvider) -> SugaredSilentProvider:
    return SugaredSilentProvider(provider)