"""Selection of a connection pool by connection mode."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from xpg.mode import ConnMode


@dataclass(frozen=True)
class PoolManager:
    """Holds a read-only and a read-write pool."""

    pool_ro: Any
    pool_rw: Any

    def get_pool(self, mode: ConnMode) -> Any:
        """Return the pool serving the given mode."""
        if mode == ConnMode.RO:
            return self.pool_ro
        if mode == ConnMode.RW:
            return self.pool_rw
        raise ValueError(f"unsupported conn mode: {mode}")