"""Connection modes and their relation to target session attributes."""

from __future__ import annotations

from enum import Enum


class ConnMode(str, Enum):
    """Whether a connection is used for reading only or for reading and writing."""

    RO = "ro"
    RW = "rw"

    def __str__(self) -> str:
        return self.value


class TargetSessionAttrs(str, Enum):
    """Server session attributes a connection attempt is validated against."""

    ANY = "any"
    READ_WRITE = "read-write"
    READ_ONLY = "read-only"
    PRIMARY = "primary"
    STANDBY = "standby"
    PREFER_STANDBY = "prefer-standby"

    def __str__(self) -> str:
        return self.value


_MODE_BY_ATTRS = {
    TargetSessionAttrs.READ_WRITE: ConnMode.RW,
    TargetSessionAttrs.PRIMARY: ConnMode.RW,
    TargetSessionAttrs.READ_ONLY: ConnMode.RO,
    TargetSessionAttrs.STANDBY: ConnMode.RO,
}


def try_extract_conn_mode(attrs: TargetSessionAttrs | str | None) -> ConnMode | None:
    """Return the connection mode implied by the session attributes, if any.

    Attributes that do not pin a single mode (``any``, ``prefer-standby``)
    and a missing value yield ``None``.
    """
    if attrs is None:
        return None
    return _MODE_BY_ATTRS.get(TargetSessionAttrs(attrs))