"""Helpers turning "no rows" and "unique violation" errors into plain results."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterator, TypeVar

T = TypeVar("T")

UNIQUE_VIOLATION_SQLSTATE = "23505"


class NoRowsError(LookupError):
    """A query expected to return a row returned none."""


class UniqueViolationError(Exception):
    """A unique constraint was violated."""

    sqlstate = UNIQUE_VIOLATION_SQLSTATE


@dataclass(frozen=True)
class CommandTag:
    """Completion information of an executed command."""

    rows_affected: int = 0
    text: str = ""


def _causes(error: BaseException | None) -> Iterator[BaseException]:
    seen: set[int] = set()
    while error is not None and id(error) not in seen:
        seen.add(id(error))
        yield error
        error = error.__cause__


def is_no_rows(error: BaseException | None) -> bool:
    """Tell whether the error, or one it was raised from, means no rows."""
    return any(isinstance(e, NoRowsError) for e in _causes(error))


def is_unique_violation(error: BaseException | None) -> bool:
    """Tell whether the error, or one it was raised from, is a unique violation."""
    return any(
        isinstance(e, UniqueViolationError)
        or getattr(e, "sqlstate", None) == UNIQUE_VIOLATION_SQLSTATE
        or getattr(e, "pgcode", None) == UNIQUE_VIOLATION_SQLSTATE
        for e in _causes(error)
    )


def try_get(fn: Callable[[], T]) -> T | None:
    """Call fn; return None instead of raising when there are no rows."""
    try:
        return fn()
    except Exception as error:
        if is_no_rows(error):
            return None
        raise


def has(fn: Callable[[], object]) -> bool:
    """Call fn; return whether it found a row."""
    try:
        fn()
    except Exception as error:
        if is_no_rows(error):
            return False
        raise
    return True


def add(fn: Callable[[], CommandTag]) -> bool:
    """Call an insert; return whether a row was added.

    A unique violation counts as nothing added.
    """
    try:
        tag = fn()
    except Exception as error:
        if is_unique_violation(error):
            return False
        raise
    return tag.rows_affected != 0


def add_batch(fn: Callable[[], int]) -> bool:
    """Call a batch insert returning its row count; return whether any row was added."""
    try:
        rows_added = fn()
    except Exception as error:
        if is_unique_violation(error):
            return False
        raise
    return rows_added != 0