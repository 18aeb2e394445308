"""Running one operation over several databases in turn."""

from __future__ import annotations

from typing import Any, Callable, Iterable, Optional, TypeVar

from xpg.shortcuts import is_no_rows

T = TypeVar("T")

UntilFn = Callable[[Any, Optional[BaseException]], bool]


def until_found(value: Any, error: BaseException | None) -> bool:
    """Stop condition: a result was found, or an error other than no rows occurred."""
    return error is None or not is_no_rows(error)


def for_each_pg(
    fn: Callable[[Any], T],
    pgs: Iterable[Any],
    until: UntilFn | None = None,
) -> T | None:
    """Call fn on each database in order and return the last outcome.

    With ``until`` the loop stops at the first outcome it accepts. If the
    last call raised, its error is raised. No databases give ``None``.
    """
    value: T | None = None
    error: BaseException | None = None
    for pg in pgs:
        value, error = _call(fn, pg)
        if until is not None and until(value, error):
            break
    if error is not None:
        raise error
    return value


def for_each_pg_lazy(
    fn: Callable[[Any], T],
    lazy_pgs: Iterable[Callable[[], Any]],
    until: UntilFn | None = None,
) -> T | None:
    """Like for_each_pg, but each database is obtained from a factory first.

    An error from a factory ends the loop and is raised.
    """
    value: T | None = None
    error: BaseException | None = None
    for make_pg in lazy_pgs:
        pg = make_pg()
        value, error = _call(fn, pg)
        if until is not None and until(value, error):
            break
    if error is not None:
        raise error
    return value


def _call(fn: Callable[[Any], T], pg: Any) -> tuple[T | None, BaseException | None]:
    try:
        return fn(pg), None
    except Exception as error:
        return None, error