"""Query helpers: batched deletion, ordering clauses and paginated search."""

from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Callable, Iterable, Mapping, Sequence

from xpg.shortcuts import CommandTag, is_no_rows

_MULTI_TX_DELETE_QUERY = """
WITH to_delete AS (
    SELECT "{id_column}"
    FROM "{table}"
    WHERE {condition}
    LIMIT {limit}
)
DELETE FROM "{table}" as t1
USING to_delete as t2
WHERE (t1."{id_column}" = t2."{id_column}")
"""


@dataclass(frozen=True)
class MultiTxDeleteParams:
    """What to delete and how many rows to remove per transaction.

    ``tx_interval`` is the pause between transactions, in seconds.
    """

    table: str
    id_column: str
    delete_condition: str
    max_rows_per_tx: int
    tx_interval: float = 0.0
    query_finish_hook: Callable[[CommandTag], None] | None = None


def multi_tx_delete(conn: Any, params: MultiTxDeleteParams) -> None:
    """Delete matching rows in a series of transactions.

    Each transaction deletes at most ``max_rows_per_tx`` rows; the loop ends
    once a transaction deletes fewer. ``conn.execute(sql)`` must return a
    CommandTag. Names and the condition are inserted into the query verbatim.
    """
    query = _MULTI_TX_DELETE_QUERY.format(
        id_column=params.id_column,
        table=params.table,
        condition=params.delete_condition,
        limit=params.max_rows_per_tx,
    )
    while True:
        tag = conn.execute(query)
        if params.query_finish_hook is not None:
            params.query_finish_hook(tag)
        if tag.rows_affected < params.max_rows_per_tx:
            break
        time.sleep(params.tx_interval)


class SortOrder(str, Enum):
    ASC = "asc"
    DESC = "desc"


@dataclass(frozen=True)
class SortKey:
    """Position of a column among the sort keys and its direction."""

    index: int
    order: SortOrder = SortOrder.ASC


@dataclass(frozen=True)
class ColSortOption:
    """A column and how to sort by it; no sort key means not sorted by it."""

    col_name: str
    sort_option: SortKey | None = None


def gen_order_by(options: Iterable[ColSortOption]) -> list[str]:
    """Build ORDER BY terms from the options that have a sort key, by key index."""
    chosen = sorted(
        (opt for opt in options if opt.sort_option is not None),
        key=lambda opt: opt.sort_option.index,
    )
    return [
        f"{opt.col_name} {'ASC' if opt.sort_option.order == SortOrder.ASC else 'DESC'}"
        for opt in chosen
    ]


@dataclass(frozen=True)
class OffsetLimitPagination:
    offset: int
    limit: int


MakeSqlQuery = Callable[[bool, "OffsetLimitPagination | None"], Any]


def search(
    db: Any,
    query: str | None,
    offset: int,
    make_sql_query: MakeSqlQuery,
    row_factory: Callable[[Mapping[str, Any]], Any],
) -> tuple[list[Any], int]:
    """Run a search and return its rows together with the total match count.

    Rows come from ``db.query(sql, *args)`` and are built with ``row_factory``;
    each built row carries ``total_count``. When a page past the start is
    empty, the count is fetched with ``db.query_row`` instead.
    """
    args: tuple[Any, ...] = () if query is None else (query,)
    rows: Iterable[Mapping[str, Any]] = db.query(make_sql_query(False, None), *args)
    parsed = [row_factory(row) for row in rows]

    if parsed:
        return parsed, parsed[0].total_count
    if offset == 0:
        return parsed, 0

    count_query = make_sql_query(True, OffsetLimitPagination(offset=0, limit=1))
    try:
        row: Sequence[Any] = db.query_row(count_query, *args)
    except Exception as error:
        if is_no_rows(error):
            return parsed, 0
        raise
    return parsed, row[0]