from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any

from psycopg2.extras import execute_values

"""DB batch insert helper.

Multi-row INSERT through psycopg2.extras.execute_values. The caller owns the
transaction (BEGIN/COMMIT/ROLLBACK); this function only issues INSERTs and
wraps driver failures in BatchInsertError so the committer can treat every
persistence failure the same way.
"""


class BatchInsertError(Exception):
    pass


@dataclass(frozen=True)
class BatchMetrics:
    """Timing for a single batch_insert call."""
    table: str
    batch_size: int
    elapsed_seconds: float
    start_time: float
    end_time: float


@dataclass(frozen=True)
class InsertResult:
    inserted_rows: int
    returned_values: list[tuple[Any, ...]] | None = None


def _quote_ident(name: str) -> str:
    return '"' + name.replace('"', '""') + '"'


def batch_insert(
    cursor: Any,
    table: str,
    columns: Sequence[str],
    rows: Iterable[Sequence[Any]],
    returning: Sequence[str] | None = None,
    page_size: int = 1000,
    metrics_callback: Callable[[BatchMetrics], None] | None = None,
) -> InsertResult:
    """Perform a batched INSERT using psycopg2.extras.execute_values.

    Parameters
    ----------
    cursor: psycopg2 cursor
    table: target table name (trusted, not user input)
    columns: insert columns
    rows: row sequences, each aligned with ``columns``
    returning: columns for a RETURNING clause; rows come back in VALUES order
    page_size: execute_values page size
    metrics_callback: receives BatchMetrics after the statement ran (also on
        failure). Not invoked for an empty ``rows``.
    """
    rows_list = [tuple(r) for r in rows]
    if not rows_list:
        return InsertResult(inserted_rows=0, returned_values=[] if returning else None)

    cols_sql = ",".join(_quote_ident(c) for c in columns)
    sql = f"INSERT INTO {_quote_ident(table)} ({cols_sql}) VALUES %s"
    if returning:
        sql += " RETURNING " + ",".join(_quote_ident(c) for c in returning)

    start_time = time.time()
    try:
        returned = execute_values(
            cursor, sql, rows_list, page_size=page_size, fetch=bool(returning)
        )
    except Exception as e:
        raise BatchInsertError(f"{table}: {e}") from e
    finally:
        end_time = time.time()
        if metrics_callback is not None:
            metrics_callback(
                BatchMetrics(
                    table=table,
                    batch_size=len(rows_list),
                    elapsed_seconds=end_time - start_time,
                    start_time=start_time,
                    end_time=end_time,
                )
            )

    if returning:
        returned_rows = [tuple(r) for r in (returned or [])]
        if len(returned_rows) != len(rows_list):
            raise BatchInsertError(
                f"{table}: expected {len(rows_list)} RETURNING rows, got {len(returned_rows)}"
            )
        return InsertResult(inserted_rows=len(rows_list), returned_values=returned_rows)
    return InsertResult(inserted_rows=len(rows_list))
