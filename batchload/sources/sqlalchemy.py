import logging
from typing import (
    Any,
    Callable,
    Dict,
    Hashable,
    Iterable,
    List,
    Optional,
    Tuple,
)

import sqlalchemy
from sqlalchemy.engine import Row
from sqlalchemy.sql import Select
from sqlalchemy.sql.elements import BinaryExpression


log = logging.getLogger(__name__)


def _table_repr(table: sqlalchemy.Table) -> str:
    return "Table({})".format(
        ", ".join(
            [
                repr(table.name),
                repr(table.metadata),
                "...",
                "schema={!r}".format(table.schema),
            ]
        )
    )


class RowsByKey:
    """Batch function which selects rows by a unique key column

    Returns a ``dict`` of selected columns for every key which has a row and
    ``None`` (absent) for keys without a row.

    :param engine: ``sqlalchemy.engine.Engine``
    :param from_clause: table to select from
    :param key_column: unique column to match keys against, primary key
                       of the table by default
    :param columns: columns to select, all table columns by default
    """

    def __init__(
        self,
        engine: Any,
        from_clause: sqlalchemy.Table,
        *,
        key_column: Optional[sqlalchemy.Column] = None,
        columns: Optional[Iterable[sqlalchemy.Column]] = None,
    ) -> None:
        self.engine = engine
        self.from_clause = from_clause
        if key_column is not None:
            self.key_column = key_column
        else:
            # currently only one column supported
            (self.key_column,) = from_clause.primary_key
        if columns is not None:
            self.columns = list(columns)
        else:
            self.columns = list(from_clause.c)

    def __repr__(self) -> str:
        if isinstance(self.from_clause, sqlalchemy.Table):
            from_clause_repr = _table_repr(self.from_clause)
        else:
            from_clause_repr = repr(self.from_clause)
        return "<{}.{}: from_clause={}, key_column={!r}>".format(
            self.__class__.__module__,
            self.__class__.__name__,
            from_clause_repr,
            self.key_column,
        )

    def in_impl(
        self, column: sqlalchemy.Column, values: Iterable
    ) -> BinaryExpression:
        return column.in_(values)

    def select_expr(self, keys: List[Hashable]) -> Tuple[Select, Callable]:
        columns = list(self.columns)
        if not any(c is self.key_column for c in columns):
            columns.insert(0, self.key_column)
        expr = (
            sqlalchemy.select(*columns)
            .select_from(self.from_clause)
            .where(self.in_impl(self.key_column, keys))
        )

        def result_proc(rows: List[Row]) -> List[Optional[Dict]]:
            rows_map = {}
            for row in rows:
                mapping = row._mapping
                rows_map[mapping[self.key_column]] = {
                    c.name: mapping[c] for c in self.columns
                }
            return [rows_map.get(key) for key in keys]

        return expr, result_proc

    def __call__(self, keys: List[Hashable]) -> List[Optional[Dict]]:
        if not keys:
            return []

        expr, result_proc = self.select_expr(keys)
        log.debug(
            "Selecting %d rows from %s by %s",
            len(keys),
            self.from_clause,
            self.key_column,
        )
        with self.engine.connect() as connection:
            rows = connection.execute(expr).fetchall()

        return result_proc(rows)
