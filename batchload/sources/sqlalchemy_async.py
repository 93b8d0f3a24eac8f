import logging
from typing import (
    Dict,
    Hashable,
    List,
    Optional,
)

from . import sqlalchemy as _sa

log = logging.getLogger(__name__)

# We are limiting fetch size to reduce CPU usage and avoid event-loop blocking
FETCH_SIZE = 100


class RowsByKey(_sa.RowsByKey):
    """Same as :py:class:`batchload.sources.sqlalchemy.RowsByKey`, but
    works with ``sqlalchemy.ext.asyncio.AsyncEngine``
    """

    async def __call__(  # type: ignore[override]
        self, keys: List[Hashable]
    ) -> List[Optional[Dict]]:
        if not keys:
            return []

        expr, result_proc = self.select_expr(keys)
        log.debug(
            "Selecting %d rows from %s by %s",
            len(keys),
            self.from_clause,
            self.key_column,
        )
        async with self.engine.connect() as connection:
            stream = await connection.stream(expr)
            rows = []
            while True:
                bucket = await stream.fetchmany(FETCH_SIZE)
                if bucket:
                    rows.extend(bucket)
                else:
                    break

        return result_proc(rows)
