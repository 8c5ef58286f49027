from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Awaitable, Callable, Sequence, TypeAlias

from db2lake.core.schemas import QuerySpec
from db2lake.runner.ports.source import Batch, Row

logger = logging.getLogger("db2lake")

QueryExecutor: TypeAlias = Callable[[str, list[Any]], Awaitable[Sequence[Row]]]


class Paginator:
    """
    Cursor pagination over a single parameterized query.

    Each page is fetched with the params of the QuerySpec; after a page the value of
    ``cursor_field`` in its last row is bound at ``cursor_params_index`` for the
    next fetch. Pagination stops on:
    - an empty page (never yielded),
    - a QuerySpec without ``cursor_field`` (single fetch),
    - a last row without ``cursor_field``.

    Not restartable: create a new instance per run.
    """

    def __init__(self, spec: QuerySpec, execute: QueryExecutor) -> None:
        self._spec = spec
        self._execute = execute
        self.fetch_count = 0

    def __aiter__(self) -> AsyncIterator[Batch]:
        return self.batches()

    async def batches(self) -> AsyncIterator[Batch]:
        spec = self._spec
        params = list(spec.params)
        has_cursor = False
        cursor_value: Any = None

        while True:
            if spec.cursor_field is not None and has_cursor:
                params[spec.cursor_params_index] = cursor_value  # type: ignore[index]

            self.fetch_count += 1
            rows = await self._execute(spec.query, list(params))
            if not rows:
                logger.debug("page=%d empty, pagination done", self.fetch_count)
                return

            batch: Batch = [dict(r) for r in rows]
            yield batch

            if spec.cursor_field is None:
                return

            tail = batch[-1]
            if spec.cursor_field not in tail:
                logger.warning(
                    "page=%d last row has no cursor_field=%r, stopping pagination",
                    self.fetch_count,
                    spec.cursor_field,
                )
                return

            cursor_value = tail[spec.cursor_field]
            has_cursor = True
