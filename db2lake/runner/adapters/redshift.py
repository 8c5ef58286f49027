from __future__ import annotations

import logging
from typing import Any

from db2lake.runner.adapters.postgres import PostgresDestination
from db2lake.runner.services.ddl import Dialect

logger = logging.getLogger("db2lake")


class RedshiftDestination(PostgresDestination):
    """
    Amazon Redshift sink over the Postgres wire protocol (asyncpg).

    Differences from ``PostgresDestination``:
    - DDL carries DISTSTYLE / DISTKEY / SORTKEY and per-column ENCODE;
    - ``truncate=True`` empties the table once, right after connect and table
      creation, before any row of the run is written. Redshift commits
      TRUNCATE immediately, so it is kept out of the flush transactions.
    """

    backend = "redshift"
    dialect: Dialect = "redshift"

    def __init__(self, *, truncate: bool = False, **kwargs: Any) -> None:
        if "." not in kwargs.get("table", ""):
            kwargs.setdefault("schema", "public")
        super().__init__(**kwargs)
        self._truncate = truncate

    async def _after_connect(self) -> None:
        if not self._truncate:
            return
        logger.info("%s truncate before load", self._ctx())
        await self._connection().execute(f"TRUNCATE TABLE {self._table}")
