from __future__ import annotations

import logging
from typing import Any, AsyncIterator, Sequence

import asyncpg

from db2lake.core.schemas import QuerySpec, TableOptions
from db2lake.runner.ports.source import Batch, Row
from db2lake.runner.services.batched_writer import BatchedWriter
from db2lake.runner.services.ddl import Dialect, create_table_sql
from db2lake.runner.services.pagination import Paginator
from db2lake.runner.services.sql_ident import qualified_name, validate_sql_ident

logger = logging.getLogger("db2lake")


# ----------------------------
# Source
# ----------------------------

class PostgresSource:
    """
    Reads a PostgreSQL query page by page over one pooled connection.

    Placeholders are asyncpg-style (``$1``, ``$2``); e.g.::

        QuerySpec(
            query="SELECT * FROM users WHERE id > $1 ORDER BY id LIMIT 100",
            params=(0,),
            cursor_field="id",
            cursor_params_index=0,
        )

    ``fetch()`` connects on first use when ``connect()`` was not called.
    """

    backend = "postgres"

    def __init__(self, spec: QuerySpec, *, dsn: str, **pool_kwargs: Any) -> None:
        self._spec = spec
        self._dsn = dsn
        self._pool_kwargs = {"min_size": 1, "max_size": 1, **pool_kwargs}
        self._pool: asyncpg.Pool | None = None
        self._conn: asyncpg.Connection | None = None
        self.paginator: Paginator | None = None

    async def connect(self) -> None:
        if self._conn is not None:
            return
        self._pool = await asyncpg.create_pool(self._dsn, **self._pool_kwargs)
        self._conn = await self._pool.acquire()

    async def fetch(self) -> AsyncIterator[Batch]:
        if self._conn is None:
            await self.connect()

        self.paginator = Paginator(self._spec, self._execute)
        async for batch in self.paginator:
            yield batch

    async def _execute(self, query: str, params: list[Any]) -> Sequence[Row]:
        if self._conn is None:
            raise RuntimeError("PostgreSQL connection is not initialized")
        return await self._conn.fetch(query, *params)

    async def close(self) -> None:
        pool, conn = self._pool, self._conn
        self._pool = None
        self._conn = None
        if pool is None:
            return
        try:
            if conn is not None:
                await pool.release(conn)
        finally:
            await pool.close()


# ----------------------------
# Destination
# ----------------------------

class PostgresDestination(BatchedWriter):
    """
    Inserts rows into a PostgreSQL table with ``executemany``.

    Every flush unit is one ``INSERT`` statement executed for all of its rows
    inside one transaction. Column list is ``columns`` or the keys of the first
    row of the unit.

    Connection policy: explicit. ``insert()`` before ``connect()`` raises
    ``NotConnectedError``.

    ``max_concurrency`` has no effect here: a flush unit is a single
    ``executemany`` on one connection.
    """

    backend = "postgres"
    dialect: Dialect = "postgres"

    def __init__(
        self,
        *,
        dsn: str,
        table: str,
        schema: str | None = None,
        columns: Sequence[str] | None = None,
        table_options: TableOptions | None = None,
        **writer_kwargs: Any,
    ) -> None:
        self._table = qualified_name(table, schema)
        super().__init__(target=self._table, table_options=table_options, **writer_kwargs)
        self._dsn = dsn
        self._columns = (
            [validate_sql_ident(c, what="column name") for c in columns] if columns else None
        )
        self._pool: asyncpg.Pool | None = None
        self._conn: asyncpg.Connection | None = None
        self._tx: Any = None

    async def _open(self) -> None:
        self._pool = await asyncpg.create_pool(self._dsn, min_size=1, max_size=1)
        self._conn = await self._pool.acquire()

    async def _release(self) -> None:
        pool, conn = self._pool, self._conn
        self._pool = None
        self._conn = None
        self._tx = None
        if pool is None:
            return
        try:
            if conn is not None:
                await pool.release(conn)
        finally:
            await pool.close()

    async def _create_table(self, options: TableOptions) -> None:
        sql = create_table_sql(self._table, options, dialect=self.dialect)
        logger.info("%s ensure table", self._ctx())
        await self._connection().execute(sql)

    async def _begin(self) -> None:
        self._tx = self._connection().transaction()
        await self._tx.start()

    async def _commit(self) -> None:
        tx, self._tx = self._tx, None
        await tx.commit()

    async def _rollback(self) -> None:
        tx, self._tx = self._tx, None
        if tx is not None:
            await tx.rollback()

    async def _write_unit(self, rows: list[dict[str, Any]]) -> None:
        cols = self._columns or [validate_sql_ident(c, what="column name") for c in rows[0]]
        placeholders = ", ".join(f"${i}" for i in range(1, len(cols) + 1))
        sql = f"INSERT INTO {self._table} ({', '.join(cols)}) VALUES ({placeholders})"
        await self._connection().executemany(sql, [tuple(r.get(c) for c in cols) for r in rows])

    def _connection(self) -> asyncpg.Connection:
        if self._conn is None:
            raise RuntimeError("PostgreSQL connection is not initialized")
        return self._conn
