from __future__ import annotations

import logging
import re
from typing import Any, AsyncIterator, Sequence

from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine, AsyncTransaction, create_async_engine

from db2lake.core.enums import FlushMode
from db2lake.core.schemas import QuerySpec, TableOptions
from db2lake.runner.ports.source import Batch, Row
from db2lake.runner.services.batched_writer import BatchedWriter
from db2lake.runner.services.ddl import create_table_sql, dialect_for
from db2lake.runner.services.pagination import Paginator
from db2lake.runner.services.sql_ident import qualified_name, validate_sql_ident

logger = logging.getLogger("db2lake")

_POSITIONAL_BIND_RE = re.compile(r"(?<![:\w]):p(\d+)\b")


def positional_binds(query: str, params: Sequence[Any]) -> dict[str, Any]:
    """Map ordered params to the ``:p0``, ``:p1`` ... binds used in ``query``."""
    used = {int(m) for m in _POSITIONAL_BIND_RE.findall(query)}
    missing = sorted(i for i in used if i >= len(params))
    if missing:
        raise ValueError(f"query uses :p{missing[0]} but only {len(params)} params are given")
    return {f"p{i}": params[i] for i in sorted(used)}


# ----------------------------
# Source
# ----------------------------

class SqlAlchemySource:
    """
    Reads from any database with an async SQLAlchemy dialect
    (``mysql+aiomysql://``, ``sqlite+aiosqlite://``, ``postgresql+asyncpg://`` ...).

    Params of the QuerySpec are bound by position as ``:p0``, ``:p1`` ...::

        QuerySpec(
            query="SELECT * FROM users WHERE id > :p0 ORDER BY id LIMIT 100",
            params=(0,),
            cursor_field="id",
            cursor_params_index=0,
        )
    """

    backend = "sqlalchemy"

    def __init__(
        self,
        spec: QuerySpec,
        *,
        url: str | None = None,
        engine: AsyncEngine | None = None,
    ) -> None:
        if (url is None) == (engine is None):
            raise ValueError("Pass exactly one of url or engine")
        self._spec = spec
        self._url = url
        self._engine = engine
        self._owns_engine = engine is None
        self._conn: AsyncConnection | None = None
        self.paginator: Paginator | None = None

    async def connect(self) -> None:
        if self._conn is not None:
            return
        if self._engine is None:
            self._engine = create_async_engine(self._url, pool_pre_ping=True)
        self._conn = await self._engine.connect()

    async def fetch(self) -> AsyncIterator[Batch]:
        if self._conn is None:
            await self.connect()

        self.paginator = Paginator(self._spec, self._execute)
        async for batch in self.paginator:
            yield batch

    async def _execute(self, query: str, params: list[Any]) -> Sequence[Row]:
        if self._conn is None:
            raise RuntimeError("Database connection is not initialized")
        res = await self._conn.execute(text(query), positional_binds(query, params))
        return res.mappings().all()

    async def close(self) -> None:
        conn, self._conn = self._conn, None
        try:
            if conn is not None:
                await conn.close()
        finally:
            if self._owns_engine and self._engine is not None:
                engine, self._engine = self._engine, None
                await engine.dispose()


# ----------------------------
# Destination
# ----------------------------

class SqlAlchemyDestination(BatchedWriter):
    """
    Buffered sink for any async SQLAlchemy dialect.

    Rows are buffered and written ``batch_size`` at a time with one
    executemany ``INSERT`` per flush unit; ``close()`` writes the rest.

    Connection policy: lazy. The first ``insert()`` connects when
    ``connect()`` was not called. ``max_concurrency`` has no effect, one
    statement is issued per flush unit.

    DDL follows the engine dialect: ``CLUSTER BY`` is emitted only for
    Snowflake/Databricks, column comments also for MySQL/MariaDB; other
    dialects get plain ``CREATE TABLE``.
    """

    backend = "sqlalchemy"
    lazy_connect = True

    def __init__(
        self,
        *,
        table: str,
        schema: str | None = None,
        url: str | None = None,
        engine: AsyncEngine | None = None,
        columns: Sequence[str] | None = None,
        table_options: TableOptions | None = None,
        flush_mode: FlushMode = FlushMode.BUFFERED,
        **writer_kwargs: Any,
    ) -> None:
        if (url is None) == (engine is None):
            raise ValueError("Pass exactly one of url or engine")
        self._table = qualified_name(table, schema)
        super().__init__(
            target=self._table,
            table_options=table_options,
            flush_mode=flush_mode,
            **writer_kwargs,
        )
        self._url = url
        self._engine = engine
        self._owns_engine = engine is None
        self._columns = (
            [validate_sql_ident(c, what="column name") for c in columns] if columns else None
        )
        self._conn: AsyncConnection | None = None
        self._tx: AsyncTransaction | None = None

    async def _open(self) -> None:
        if self._engine is None:
            self._engine = create_async_engine(self._url, pool_pre_ping=True)
        conn = await self._engine.connect()
        if not self._transactional:
            conn = await conn.execution_options(isolation_level="AUTOCOMMIT")
        self._conn = conn

    async def _release(self) -> None:
        conn, self._conn = self._conn, None
        self._tx = None
        try:
            if conn is not None:
                await conn.close()
        finally:
            if self._owns_engine and self._engine is not None:
                engine, self._engine = self._engine, None
                await engine.dispose()

    async def _create_table(self, options: TableOptions) -> None:
        conn = self._connection()
        logger.info("%s ensure table", self._ctx())
        sql = create_table_sql(self._table, options, dialect=dialect_for(conn.dialect.name))
        await conn.execute(text(sql))
        # DDL не должен висеть в autobegin-транзакции перед BEGIN первого flush
        await conn.commit()

    async def _begin(self) -> None:
        self._tx = await self._connection().begin()

    async def _commit(self) -> None:
        tx, self._tx = self._tx, None
        if tx is not None:
            await tx.commit()

    async def _rollback(self) -> None:
        tx, self._tx = self._tx, None
        if tx is not None:
            await tx.rollback()

    async def _write_unit(self, rows: list[dict[str, Any]]) -> None:
        cols = self._columns or [validate_sql_ident(c, what="column name") for c in rows[0]]
        stmt = text(
            f"INSERT INTO {self._table} ({', '.join(cols)}) "
            f"VALUES ({', '.join(':' + c for c in cols)})"
        )
        await self._connection().execute(stmt, [{c: r.get(c) for c in cols} for r in rows])
        if not self._transactional:
            await self._connection().commit()

    def _connection(self) -> AsyncConnection:
        if self._conn is None:
            raise RuntimeError("Database connection is not initialized")
        return self._conn
