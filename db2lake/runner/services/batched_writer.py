from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Awaitable, Callable, Sequence

from db2lake.core.constants import DEFAULT_BATCH_SIZE
from db2lake.core.enums import FlushMode
from db2lake.core.exceptions import NotConnectedError, WriteError
from db2lake.core.schemas import TableOptions
from db2lake.runner.ports.source import Row
from db2lake.runner.services.logctx import ctx_prefix
from db2lake.runner.services.retry import RetryPolicy

logger = logging.getLogger("db2lake")


class BatchedWriter(ABC):
    """
    Base of every destination adapter.

    Rows are written in flush units of at most ``batch_size`` rows. Each unit is
    one transaction (when ``transactional``) and is retried as a whole according
    to ``retry``; a unit that still fails raises ``WriteError``. Units committed
    before a failure stay committed.

    ``flush_mode``:
    - IMMEDIATE: ``insert()`` writes all of its rows before returning.
    - BUFFERED: ``insert()`` buffers rows and writes full units only; the
      remainder is written by ``flush()`` / ``close()``.

    Subclasses provide the backend calls (``_open``, ``_release``, ``_begin``,
    ``_commit``, ``_rollback``, ``_create_table``) and either ``_write_row``
    or their own ``_write_unit``.
    """

    backend: str = "generic"

    # True: insert() connects on first use; False: insert() before connect() fails
    lazy_connect: bool = False

    def __init__(
        self,
        *,
        target: str,
        batch_size: int = DEFAULT_BATCH_SIZE,
        flush_mode: FlushMode = FlushMode.IMMEDIATE,
        transactional: bool = True,
        max_concurrency: int = 1,
        retry: RetryPolicy | None = None,
        table_options: TableOptions | None = None,
        sleep: Callable[[float], Awaitable[Any]] | None = None,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be >= 1")
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be >= 1")

        self._target = target
        self._batch_size = batch_size
        self._flush_mode = FlushMode(flush_mode)
        self._transactional = transactional
        self._max_concurrency = max_concurrency
        self._retry = retry or RetryPolicy()
        self._table_options = table_options
        self._sleep = sleep or asyncio.sleep

        self._pending: list[dict[str, Any]] = []
        self._in_transaction = False
        self._connected = False

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def pending(self) -> int:
        return len(self._pending)

    # ----------------------------
    # Destination contract
    # ----------------------------

    async def connect(self) -> None:
        if self._connected:
            return

        try:
            await self._open()
            self._connected = True
            if self._table_options is not None:
                await self._create_table(self._table_options)
            await self._after_connect()
        except Exception:
            await self._release_quietly()
            raise

        logger.info("%s connected", self._ctx())

    async def insert(self, rows: Sequence[Row]) -> None:
        if not rows:
            return
        await self._ensure_connected()

        if self._flush_mode is FlushMode.IMMEDIATE:
            for i in range(0, len(rows), self._batch_size):
                await self._flush_unit([dict(r) for r in rows[i:i + self._batch_size]])
            return

        self._pending.extend(dict(r) for r in rows)
        while len(self._pending) >= self._batch_size:
            unit = self._pending[:self._batch_size]
            self._pending = self._pending[self._batch_size:]
            await self._flush_unit(unit)

    async def flush(self) -> None:
        """Write everything still buffered."""
        while self._pending:
            unit = self._pending[:self._batch_size]
            self._pending = self._pending[self._batch_size:]
            await self._flush_unit(unit)

    async def close(self) -> None:
        if not self._connected:
            return
        try:
            await self.flush()
        finally:
            self._pending = []
            self._in_transaction = False
            self._connected = False
            await self._release()
            logger.info("%s closed", self._ctx())

    # ----------------------------
    # Flush unit
    # ----------------------------

    async def _flush_unit(self, rows: list[dict[str, Any]]) -> None:
        max_attempts = self._retry.max_attempts
        last_exc: Exception | None = None

        for attempt in range(1, max_attempts + 1):
            try:
                if self._transactional:
                    await self._begin()
                    self._in_transaction = True

                await self._write_unit(rows)

                if self._in_transaction:
                    await self._commit()
                    self._in_transaction = False

                logger.debug("%s flushed rows=%d", self._ctx(attempt), len(rows))
                return

            except Exception as exc:
                last_exc = exc
                if self._in_transaction:
                    await self._rollback_quietly(attempt)

                if attempt >= max_attempts:
                    break

                delay = self._retry.delay_for(attempt)
                logger.warning(
                    "%s flush of %d rows FAILED: %r. Retrying in %ss",
                    self._ctx(attempt), len(rows), exc, delay,
                )
                await self._sleep(delay)

        logger.error(
            "%s flush of %d rows failed after %d attempt(s): %r",
            self._ctx(), len(rows), max_attempts, last_exc,
        )
        raise WriteError(
            f"Failed to write {len(rows)} rows into {self._target}: {last_exc!r}",
            attempts=max_attempts,
        ) from last_exc

    async def _write_unit(self, rows: list[dict[str, Any]]) -> None:
        await self._gather_bounded(rows, self._write_row)

    async def _gather_bounded(
        self,
        items: Sequence[Any],
        fn: Callable[[Any], Awaitable[Any]],
    ) -> None:
        """Run ``fn`` over ``items`` with at most ``max_concurrency`` in flight.

        Waits for every call before raising the first error, so nothing is
        still writing when the transaction is rolled back.
        """
        sem = asyncio.Semaphore(self._max_concurrency)

        async def _one(item: Any) -> None:
            async with sem:
                await fn(item)

        results = await asyncio.gather(*(_one(i) for i in items), return_exceptions=True)
        for res in results:
            if isinstance(res, BaseException):
                raise res

    async def _rollback_quietly(self, attempt: int) -> None:
        try:
            await self._rollback()
        except Exception:
            # исходная ошибка важнее ошибки rollback
            logger.exception("%s rollback failed", self._ctx(attempt))
        finally:
            self._in_transaction = False

    async def _release_quietly(self) -> None:
        self._connected = False
        try:
            await self._release()
        except Exception:
            logger.exception("%s release after failed connect failed", self._ctx())

    async def _ensure_connected(self) -> None:
        if self._connected:
            return
        if self.lazy_connect:
            await self.connect()
            return
        raise NotConnectedError(f"Not connected to {self.backend}. Call connect() first.")

    def _ctx(self, attempt: int | None = None) -> str:
        return ctx_prefix(backend=self.backend, target=self._target, attempt=attempt)

    # ----------------------------
    # Backend hooks
    # ----------------------------

    @abstractmethod
    async def _open(self) -> None:
        ...

    @abstractmethod
    async def _release(self) -> None:
        # also called after a partially failed _open()
        ...

    async def _create_table(self, options: TableOptions) -> None:
        raise NotImplementedError(f"{self.backend} writer cannot create tables")

    async def _after_connect(self) -> None:
        return None

    async def _begin(self) -> None:
        raise NotImplementedError(f"{self.backend} writer has no transactions")

    async def _commit(self) -> None:
        raise NotImplementedError(f"{self.backend} writer has no transactions")

    async def _rollback(self) -> None:
        raise NotImplementedError(f"{self.backend} writer has no transactions")

    async def _write_row(self, row: dict[str, Any]) -> None:
        raise NotImplementedError(f"{self.backend} writer must implement _write_row or _write_unit")
