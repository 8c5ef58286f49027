from __future__ import annotations

import inspect
import logging
from typing import Any, Mapping, NoReturn, Sequence

from db2lake.core.enums import LogLevel, PipelineState
from db2lake.core.exceptions import (
    CloseError,
    ConnectError,
    FetchError,
    PipelineError,
    TransformError,
    WriteError,
)
from db2lake.runner.orchestration.metrics import PipelineCursor, PipelineMetrics
from db2lake.runner.ports.destination import Destination
from db2lake.runner.ports.logger import LogFn
from db2lake.runner.ports.source import Batch, Row, Source
from db2lake.runner.ports.transform import Transform
from db2lake.runner.services.time_utils import utcnow_iso

logger = logging.getLogger("db2lake")


class Pipeline:
    """
    Moves batches from a Source to a Destination.

    Lifecycle: IDLE -> CONNECTED -> PROCESSING -> COMPLETED | FAILED -> CLEANED_UP.

    - ``run()`` connects, processes every batch, and always cleans up.
    - One batch is transformed and inserted before the next one is fetched.
    - After each inserted batch the metrics and the cursor are updated; the
      cursor keeps the last *source* row (before transform), so it can be used
      to re-seed the query of the next run.
    - Any failure aborts the run and surfaces as a ``PipelineError`` subclass
      carrying the last cursor; metrics keep the last successful batch.
      When processing fails, errors of the following cleanup are only logged.
    - A ``WriteError`` from ``Destination.close()`` (the final flush of a
      buffering destination) fails the run. Other close failures are logged;
      both adapters failing to close raises ``CloseError``.

    Events are reported through the optional ``log`` function; without it the
    pipeline is silent.
    """

    def __init__(
        self,
        source: Source,
        destination: Destination,
        transform: Transform | None = None,
        log: LogFn | None = None,
    ) -> None:
        self._source = source
        self._destination = destination
        self._transform = transform
        self._log_fn = log

        self._state = PipelineState.IDLE
        self._connected = False
        self._batch_count = 0
        self._total_rows = 0
        self._cursor: PipelineCursor | None = None

    @property
    def state(self) -> PipelineState:
        return self._state

    @property
    def connected(self) -> bool:
        return self._connected

    def metrics(self) -> PipelineMetrics:
        return PipelineMetrics(
            batch_count=self._batch_count,
            total_rows=self._total_rows,
            cursor=self._cursor,
        )

    async def run(self) -> PipelineMetrics:
        await self.connect()
        try:
            await self.process()
        except BaseException:
            # причина падения важнее ошибок закрытия, они уже залогированы
            try:
                await self.cleanup()
            except PipelineError:
                logger.debug("cleanup after failed run also failed", exc_info=True)
            raise
        await self.cleanup()
        return self.metrics()

    async def connect(self) -> None:
        if self._connected:
            return

        self._log(LogLevel.INFO, "Establishing connections...")
        try:
            await self._source.connect()
            await self._destination.connect()
        except Exception as exc:
            self._log(LogLevel.ERROR, "Failed to establish connections", {"error": repr(exc)})
            try:
                await self.cleanup()
            except PipelineError:
                # cleanup() уже залогировал ошибки закрытия
                logger.debug("cleanup after failed connect also failed", exc_info=True)
            raise ConnectError(f"Failed to establish connections: {exc!r}") from exc

        self._connected = True
        self._state = PipelineState.CONNECTED
        self._log(LogLevel.INFO, "Connections established successfully")

    async def process(self) -> None:
        self._state = PipelineState.PROCESSING
        self._log(LogLevel.INFO, "Starting data processing")

        try:
            batches = self._source.fetch()
        except Exception as exc:
            self._fail(FetchError(f"Failed to start fetching: {exc!r}"), exc)

        try:
            while True:
                try:
                    batch = await anext(batches)
                except StopAsyncIteration:
                    break
                except Exception as exc:
                    self._fail(
                        FetchError(f"Failed to fetch batch {self._batch_count + 1}: {exc!r}"),
                        exc,
                    )
                await self._process_batch(batch)
        finally:
            aclose = getattr(batches, "aclose", None)
            if aclose is not None:
                await aclose()

        self._state = PipelineState.COMPLETED
        self._log(
            LogLevel.INFO,
            "Data processing completed",
            {
                "total_batches": self._batch_count,
                "total_rows": self._total_rows,
                "final_cursor": self._cursor.to_dict() if self._cursor else None,
            },
        )

    async def cleanup(self) -> None:
        self._log(LogLevel.INFO, "Cleaning up resources...")
        errors: list[Exception] = []

        try:
            await self._source.close()
        except Exception as exc:
            errors.append(exc)
            self._log(LogLevel.ERROR, "Failed to close source connection", {"error": repr(exc)})

        flush_error: WriteError | None = None
        try:
            await self._destination.close()
        except WriteError as exc:
            # буфер не дописан: строки потеряны, это не просто ошибка закрытия
            flush_error = exc
            errors.append(exc)
            self._log(
                LogLevel.ERROR,
                "Failed to flush destination on close",
                {"error": repr(exc), "last_cursor": self._cursor_dict()},
            )
        except Exception as exc:
            errors.append(exc)
            self._log(LogLevel.ERROR, "Failed to close destination connection", {"error": repr(exc)})

        self._connected = False
        self._state = PipelineState.CLEANED_UP

        if flush_error is not None:
            raise flush_error.with_cursor(self._cursor)

        if len(errors) == 2:
            self._log(LogLevel.ERROR, "Cleanup failed", {"errors": [repr(e) for e in errors]})
            raise CloseError(
                "Failed to close both source and destination",
                errors=errors,
                cursor=self._cursor,
            ) from errors[-1]

        self._log(LogLevel.INFO, "Cleanup completed", {"cursor": self._cursor_dict()})

    # ----------------------------
    # internals
    # ----------------------------

    async def _process_batch(self, batch: Batch) -> None:
        number = self._batch_count + 1

        try:
            rows = await self._apply_transform(batch)
        except Exception as exc:
            self._fail(TransformError(f"Transform failed on batch {number}: {exc!r}"), exc, batch)

        try:
            if rows:
                await self._destination.insert(rows)
        except PipelineError as exc:
            self._fail(exc, exc.__cause__, batch)
        except Exception as exc:
            self._fail(WriteError(f"Failed to insert batch {number}: {exc!r}"), exc, batch)

        self._batch_count = number
        self._total_rows += len(batch)
        self._cursor = PipelineCursor(
            position=self._total_rows,
            last_item=batch[-1],
            timestamp=utcnow_iso(),
        )

        self._log(
            LogLevel.DEBUG,
            f"Processed batch {number}",
            {
                "batch_size": len(batch),
                "total_rows": self._total_rows,
                "cursor": self._cursor.to_dict(),
            },
        )

    async def _apply_transform(self, batch: Batch) -> Sequence[Row]:
        if self._transform is None:
            return batch

        res = self._transform(batch)
        if inspect.isawaitable(res):
            res = await res

        if isinstance(res, (str, bytes)) or not isinstance(res, Sequence):
            raise TypeError(f"Transform must return a sequence of rows, got {type(res)!r}")
        return res

    def _fail(
        self,
        err: PipelineError,
        cause: BaseException | None,
        batch: Batch | None = None,
    ) -> NoReturn:
        self._state = PipelineState.FAILED
        err.with_cursor(self._cursor)
        self._log(
            LogLevel.ERROR,
            "Data processing failed",
            {
                "error": repr(cause if cause is not None else err),
                "error_type": type(err).__name__,
                "batch_size": len(batch) if batch is not None else None,
                "last_cursor": self._cursor_dict(),
            },
        )
        if cause is None:
            raise err
        raise err from cause

    def _cursor_dict(self) -> dict[str, Any] | None:
        return self._cursor.to_dict() if self._cursor else None

    def _log(self, level: LogLevel, message: str, data: Mapping[str, Any] | None = None) -> None:
        if self._log_fn is not None:
            self._log_fn(level, message, data)
