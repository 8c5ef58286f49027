from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from db2lake.runner.orchestration.metrics import PipelineCursor


class PipelineError(Exception):
    """Base error of a pipeline run.

    ``cursor`` is the last progress snapshot known when the error surfaced,
    so the caller can see how far the run got and re-seed the next one.
    """

    def __init__(self, message: str, *, cursor: PipelineCursor | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.cursor = cursor

    def with_cursor(self, cursor: PipelineCursor | None) -> PipelineError:
        self.cursor = cursor
        return self


class ConnectError(PipelineError):
    """Source or destination failed to connect; no data was moved."""


class FetchError(PipelineError):
    """A fetch from the source failed. Reads are not retried."""


class TransformError(PipelineError):
    """The transform raised; nothing of the batch was inserted."""


class WriteError(PipelineError):
    """A flush unit failed after all retries were used."""

    def __init__(
        self,
        message: str,
        *,
        attempts: int = 0,
        cursor: PipelineCursor | None = None,
    ) -> None:
        super().__init__(message, cursor=cursor)
        self.attempts = attempts


class NotConnectedError(WriteError):
    """insert() was called before connect() on a destination that needs it."""


class CloseError(PipelineError):
    """Both the source and the destination failed to close."""

    def __init__(
        self,
        message: str,
        *,
        errors: Sequence[BaseException] = (),
        cursor: PipelineCursor | None = None,
    ) -> None:
        super().__init__(message, cursor=cursor)
        self.errors = tuple(errors)
