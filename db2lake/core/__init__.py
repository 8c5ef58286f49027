from __future__ import annotations

from .enums import Backoff, FlushMode, LogLevel, PipelineState
from .exceptions import (
    CloseError,
    ConnectError,
    FetchError,
    NotConnectedError,
    PipelineError,
    TransformError,
    WriteError,
)

__all__ = [
    "Backoff",
    "FlushMode",
    "LogLevel",
    "PipelineState",
    "PipelineError",
    "ConnectError",
    "FetchError",
    "TransformError",
    "WriteError",
    "NotConnectedError",
    "CloseError",
]
