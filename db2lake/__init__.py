from __future__ import annotations

from db2lake.core.enums import Backoff, FlushMode, LogLevel, PipelineState
from db2lake.core.exceptions import (
    CloseError,
    ConnectError,
    FetchError,
    NotConnectedError,
    PipelineError,
    TransformError,
    WriteError,
)
from db2lake.core.schemas import Column, QuerySpec, TableOptions
from db2lake.runner.orchestration.metrics import PipelineCursor, PipelineMetrics
from db2lake.runner.orchestration.pipeline import Pipeline
from db2lake.runner.services.batched_writer import BatchedWriter
from db2lake.runner.services.logsink import logging_sink
from db2lake.runner.services.pagination import Paginator
from db2lake.runner.services.resume import resume_spec
from db2lake.runner.services.retry import RetryPolicy

__all__ = [
    "Backoff",
    "BatchedWriter",
    "CloseError",
    "Column",
    "ConnectError",
    "FetchError",
    "FlushMode",
    "LogLevel",
    "NotConnectedError",
    "Paginator",
    "Pipeline",
    "PipelineCursor",
    "PipelineError",
    "PipelineMetrics",
    "PipelineState",
    "QuerySpec",
    "RetryPolicy",
    "TableOptions",
    "TransformError",
    "WriteError",
    "logging_sink",
    "resume_spec",
]
