from __future__ import annotations

from enum import Enum


class LogLevel(str, Enum):
    ERROR = "error"
    INFO = "info"
    DEBUG = "debug"


class PipelineState(str, Enum):
    IDLE = "IDLE"
    CONNECTED = "CONNECTED"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    CLEANED_UP = "CLEANED_UP"


class FlushMode(str, Enum):
    IMMEDIATE = "immediate"
    BUFFERED = "buffered"


class Backoff(str, Enum):
    FIXED = "fixed"
    EXPONENTIAL = "exponential"
