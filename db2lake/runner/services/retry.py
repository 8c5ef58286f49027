from __future__ import annotations

from dataclasses import dataclass

from db2lake.core.constants import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_MAX_RETRY_DELAY_SECONDS,
    DEFAULT_RETRY_DELAY_SECONDS,
)
from db2lake.core.enums import Backoff


@dataclass(frozen=True, slots=True)
class RetryPolicy:
    """How many times a failed flush unit is retried and how long to wait.

    ``max_retries`` counts retries, not attempts: a unit is tried at most
    ``max_retries + 1`` times.
    """

    max_retries: int = DEFAULT_MAX_RETRIES
    delay_seconds: float = DEFAULT_RETRY_DELAY_SECONDS
    backoff: Backoff = Backoff.FIXED
    max_delay_seconds: float = DEFAULT_MAX_RETRY_DELAY_SECONDS

    def __post_init__(self) -> None:
        if isinstance(self.backoff, str):
            object.__setattr__(self, "backoff", Backoff(self.backoff))
        if self.max_retries < 0:
            raise ValueError("max_retries must be >= 0")
        if self.delay_seconds < 0:
            raise ValueError("delay_seconds must be >= 0")

    @property
    def max_attempts(self) -> int:
        return self.max_retries + 1

    def delay_for(self, attempt: int) -> float:
        """Delay before the retry that follows failed ``attempt`` (1-based)."""
        if self.backoff is Backoff.FIXED:
            return self.delay_seconds
        return min(self.delay_seconds * 2 ** (attempt - 1), self.max_delay_seconds)
