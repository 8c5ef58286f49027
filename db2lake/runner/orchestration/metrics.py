from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from db2lake.runner.ports.source import Row


@dataclass(frozen=True, slots=True)
class PipelineCursor:
    position: int  # rows processed so far
    last_item: Row  # last row of the last batch, before transform
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "position": self.position,
            "last_item": dict(self.last_item),
            "timestamp": self.timestamp,
        }


@dataclass(frozen=True, slots=True)
class PipelineMetrics:
    batch_count: int = 0
    total_rows: int = 0
    cursor: PipelineCursor | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "batch_count": self.batch_count,
            "total_rows": self.total_rows,
            "cursor": self.cursor.to_dict() if self.cursor else None,
        }
