from __future__ import annotations

from typing import Protocol, Sequence

from .source import Row


class Destination(Protocol):
    """Destination пишет батчи в sink; close() обязан дописать буфер."""

    async def connect(self) -> None:
        ...

    async def insert(self, rows: Sequence[Row]) -> None:
        ...

    async def close(self) -> None:
        ...
