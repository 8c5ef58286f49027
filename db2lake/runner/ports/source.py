from __future__ import annotations

from typing import Any, AsyncIterator, Mapping, Protocol


Row = Mapping[str, Any]
Batch = list[dict[str, Any]]


class Source(Protocol):
    """Source отдаёт строки батчами; пустой батч никогда не отдаётся."""

    async def connect(self) -> None:
        ...

    def fetch(self) -> AsyncIterator[Batch]:
        """Ленивая конечная последовательность непустых батчей."""
        ...

    async def close(self) -> None:
        ...
