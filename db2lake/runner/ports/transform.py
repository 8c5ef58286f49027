from __future__ import annotations

from typing import Awaitable, Callable, Sequence, TypeAlias

from .source import Row

# sync-функция или корутина, вызывается один раз на батч
Transform: TypeAlias = Callable[
    [Sequence[Row]], Sequence[Row] | Awaitable[Sequence[Row]]
]
