from __future__ import annotations

from typing import Any, Callable, Mapping, TypeAlias

from db2lake.core.enums import LogLevel

LogFn: TypeAlias = Callable[[LogLevel, str, Mapping[str, Any] | None], None]
