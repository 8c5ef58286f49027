from __future__ import annotations

from .destination import Destination
from .logger import LogFn
from .source import Batch, Row, Source
from .transform import Transform

__all__ = ["Batch", "Destination", "LogFn", "Row", "Source", "Transform"]
