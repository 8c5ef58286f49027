import asyncio
from unittest.mock import AsyncMock

import pytest

from db2lake.core.schemas import TableOptions
from db2lake.runner.services.batched_writer import BatchedWriter


class FakeWriter(BatchedWriter):
    """In-memory BatchedWriter that records every backend call."""

    backend = "fake"

    def __init__(self, *, fail_times: int = 0, **kwargs):
        self.sleep = AsyncMock()
        kwargs.setdefault("target", "fake.table")
        super().__init__(sleep=self.sleep, **kwargs)
        self.calls: list[str] = []
        self.written: list[dict] = []
        self.units: list[list[dict]] = []
        self.fail_times = fail_times
        self.in_flight = 0
        self.max_in_flight = 0

    async def _open(self):
        self.calls.append("open")

    async def _release(self):
        self.calls.append("release")

    async def _create_table(self, options: TableOptions):
        self.calls.append("create_table")

    async def _begin(self):
        self.calls.append("begin")

    async def _commit(self):
        self.calls.append("commit")

    async def _rollback(self):
        self.calls.append("rollback")

    async def _write_unit(self, rows):
        self.calls.append("write")
        if self.fail_times > 0:
            self.fail_times -= 1
            raise RuntimeError("transient")
        await super()._write_unit(rows)
        self.units.append(list(rows))

    async def _write_row(self, row):
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        await asyncio.sleep(0)
        self.in_flight -= 1
        self.written.append(row)


@pytest.fixture
def fake_writer_cls():
    return FakeWriter
