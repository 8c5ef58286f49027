from __future__ import annotations

import asyncio
import logging
import sys

from db2lake.config import Settings, get_settings
from db2lake.core.exceptions import PipelineError
from db2lake.runner.adapters.registry import resolve_destination, resolve_source
from db2lake.runner.orchestration.metrics import PipelineMetrics
from db2lake.runner.orchestration.pipeline import Pipeline
from db2lake.runner.services.logsink import logging_sink

logger = logging.getLogger("db2lake")


def setup_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level.upper(),
        format="%(asctime)s [%(levelname)s] [db2lake] %(message)s",
    )


def build_pipeline(settings: Settings) -> Pipeline:
    return Pipeline(
        resolve_source(settings),
        resolve_destination(settings),
        log=logging_sink(logger),
    )


async def run_once(settings: Settings) -> PipelineMetrics:
    pipeline = build_pipeline(settings)
    logger.info(
        "db2lake starting: target=%s batch_size=%s cursor_field=%s",
        settings.target_table,
        settings.batch_size,
        settings.cursor_field,
    )
    return await pipeline.run()


def main() -> int:
    settings = get_settings()
    setup_logging(settings.log_level)

    try:
        metrics = asyncio.run(run_once(settings))
    except PipelineError as exc:
        last = exc.cursor.to_dict() if exc.cursor else None
        logger.error("Pipeline FAILED: %s last_cursor=%s", exc, last)
        return 1

    logger.info(
        "Pipeline done: batches=%d rows=%d",
        metrics.batch_count,
        metrics.total_rows,
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
