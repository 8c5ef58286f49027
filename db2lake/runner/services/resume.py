from __future__ import annotations

from db2lake.core.schemas import QuerySpec
from db2lake.runner.ports.source import Row


def resume_spec(spec: QuerySpec, last_item: Row) -> QuerySpec:
    """Return ``spec`` with its cursor parameter re-seeded from ``last_item``.

    Used to continue a failed or interrupted run from
    ``PipelineError.cursor.last_item`` (or a cursor saved by the caller).
    """
    if spec.cursor_field is None or spec.cursor_params_index is None:
        raise ValueError("QuerySpec has no cursor_field; nothing to resume from")
    if spec.cursor_field not in last_item:
        raise ValueError(f"last_item does not contain cursor_field={spec.cursor_field!r}")

    params = list(spec.params)
    params[spec.cursor_params_index] = last_item[spec.cursor_field]
    return spec.model_copy(update={"params": tuple(params)})
