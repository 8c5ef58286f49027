from __future__ import annotations

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_RETRIES = 3
DEFAULT_RETRY_DELAY_SECONDS = 1.0
DEFAULT_MAX_RETRY_DELAY_SECONDS = 30.0

ES_TARGET_PREFIX = "es:"

POSTGRES_SCHEMES: frozenset[str] = frozenset({"postgresql", "postgres"})
REDSHIFT_SCHEME = "redshift"


def target_index(target: str) -> str | None:
    """Return the index name for an ``es:<index>`` target, else ``None``."""
    target = (target or "").strip()
    if not target.startswith(ES_TARGET_PREFIX):
        return None
    idx = target.removeprefix(ES_TARGET_PREFIX).strip()
    if not idx:
        raise ValueError("ES index is empty. Use target_table like 'es:film_dim'")
    return idx
