from __future__ import annotations

from typing import Any
from urllib.parse import urlsplit

from db2lake.config import Settings
from db2lake.core.constants import POSTGRES_SCHEMES, REDSHIFT_SCHEME, target_index
from db2lake.core.schemas import QuerySpec
from db2lake.runner.adapters.es import ElasticsearchDestination, ESConfig
from db2lake.runner.adapters.postgres import PostgresDestination, PostgresSource
from db2lake.runner.adapters.redshift import RedshiftDestination
from db2lake.runner.adapters.sql import SqlAlchemyDestination, SqlAlchemySource
from db2lake.runner.ports.destination import Destination
from db2lake.runner.ports.source import Source
from db2lake.runner.services.retry import RetryPolicy


def _scheme(url: str) -> str:
    return urlsplit(url or "").scheme.lower()


def build_query_spec(settings: Settings) -> QuerySpec:
    if not settings.source_query.strip():
        raise ValueError("DB2LAKE_SOURCE_QUERY is empty")
    return QuerySpec(
        query=settings.source_query,
        params=tuple(settings.source_params),
        cursor_field=settings.cursor_field,
        cursor_params_index=settings.cursor_params_index,
    )


def build_retry_policy(settings: Settings) -> RetryPolicy:
    return RetryPolicy(
        max_retries=settings.max_retries,
        delay_seconds=settings.retry_delay_seconds,
        backoff=settings.retry_backoff,
    )


def resolve_source(settings: Settings) -> Source:
    spec = build_query_spec(settings)
    scheme = _scheme(settings.source_url)

    if scheme in POSTGRES_SCHEMES:
        return PostgresSource(spec, dsn=settings.source_url)
    if "+" in scheme:
        return SqlAlchemySource(spec, url=settings.source_url)

    raise ValueError(f"Unsupported source_url scheme: {scheme!r}")


def resolve_destination(settings: Settings) -> Destination:
    target = (settings.target_table or "").strip()
    if not target:
        raise ValueError("DB2LAKE_TARGET_TABLE is empty")

    common: dict[str, Any] = {
        "batch_size": settings.batch_size,
        "max_concurrency": settings.max_concurrency,
        "retry": build_retry_policy(settings),
    }

    index = target_index(target)
    if index is not None:
        cfg = ESConfig(
            url=settings.elasticsearch_url,
            user=settings.elasticsearch_user or None,
            password=settings.elasticsearch_password or None,
            timeout=settings.elasticsearch_timeout,
        )
        return ElasticsearchDestination(cfg, index=index, **common)

    common["transactional"] = settings.transaction_enabled
    if settings.target_schema:
        common["schema"] = settings.target_schema

    url = settings.target_url
    scheme = _scheme(url)

    if scheme == REDSHIFT_SCHEME:
        dsn = "postgresql://" + url.split("://", 1)[1]
        return RedshiftDestination(dsn=dsn, table=target, truncate=settings.truncate, **common)
    if scheme in POSTGRES_SCHEMES:
        return PostgresDestination(dsn=url, table=target, **common)
    if "+" in scheme:
        return SqlAlchemyDestination(url=url, table=target, **common)

    raise ValueError(f"Unsupported target_url scheme: {scheme!r}")
