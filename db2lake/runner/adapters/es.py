from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Any
from uuid import UUID

from elasticsearch import AsyncElasticsearch

from db2lake.runner.services.batched_writer import BatchedWriter

logger = logging.getLogger("db2lake")


@dataclass(frozen=True, slots=True)
class ESConfig:
    url: str
    user: str | None = None
    password: str | None = None
    timeout: int = 10


def _jsonify(v):
    if v is None:
        return None
    if isinstance(v, UUID):
        return str(v)
    if isinstance(v, Decimal):
        return float(v)
    if isinstance(v, (datetime, date)):
        return v.isoformat()
    return v


def _normalize_row(row: dict) -> dict:
    return {k: _jsonify(val) for k, val in row.items()}


class ElasticsearchDestination(BatchedWriter):
    """
    Upsert rows into an Elasticsearch index with bulk update (doc_as_upsert).

    Elasticsearch has no transactions: a flush unit is split into bulk
    requests of ``bulk_chunk_size`` documents, sent with at most
    ``max_concurrency`` requests in flight, and the whole unit is retried on
    error. With ``id_field`` documents are upserted by id and a retry does not
    duplicate them; without it every attempt indexes new documents.

    Connection policy: explicit, ``insert()`` before ``connect()`` fails.
    """

    backend = "elasticsearch"

    def __init__(
        self,
        cfg: ESConfig,
        *,
        index: str,
        id_field: str | None = None,
        mappings: dict[str, Any] | None = None,
        bulk_chunk_size: int = 500,
        client: AsyncElasticsearch | None = None,
        **writer_kwargs: Any,
    ) -> None:
        writer_kwargs["transactional"] = False
        super().__init__(target=f"es:{index}", **writer_kwargs)
        if bulk_chunk_size < 1:
            raise ValueError("bulk_chunk_size must be >= 1")
        self._cfg = cfg
        self._index = index
        self._id_field = id_field
        self._mappings = mappings
        self._bulk_chunk_size = bulk_chunk_size
        self._client = client
        self._owns_client = client is None

    async def _open(self) -> None:
        if self._client is not None:
            return
        auth = None
        if self._cfg.user:
            auth = (self._cfg.user, self._cfg.password or "")
        self._client = AsyncElasticsearch(
            hosts=[self._cfg.url],
            basic_auth=auth,
            request_timeout=self._cfg.timeout,
        )

    async def _release(self) -> None:
        client = self._client
        if self._owns_client:
            self._client = None
        if client is not None and self._owns_client:
            await client.close()

    async def _after_connect(self) -> None:
        client = self._es()
        if await client.indices.exists(index=self._index):
            return
        body = {"mappings": self._mappings} if self._mappings else {"mappings": {"dynamic": True}}
        logger.info("%s create index", self._ctx())
        await client.indices.create(index=self._index, **body)

    async def _write_unit(self, rows: list[dict[str, Any]]) -> None:
        chunks = [
            rows[i:i + self._bulk_chunk_size]
            for i in range(0, len(rows), self._bulk_chunk_size)
        ]
        await self._gather_bounded(chunks, self._bulk)

    async def _bulk(self, rows: list[dict[str, Any]]) -> None:
        ops: list[dict] = []
        for raw in rows:
            r = _normalize_row(raw)
            if self._id_field is None:
                ops.append({"index": {"_index": self._index}})
                ops.append(r)
                continue

            if self._id_field not in r:
                raise ValueError(
                    f"ES writer expects field {self._id_field!r} in row. "
                    f"Row keys={list(r.keys())}"
                )
            ops.append({"update": {"_index": self._index, "_id": str(r[self._id_field])}})
            ops.append({"doc": r, "doc_as_upsert": True})

        resp = await self._es().bulk(operations=ops, refresh=False)

        if resp.get("errors"):
            first_err = None
            for it in resp.get("items") or []:
                v = (it.get("update") or it.get("index")
                     or it.get("create") or it.get("delete"))
                if v and v.get("error"):
                    first_err = v
                    break
            raise RuntimeError(f"Elasticsearch bulk errors=True. first_error={first_err!r}")

    def _es(self) -> AsyncElasticsearch:
        if self._client is None:
            raise RuntimeError("Elasticsearch client is not initialized")
        return self._client
