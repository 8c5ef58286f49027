from datetime import datetime
from decimal import Decimal
from unittest.mock import AsyncMock, MagicMock
from uuid import UUID

import pytest

from db2lake.core.exceptions import NotConnectedError, WriteError
from db2lake.runner.adapters.es import ElasticsearchDestination, ESConfig
from db2lake.runner.services.retry import RetryPolicy


def _client(exists=True):
    client = MagicMock()
    client.indices.exists = AsyncMock(return_value=exists)
    client.indices.create = AsyncMock()
    client.bulk = AsyncMock(return_value={"errors": False, "items": []})
    client.close = AsyncMock()
    return client


def _dest(client, **kwargs):
    kwargs.setdefault("retry", RetryPolicy(max_retries=0, delay_seconds=0))
    return ElasticsearchDestination(ESConfig(url="http://es:9200"), client=client, **kwargs)


@pytest.mark.asyncio
async def test_upsert_by_id_field_with_normalized_values():
    client = _client()
    dest = _dest(client, index="film_dim", id_field="film_id")
    uid = UUID("00000000-0000-0000-0000-000000000001")

    await dest.connect()
    await dest.insert([
        {"film_id": uid, "rating": Decimal("7.5"), "updated_at": datetime(2024, 1, 2, 3, 4, 5)},
    ])

    ops = client.bulk.await_args.kwargs["operations"]
    assert ops == [
        {"update": {"_index": "film_dim", "_id": str(uid)}},
        {
            "doc": {"film_id": str(uid), "rating": 7.5, "updated_at": "2024-01-02T03:04:05"},
            "doc_as_upsert": True,
        },
    ]


@pytest.mark.asyncio
async def test_without_id_field_documents_are_indexed():
    client = _client()
    dest = _dest(client, index="events")

    await dest.connect()
    await dest.insert([{"a": 1}])

    ops = client.bulk.await_args.kwargs["operations"]
    assert ops == [{"index": {"_index": "events"}}, {"a": 1}]


@pytest.mark.asyncio
async def test_unit_is_split_into_bulk_chunks():
    client = _client()
    dest = _dest(client, index="events", bulk_chunk_size=2, batch_size=5)

    await dest.connect()
    await dest.insert([{"n": i} for i in range(5)])

    sizes = sorted(len(c.kwargs["operations"]) // 2 for c in client.bulk.await_args_list)
    assert sizes == [1, 2, 2]


@pytest.mark.asyncio
async def test_bulk_errors_raise_write_error_after_retries():
    client = _client()
    client.bulk.return_value = {
        "errors": True,
        "items": [{"update": {"_id": "1", "error": {"type": "mapper_parsing_exception"}}}],
    }
    dest = _dest(
        client, index="film_dim", id_field="id", retry=RetryPolicy(max_retries=1, delay_seconds=0)
    )
    await dest.connect()

    with pytest.raises(WriteError) as e:
        await dest.insert([{"id": 1}])

    assert e.value.attempts == 2
    assert client.bulk.await_count == 2
    assert "mapper_parsing_exception" in str(e.value.__cause__)


@pytest.mark.asyncio
async def test_missing_id_field_fails_the_unit():
    client = _client()
    dest = _dest(client, index="film_dim", id_field="film_id")
    await dest.connect()

    with pytest.raises(WriteError) as e:
        await dest.insert([{"id": 1}])

    assert isinstance(e.value.__cause__, ValueError)
    client.bulk.assert_not_awaited()


@pytest.mark.asyncio
async def test_index_created_when_missing():
    client = _client(exists=False)
    mappings = {"properties": {"title": {"type": "text"}}}
    dest = _dest(client, index="film_dim", mappings=mappings)

    await dest.connect()

    client.indices.create.assert_awaited_once_with(index="film_dim", mappings=mappings)


@pytest.mark.asyncio
async def test_existing_index_is_left_alone_and_injected_client_not_closed():
    client = _client(exists=True)
    dest = _dest(client, index="film_dim")

    await dest.connect()
    await dest.close()

    client.indices.create.assert_not_awaited()
    client.close.assert_not_awaited()


@pytest.mark.asyncio
async def test_insert_before_connect_fails():
    dest = _dest(_client(), index="film_dim")

    with pytest.raises(NotConnectedError):
        await dest.insert([{"id": 1}])


def test_es_writer_is_never_transactional():
    dest = _dest(_client(), index="film_dim", transactional=True)

    assert dest._transactional is False
