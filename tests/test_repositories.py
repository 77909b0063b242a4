"""Unit tests for the asyncpg repositories.

Uses a mocked pool to avoid a database dependency.
"""
from __future__ import annotations

from contextlib import asynccontextmanager
from datetime import datetime, timezone
from unittest.mock import AsyncMock
from uuid import uuid4

import pytest

from webhook_delivery.core.exceptions import NotFoundError
from webhook_delivery.repositories import (
    PostgresDeliveryAttemptRepository,
    PostgresDestinationRepository,
)

NOW = datetime(2024, 1, 1, tzinfo=timezone.utc)


class FakePool:
    def __init__(self) -> None:
        self.conn = AsyncMock()

    @asynccontextmanager
    async def acquire(self):
        yield self.conn


def _destination_row(**overrides):
    row = {
        "id": uuid4(),
        "tenant_id": "t1",
        "url": "https://example.com/hook",
        "secret": "s",
        "topics": ("*",),
        "is_active": True,
        "last_status": None,
        "last_error": None,
        "created_at": NOW,
        "updated_at": NOW,
    }
    row.update(overrides)
    return row


def _attempt_row(**overrides):
    row = {
        "id": uuid4(),
        "destination_id": uuid4(),
        "topic": "a",
        "payload": '{"event":"a","data":{},"timestamp":0}',
        "status_code": 500,
        "error": "HTTP 500",
        "attempt": 1,
        "success": False,
        "created_at": NOW,
    }
    row.update(overrides)
    return row


# ---------------------------------------------------------------------------
# PostgresDestinationRepository
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_destination_get():
    pool = FakePool()
    row = _destination_row()
    pool.conn.fetchrow.return_value = row

    destination = await PostgresDestinationRepository(pool).get(row["id"])

    assert destination.id == row["id"]
    assert destination.topics == ["*"]
    pool.conn.fetchrow.assert_awaited_once()


@pytest.mark.asyncio
async def test_destination_get_missing():
    pool = FakePool()
    pool.conn.fetchrow.return_value = None
    with pytest.raises(NotFoundError):
        await PostgresDestinationRepository(pool).get(uuid4())


@pytest.mark.asyncio
async def test_destination_list_by_tenant():
    pool = FakePool()
    pool.conn.fetch.return_value = [_destination_row(), _destination_row(topics=None)]

    items = await PostgresDestinationRepository(pool).list_by_tenant("t1")

    assert len(items) == 2
    assert items[1].topics == []
    assert pool.conn.fetch.call_args[0][1] == "t1"


@pytest.mark.asyncio
async def test_destination_update_health_passes_snapshot():
    pool = FakePool()
    destination_id = uuid4()

    await PostgresDestinationRepository(pool).update_health(
        destination_id, last_status=503, last_error="HTTP 503"
    )

    args = pool.conn.execute.call_args[0]
    assert "UPDATE webhook_destinations" in args[0]
    assert args[1:] == (destination_id, 503, "HTTP 503")


# ---------------------------------------------------------------------------
# PostgresDeliveryAttemptRepository
# ---------------------------------------------------------------------------


@pytest.mark.asyncio
async def test_attempt_append_is_insert_only():
    pool = FakePool()
    row = _attempt_row()
    pool.conn.fetchrow.return_value = row

    record = await PostgresDeliveryAttemptRepository(pool).append(
        destination_id=row["destination_id"],
        topic="a",
        payload=row["payload"],
        status_code=500,
        error="HTTP 500",
        attempt=1,
        success=False,
    )

    assert record.id == row["id"]
    query = pool.conn.fetchrow.call_args[0][0]
    assert "INSERT INTO webhook_delivery_attempts" in query
    assert "UPDATE" not in query


@pytest.mark.asyncio
async def test_attempt_get_missing():
    pool = FakePool()
    pool.conn.fetchrow.return_value = None
    with pytest.raises(NotFoundError):
        await PostgresDeliveryAttemptRepository(pool).get(uuid4())


@pytest.mark.asyncio
async def test_attempt_list_uses_window_total():
    pool = FakePool()
    pool.conn.fetch.return_value = [
        _attempt_row(attempt=2, total_count=7),
        _attempt_row(attempt=1, total_count=7),
    ]

    items, total = await PostgresDeliveryAttemptRepository(pool).list_by_destination(
        uuid4(), limit=2, offset=0
    )

    assert total == 7
    assert [i.attempt for i in items] == [2, 1]
    pool.conn.fetchrow.assert_not_awaited()


@pytest.mark.asyncio
async def test_attempt_list_counts_when_page_is_empty():
    pool = FakePool()
    pool.conn.fetch.return_value = []
    pool.conn.fetchrow.return_value = {"total": 3}

    items, total = await PostgresDeliveryAttemptRepository(pool).list_by_destination(
        uuid4(), limit=10, offset=50
    )

    assert items == []
    assert total == 3
