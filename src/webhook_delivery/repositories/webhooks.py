"""Webhook repositories (destinations + append-only delivery attempts)."""
from __future__ import annotations

from typing import Any, List, Tuple
from uuid import UUID

from asyncpg import Pool, Record  # type: ignore[import-untyped]

from webhook_delivery.core.exceptions import NotFoundError
from webhook_delivery.domain.webhooks import DeliveryAttemptRecord, Destination


class _PostgresRepository:
    """Each query borrows a connection from the pool for its own duration."""

    def __init__(self, pool: Pool):
        self._pool = pool

    async def _fetchrow(self, query: str, *args: Any) -> Record | None:
        async with self._pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def _fetch(self, query: str, *args: Any) -> List[Record]:
        async with self._pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def _execute(self, query: str, *args: Any) -> None:
        async with self._pool.acquire() as conn:
            await conn.execute(query, *args)


class PostgresDestinationRepository(_PostgresRepository):
    @staticmethod
    def _to_model(record: Record) -> Destination:
        payload = dict(record)
        payload["topics"] = list(payload.get("topics") or [])
        return Destination.model_validate(payload)

    async def get(self, destination_id: UUID) -> Destination:
        record = await self._fetchrow(
            "SELECT * FROM webhook_destinations WHERE id = $1",
            destination_id,
        )
        if record is None:
            raise NotFoundError("Webhook destination not found")
        return self._to_model(record)

    async def list_by_tenant(self, tenant_id: str) -> List[Destination]:
        records = await self._fetch(
            """
            SELECT *
            FROM webhook_destinations
            WHERE tenant_id = $1
            ORDER BY created_at ASC
            """,
            tenant_id,
        )
        return [self._to_model(r) for r in records]

    async def update_health(
        self,
        destination_id: UUID,
        *,
        last_status: int | None,
        last_error: str | None,
    ) -> None:
        # Last write wins; the attempt log is the authoritative history.
        await self._execute(
            """
            UPDATE webhook_destinations
            SET last_status = $2,
                last_error = $3,
                updated_at = now()
            WHERE id = $1
            """,
            destination_id,
            last_status,
            last_error,
        )


class PostgresDeliveryAttemptRepository(_PostgresRepository):
    @staticmethod
    def _to_model(record: Record) -> DeliveryAttemptRecord:
        return DeliveryAttemptRecord.model_validate(dict(record))

    async def append(
        self,
        *,
        destination_id: UUID,
        topic: str,
        payload: str,
        status_code: int | None,
        error: str | None,
        attempt: int,
        success: bool,
    ) -> DeliveryAttemptRecord:
        record = await self._fetchrow(
            """
            INSERT INTO webhook_delivery_attempts (
                destination_id,
                topic,
                payload,
                status_code,
                error,
                attempt,
                success
            )
            VALUES ($1, $2, $3, $4, $5, $6, $7)
            RETURNING *
            """,
            destination_id,
            topic,
            payload,
            status_code,
            error,
            attempt,
            success,
        )
        assert record is not None
        return self._to_model(record)

    async def get(self, attempt_id: UUID) -> DeliveryAttemptRecord:
        record = await self._fetchrow(
            "SELECT * FROM webhook_delivery_attempts WHERE id = $1",
            attempt_id,
        )
        if record is None:
            raise NotFoundError("Webhook delivery attempt not found")
        return self._to_model(record)

    async def list_by_destination(
        self, destination_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> Tuple[List[DeliveryAttemptRecord], int]:
        records = await self._fetch(
            """
            SELECT *,
                   COUNT(*) OVER() AS total_count
            FROM webhook_delivery_attempts
            WHERE destination_id = $1
            ORDER BY created_at DESC, attempt DESC
            LIMIT $2 OFFSET $3
            """,
            destination_id,
            limit,
            offset,
        )
        items: List[DeliveryAttemptRecord] = []
        total: int | None = None
        for rec in records:
            rec_dict = dict(rec)
            total_value = rec_dict.pop("total_count", None)
            if total_value is not None:
                total = int(total_value)
            items.append(DeliveryAttemptRecord.model_validate(rec_dict))
        if total is None:
            total = await self._count_by_destination(destination_id)
        return items, total

    async def _count_by_destination(self, destination_id: UUID) -> int:
        record = await self._fetchrow(
            "SELECT COUNT(*) AS total FROM webhook_delivery_attempts WHERE destination_id = $1",
            destination_id,
        )
        return int(record["total"]) if record else 0
