"""In-memory repositories with the same contract as the asyncpg ones.

Used by the test suite and for running the service without PostgreSQL.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Tuple
from uuid import UUID, uuid4

from webhook_delivery.core.exceptions import NotFoundError
from webhook_delivery.domain.webhooks import DeliveryAttemptRecord, Destination


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class InMemoryDestinationRepository:
    def __init__(self, destinations: Iterable[Destination] = ()):
        self._items: dict[UUID, Destination] = {d.id: d for d in destinations}

    def add(
        self,
        *,
        tenant_id: str,
        url: str,
        secret: str,
        topics: list[str],
        is_active: bool = True,
    ) -> Destination:
        now = _utcnow()
        destination = Destination(
            id=uuid4(),
            tenant_id=tenant_id,
            url=url,
            secret=secret,
            topics=topics,
            is_active=is_active,
            created_at=now,
            updated_at=now,
        )
        self._items[destination.id] = destination
        return destination

    def set_active(self, destination_id: UUID, is_active: bool) -> None:
        current = self._items[destination_id]
        self._items[destination_id] = current.model_copy(
            update={"is_active": is_active, "updated_at": _utcnow()}
        )

    async def get(self, destination_id: UUID) -> Destination:
        try:
            return self._items[destination_id]
        except KeyError:
            raise NotFoundError("Webhook destination not found") from None

    async def list_by_tenant(self, tenant_id: str) -> List[Destination]:
        items = [d for d in self._items.values() if d.tenant_id == tenant_id]
        return sorted(items, key=lambda d: d.created_at)

    async def update_health(
        self,
        destination_id: UUID,
        *,
        last_status: int | None,
        last_error: str | None,
    ) -> None:
        current = self._items.get(destination_id)
        if current is None:
            return
        self._items[destination_id] = current.model_copy(
            update={"last_status": last_status, "last_error": last_error, "updated_at": _utcnow()}
        )


class InMemoryDeliveryAttemptRepository:
    def __init__(self) -> None:
        self._records: list[DeliveryAttemptRecord] = []

    @property
    def records(self) -> list[DeliveryAttemptRecord]:
        return list(self._records)

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
        record = DeliveryAttemptRecord(
            id=uuid4(),
            destination_id=destination_id,
            topic=topic,
            payload=payload,
            status_code=status_code,
            error=error,
            attempt=attempt,
            success=success,
            created_at=_utcnow(),
        )
        self._records.append(record)
        return record

    async def get(self, attempt_id: UUID) -> DeliveryAttemptRecord:
        for record in self._records:
            if record.id == attempt_id:
                return record
        raise NotFoundError("Webhook delivery attempt not found")

    async def list_by_destination(
        self, destination_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> Tuple[List[DeliveryAttemptRecord], int]:
        # newest first, same as the SQL ordering
        matching = [r for r in reversed(self._records) if r.destination_id == destination_id]
        return matching[offset : offset + limit], len(matching)
