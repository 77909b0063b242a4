"""Storage contracts consumed by the delivery core.

The dispatcher, matcher and retry scheduler only talk to these protocols, so
they run unchanged against PostgreSQL or the in-memory implementations.
"""
from __future__ import annotations

from typing import List, Protocol, Tuple
from uuid import UUID

from webhook_delivery.domain.webhooks import DeliveryAttemptRecord, Destination


class DestinationRepository(Protocol):
    async def get(self, destination_id: UUID) -> Destination:
        """Return the destination or raise ``NotFoundError``."""
        ...

    async def list_by_tenant(self, tenant_id: str) -> List[Destination]:
        ...

    async def update_health(
        self,
        destination_id: UUID,
        *,
        last_status: int | None,
        last_error: str | None,
    ) -> None:
        ...


class DeliveryAttemptRepository(Protocol):
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
        ...

    async def get(self, attempt_id: UUID) -> DeliveryAttemptRecord:
        """Return the record or raise ``NotFoundError``."""
        ...

    async def list_by_destination(
        self, destination_id: UUID, *, limit: int = 50, offset: int = 0
    ) -> Tuple[List[DeliveryAttemptRecord], int]:
        ...
