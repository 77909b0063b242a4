"""Selects the destinations that should receive an event."""
from __future__ import annotations

from typing import List

from webhook_delivery.core.exceptions import InvalidTenantError
from webhook_delivery.domain.topics import WILDCARD_TOPIC
from webhook_delivery.domain.webhooks import Destination
from webhook_delivery.repositories.interfaces import DestinationRepository


def validate_tenant_id(tenant_id: str) -> str:
    if not isinstance(tenant_id, str) or not tenant_id or tenant_id != tenant_id.strip():
        raise InvalidTenantError(f"Invalid tenant id: {tenant_id!r}")
    return tenant_id


def matches(destination: Destination, topic: str) -> bool:
    """Active destinations subscribed to the topic itself or to the wildcard."""
    if not destination.is_active:
        return False
    return topic in destination.topics or WILDCARD_TOPIC in destination.topics


class SubscriptionMatcher:
    def __init__(self, destinations: DestinationRepository):
        self._destinations = destinations

    async def match(self, tenant_id: str, topic: str) -> List[Destination]:
        validate_tenant_id(tenant_id)
        candidates = await self._destinations.list_by_tenant(tenant_id)
        return [d for d in candidates if d.tenant_id == tenant_id and matches(d, topic)]
