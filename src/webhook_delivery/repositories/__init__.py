"""Repository package exports."""

from webhook_delivery.repositories.interfaces import (
    DeliveryAttemptRepository,
    DestinationRepository,
)
from webhook_delivery.repositories.memory import (
    InMemoryDeliveryAttemptRepository,
    InMemoryDestinationRepository,
)
from webhook_delivery.repositories.webhooks import (
    PostgresDeliveryAttemptRepository,
    PostgresDestinationRepository,
)

__all__ = [
    "DestinationRepository",
    "DeliveryAttemptRepository",
    "PostgresDestinationRepository",
    "PostgresDeliveryAttemptRepository",
    "InMemoryDestinationRepository",
    "InMemoryDeliveryAttemptRepository",
]
