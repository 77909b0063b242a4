"""Well-known webhook topics shared with the platform's business services."""
from __future__ import annotations

from enum import Enum

# Subscribing to this topic matches every emitted event.
WILDCARD_TOPIC = "*"


class WebhookTopic(str, Enum):
    CONTENT_CREATED = "content.created"
    CONTENT_UPDATED = "content.updated"
    CONTENT_DELETED = "content.deleted"

    AI_GENERATION_STARTED = "ai.generation.started"
    AI_GENERATION_COMPLETED = "ai.generation.completed"
    AI_GENERATION_FAILED = "ai.generation.failed"

    SUBSCRIPTION_CREATED = "subscription.created"
    SUBSCRIPTION_UPDATED = "subscription.updated"
    SUBSCRIPTION_CANCELED = "subscription.canceled"

    USAGE_QUOTA_WARNING = "usage.quota.warning"
    USAGE_QUOTA_EXCEEDED = "usage.quota.exceeded"

    PROJECT_CREATED = "project.created"
    PROJECT_UPDATED = "project.updated"
    PROJECT_DELETED = "project.deleted"

    API_KEY_CREATED = "api.key.created"
    API_KEY_REVOKED = "api.key.revoked"
