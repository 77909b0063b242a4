"""Common exceptions for domain, repository and delivery layers."""
from __future__ import annotations


class WebhookServiceError(Exception):
    """Base error for service layer."""


class RepositoryError(WebhookServiceError):
    """Raised when repository operations fail."""


class NotFoundError(RepositoryError):
    """Raised when requested entity is missing."""


class DestinationConfigError(WebhookServiceError):
    """Raised when a destination cannot be delivered to (bad URL or secret)."""


class DestinationInactiveError(WebhookServiceError):
    """Raised when a manual redelivery targets a deactivated destination."""


class InvalidTenantError(WebhookServiceError):
    """Raised when a tenant id is malformed."""


class InvalidTopicError(WebhookServiceError):
    """Raised when an event topic cannot be emitted."""


class DispatcherClosedError(WebhookServiceError):
    """Raised when emitting through a dispatcher that is shutting down."""
