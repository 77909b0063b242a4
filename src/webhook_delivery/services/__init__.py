"""Delivery services exports."""

from webhook_delivery.services.delivery import DeliveryExecutor
from webhook_delivery.services.dispatcher import RunHandle, WebhookDispatcher
from webhook_delivery.services.matcher import SubscriptionMatcher
from webhook_delivery.services.retry import RetryPolicy, RetryScheduler
from webhook_delivery.services.signing import generate_secret, sign, verify

__all__ = [
    "DeliveryExecutor",
    "RetryPolicy",
    "RetryScheduler",
    "RunHandle",
    "SubscriptionMatcher",
    "WebhookDispatcher",
    "generate_secret",
    "sign",
    "verify",
]
