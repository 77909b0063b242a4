"""Wiring of the delivery core into the aiohttp application lifecycle."""
from __future__ import annotations

from aiohttp import ClientSession, web

from webhook_delivery.db.migrations import apply_migrations
from webhook_delivery.db.pool import close_pool, get_pool
from webhook_delivery.repositories import (
    PostgresDeliveryAttemptRepository,
    PostgresDestinationRepository,
)
from webhook_delivery.services import (
    DeliveryExecutor,
    RetryPolicy,
    RetryScheduler,
    SubscriptionMatcher,
    WebhookDispatcher,
)
from webhook_delivery.settings import Settings

WEBHOOK_SESSION_KEY = "webhook_http_session"
WEBHOOK_DISPATCHER_KEY = "webhook_dispatcher"
DESTINATION_REPOSITORY_KEY = "destination_repository"
ATTEMPT_REPOSITORY_KEY = "attempt_repository"
_OWNS_POOL_KEY = "webhook_owns_pool"


def build_dispatcher(
    settings: Settings,
    session: ClientSession,
    destinations,
    attempts,
) -> WebhookDispatcher:
    executor = DeliveryExecutor(
        session,
        timeout_s=settings.webhook_request_timeout_seconds,
        user_agent=settings.webhook_user_agent,
        excerpt_chars=settings.webhook_response_excerpt_chars,
    )
    scheduler = RetryScheduler(
        executor,
        attempts,
        destinations,
        policy=RetryPolicy.from_seconds(settings.webhook_backoff_seconds),
    )
    return WebhookDispatcher(SubscriptionMatcher(destinations), scheduler, destinations, attempts)


def setup_webhooks(app: web.Application, settings: Settings) -> None:
    """Register startup/cleanup hooks that own the dispatcher and its HTTP session.

    Repositories already stored on the app (e.g. in-memory ones) are used as
    is; otherwise the PostgreSQL repositories are built over the shared pool.
    """

    async def start_webhooks(app: web.Application) -> None:
        if app.get(DESTINATION_REPOSITORY_KEY) is None or app.get(ATTEMPT_REPOSITORY_KEY) is None:
            pool = await get_pool(settings)
            app[_OWNS_POOL_KEY] = True
            if settings.run_migrations:
                await apply_migrations(pool)
            app[DESTINATION_REPOSITORY_KEY] = PostgresDestinationRepository(pool)
            app[ATTEMPT_REPOSITORY_KEY] = PostgresDeliveryAttemptRepository(pool)

        session = ClientSession()
        app[WEBHOOK_SESSION_KEY] = session
        app[WEBHOOK_DISPATCHER_KEY] = build_dispatcher(
            settings,
            session,
            app[DESTINATION_REPOSITORY_KEY],
            app[ATTEMPT_REPOSITORY_KEY],
        )

    async def stop_webhooks(app: web.Application) -> None:
        dispatcher: WebhookDispatcher | None = app.get(WEBHOOK_DISPATCHER_KEY)
        if dispatcher is not None:
            await dispatcher.close(drain=True, timeout=settings.webhook_drain_timeout_seconds)
        session = app.get(WEBHOOK_SESSION_KEY)
        if session is not None:
            await session.close()
        if app.get(_OWNS_POOL_KEY):
            await close_pool()

    app.on_startup.append(start_webhooks)
    app.on_cleanup.append(stop_webhooks)
