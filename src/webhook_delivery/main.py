"""aiohttp application entrypoint."""
from __future__ import annotations

from aiohttp import web

from webhook_delivery.api.router import setup_routes
from webhook_delivery.lifecycle import (
    ATTEMPT_REPOSITORY_KEY,
    DESTINATION_REPOSITORY_KEY,
    setup_webhooks,
)
from webhook_delivery.logging_config import configure_logging
from webhook_delivery.middleware import create_trace_middleware
from webhook_delivery.repositories import DeliveryAttemptRepository, DestinationRepository
from webhook_delivery.settings import Settings, get_settings


def create_app(
    settings: Settings | None = None,
    *,
    destinations: DestinationRepository | None = None,
    attempts: DeliveryAttemptRepository | None = None,
) -> web.Application:
    """Build the service app.

    Without explicit repositories the app connects to PostgreSQL on startup.
    """
    settings = settings or get_settings()
    app = web.Application()
    app.middlewares.append(create_trace_middleware(settings.app_name))

    app[DESTINATION_REPOSITORY_KEY] = destinations
    app[ATTEMPT_REPOSITORY_KEY] = attempts

    async def healthcheck(_request: web.Request) -> web.Response:
        return web.json_response({"status": "ok", "service": settings.app_name, "env": settings.env})

    app.router.add_get("/health", healthcheck)
    setup_routes(app)
    setup_webhooks(app, settings)
    return app


def main() -> None:
    configure_logging()
    settings = get_settings()
    web.run_app(create_app(settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
