from __future__ import annotations

import pytest
from aiohttp import ClientSession, web

from tests.utils import Receiver
from webhook_delivery.repositories import (
    InMemoryDeliveryAttemptRepository,
    InMemoryDestinationRepository,
)
from webhook_delivery.services import (
    DeliveryExecutor,
    RetryPolicy,
    RetryScheduler,
    SubscriptionMatcher,
    WebhookDispatcher,
)


@pytest.fixture
def make_receiver(aiohttp_server):
    async def factory(statuses: list[int], *, delay: float = 0.0) -> Receiver:
        receiver = Receiver(statuses, delay=delay)
        app = web.Application()
        app.router.add_post("/hook", receiver.handler)
        server = await aiohttp_server(app)
        receiver.url = str(server.make_url("/hook"))
        return receiver

    return factory


@pytest.fixture
def destinations() -> InMemoryDestinationRepository:
    return InMemoryDestinationRepository()


@pytest.fixture
def attempts() -> InMemoryDeliveryAttemptRepository:
    return InMemoryDeliveryAttemptRepository()


@pytest.fixture
async def http_session():
    session = ClientSession()
    yield session
    await session.close()


@pytest.fixture
def executor(http_session) -> DeliveryExecutor:
    return DeliveryExecutor(http_session, timeout_s=2.0)


@pytest.fixture
async def make_dispatcher(executor, destinations, attempts):
    dispatchers: list[WebhookDispatcher] = []

    def factory(backoff: tuple[float, ...] = (0.0, 0.0, 0.0)) -> WebhookDispatcher:
        scheduler = RetryScheduler(
            executor, attempts, destinations, policy=RetryPolicy(backoff_seconds=backoff)
        )
        dispatcher = WebhookDispatcher(
            SubscriptionMatcher(destinations), scheduler, destinations, attempts
        )
        dispatchers.append(dispatcher)
        return dispatcher

    yield factory

    # Runs still in flight at teardown would outlive the receivers.
    for dispatcher in dispatchers:
        await dispatcher.close(drain=False)
