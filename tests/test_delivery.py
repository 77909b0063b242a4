"""Tests for DeliveryExecutor against real in-process receivers."""
from __future__ import annotations

import json

import pytest

from tests.utils import SECRET, TENANT, UNREACHABLE_URL
from webhook_delivery.core.exceptions import DestinationConfigError
from webhook_delivery.domain.webhooks import Event
from webhook_delivery.services.delivery import (
    EVENT_HEADER,
    SIGNATURE_HEADER,
    TIMESTAMP_HEADER,
    DeliveryExecutor,
)
from webhook_delivery.services.signing import verify


def _destination(destinations, url: str, secret: str = SECRET):
    return destinations.add(tenant_id=TENANT, url=url, secret=secret, topics=["*"])


@pytest.mark.asyncio
async def test_successful_attempt_sends_signed_canonical_body(make_receiver, destinations, executor):
    receiver = await make_receiver([200])
    destination = _destination(destinations, receiver.url)
    event = Event.create("subscription.created", {"plan": "pro"})

    outcome = await executor.attempt(destination, event)

    assert outcome.success is True
    assert outcome.status_code == 200
    assert outcome.error is None

    [request] = receiver.requests
    assert request.body == event.body()
    assert request.headers["Content-Type"] == "application/json"
    assert request.headers["User-Agent"] == "AI-MicroSaaS-Webhooks/1.0"
    assert request.headers[TIMESTAMP_HEADER] == str(event.timestamp_ms)
    assert request.headers[EVENT_HEADER] == "subscription.created"
    assert verify(request.body, request.headers[SIGNATURE_HEADER], SECRET)
    assert SECRET not in json.dumps(request.headers)
    assert SECRET.encode() not in request.body


@pytest.mark.asyncio
async def test_any_2xx_is_success(make_receiver, destinations, executor):
    receiver = await make_receiver([204])
    outcome = await executor.attempt(_destination(destinations, receiver.url), Event.create("a", {}))
    assert outcome.success is True
    assert outcome.status_code == 204


@pytest.mark.asyncio
@pytest.mark.parametrize("status", [302, 404, 500, 503])
async def test_non_2xx_is_failure_with_status(make_receiver, destinations, executor, status):
    receiver = await make_receiver([status])
    outcome = await executor.attempt(_destination(destinations, receiver.url), Event.create("a", {}))
    assert outcome.success is False
    assert outcome.status_code == status
    assert outcome.error.startswith(f"HTTP {status}")
    assert len(receiver.requests) == 1


@pytest.mark.asyncio
async def test_failure_body_excerpt_is_truncated(make_receiver, destinations, http_session):
    receiver = await make_receiver([500])
    executor = DeliveryExecutor(http_session, excerpt_chars=4)
    outcome = await executor.attempt(_destination(destinations, receiver.url), Event.create("a", {}))
    assert outcome.error == "HTTP 500: stat"


@pytest.mark.asyncio
async def test_connection_error_is_failure_without_status(destinations, executor):
    outcome = await executor.attempt(_destination(destinations, UNREACHABLE_URL), Event.create("a", {}))
    assert outcome.success is False
    assert outcome.status_code is None
    assert outcome.error


@pytest.mark.asyncio
async def test_header_unsafe_topic_is_failure_not_exception(make_receiver, destinations, executor):
    receiver = await make_receiver([200])
    event = Event.create("a\r\nX-Injected: 1", {})

    outcome = await executor.attempt(_destination(destinations, receiver.url), event)

    assert outcome.success is False
    assert outcome.status_code is None
    assert outcome.error.startswith("Invalid request: ")
    assert receiver.requests == []


@pytest.mark.asyncio
async def test_timeout_is_network_failure(make_receiver, destinations, http_session):
    receiver = await make_receiver([200], delay=1.0)
    executor = DeliveryExecutor(http_session, timeout_s=0.1)
    outcome = await executor.attempt(_destination(destinations, receiver.url), Event.create("a", {}))
    assert outcome.success is False
    assert outcome.status_code is None
    assert outcome.error == "Timeout after 0.1s"


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "url, secret",
    [
        ("", SECRET),
        ("   ", SECRET),
        ("ftp://example.com/hook", SECRET),
        ("not a url", SECRET),
        ("http://example.com/hook", ""),
    ],
)
async def test_misconfigured_destination_raises(destinations, executor, url, secret):
    destination = _destination(destinations, url, secret)
    with pytest.raises(DestinationConfigError):
        await executor.attempt(destination, Event.create("a", {}))
