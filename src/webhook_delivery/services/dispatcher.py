"""Webhook dispatcher: resolves destinations and fans out supervised delivery runs."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, List
from uuid import UUID, uuid4

import structlog

from webhook_delivery.core.exceptions import (
    DestinationInactiveError,
    DispatcherClosedError,
    InvalidTopicError,
)
from webhook_delivery.domain.topics import WILDCARD_TOPIC
from webhook_delivery.domain.webhooks import DeliveryRun, Destination, Event
from webhook_delivery.repositories.interfaces import (
    DeliveryAttemptRepository,
    DestinationRepository,
)
from webhook_delivery.services.matcher import SubscriptionMatcher, validate_tenant_id
from webhook_delivery.services.retry import RetryScheduler

logger = structlog.get_logger(__name__)


def validate_topic(topic: str) -> str:
    if not isinstance(topic, str) or not topic.strip():
        raise InvalidTopicError("Event topic must be a non-empty string")
    if any(ch < " " or ch == "\x7f" for ch in topic):
        raise InvalidTopicError("Event topic must not contain control characters")
    if topic == WILDCARD_TOPIC:
        raise InvalidTopicError("The wildcard topic can only be subscribed to, not emitted")
    return topic


@dataclass
class RunHandle:
    """A tracked, in-flight delivery run for one destination."""

    run_id: UUID
    destination_id: UUID
    topic: str
    task: asyncio.Task = field(repr=False)
    cancel_event: asyncio.Event = field(repr=False)

    def cancel(self) -> None:
        """Stop after the attempt in flight (if any); no further attempts are made."""
        self.cancel_event.set()

    async def wait(self) -> DeliveryRun:
        return await self.task

    def done(self) -> bool:
        return self.task.done()


class WebhookDispatcher:
    """Entry point for emitting events to webhook destinations.

    ``emit`` returns as soon as runs are spawned; it never waits for delivery.
    Every run is an asyncio task tracked by run id, so shutdown can drain or
    abandon them through :meth:`close`.
    """

    def __init__(
        self,
        matcher: SubscriptionMatcher,
        scheduler: RetryScheduler,
        destinations: DestinationRepository,
        attempts: DeliveryAttemptRepository,
    ):
        self._matcher = matcher
        self._scheduler = scheduler
        self._destinations = destinations
        self._attempts = attempts
        self._runs: dict[UUID, RunHandle] = {}
        self._closed = False

    @property
    def in_flight(self) -> List[RunHandle]:
        return list(self._runs.values())

    @property
    def closed(self) -> bool:
        return self._closed

    async def emit(self, tenant_id: str, topic: str, payload: Any) -> List[RunHandle]:
        self._ensure_open()
        validate_tenant_id(tenant_id)
        validate_topic(topic)
        event = Event.create(topic, payload)

        try:
            destinations = await self._matcher.match(tenant_id, topic)
        except Exception:
            # Dispatch initiation is best-effort; the triggering operation already succeeded.
            logger.exception("webhook_dispatch resolve failed", tenant_id=tenant_id, topic=topic)
            return []

        handles = [self._spawn(destination, event) for destination in destinations]
        logger.info(
            "webhook_dispatch started",
            tenant_id=tenant_id,
            topic=topic,
            runs=len(handles),
        )
        return handles

    async def start_redelivery(self, attempt_id: UUID) -> RunHandle:
        """Replay the event behind an attempt record to its destination."""
        self._ensure_open()
        record = await self._attempts.get(attempt_id)
        destination = await self._destinations.get(record.destination_id)
        if not destination.is_active:
            raise DestinationInactiveError("Webhook destination is inactive")
        event = Event.from_body(record.payload)
        logger.info(
            "webhook_redelivery started",
            attempt_id=str(attempt_id),
            destination_id=str(destination.id),
            topic=event.topic,
        )
        return self._spawn(destination, event)

    async def redeliver(self, attempt_id: UUID) -> DeliveryRun:
        handle = await self.start_redelivery(attempt_id)
        return await handle.wait()

    def cancel_run(self, run_id: UUID) -> bool:
        handle = self._runs.get(run_id)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_destination(self, destination_id: UUID) -> int:
        """Cancel every in-flight run for a destination (e.g. on deactivation)."""
        cancelled = 0
        for handle in self.in_flight:
            if handle.destination_id == destination_id:
                handle.cancel()
                cancelled += 1
        if cancelled:
            logger.info(
                "webhook_runs cancelled", destination_id=str(destination_id), runs=cancelled
            )
        return cancelled

    async def wait_idle(self) -> None:
        """Wait until no run is in flight, including runs spawned meanwhile."""
        while self._runs:
            tasks = [handle.task for handle in self._runs.values()]
            await asyncio.gather(*tasks, return_exceptions=True)

    async def close(self, *, drain: bool = True, timeout: float | None = None) -> None:
        """Stop accepting events, drain in-flight runs, abandon what is left."""
        self._closed = True
        tasks = [handle.task for handle in self._runs.values()]
        if not tasks:
            return

        pending: set[asyncio.Task] = set(tasks)
        if drain:
            _, pending = await asyncio.wait(tasks, timeout=timeout)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)
        logger.info(
            "webhook_dispatcher closed",
            drained=len(tasks) - len(pending),
            abandoned=len(pending),
        )

    def _ensure_open(self) -> None:
        if self._closed:
            raise DispatcherClosedError("Webhook dispatcher is closed")

    def _spawn(self, destination: Destination, event: Event) -> RunHandle:
        run_id = uuid4()
        cancel_event = asyncio.Event()
        task = asyncio.create_task(
            self._scheduler.run(destination, event, cancel_event=cancel_event, run_id=run_id),
            name=f"webhook-run-{run_id}",
        )
        handle = RunHandle(
            run_id=run_id,
            destination_id=destination.id,
            topic=event.topic,
            task=task,
            cancel_event=cancel_event,
        )
        self._runs[run_id] = handle
        task.add_done_callback(lambda t, rid=run_id: self._on_run_done(rid, t))
        return handle

    def _on_run_done(self, run_id: UUID, task: asyncio.Task) -> None:
        handle = self._runs.pop(run_id, None)
        destination_id = str(handle.destination_id) if handle else None
        if task.cancelled():
            logger.warning("webhook_run abandoned", run_id=str(run_id), destination_id=destination_id)
            return
        exc = task.exception()
        if exc is not None:
            logger.error(
                "webhook_run crashed",
                run_id=str(run_id),
                destination_id=destination_id,
                exc_info=exc,
            )
