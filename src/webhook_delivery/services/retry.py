"""Retry policy and per-destination delivery runs."""
from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Awaitable, Callable, Sequence
from uuid import UUID, uuid4

import structlog

from webhook_delivery.core.exceptions import DestinationConfigError
from webhook_delivery.domain.webhooks import (
    DeliveryAttemptRecord,
    DeliveryOutcome,
    DeliveryRun,
    Destination,
    Event,
    RunState,
)
from webhook_delivery.repositories.interfaces import (
    DeliveryAttemptRepository,
    DestinationRepository,
)
from webhook_delivery.services.delivery import DeliveryExecutor

logger = structlog.get_logger(__name__)

# Waits ``delay`` seconds; returns True if the run was cancelled meanwhile.
SleepFn = Callable[[float, asyncio.Event], Awaitable[bool]]


async def interruptible_sleep(delay: float, cancel_event: asyncio.Event) -> bool:
    if cancel_event.is_set():
        return True
    if delay <= 0:
        return False
    try:
        await asyncio.wait_for(cancel_event.wait(), timeout=delay)
    except asyncio.TimeoutError:
        return False
    return True


@dataclass(frozen=True)
class RetryPolicy:
    """Backoff schedule: entry *k* is the wait before attempt *k + 1*.

    The attempt budget is the length of the schedule.
    """

    backoff_seconds: tuple[float, ...] = (0.0, 5.0, 30.0)

    def __post_init__(self) -> None:
        if not self.backoff_seconds:
            raise ValueError("backoff schedule must contain at least one entry")
        if any(delay < 0 for delay in self.backoff_seconds):
            raise ValueError("backoff delays must not be negative")

    @classmethod
    def from_seconds(cls, delays: Sequence[float]) -> "RetryPolicy":
        return cls(backoff_seconds=tuple(float(d) for d in delays))

    @property
    def max_attempts(self) -> int:
        return len(self.backoff_seconds)

    def delay_before(self, attempt: int) -> float:
        # attempt is 1-based
        return self.backoff_seconds[attempt - 1]


class RetryScheduler:
    """Owns "how many tries, how long to wait" for one destination + event."""

    def __init__(
        self,
        executor: DeliveryExecutor,
        attempts: DeliveryAttemptRepository,
        destinations: DestinationRepository,
        *,
        policy: RetryPolicy | None = None,
        sleep: SleepFn | None = None,
    ):
        self._executor = executor
        self._attempts = attempts
        self._destinations = destinations
        self._policy = policy or RetryPolicy()
        self._sleep = sleep or interruptible_sleep

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    async def run(
        self,
        destination: Destination,
        event: Event,
        *,
        cancel_event: asyncio.Event | None = None,
        run_id: UUID | None = None,
    ) -> DeliveryRun:
        cancel_event = cancel_event or asyncio.Event()
        run_id = run_id or uuid4()
        log = logger.bind(
            run_id=str(run_id),
            destination_id=str(destination.id),
            tenant_id=destination.tenant_id,
            topic=event.topic,
        )

        try:
            self._executor.validate(destination)
        except DestinationConfigError as exc:
            log.warning("webhook_run misconfigured", error=str(exc))
            await self._destinations.update_health(
                destination.id, last_status=None, last_error=str(exc)
            )
            return DeliveryRun(
                run_id=run_id,
                destination_id=destination.id,
                topic=event.topic,
                state=RunState.MISCONFIGURED,
                error=str(exc),
            )

        payload = event.body().decode("utf-8")
        records: list[DeliveryAttemptRecord] = []
        last: DeliveryOutcome | None = None

        for attempt in range(1, self._policy.max_attempts + 1):
            # A cancel during an attempt lets it finish; the next wait sees the flag.
            if await self._sleep(self._policy.delay_before(attempt), cancel_event):
                log.info("webhook_run cancelled", attempts=len(records))
                return self._finish(run_id, destination, event, RunState.CANCELLED, records)

            outcome = await self._executor.attempt(destination, event)
            record = await self._attempts.append(
                destination_id=destination.id,
                topic=event.topic,
                payload=payload,
                status_code=outcome.status_code,
                error=outcome.error,
                attempt=attempt,
                success=outcome.success,
            )
            records.append(record)
            last = outcome

            if outcome.success:
                await self._destinations.update_health(
                    destination.id, last_status=outcome.status_code, last_error=None
                )
                log.info("webhook_run succeeded", attempt=attempt, status_code=outcome.status_code)
                return self._finish(run_id, destination, event, RunState.SUCCEEDED, records)

            log.warning(
                "webhook_attempt failed",
                attempt=attempt,
                max_attempts=self._policy.max_attempts,
                status_code=outcome.status_code,
                error=outcome.error,
            )

        assert last is not None
        last_error = last.error or f"Failed after {self._policy.max_attempts} attempts"
        await self._destinations.update_health(
            destination.id, last_status=last.status_code, last_error=last_error
        )
        log.warning(
            "webhook_run exhausted",
            attempts=len(records),
            status_code=last.status_code,
            error=last_error,
        )
        return self._finish(run_id, destination, event, RunState.EXHAUSTED, records, error=last_error)

    @staticmethod
    def _finish(
        run_id: UUID,
        destination: Destination,
        event: Event,
        state: RunState,
        records: list[DeliveryAttemptRecord],
        *,
        error: str | None = None,
    ) -> DeliveryRun:
        return DeliveryRun(
            run_id=run_id,
            destination_id=destination.id,
            topic=event.topic,
            state=state,
            attempts=records,
            error=error,
        )
