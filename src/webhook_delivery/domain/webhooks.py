"""Webhook domain primitives."""
from __future__ import annotations

import copy
import json
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field

_EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class Destination(BaseModel):
    id: UUID
    tenant_id: str
    url: str
    secret: str = Field(repr=False)
    topics: list[str] = Field(default_factory=list)
    is_active: bool = True
    last_status: int | None = None
    last_error: str | None = None
    created_at: datetime
    updated_at: datetime


class Event(BaseModel):
    """An immutable (topic, payload, timestamp) tuple handed to the dispatcher."""

    model_config = ConfigDict(frozen=True)

    topic: str
    payload: Any = None
    emitted_at: datetime

    @classmethod
    def create(cls, topic: str, payload: Any, *, emitted_at: datetime | None = None) -> "Event":
        event = cls(
            topic=topic,
            payload=copy.deepcopy(payload),
            emitted_at=emitted_at or datetime.now(timezone.utc),
        )
        # Fail fast on payloads that cannot be put on the wire.
        event.body()
        return event

    @classmethod
    def from_body(cls, body: str) -> "Event":
        """Rebuild an event from a stored wire body, stamped with the current time."""
        decoded = json.loads(body)
        return cls.create(decoded["event"], decoded.get("data"))

    @property
    def timestamp_ms(self) -> int:
        return (self.emitted_at - _EPOCH) // timedelta(milliseconds=1)

    def body(self) -> bytes:
        """Canonical wire form; identical for every attempt of the same event."""
        document = {"event": self.topic, "data": self.payload, "timestamp": self.timestamp_ms}
        return json.dumps(
            document, separators=(",", ":"), ensure_ascii=False, allow_nan=False
        ).encode("utf-8")


class DeliveryOutcome(BaseModel):
    success: bool
    status_code: int | None = None
    error: str | None = None


class DeliveryAttemptRecord(BaseModel):
    id: UUID
    destination_id: UUID
    topic: str
    payload: str
    status_code: int | None = None
    error: str | None = None
    attempt: int
    success: bool
    created_at: datetime


class RunState(str, Enum):
    SUCCEEDED = "succeeded"
    EXHAUSTED = "exhausted"
    MISCONFIGURED = "misconfigured"
    CANCELLED = "cancelled"


class DeliveryRun(BaseModel):
    run_id: UUID = Field(default_factory=uuid4)
    destination_id: UUID
    topic: str
    state: RunState
    attempts: list[DeliveryAttemptRecord] = Field(default_factory=list)
    error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.state is RunState.SUCCEEDED

    @property
    def last_attempt(self) -> DeliveryAttemptRecord | None:
        return self.attempts[-1] if self.attempts else None
