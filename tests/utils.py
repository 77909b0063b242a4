"""Shared test helpers: an in-process webhook receiver and fixtures' constants."""
from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass

from aiohttp import web

SECRET = "whsec-test-secret"
TENANT = "t1"
# Nothing listens on port 1, so connecting fails fast with "connection refused".
UNREACHABLE_URL = "http://127.0.0.1:1/hook"


@dataclass
class ReceivedRequest:
    headers: dict[str, str]
    body: bytes
    received_at: float


class Receiver:
    """In-process webhook endpoint answering with a scripted list of statuses.

    The last status repeats once the script runs out.
    """

    def __init__(self, statuses: list[int], *, delay: float = 0.0):
        self.statuses = list(statuses)
        self.delay = delay
        self.requests: list[ReceivedRequest] = []
        self.url = ""
        self.arrived = asyncio.Event()

    async def handler(self, request: web.Request) -> web.Response:
        raw = await request.read()
        self.requests.append(
            ReceivedRequest(headers=dict(request.headers), body=raw, received_at=time.monotonic())
        )
        self.arrived.set()
        if self.delay:
            await asyncio.sleep(self.delay)
        status = self.statuses.pop(0) if len(self.statuses) > 1 else self.statuses[0]
        if 300 <= status < 400:
            return web.Response(status=status, headers={"Location": "/elsewhere"})
        return web.Response(status=status, text=f"status {status}")

    async def wait_for_requests(self, count: int, timeout: float = 3.0) -> None:
        async def _wait() -> None:
            while len(self.requests) < count:
                self.arrived.clear()
                await self.arrived.wait()

        await asyncio.wait_for(_wait(), timeout=timeout)
