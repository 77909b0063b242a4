"""Single HTTP delivery attempt against a webhook destination."""
from __future__ import annotations

import asyncio

import structlog
from aiohttp import ClientError, ClientSession, ClientTimeout
from yarl import URL

from webhook_delivery.core.exceptions import DestinationConfigError
from webhook_delivery.domain.webhooks import DeliveryOutcome, Destination, Event
from webhook_delivery.services.signing import sign

logger = structlog.get_logger(__name__)

SIGNATURE_HEADER = "X-Webhook-Signature"
TIMESTAMP_HEADER = "X-Webhook-Timestamp"
EVENT_HEADER = "X-Webhook-Event"
CONTENT_TYPE = "application/json"

_ALLOWED_SCHEMES = ("http", "https")


def validate_destination(destination: Destination) -> URL:
    """Return the parsed target URL or raise ``DestinationConfigError``."""
    if not destination.url or not destination.url.strip():
        raise DestinationConfigError("destination url is missing")
    try:
        url = URL(destination.url.strip())
    except (ValueError, TypeError) as exc:
        raise DestinationConfigError(f"destination url is invalid: {exc}") from exc
    if url.scheme not in _ALLOWED_SCHEMES:
        raise DestinationConfigError(f"destination url scheme must be http or https, got {url.scheme!r}")
    if not url.host:
        raise DestinationConfigError("destination url has no host")
    if not destination.secret:
        raise DestinationConfigError("destination secret is missing")
    return url


class DeliveryExecutor:
    """Performs one bounded-timeout POST and classifies the result.

    Ordinary failures (non-2xx, timeouts, transport errors) come back as a
    failed :class:`DeliveryOutcome`; only ``DestinationConfigError`` is raised.
    """

    def __init__(
        self,
        session: ClientSession,
        *,
        timeout_s: float = 30.0,
        user_agent: str = "AI-MicroSaaS-Webhooks/1.0",
        excerpt_chars: int = 2000,
    ):
        self._session = session
        self._timeout = ClientTimeout(total=timeout_s)
        self._timeout_s = timeout_s
        self._user_agent = user_agent
        self._excerpt_chars = excerpt_chars

    def validate(self, destination: Destination) -> URL:
        return validate_destination(destination)

    def build_headers(self, event: Event, body: bytes, secret: str) -> dict[str, str]:
        return {
            "Content-Type": CONTENT_TYPE,
            "User-Agent": self._user_agent,
            SIGNATURE_HEADER: sign(body, secret),
            TIMESTAMP_HEADER: str(event.timestamp_ms),
            EVENT_HEADER: event.topic,
        }

    async def attempt(self, destination: Destination, event: Event) -> DeliveryOutcome:
        url = self.validate(destination)
        body = event.body()
        headers = self.build_headers(event, body, destination.secret)
        try:
            async with self._session.post(
                url,
                data=body,
                headers=headers,
                timeout=self._timeout,
                allow_redirects=False,
            ) as resp:
                if 200 <= resp.status < 300:
                    return DeliveryOutcome(success=True, status_code=resp.status)
                return DeliveryOutcome(
                    success=False,
                    status_code=resp.status,
                    error=await self._describe_failure(resp),
                )
        except asyncio.TimeoutError:
            return DeliveryOutcome(success=False, error=f"Timeout after {self._timeout_s:g}s")
        except (ClientError, OSError) as exc:
            return DeliveryOutcome(success=False, error=str(exc) or type(exc).__name__)
        except ValueError as exc:
            # aiohttp rejects header values it cannot put on the wire
            return DeliveryOutcome(success=False, error=f"Invalid request: {exc}")

    async def _describe_failure(self, resp) -> str:
        try:
            text = await resp.text(errors="replace")
        except (ClientError, asyncio.TimeoutError):
            text = ""
        text = text[: self._excerpt_chars]
        return f"HTTP {resp.status}: {text}" if text else f"HTTP {resp.status}"
