"""Request tracing middleware: binds trace_id/request_id into structlog context."""
from __future__ import annotations

import time
from uuid import UUID, uuid4

import structlog
from aiohttp import web

TRACE_ID_HEADER = "X-Trace-Id"
REQUEST_ID_HEADER = "X-Request-Id"

logger = structlog.get_logger(__name__)


def is_valid_uuid(value: str) -> bool:
    try:
        UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


def _incoming_or_new(request: web.Request, header: str) -> str:
    value = request.headers.get(header)
    if not value or not is_valid_uuid(value):
        value = str(uuid4())
    return value


def create_trace_middleware(service_name: str):
    """Create trace middleware with specified service name."""

    @web.middleware
    async def trace_middleware(request: web.Request, handler):
        start_time = time.monotonic()
        trace_id = _incoming_or_new(request, TRACE_ID_HEADER)
        request_id = _incoming_or_new(request, REQUEST_ID_HEADER)
        request["trace_id"] = trace_id
        request["request_id"] = request_id

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            trace_id=trace_id,
            request_id=request_id,
            service=service_name,
            method=request.method,
            path=request.path,
        )
        try:
            response = await handler(request)
            duration_ms = round((time.monotonic() - start_time) * 1000, 2)
            if response.status >= 400:
                logger.warning(
                    "Request completed with error status",
                    status_code=response.status,
                    duration_ms=duration_ms,
                )
            else:
                logger.info("Request completed", status_code=response.status, duration_ms=duration_ms)
            response.headers[TRACE_ID_HEADER] = trace_id
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        except web.HTTPException as e:
            logger.warning(
                "Request failed with HTTP exception",
                status_code=e.status_code,
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
                error=e.text,
            )
            raise
        except Exception:
            logger.exception(
                "Request failed with exception",
                duration_ms=round((time.monotonic() - start_time) * 1000, 2),
            )
            raise
        finally:
            structlog.contextvars.clear_contextvars()

    return trace_middleware
