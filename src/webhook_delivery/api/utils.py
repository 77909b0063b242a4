"""Helper utilities for API handlers."""
from __future__ import annotations

from typing import Any
from uuid import UUID

from aiohttp import web

from webhook_delivery.lifecycle import (
    ATTEMPT_REPOSITORY_KEY,
    DESTINATION_REPOSITORY_KEY,
    WEBHOOK_DISPATCHER_KEY,
)
from webhook_delivery.services import WebhookDispatcher

TENANT_ID_HEADER = "X-Tenant-Id"


def parse_uuid(value: str, label: str) -> UUID:
    try:
        return UUID(value)
    except (ValueError, TypeError) as exc:
        raise web.HTTPBadRequest(text=f"Invalid {label}") from exc


def pagination_params(
    request: web.Request,
    *,
    default_limit: int = 50,
    max_limit: int = 100,
) -> tuple[int, int]:
    query = request.rel_url.query
    try:
        limit = int(query.get("limit", str(default_limit)))
        offset = int(query.get("offset", "0"))
    except ValueError as exc:
        raise web.HTTPBadRequest(text="limit and offset must be integers") from exc
    if limit <= 0:
        limit = default_limit
    limit = min(limit, max_limit)
    if offset < 0:
        offset = 0
    return limit, offset


def paginated_response(
    items: list[Any],
    *,
    limit: int,
    offset: int,
    key: str,
    total: int,
) -> dict[str, Any]:
    page = offset // limit + 1 if limit else 1
    return {
        key: items,
        "total": total,
        "page": page,
        "page_size": limit,
    }


async def read_json(request: web.Request) -> dict[str, Any]:
    """Parse JSON body from request, raising HTTPBadRequest on invalid input."""
    try:
        data = await request.json()
    except ValueError as exc:
        raise web.HTTPBadRequest(text="Invalid JSON payload") from exc
    if not isinstance(data, dict):
        raise web.HTTPBadRequest(text="JSON body must be an object")
    return data


def require_tenant_id(request: web.Request) -> str:
    tenant_id = request.headers.get(TENANT_ID_HEADER)
    if not tenant_id:
        raise web.HTTPUnauthorized(reason=f"Header {TENANT_ID_HEADER} is required")
    return tenant_id


def get_dispatcher(request: web.Request) -> WebhookDispatcher:
    return request.app[WEBHOOK_DISPATCHER_KEY]


def get_destination_repository(request: web.Request):
    return request.app[DESTINATION_REPOSITORY_KEY]


def get_attempt_repository(request: web.Request):
    return request.app[ATTEMPT_REPOSITORY_KEY]
