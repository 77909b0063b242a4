"""Delivery history, manual redelivery and run cancellation endpoints."""
from __future__ import annotations

from aiohttp import web

from webhook_delivery.api.utils import (
    get_attempt_repository,
    get_destination_repository,
    get_dispatcher,
    paginated_response,
    pagination_params,
    parse_uuid,
    require_tenant_id,
)
from webhook_delivery.core.exceptions import (
    DestinationInactiveError,
    DispatcherClosedError,
    NotFoundError,
)

routes = web.RouteTableDef()


async def _load_owned_destination(request: web.Request, destination_id):
    tenant_id = require_tenant_id(request)
    try:
        destination = await get_destination_repository(request).get(destination_id)
    except NotFoundError as exc:
        raise web.HTTPNotFound(text=str(exc)) from exc
    # other tenants' destinations are reported as missing
    if destination.tenant_id != tenant_id:
        raise web.HTTPNotFound(text="Webhook destination not found")
    return destination


@routes.get("/api/v1/destinations/{destination_id}/deliveries")
async def list_deliveries(request: web.Request):
    destination_id = parse_uuid(request.match_info["destination_id"], "destination_id")
    destination = await _load_owned_destination(request, destination_id)
    limit, offset = pagination_params(request)
    items, total = await get_attempt_repository(request).list_by_destination(
        destination.id, limit=limit, offset=offset
    )
    payload = paginated_response(
        [item.model_dump(mode="json") for item in items],
        limit=limit,
        offset=offset,
        key="deliveries",
        total=total,
    )
    payload["destination"] = {
        "id": str(destination.id),
        "is_active": destination.is_active,
        "last_status": destination.last_status,
        "last_error": destination.last_error,
    }
    return web.json_response(payload)


@routes.post("/api/v1/deliveries/{attempt_id}/redeliver")
async def redeliver(request: web.Request):
    tenant_id = require_tenant_id(request)
    attempt_id = parse_uuid(request.match_info["attempt_id"], "attempt_id")
    try:
        record = await get_attempt_repository(request).get(attempt_id)
        destination = await get_destination_repository(request).get(record.destination_id)
    except NotFoundError as exc:
        raise web.HTTPNotFound(text=str(exc)) from exc
    if destination.tenant_id != tenant_id:
        raise web.HTTPNotFound(text="Webhook delivery attempt not found")

    try:
        handle = await get_dispatcher(request).start_redelivery(attempt_id)
    except NotFoundError as exc:
        raise web.HTTPNotFound(text=str(exc)) from exc
    except DestinationInactiveError as exc:
        raise web.HTTPConflict(text=str(exc)) from exc
    except DispatcherClosedError as exc:
        raise web.HTTPServiceUnavailable(text=str(exc)) from exc
    return web.json_response(
        {"run_id": str(handle.run_id), "destination_id": str(handle.destination_id)},
        status=202,
    )


@routes.post("/api/v1/destinations/{destination_id}/cancel")
async def cancel_runs(request: web.Request):
    destination_id = parse_uuid(request.match_info["destination_id"], "destination_id")
    destination = await _load_owned_destination(request, destination_id)
    cancelled = get_dispatcher(request).cancel_destination(destination.id)
    return web.json_response({"destination_id": str(destination.id), "cancelled": cancelled})
