"""Event emission endpoint for sibling services."""
from __future__ import annotations

from typing import Any

from aiohttp import web
from pydantic import BaseModel, Field, ValidationError

from webhook_delivery.api.utils import get_dispatcher, read_json
from webhook_delivery.core.exceptions import (
    DispatcherClosedError,
    InvalidTenantError,
    InvalidTopicError,
)

routes = web.RouteTableDef()


class EmitEventDTO(BaseModel):
    tenant_id: str = Field(min_length=1)
    topic: str = Field(min_length=1)
    payload: Any = None


@routes.post("/api/v1/events")
async def emit_event(request: web.Request):
    body = await read_json(request)
    try:
        dto = EmitEventDTO.model_validate(body)
    except ValidationError as exc:
        raise web.HTTPBadRequest(text=exc.json()) from exc

    dispatcher = get_dispatcher(request)
    try:
        handles = await dispatcher.emit(dto.tenant_id, dto.topic, dto.payload)
    except (InvalidTenantError, InvalidTopicError, TypeError, ValueError) as exc:
        raise web.HTTPBadRequest(text=str(exc)) from exc
    except DispatcherClosedError as exc:
        raise web.HTTPServiceUnavailable(text=str(exc)) from exc

    return web.json_response(
        {
            "topic": dto.topic,
            "runs": [
                {"run_id": str(h.run_id), "destination_id": str(h.destination_id)}
                for h in handles
            ],
        },
        status=202,
    )
