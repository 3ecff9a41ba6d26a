from typing import Any, Dict

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..dependencies import (
    get_components,
    get_request_id,
    require_identity,
    require_service,
)

router = APIRouter()


class ExpandRequest(BaseModel):
    # Shape is checked by the service so errors carry the InvalidQuery code
    bullets: Any = None


@router.get("/v1/bulletins/24hrs")
async def get_latest_bulletin(request: Request) -> Dict[str, Any]:
    request_id = get_request_id(request)
    identity = require_identity(request, request_id)
    bulletins = require_service(
        get_components(request).bulletins, "Bulletins", request_id
    )
    resolution = await bulletins.latest(identity, request_id=request_id)
    payload = resolution.payload
    return {
        **resolution.envelope(),
        "bullets": payload["bullets"],
        "digest": payload.get("digest"),
        "sourceArticles": payload.get("sourceArticles", []),
        "metadata": payload.get("metadata", {}),
    }


@router.post("/v1/bulletins/expand")
async def expand_bulletin(request: Request, body: ExpandRequest) -> Dict[str, Any]:
    """Expand a bulletin's bullets into detail cards."""
    request_id = get_request_id(request)
    identity = require_identity(request, request_id)
    bulletins = require_service(
        get_components(request).bulletins, "Bulletins", request_id
    )
    resolution = await bulletins.expand(
        identity, body.bullets, request_id=request_id
    )
    return {**resolution.envelope(), "cards": resolution.payload["cards"]}
