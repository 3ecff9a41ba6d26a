from typing import Any, Dict, Optional

from fastapi import APIRouter, Request
from pydantic import BaseModel

from ..dependencies import (
    get_components,
    get_request_id,
    require_identity,
    require_service,
)

router = APIRouter()


class SummarizeRequest(BaseModel):
    title: Optional[str] = None
    description: Optional[str] = None
    url: Optional[str] = None


class ChatRequest(BaseModel):
    message: Optional[str] = None
    history: Any = None


@router.post("/v1/ai/summarize")
async def summarize_article(request: Request, body: SummarizeRequest) -> Dict[str, Any]:
    """Summarize one article, served from cache when it was summarized before.

    ``usedFallback`` is true when the generated summary was unusable and the
    article's own title and description were returned instead.
    """
    request_id = get_request_id(request)
    identity = require_identity(request, request_id)
    summaries = require_service(
        get_components(request).summaries, "Summaries", request_id
    )
    resolution = await summaries.summarize(
        identity,
        body.title,
        body.description,
        body.url,
        request_id=request_id,
    )
    return {
        **resolution.envelope(),
        "summary": resolution.payload["summary"],
        "usedFallback": resolution.payload.get("usedFallback", False),
    }


@router.post("/v1/ai/chat")
async def chat(request: Request, body: ChatRequest) -> Dict[str, Any]:
    request_id = get_request_id(request)
    identity = require_identity(request, request_id)
    chat_service = require_service(get_components(request).chat, "Chat", request_id)
    result = await chat_service.chat(
        identity, body.message, body.history, request_id=request_id
    )
    return {"success": True, **result}
