"""OpenAI-compatible completion routes proxied to llama-server."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from ..context import AppContext, get_context
from ..proxy import forward

router = APIRouter(prefix="/v1", tags=["completions"])


@router.post("/chat/completions")
async def chat_completions(request: Request, ctx: AppContext = Depends(get_context)) -> Response:
    return await forward(ctx.client, ctx.target, request, "/v1/chat/completions")


@router.post("/completions")
async def completions(request: Request, ctx: AppContext = Depends(get_context)) -> Response:
    return await forward(ctx.client, ctx.target, request, "/v1/completions")
