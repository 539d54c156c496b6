"""Liveness and shutdown routes for the sidecar itself."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import PlainTextResponse

from ..context import AppContext, get_context

logger = logging.getLogger(__name__)

router = APIRouter(tags=["lifecycle"])


@router.get("/healthz", response_class=PlainTextResponse)
async def healthz() -> str:
    """Liveness of the sidecar; does not look at the upstream."""
    return "ok"


@router.post("/shutdown", response_class=PlainTextResponse)
async def shutdown(ctx: AppContext = Depends(get_context)) -> PlainTextResponse:
    """
    Kill the supervised llama-server.

    Answers 200 when the child was killed or none was running, 500 when
    the kill call itself failed. The sidecar keeps serving either way.
    """
    outcome = await ctx.supervisor.terminate()
    logger.info(f"Shutdown requested: {outcome.status.value}")
    return PlainTextResponse(outcome.message, status_code=200 if outcome.ok else 500)
