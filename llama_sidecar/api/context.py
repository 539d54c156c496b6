"""Per-application state shared by all request handlers."""

from __future__ import annotations

from dataclasses import dataclass

import httpx
from fastapi import Request

from ..process import ChildSupervisor
from .proxy import ProxyTarget


@dataclass(frozen=True)
class AppContext:
    """The one upstream client, target and child supervisor of a sidecar."""

    client: httpx.AsyncClient
    target: ProxyTarget
    supervisor: ChildSupervisor


def get_context(request: Request) -> AppContext:
    """FastAPI dependency returning the context stored on the app."""
    return request.app.state.context
