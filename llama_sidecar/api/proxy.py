"""Reverse proxy from the sidecar's routes to the llama-server child.

Each exposed route maps to one fixed upstream path. Bodies are buffered in
full on both legs; status, headers and bytes of the upstream reply are
relayed as-is.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import httpx
from starlette.requests import ClientDisconnect, Request
from starlette.responses import PlainTextResponse, Response

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_SECONDS = 300.0

# Connection-specific, or recomputed by the transport
_STRIPPED_REQUEST_HEADERS = {b"host", b"connection", b"content-length", b"transfer-encoding"}
# Framing of the upstream connection; content-length is re-added from the body
_STRIPPED_RESPONSE_HEADERS = {b"connection", b"transfer-encoding", b"content-length"}

DEFAULT_CONTENT_TYPE = b"application/json"

# Headers httpx would otherwise add to every forwarded request
_CLIENT_DEFAULT_HEADERS = ("connection", "accept", "accept-encoding", "user-agent")


@dataclass(frozen=True)
class ProxyTarget:
    """Where proxied requests go; fixed at startup."""

    base_url: str
    port: int

    @classmethod
    def from_host_port(cls, host: str, port: int) -> "ProxyTarget":
        # IPv6 literals need brackets inside a URL authority
        if ":" in host and not host.startswith("["):
            host = f"[{host}]"
        return cls(base_url=f"http://{host}:{port}", port=port)


def create_upstream_client(
    timeout: float = DEFAULT_TIMEOUT_SECONDS,
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> httpx.AsyncClient:
    """
    Create the shared client used for health polls and proxying.

    Redirects are passed back to the caller rather than followed. The
    client carries no default headers, so a forwarded request holds only
    what the caller sent plus Host and Content-Length.
    """
    client = httpx.AsyncClient(
        timeout=httpx.Timeout(timeout),
        follow_redirects=False,
        transport=transport,
    )
    for name in _CLIENT_DEFAULT_HEADERS:
        client.headers.pop(name, None)
    return client


def filter_headers(headers: Iterable[Tuple[bytes, bytes]]) -> List[Tuple[bytes, bytes]]:
    """
    Drop connection-level headers and make sure a Content-Type is present.

    Works on raw byte pairs so obs-text values pass through undecoded.

    Args:
        headers: Inbound (name, value) pairs, duplicates allowed

    Returns:
        Header pairs to send upstream, in their original order
    """
    out = [(k, v) for k, v in headers if k.lower() not in _STRIPPED_REQUEST_HEADERS]
    if not any(k.lower() == b"content-type" for k, _ in out):
        out.append((b"content-type", DEFAULT_CONTENT_TYPE))
    return out


def relay_status(code: int) -> int:
    """Map the upstream status to ours, 502 if it is not a valid code."""
    if 100 <= code <= 999:
        return code
    logger.warning(f"Upstream returned invalid status {code}, answering 502")
    return 502


def _describe(exc: Exception) -> str:
    return str(exc) or type(exc).__name__


async def forward(
    client: httpx.AsyncClient,
    target: ProxyTarget,
    request: Request,
    upstream_path: str,
) -> Response:
    """
    Forward one inbound request to {target.base_url}{upstream_path}.

    Args:
        client: Shared upstream client
        target: Upstream location
        request: Inbound request
        upstream_path: Fixed upstream path for the route

    Returns:
        The upstream's reply, or a locally built 400/502
    """
    try:
        url = httpx.URL(f"{target.base_url}{upstream_path}")
    except httpx.InvalidURL as e:
        logger.error(f"Cannot build upstream URL from {target.base_url!r}: {e}")
        return PlainTextResponse("bad upstream uri", status_code=400)

    try:
        body = await request.body()
    except ClientDisconnect:
        logger.warning(f"Client disconnected before sending full body for {request.url.path}")
        return PlainTextResponse("failed to read request body", status_code=400)

    upstream_request = client.build_request(
        request.method,
        url,
        headers=filter_headers(request.headers.raw),
        content=body,
    )

    try:
        upstream = await client.send(upstream_request, stream=True)
    except httpx.RequestError as e:
        logger.warning(f"Upstream request to {url} failed: {e!r}")
        return PlainTextResponse(
            f"upstream request failed: {_describe(e)}", status_code=502
        )

    try:
        status = relay_status(upstream.status_code)
        headers = [
            (k, v)
            for k, v in upstream.headers.raw
            if k.lower() not in _STRIPPED_RESPONSE_HEADERS
        ]
        # Raw wire bytes, so any Content-Encoding header stays accurate
        out = b"".join([chunk async for chunk in upstream.aiter_raw()])
    except httpx.RequestError as e:
        logger.warning(f"Reading upstream body from {url} failed: {e!r}")
        return PlainTextResponse(
            f"upstream body read failed: {_describe(e)}", status_code=502
        )
    finally:
        await upstream.aclose()

    logger.debug(f"{request.method} {upstream_path} -> {status} ({len(out)} bytes)")

    if status >= 200 and status not in (204, 304):
        headers.append((b"content-length", str(len(out)).encode("latin-1")))

    response = Response(content=out, status_code=status)
    response.raw_headers = headers
    return response
