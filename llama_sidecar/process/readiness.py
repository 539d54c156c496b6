"""Startup readiness gate for the upstream llama-server."""

from __future__ import annotations

import asyncio
import logging
import time
from typing import Callable, Optional

import httpx

logger = logging.getLogger(__name__)

POLL_INTERVAL_SECONDS = 0.25


async def wait_for_upstream(
    client: httpx.AsyncClient,
    base_url: str,
    timeout_s: float,
    *,
    poll_interval: float = POLL_INTERVAL_SECONDS,
    is_alive: Optional[Callable[[], bool]] = None,
    clock: Callable[[], float] = time.monotonic,
) -> bool:
    """
    Poll {base_url}/health until it answers 2xx or the deadline passes.

    Connection errors and non-2xx answers both mean "not ready yet". The
    caller decides whether a False result is fatal.

    Args:
        client: Shared upstream client
        base_url: Upstream base URL, without trailing slash
        timeout_s: Seconds from now until giving up
        poll_interval: Delay between polls
        is_alive: Optional check on the child; polling stops once it
            reports the process has exited
        clock: Monotonic time source

    Returns:
        True once the upstream reported healthy, False on timeout
    """
    url = f"{base_url}/health"
    deadline = clock() + timeout_s
    attempts = 0

    while True:
        remaining = deadline - clock()
        if remaining <= 0:
            logger.warning(
                f"Upstream at {url} not ready after {timeout_s}s ({attempts} polls)"
            )
            return False

        if is_alive is not None and not is_alive():
            logger.error("llama-server exited before becoming ready")
            return False

        attempts += 1
        try:
            # A single poll must not outlive the deadline
            resp = await client.get(url, timeout=remaining)
            if resp.is_success:
                logger.info(f"Upstream ready at {base_url} after {attempts} polls")
                return True
            logger.debug(f"Health poll {attempts}: HTTP {resp.status_code}")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.debug(f"Health poll {attempts} failed: {e!r}")

        await asyncio.sleep(poll_interval)
