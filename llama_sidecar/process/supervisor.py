"""ChildSupervisor - exclusive owner of the llama-server child process.

Responsibilities:
- Build the llama-server command line from settings
- Spawn the child with the sidecar's own stdout/stderr
- Kill and reap the child on request, at most once per handle

All access to the handle goes through a single asyncio lock, so a shutdown
request racing another shutdown (or the startup spawn) never sees a
half-cleared slot.
"""

from __future__ import annotations

import asyncio
import logging
import subprocess
from typing import List, Optional

from .protocol import (
    ChildHandle,
    SpawnError,
    TerminationOutcome,
    TerminationStatus,
)

logger = logging.getLogger(__name__)


def build_command(
    binary: str,
    model_path: str,
    host: str,
    port: int,
    ctx_size: int,
    n_gpu_layers: int,
) -> List[str]:
    """
    Build the llama-server argument list.

    The GPU offload flag is only passed for non-negative layer counts so a
    negative value leaves the choice to llama-server.
    """
    cmd = [
        binary,
        "-m",
        model_path,
        "--host",
        host,
        "--port",
        str(port),
        "-c",
        str(ctx_size),
    ]
    if n_gpu_layers >= 0:
        cmd.extend(["-ngl", str(n_gpu_layers)])
    return cmd


class ChildSupervisor:
    """
    Holds the one supervised child behind a mutex.

    The slot is either empty or holds a single ChildHandle. terminate()
    always empties it, even when the kill call fails, so the same handle
    can never be terminated twice.
    """

    def __init__(self, reap_timeout: float = 10.0):
        """
        Initialize supervisor.

        Args:
            reap_timeout: Max seconds to wait for the killed child to be reaped
        """
        self._lock = asyncio.Lock()
        self._handle: Optional[ChildHandle] = None
        self.reap_timeout = reap_timeout

    async def spawn(
        self,
        binary: str,
        model_path: str,
        host: str,
        port: int,
        ctx_size: int,
        n_gpu_layers: int,
    ) -> ChildHandle:
        """
        Start llama-server and store its handle.

        Raises:
            SpawnError: If the binary cannot be started or a child is
                already running
        """
        cmd = build_command(binary, model_path, host, port, ctx_size, n_gpu_layers)

        async with self._lock:
            if self._handle is not None and self._handle.is_alive():
                raise SpawnError(
                    f"llama-server already running (pid {self._handle.pid})"
                )

            logger.info(f"Spawning llama-server: {' '.join(cmd)}")
            try:
                # stdout/stderr stay attached to our own console
                proc = subprocess.Popen(cmd)
            except OSError as e:
                raise SpawnError(f"failed to spawn llama-server: {e}") from e

            self._handle = ChildHandle(proc=proc, argv=cmd)
            logger.info(f"llama-server started (pid {proc.pid})")
            return self._handle

    async def terminate(self) -> TerminationOutcome:
        """
        Kill and reap the child, if any.

        Safe to call concurrently and repeatedly; calls after the first
        report NO_CHILD.
        """
        async with self._lock:
            handle, self._handle = self._handle, None

            if handle is None:
                logger.info("Terminate requested but no child process is held")
                return TerminationOutcome(TerminationStatus.NO_CHILD)

            try:
                handle.proc.kill()
                outcome = TerminationOutcome(TerminationStatus.TERMINATED)
                logger.info(f"Sent kill to llama-server (pid {handle.pid})")
            except OSError as e:
                outcome = TerminationOutcome(TerminationStatus.KILL_FAILED, reason=str(e))
                logger.error(f"Failed to kill llama-server (pid {handle.pid}): {e}")

            await self._reap(handle)
            return outcome

    async def _reap(self, handle: ChildHandle) -> None:
        """Wait for the child to exit so it does not linger as a zombie."""
        try:
            code = await asyncio.to_thread(handle.proc.wait, self.reap_timeout)
            logger.info(f"llama-server (pid {handle.pid}) exited with code {code}")
        except subprocess.TimeoutExpired:
            logger.warning(
                f"llama-server (pid {handle.pid}) not reaped within {self.reap_timeout}s"
            )
        except OSError as e:
            logger.warning(f"Failed to reap llama-server (pid {handle.pid}): {e}")

    def is_alive(self) -> bool:
        """Check whether a child is held and still running."""
        handle = self._handle
        return handle is not None and handle.is_alive()

    @property
    def pid(self) -> Optional[int]:
        handle = self._handle
        return handle.pid if handle is not None else None
