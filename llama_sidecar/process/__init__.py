"""Supervision of the llama-server child process.

Key components:
- supervisor: ChildSupervisor, the lock-guarded owner of the child handle
- readiness: wait_for_upstream, the startup health polling loop
- protocol: Handle, outcome and error types
"""

from .protocol import (
    ChildHandle,
    SpawnError,
    TerminationOutcome,
    TerminationStatus,
)
from .readiness import wait_for_upstream
from .supervisor import ChildSupervisor, build_command

__all__ = [
    "ChildHandle",
    "ChildSupervisor",
    "SpawnError",
    "TerminationOutcome",
    "TerminationStatus",
    "build_command",
    "wait_for_upstream",
]
