"""Shared types for the supervised llama-server child.

The supervisor is the only owner of a ChildHandle; other components see
the child only through TerminationOutcome values and read-only views.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, List, Optional


class SpawnError(RuntimeError):
    """The child process could not be started."""


class TerminationStatus(str, Enum):
    """Result of a terminate request."""

    TERMINATED = "terminated"  # Kill signal delivered
    KILL_FAILED = "kill_failed"  # Kill call raised
    NO_CHILD = "no_child"  # Nothing was running


@dataclass(frozen=True)
class TerminationOutcome:
    """What happened to the child on a terminate request."""

    status: TerminationStatus
    reason: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.status is not TerminationStatus.KILL_FAILED

    @property
    def message(self) -> str:
        """Plain-text description returned to the /shutdown caller."""
        if self.status is TerminationStatus.TERMINATED:
            return "llama-server terminated"
        if self.status is TerminationStatus.KILL_FAILED:
            return f"kill failed: {self.reason}"
        return "no child process"


@dataclass
class ChildHandle:
    """Supervisor's view of the running child."""

    proc: Any  # subprocess.Popen
    argv: List[str] = field(default_factory=list)

    @property
    def pid(self) -> int:
        return self.proc.pid

    def is_alive(self) -> bool:
        """Check if the child process is still running."""
        return self.proc.poll() is None
