"""Job lifecycle constants.

The remote engine reports a richer set of job states than the execution
pipeline cares about. Everything is folded into :class:`JobState` here so
that the poller only ever reasons about five states.
"""

from enum import Enum
from typing import FrozenSet, Optional


class JobState(str, Enum):
    """Normalized lifecycle state of a remote job.

    State Transitions:
        PENDING -> RUNNING -> COMPLETED
                          |-> FAILED
                          |-> CANCELLED
                |-> CANCELLED

    Values:
        PENDING: Accepted by the remote engine but not yet executing
            (queued, planning, waiting for an engine).
        RUNNING: Actively executing.
        COMPLETED: Finished; results can be fetched page by page.
        FAILED: Terminated by an error; ``Job.error_message`` has details.
        CANCELLED: Terminated by a cancel request (ours or the remote's).
    """

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATES


TERMINAL_STATES: FrozenSet[JobState] = frozenset(
    {JobState.COMPLETED, JobState.FAILED, JobState.CANCELLED}
)

_REMOTE_RUNNING_STATES = frozenset({"RUNNING", "STARTING", "CANCELLATION_REQUESTED"})


def normalize_job_state(remote_state: Optional[str]) -> JobState:
    """Map a remote ``jobState`` string to a :class:`JobState`.

    Unknown or missing states are treated as PENDING so that polling simply
    continues until the remote reports something terminal.
    """
    state = (remote_state or "").strip().upper()
    if state == "COMPLETED":
        return JobState.COMPLETED
    if state == "FAILED":
        return JobState.FAILED
    if state in ("CANCELED", "CANCELLED"):
        return JobState.CANCELLED
    if state in _REMOTE_RUNNING_STATES:
        return JobState.RUNNING
    return JobState.PENDING
