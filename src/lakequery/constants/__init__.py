"""Constants and enumerations for lakequery.

This module provides a centralized location for the enumerations shared by
the HTTP client, the execution pipeline and the type mapper.
"""

from lakequery.constants.job import JobState, TERMINAL_STATES, normalize_job_state
from lakequery.constants.types import CanonicalType

__all__ = [
    "JobState",
    "TERMINAL_STATES",
    "normalize_job_state",
    "CanonicalType",
]
