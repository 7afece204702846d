"""Job intake and orchestration."""

from .coordinator import Coordinator
from .jobs import JobService, parse_job

__all__ = ["Coordinator", "JobService", "parse_job"]
