"""flowsmith: generate automation workflows from business process descriptions."""

from flowsmith.core.models import Job
from flowsmith.service.coordinator import Coordinator
from flowsmith.service.jobs import JobService

__all__ = ["Coordinator", "Job", "JobService"]
