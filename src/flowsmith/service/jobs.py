"""In-process job intake, status tracking and cancellation.

Jobs are validated synchronously at submission and run on a worker pool, one
worker thread per job from start to finish. Records live in memory only.
"""

import logging
import threading
from collections.abc import Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Any, Literal, Optional, Union

from pydantic import ValidationError

from flowsmith.core.exceptions import InputValidationError, JobNotFoundError
from flowsmith.core.models import Job
from flowsmith.service.coordinator import Coordinator

logger = logging.getLogger(__name__)

JobStatus = Literal["queued", "processing", "completed", "failed", "cancelled"]
TERMINAL_STATUSES = frozenset({"completed", "failed", "cancelled"})


@dataclass
class JobRecord:
    job: Job
    status: JobStatus = "queued"
    progress: int = 0
    stage: str = "queued"
    result: Optional[dict[str, Any]] = None
    error: Optional[str] = None
    cancel_event: threading.Event = field(default_factory=threading.Event)
    future: Optional[Future] = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "jobId": self.job.id,
            "status": self.status,
            "progress": self.progress,
            "stage": self.stage,
        }
        if self.result is not None:
            data["result"] = self.result
        if self.error is not None:
            data["error"] = self.error
        return data


def parse_job(payload: Union[Job, Mapping[str, Any]]) -> Job:
    """Validate a raw job payload.

    Raises:
        InputValidationError: If the payload is not a valid job
    """
    if isinstance(payload, Job):
        return payload
    try:
        return Job.model_validate(dict(payload))
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(part) for part in err["loc"]), "message": err["msg"]} for err in e.errors()
        ]
        fields = ", ".join(err["field"] or "<root>" for err in errors)
        raise InputValidationError(f"Invalid job: {fields}", errors=errors) from e


class JobService:
    """Accepts jobs and runs them through a coordinator on a thread pool."""

    def __init__(self, coordinator: Coordinator, max_workers: int = 4):
        self.coordinator = coordinator
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="flowsmith-job")
        self._records: dict[str, JobRecord] = {}
        self._lock = threading.Lock()

    def submit(self, payload: Union[Job, Mapping[str, Any]]) -> str:
        """Validate and queue a job.

        Returns:
            The job id

        Raises:
            InputValidationError: If the payload is malformed
        """
        job = parse_job(payload)
        record = JobRecord(job=job)
        with self._lock:
            if job.id in self._records:
                raise InputValidationError(f"Job {job.id} was already submitted")
            self._records[job.id] = record
            record.future = self._executor.submit(self._run, record)
        logger.info(f"Queued job {job.id}")
        return job.id

    def status(self, job_id: str) -> dict[str, Any]:
        with self._lock:
            return self._get(job_id).to_dict()

    def cancel(self, job_id: str) -> bool:
        """Request cancellation.

        Queued jobs are cancelled immediately. Running jobs stop at the next
        stage boundary or route attempt.

        Returns:
            False if the job had already finished
        """
        with self._lock:
            record = self._get(job_id)
            if record.status in TERMINAL_STATUSES:
                return False
            record.cancel_event.set()
            if record.future is not None and record.future.cancel():
                record.status = "cancelled"
                record.stage = "cancelled"
                record.error = f"Job {job_id} was cancelled before it started"
        logger.info(f"Cancellation requested for job {job_id}")
        return True

    def wait(self, job_id: str, timeout: Optional[float] = None) -> dict[str, Any]:
        """Block until a job finishes and return its status.

        Raises:
            TimeoutError: If the job is still running after ``timeout`` seconds
        """
        with self._lock:
            future = self._get(job_id).future
        if future is not None and not future.cancelled():
            future.result(timeout=timeout)
        return self.status(job_id)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait, cancel_futures=True)

    def _get(self, job_id: str) -> JobRecord:
        record = self._records.get(job_id)
        if record is None:
            raise JobNotFoundError(f"Unknown job: {job_id}")
        return record

    def _run(self, record: JobRecord) -> None:
        job_id = record.job.id
        with self._lock:
            record.status = "processing"
            record.stage = "started"

        def on_progress(percent: int, stage: str) -> None:
            with self._lock:
                record.progress = percent
                record.stage = stage

        try:
            result = self.coordinator.generate(record.job, record.cancel_event, on_progress)
        except Exception as e:
            # Worker boundary: an unexpected error fails this job only
            logger.exception(f"Job {job_id} crashed")
            with self._lock:
                record.status = "failed"
                record.error = f"{type(e).__name__}: {e}"
            return

        with self._lock:
            record.result = result
            record.status = result["status"]
            if result["status"] != "completed":
                record.error = result.get("error")
