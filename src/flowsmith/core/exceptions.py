"""Custom exceptions for flowsmith."""

from typing import Optional


class FlowsmithError(Exception):
    """Base exception for all flowsmith errors."""

    pass


class InputValidationError(FlowsmithError):
    """Raised when a submitted job is malformed and cannot enter the pipeline."""

    def __init__(self, message: str, errors: Optional[list[dict]] = None):
        self.errors = errors or []
        super().__init__(message)


class CatalogUnavailableError(FlowsmithError):
    """Raised by a node catalog when its backing store cannot be reached."""

    pass


class PromptBudgetError(FlowsmithError):
    """Raised when a prompt cannot be brought under its tier's token ceiling.

    The coordinator treats this as a signal to drop the tier, and to force the
    blueprint path when no tier is left.
    """

    def __init__(self, tier: str, estimated_tokens: int, ceiling: int):
        self.tier = tier
        self.estimated_tokens = estimated_tokens
        self.ceiling = ceiling
        super().__init__(
            f"Prompt for tier '{tier}' needs ~{estimated_tokens} tokens after truncation, ceiling is {ceiling}"
        )


class JobCancelledError(FlowsmithError):
    """Raised when a job is cancelled between pipeline stages."""

    def __init__(self, job_id: str, stage: Optional[str] = None):
        self.job_id = job_id
        self.stage = stage
        message = f"Job {job_id} was cancelled"
        if stage:
            message = f"{message} before {stage}"
        super().__init__(message)


class JobNotFoundError(FlowsmithError):
    """Raised when a job id is unknown to the job service."""

    pass
