"""Exception hierarchy for the pipeline.

Transport and configuration problems are normally reported as ``None`` /
``False`` at the call site; the exceptions here cover the cases that must
stop an operation before it mutates anything.
"""
from __future__ import annotations


class PipelineError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(PipelineError):
    """A required setting (token, webhook, config file) is missing or invalid."""


class JobNotFoundError(PipelineError):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"Job not found: {job_id}")
        self.job_id = job_id


class InvariantViolation(PipelineError):
    """A state transition was requested that the store refuses to perform."""


class MissingProposalError(InvariantViolation):
    def __init__(self, job_id: str) -> None:
        super().__init__(f"No proposal generated for {job_id}; run: gigscout propose {job_id}")
        self.job_id = job_id


class InvalidStatusError(InvariantViolation):
    def __init__(self, status: str, allowed: list[str] | tuple[str, ...]) -> None:
        super().__init__(f"Invalid status {status!r}. Use: {', '.join(allowed)}")
        self.status = status
        self.allowed = tuple(allowed)
