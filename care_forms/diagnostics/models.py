"""Data models for submission outcomes.

Tracks the orchestrator status and every user-visible problem a
submission produced: local validation errors, server failures per batch
entry, and soft warnings.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from care_forms.responses.models import QuestionValidationError


class SubmissionStatus(str, Enum):
    """State of a submission."""

    IDLE = "idle"
    VALIDATING = "validating"
    INVALID = "invalid"  # Local errors found, nothing was sent
    COMPILING = "compiling"
    SUBMITTING = "submitting"
    SUCCEEDED = "succeeded"  # Every request of the batch succeeded
    PARTIALLY_FAILED = "partially_failed"  # At least one request failed
    FAILED = "failed"  # Transport failure or missing context; nothing known to be applied


class ServerValidationError(BaseModel):
    """A failed batch entry, summarized for display."""

    reference_id: str
    title: str
    message: str
    status_code: int | None = None
    questionnaire_id: str | None = None
    question_id: str | None = None  # structured question that produced the request
    details: Any = None


class SubmissionWarning(BaseModel):
    """A non-blocking observation, e.g. a repeated diagnosis code."""

    code: str  # Warning code like "DUPLICATE_CODE"
    message: str
    questionnaire_id: str | None = None
    question_id: str | None = None
    index: int | None = None


class SubmissionReport(BaseModel):
    """Outcome of one submit attempt."""

    status: SubmissionStatus
    request_count: int = 0
    succeeded_count: int = 0
    failed_count: int = 0
    validation_errors: list[QuestionValidationError] = Field(default_factory=list)
    first_error_id: str | None = None
    server_errors: list[ServerValidationError] = Field(default_factory=list)
    warnings: list[SubmissionWarning] = Field(default_factory=list)
    message: str | None = None

    @property
    def ok(self) -> bool:
        """Whether the submission fully succeeded."""
        return self.status == SubmissionStatus.SUCCEEDED
