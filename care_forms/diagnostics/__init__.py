"""Submission diagnostics: statuses, server errors and reports."""

from care_forms.diagnostics.collector import (
    SubmissionErrorCollector,
    format_error_message,
    title_from_reference,
)
from care_forms.diagnostics.models import (
    ServerValidationError,
    SubmissionReport,
    SubmissionStatus,
    SubmissionWarning,
)

__all__ = [
    "ServerValidationError",
    "SubmissionErrorCollector",
    "SubmissionReport",
    "SubmissionStatus",
    "SubmissionWarning",
    "format_error_message",
    "title_from_reference",
]
