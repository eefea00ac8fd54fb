"""Submission: request compilation, batch transport and orchestration."""

from care_forms.submission.batch import (
    BatchClient,
    BatchRequest,
    BatchResponse,
    BatchResult,
    BatchTransportError,
    HttpBatchClient,
    build_envelope,
)
from care_forms.submission.compiler import (
    CompiledBatch,
    SubmissionContext,
    compile_requests,
    plain_submission_request,
    serialize_value,
)
from care_forms.submission.orchestrator import SubmissionOrchestrator

__all__ = [
    "BatchClient",
    "BatchRequest",
    "BatchResponse",
    "BatchResult",
    "BatchTransportError",
    "CompiledBatch",
    "HttpBatchClient",
    "SubmissionContext",
    "SubmissionOrchestrator",
    "build_envelope",
    "compile_requests",
    "plain_submission_request",
    "serialize_value",
]
