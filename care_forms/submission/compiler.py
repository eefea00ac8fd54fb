"""Compilation of form states into a batch of write requests.

Structured answers go through their type's handler; plain answers of each
questionnaire are gathered into one submit request. Disabled questions are
never compiled. Request order follows attachment order of the forms and
declaration order of the questions.
"""

import asyncio
import inspect
import logging
from collections.abc import Iterator, Sequence
from datetime import date, datetime, time
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from care_forms.responses.models import QuestionnaireFormState, ResponseValue
from care_forms.structured.handlers import (
    BatchRequest,
    HandlerContext,
    HandlerResult,
    compile_structured,
)
from care_forms.submission.batch import build_envelope
from care_forms.validation.checks import is_answer_value, walk_questions

logger = logging.getLogger(__name__)

TEMPORAL_TYPES = frozenset({"date", "dateTime", "time"})


class SubmissionContext(HandlerContext):
    """Patient, encounter and facility a submission writes against."""

    @property
    def resource_id(self) -> str:
        """The resource plain answers are recorded on: encounter, else patient."""
        return self.encounter_id or self.patient_id


class CompiledBatch(BaseModel):
    """Compiled requests plus, for each request, the index of its form."""

    requests: list[BatchRequest] = Field(default_factory=list)
    origins: list[int] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    def envelope(self) -> dict[str, Any]:
        """The batch body: ``{"requests": [...]}``."""
        return build_envelope(self.requests)


def _stringify(value: Any) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


def _isoformat(value: Any) -> Any:
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    return value


def serialize_value(value: ResponseValue) -> dict[str, Any]:
    """Serialize one plain answer for the questionnaire submit body.

    Args:
        value: The answer.

    Returns:
        Temporal answers keep their shape with an ISO-8601 value; quantities
        carry value, unit and coding; coded answers carry only their coding;
        anything else is sent as a string value.
    """
    if value.type in TEMPORAL_TYPES and value.value:
        payload = value.model_dump(mode="json", exclude_none=True)
        payload["value"] = _isoformat(value.value)
        return payload
    if value.unit is not None:
        return {
            "value": None if value.value is None else _stringify(value.value),
            "unit": value.unit.model_dump(mode="json", exclude_none=True),
            "coding": value.coding.model_dump(mode="json", exclude_none=True) if value.coding else None,
        }
    if value.coding is not None:
        return {"coding": value.coding.model_dump(mode="json", exclude_none=True)}
    return {"value": _stringify(value.value)}


def plain_submission_request(
    form: QuestionnaireFormState,
    context: SubmissionContext,
) -> BatchRequest | None:
    """Build the submit request for a form's enabled, answered plain questions.

    Blank values (no value, unit or coding) are dropped; a question left
    with none is omitted.

    Returns:
        The request, or None when no such question has an answer.
    """
    results: list[dict[str, Any]] = []
    for question in walk_questions(form.questionnaire.questions, form.responses):
        if question.is_structured:
            continue
        response = form.get_response(question.id)
        if response is None or response.structured_type is not None:
            continue
        answered = [value for value in response.values if is_answer_value(value)]
        if not answered:
            continue
        entry: dict[str, Any] = {
            "question_id": response.question_id,
            "values": [serialize_value(value) for value in answered],
        }
        if response.note:
            entry["note"] = response.note
        if response.body_site is not None:
            entry["body_site"] = response.body_site.model_dump(mode="json", exclude_none=True)
        if response.method is not None:
            entry["method"] = response.method.model_dump(mode="json", exclude_none=True)
        results.append(entry)

    if not results:
        return None

    return BatchRequest(
        url=f"/api/v1/questionnaire/{form.questionnaire.slug}/submit/",
        method="POST",
        body={
            "resource_id": context.resource_id,
            "encounter": context.encounter_id,
            "patient": context.patient_id,
            "results": results,
        },
        reference_id=form.questionnaire.id,
    )


def structured_results(
    form: QuestionnaireFormState,
    context: SubmissionContext,
) -> Iterator[HandlerResult]:
    """Dispatch every enabled structured question with records to its handler.

    Raises:
        MissingContextError: If a handler needs a facility that is absent.
    """
    for question in walk_questions(form.questionnaire.questions, form.responses):
        if not question.is_structured or question.structured_type is None:
            continue
        response = form.get_response(question.id)
        if response is None:
            continue
        items = response.structured_items
        if items:
            yield compile_structured(question.structured_type, items, context)


async def compile_requests(
    forms: Sequence[QuestionnaireFormState],
    context: SubmissionContext,
) -> CompiledBatch:
    """Compile every attached form into one ordered batch.

    Asynchronous handlers (file encoding) are awaited together; synchronous
    handler results are used as-is.

    Args:
        forms: Attached forms, in attachment order.
        context: Submission identifiers.

    Returns:
        CompiledBatch whose requests are ordered by form, then by question
        (structured requests first, then the form's plain submission).

    Raises:
        MissingContextError: If a handler needs a facility that is absent.
        FileEncodingError: If a file payload cannot be encoded.
    """
    pending: list[tuple[int, HandlerResult]] = []
    try:
        for index, form in enumerate(forms):
            for result in structured_results(form, context):
                pending.append((index, result))
            plain = plain_submission_request(form, context)
            if plain is not None:
                pending.append((index, [plain]))
    except Exception:
        for _, result in pending:
            if inspect.iscoroutine(result):
                result.close()
        raise

    awaited = await asyncio.gather(*(result for _, result in pending if inspect.isawaitable(result)))
    resolved = iter(awaited)

    requests: list[BatchRequest] = []
    origins: list[int] = []
    for index, result in pending:
        batch = next(resolved) if inspect.isawaitable(result) else result
        requests.extend(batch)
        origins.extend([index] * len(batch))

    logger.info("Compiled %d request(s) from %d form(s)", len(requests), len(forms))
    return CompiledBatch(requests=requests, origins=origins)
