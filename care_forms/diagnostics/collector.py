"""Collector for batch submission failures.

Maps the per-request results of a batch back onto the forms that produced
the requests, and produces one ServerValidationError per failed entry.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from care_forms.diagnostics.models import ServerValidationError
from care_forms.responses.models import QuestionnaireFormState, QuestionValidationError
from care_forms.responses.state import iter_questions
from care_forms.structured.handlers import BatchRequest

if TYPE_CHECKING:
    from care_forms.submission.batch import BatchResult

logger = logging.getLogger(__name__)

DEFAULT_MESSAGE = "Validation failed"


def _format_entry(entry: Any) -> str:
    if not isinstance(entry, dict):
        return str(entry)
    message = entry.get("msg") or entry.get("error") or DEFAULT_MESSAGE
    loc = entry.get("loc")
    if loc:
        return f"{' > '.join(str(part) for part in loc)}: {message}"
    return str(message)


def format_error_message(data: Any) -> str:
    """Summarize the body of a failed batch entry.

    Args:
        data: The ``data`` of a batch result.

    Returns:
        All nested errors joined with ", " for list bodies, otherwise the
        first error, falling back to "Validation failed".
    """
    if isinstance(data, list):
        entries = [
            error
            for item in data
            if isinstance(item, dict)
            for error in item.get("errors") or []
        ]
        if entries:
            return ", ".join(_format_entry(entry) for entry in entries)
        return DEFAULT_MESSAGE
    if isinstance(data, dict):
        errors = data.get("errors")
        if isinstance(errors, list) and errors:
            return _format_entry(errors[0])
        for key in ("msg", "error", "detail"):
            if data.get(key):
                return str(data[key])
    return DEFAULT_MESSAGE


def title_from_reference(reference_id: str) -> str:
    """Turn a reference id like "medication_request" into "Medication Request"."""
    return " ".join(word[:1].upper() + word[1:] for word in reference_id.split("_"))


class SubmissionErrorCollector:
    """Collects server failures of one batch.

    Tracks which form produced each request so attributable errors (those
    carrying a ``question_id``) land on the right form.
    """

    def __init__(
        self,
        forms: Sequence[QuestionnaireFormState],
        requests: Sequence[BatchRequest],
        origins: Sequence[int],
    ) -> None:
        """Initialize the collector for a compiled batch.

        Args:
            forms: The attached forms, in attachment order.
            requests: The compiled requests, in batch order.
            origins: For each request, the index of the form it came from.
        """
        self.forms = list(forms)
        self.requests = list(requests)
        self.origins = list(origins)

        self._server_errors: list[ServerValidationError] = []
        self._question_errors: dict[int, list[QuestionValidationError]] = {}
        self._succeeded = 0
        self._failed = 0

    @property
    def succeeded_count(self) -> int:
        return self._succeeded

    @property
    def failed_count(self) -> int:
        return self._failed

    @property
    def server_errors(self) -> list[ServerValidationError]:
        return list(self._server_errors)

    def question_errors(self, form_index: int) -> list[QuestionValidationError]:
        """Server errors attributed to questions of one form."""
        return list(self._question_errors.get(form_index, []))

    def resolve_title(self, reference_id: str) -> str:
        """Title of the questionnaire with this id, else a title-cased reference."""
        for form in self.forms:
            if form.questionnaire.id == reference_id:
                return form.questionnaire.title
        return title_from_reference(reference_id)

    def find_structured_question_id(self, reference_id: str, form_index: int | None) -> str | None:
        """Find the structured question whose type produced a reference id."""
        forms = self.forms if form_index is None else [self.forms[form_index]]
        for form in forms:
            for question in iter_questions(form.questionnaire.questions):
                if question.structured_type is not None and question.structured_type.value == reference_id:
                    return question.id
        return None

    def _origin_for(self, position: int, result: BatchResult) -> int | None:
        if position < len(self.requests) and self.requests[position].reference_id == result.reference_id:
            return self.origins[position]
        for request, origin in zip(self.requests, self.origins):
            if request.reference_id == result.reference_id:
                return origin
        return None

    def _form_for_question(self, question_id: str) -> int | None:
        for index, form in enumerate(self.forms):
            if form.questionnaire.get_question(question_id) is not None:
                return index
        return None

    def collect(self, results: Sequence[BatchResult]) -> None:
        """Collect every result of a batch.

        Results are matched to requests by position, falling back to
        ``reference_id`` when positions disagree.

        Args:
            results: The batch results, in response order.
        """
        for position, result in enumerate(results):
            if result.is_success:
                self._succeeded += 1
                continue
            self._collect_failure(result, self._origin_for(position, result))

        for request in self.requests[len(results):]:
            self._failed += 1
            self._server_errors.append(
                ServerValidationError(
                    reference_id=request.reference_id,
                    title=self.resolve_title(request.reference_id),
                    message="No result returned for this request",
                )
            )

    def _collect_failure(self, result: BatchResult, form_index: int | None) -> None:
        self._failed += 1
        data = result.data
        questionnaire_id = self.forms[form_index].questionnaire.id if form_index is not None else None

        if isinstance(data, dict) and isinstance(data.get("errors"), list):
            for entry in data["errors"]:
                if not isinstance(entry, dict) or not entry.get("question_id"):
                    continue
                question_id = str(entry["question_id"])
                target = form_index if form_index is not None else self._form_for_question(question_id)
                if target is None:
                    continue
                self._question_errors.setdefault(target, []).append(
                    QuestionValidationError(
                        question_id=question_id,
                        error=str(entry.get("error") or entry.get("msg") or DEFAULT_MESSAGE),
                        type="server_error",
                    )
                )

        error = ServerValidationError(
            reference_id=result.reference_id,
            title=self.resolve_title(result.reference_id),
            message=format_error_message(data),
            status_code=result.status_code,
            questionnaire_id=questionnaire_id,
            question_id=self.find_structured_question_id(result.reference_id, form_index),
            details=data,
        )
        logger.warning(
            "Batch request %s failed with status %s: %s",
            error.reference_id,
            error.status_code,
            error.message,
        )
        self._server_errors.append(error)

    def apply_to_forms(
        self,
        forms: Sequence[QuestionnaireFormState],
    ) -> list[QuestionnaireFormState]:
        """Append attributable server errors to the forms they belong to."""
        updated = list(forms)
        for index, errors in self._question_errors.items():
            form = updated[index]
            updated[index] = form.model_copy(update={"errors": [*form.errors, *errors]})
        return updated
