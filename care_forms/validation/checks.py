"""Validation of questionnaire responses.

Walks the question tree, skipping disabled questions and disabled group
subtrees, and checks required answers and structured records.
"""

from collections.abc import Iterator, Sequence

from pydantic import BaseModel, Field

from care_forms.registry.models import Question
from care_forms.responses.models import (
    QuestionnaireFormState,
    QuestionnaireResponse,
    QuestionValidationError,
    ResponseValue,
)
from care_forms.structured.validators import FIELD_REQUIRED, validate_structured
from care_forms.visibility.evaluator import is_enabled

REQUIRED_MESSAGE = FIELD_REQUIRED


class ValidationResult(BaseModel):
    """Result of validating one questionnaire's responses."""

    errors: list[QuestionValidationError] = Field(default_factory=list)
    first_error_id: str | None = None

    @property
    def valid(self) -> bool:
        """Whether no errors were found."""
        return not self.errors

    @property
    def error_count(self) -> int:
        return len(self.errors)


def is_answer_value(entry: ResponseValue) -> bool:
    """Whether one value carries an answer.

    A value counts when it is not None, an empty string, or an empty list.
    Quantity and coded choice answers may keep their payload in ``unit`` or
    ``coding`` instead, so those count too.
    """
    if entry.value is not None and entry.value != "" and entry.value != []:
        return True
    return entry.coding is not None or entry.unit is not None


def has_answer(response: QuestionnaireResponse | None) -> bool:
    """Whether a response satisfies a required question."""
    if response is None:
        return False
    return any(is_answer_value(entry) for entry in response.values)


def walk_questions(
    questions: Sequence[Question],
    responses: Sequence[QuestionnaireResponse],
) -> Iterator[Question]:
    """Yield enabled leaf questions in depth-first declaration order.

    Groups are never yielded. A disabled group prunes its whole subtree.
    """
    for question in questions:
        if not is_enabled(question, responses):
            continue
        if question.is_group:
            yield from walk_questions(question.questions, responses)
        else:
            yield question


def validate_question(
    question: Question,
    response: QuestionnaireResponse | None,
) -> list[QuestionValidationError]:
    """Validate a single leaf question.

    Args:
        question: The question definition.
        response: Its response record, if any.

    Returns:
        The required-field error, or the structured validator's errors.
    """
    if question.required and not has_answer(response):
        return [QuestionValidationError(question_id=question.id, error=REQUIRED_MESSAGE)]

    if question.is_structured and question.structured_type is not None and response is not None:
        items = response.structured_items
        if items:
            return validate_structured(question.structured_type, items, question.id)
    return []


def validate_questionnaire(
    questions: Sequence[Question],
    responses: Sequence[QuestionnaireResponse],
) -> ValidationResult:
    """Validate every enabled question of a questionnaire.

    Calling this twice on the same input yields equal results.

    Args:
        questions: Root questions of the questionnaire.
        responses: The current response records.

    Returns:
        ValidationResult with all errors and the id of the first offending
        question.
    """
    by_id = {response.question_id: response for response in responses}
    errors: list[QuestionValidationError] = []
    for question in walk_questions(questions, responses):
        errors.extend(validate_question(question, by_id.get(question.id)))

    return ValidationResult(
        errors=errors,
        first_error_id=errors[0].question_id if errors else None,
    )


def validate_forms(forms: Sequence[QuestionnaireFormState]) -> list[QuestionnaireFormState]:
    """Re-derive the errors of every form from scratch.

    Returns:
        New form states whose ``errors`` hold exactly the current errors.
    """
    return [
        form.model_copy(
            update={
                "errors": validate_questionnaire(
                    form.questionnaire.questions, form.responses
                ).errors
            }
        )
        for form in forms
    ]
