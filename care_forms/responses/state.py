"""Response initialization and copy-on-write state updates.

Every function here returns new lists and records. Inputs are never
mutated, so callers holding an older list keep a consistent snapshot.
"""

from collections.abc import Iterator, Sequence

from care_forms.registry.models import Question, Questionnaire
from care_forms.responses.models import (
    QuestionnaireFormState,
    QuestionnaireResponse,
    ResponseValue,
)


class QuestionnaireNotAttachedError(Exception):
    """Raised when an edit targets a questionnaire that is not attached."""

    def __init__(self, questionnaire_id: str) -> None:
        self.questionnaire_id = questionnaire_id
        super().__init__(f"Questionnaire is not attached: {questionnaire_id}")


def iter_questions(questions: Sequence[Question]) -> Iterator[Question]:
    """Yield every question in depth-first declaration order, groups included."""
    for question in questions:
        yield question
        if question.is_group:
            yield from iter_questions(question.questions)


def flatten_questions(questions: Sequence[Question]) -> list[Question]:
    """Return the leaf (answerable) questions in depth-first declaration order."""
    return [q for q in iter_questions(questions) if not q.is_group]


def find_question(questions: Sequence[Question], question_id: str) -> Question | None:
    """Find a question anywhere in the tree by ID."""
    for question in iter_questions(questions):
        if question.id == question_id:
            return question
    return None


def find_question_text(form: QuestionnaireFormState, question_id: str) -> str:
    """Return the text of a question in a form, for labelling errors."""
    question = find_question(form.questionnaire.questions, question_id)
    if question is None:
        return "Unknown question"
    return question.text


def initialize_responses(questions: Sequence[Question]) -> list[QuestionnaireResponse]:
    """Create one empty response record per leaf question.

    Groups are descended but never get a record of their own. Output order
    is depth-first declaration order, so the result is identical for
    identical trees.

    Args:
        questions: Root questions of a questionnaire.

    Returns:
        Empty QuestionnaireResponse records keyed by question id/link_id.
    """
    return [
        QuestionnaireResponse(
            question_id=question.id,
            link_id=question.link_id,
            values=[],
            structured_type=question.structured_type,
        )
        for question in flatten_questions(questions)
    ]


def create_form_state(questionnaire: Questionnaire) -> QuestionnaireFormState:
    """Create a fresh form state with empty responses and no errors."""
    return QuestionnaireFormState(
        questionnaire=questionnaire,
        responses=initialize_responses(questionnaire.questions),
        errors=[],
    )


def update_response(
    responses: Sequence[QuestionnaireResponse],
    question_id: str,
    values: Sequence[ResponseValue | dict],
    note: str | None = None,
) -> list[QuestionnaireResponse]:
    """Replace the values and note of one response record.

    The edited record is replaced by a copy; every other record is carried
    over as the same object. Unknown question ids leave the list unchanged.

    Args:
        responses: Current response records.
        question_id: The question being answered.
        values: The full new list of answers for that question.
        note: Optional free-text note.

    Returns:
        A new list of response records.
    """
    new_values = [
        value if isinstance(value, ResponseValue) else ResponseValue.model_validate(value)
        for value in values
    ]
    return [
        response.model_copy(update={"values": new_values, "note": note})
        if response.question_id == question_id
        else response
        for response in responses
    ]


def _index_of(forms: Sequence[QuestionnaireFormState], questionnaire_id: str) -> int:
    for index, form in enumerate(forms):
        if form.questionnaire.id == questionnaire_id:
            return index
    raise QuestionnaireNotAttachedError(questionnaire_id)


def set_form_response(
    forms: Sequence[QuestionnaireFormState],
    questionnaire_id: str,
    question_id: str,
    values: Sequence[ResponseValue | dict],
    note: str | None = None,
) -> list[QuestionnaireFormState]:
    """Apply a response edit to one attached form.

    The edited form's errors are cleared because they describe the state
    before the edit.

    Raises:
        QuestionnaireNotAttachedError: If no form has this questionnaire id.
    """
    index = _index_of(forms, questionnaire_id)
    updated = list(forms)
    form = updated[index]
    updated[index] = form.model_copy(
        update={
            "responses": update_response(form.responses, question_id, values, note),
            "errors": [],
        }
    )
    return updated


def clear_question_errors(
    forms: Sequence[QuestionnaireFormState],
    questionnaire_id: str,
    question_id: str,
) -> list[QuestionnaireFormState]:
    """Drop the errors of one question in one form."""
    index = _index_of(forms, questionnaire_id)
    updated = list(forms)
    form = updated[index]
    updated[index] = form.model_copy(
        update={"errors": [e for e in form.errors if e.question_id != question_id]}
    )
    return updated


def attach_questionnaire(
    forms: Sequence[QuestionnaireFormState],
    questionnaire: Questionnaire,
) -> list[QuestionnaireFormState]:
    """Attach a questionnaire with fresh responses unless already attached."""
    if any(form.questionnaire.id == questionnaire.id for form in forms):
        return list(forms)
    return [*forms, create_form_state(questionnaire)]


def detach_questionnaire(
    forms: Sequence[QuestionnaireFormState],
    questionnaire_id: str,
) -> list[QuestionnaireFormState]:
    """Remove an attached questionnaire (no-op when absent)."""
    return [form for form in forms if form.questionnaire.id != questionnaire_id]
