"""Response model: answer records and their copy-on-write updates."""

from care_forms.responses.models import (
    QuestionnaireFormState,
    QuestionnaireResponse,
    QuestionValidationError,
    ResponseValue,
)
from care_forms.responses.state import (
    QuestionnaireNotAttachedError,
    attach_questionnaire,
    clear_question_errors,
    create_form_state,
    detach_questionnaire,
    find_question,
    find_question_text,
    flatten_questions,
    initialize_responses,
    iter_questions,
    set_form_response,
    update_response,
)

__all__ = [
    "QuestionnaireFormState",
    "QuestionnaireNotAttachedError",
    "QuestionnaireResponse",
    "QuestionValidationError",
    "ResponseValue",
    "attach_questionnaire",
    "clear_question_errors",
    "create_form_state",
    "detach_questionnaire",
    "find_question",
    "find_question_text",
    "flatten_questions",
    "initialize_responses",
    "iter_questions",
    "set_form_response",
    "update_response",
]
