"""Registry modules for questionnaire definitions."""

from care_forms.registry.fixed import (
    FIXED_QUESTIONNAIRES,
    STRUCTURED_LABELS,
    STRUCTURED_QUESTIONS,
    build_structured_questionnaire,
    get_fixed_questionnaire,
)
from care_forms.registry.models import (
    AnswerOption,
    Coding,
    EnableBehavior,
    EnableWhen,
    EnableWhenOperator,
    Question,
    Questionnaire,
    QuestionType,
    StructuredType,
)
from care_forms.registry.questionnaires import (
    QuestionnaireNotFoundError,
    QuestionnaireRegistry,
    QuestionnaireValidationError,
)

__all__ = [
    "AnswerOption",
    "Coding",
    "EnableBehavior",
    "EnableWhen",
    "EnableWhenOperator",
    "FIXED_QUESTIONNAIRES",
    "Question",
    "Questionnaire",
    "QuestionnaireNotFoundError",
    "QuestionnaireRegistry",
    "QuestionnaireValidationError",
    "QuestionType",
    "STRUCTURED_LABELS",
    "STRUCTURED_QUESTIONS",
    "StructuredType",
    "build_structured_questionnaire",
    "get_fixed_questionnaire",
]
