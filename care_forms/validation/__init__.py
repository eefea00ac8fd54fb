"""Validation of responses and questionnaire definitions."""

from care_forms.validation.checks import (
    REQUIRED_MESSAGE,
    ValidationResult,
    has_answer,
    is_answer_value,
    validate_forms,
    validate_question,
    validate_questionnaire,
    walk_questions,
)
from care_forms.validation.definition import check_definition

__all__ = [
    "REQUIRED_MESSAGE",
    "ValidationResult",
    "check_definition",
    "has_answer",
    "is_answer_value",
    "validate_forms",
    "validate_question",
    "validate_questionnaire",
    "walk_questions",
]
