"""Conditional visibility (enable_when) evaluation."""

from care_forms.visibility.evaluator import (
    check_condition,
    enabled_question_ids,
    is_enabled,
    normalize_value,
    to_number,
)

__all__ = [
    "check_condition",
    "enabled_question_ids",
    "is_enabled",
    "normalize_value",
    "to_number",
]
